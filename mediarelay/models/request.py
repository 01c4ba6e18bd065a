from typing import Optional

from pydantic import BaseModel, Field, field_validator

AUDIO_ONLY_TOKEN = "mp3"


class InfoRequest(BaseModel):
    url: str = Field(..., description="Video page URL")

    @field_validator("url")
    @classmethod
    def strip_url(cls, v):
        """Reject blank input; syntax and SSRF checks happen at the endpoint"""
        v = v.strip()
        if not v:
            raise ValueError("URL is required")
        return v


class DownloadRequest(InfoRequest):
    itag: Optional[str] = Field(None, description="yt-dlp format_id, or 'mp3' for audio only")

    @field_validator("itag")
    @classmethod
    def blank_itag_is_auto(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def audio_only(self) -> bool:
        return self.itag == AUDIO_ONLY_TOKEN
