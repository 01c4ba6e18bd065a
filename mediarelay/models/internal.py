from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class OutputKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class FormatEntry(BaseModel):
    """One encoded stream reported by yt-dlp"""
    format_id: str
    quality_label: str
    container: str
    has_audio: bool
    has_video: bool
    height: Optional[int] = None
    vcodec: Optional[str] = None
    acodec: Optional[str] = None
    abr: Optional[float] = None
    tbr: Optional[float] = None
    # Direct origin URL; only ffmpeg ever sees it
    url: Optional[str] = Field(default=None, exclude=True, repr=False)

    @property
    def quality_key(self) -> str:
        if self.height:
            return f"{self.height}p"
        return self.quality_label

    @property
    def is_audio_only(self) -> bool:
        return self.has_audio and not self.has_video


class MediaCatalog(BaseModel):
    """Normalized yt-dlp metadata, in the tool's catalog order"""
    title: str
    thumbnail: Optional[str] = None
    duration: Optional[int] = None
    author: Optional[str] = None
    view_count: Optional[int] = None
    formats: List[FormatEntry] = Field(default_factory=list)


class FormatSelection(BaseModel):
    """Streams chosen to satisfy one download"""
    output_kind: OutputKind
    video: Optional[FormatEntry] = None
    audio: Optional[FormatEntry] = None
    needs_mux: bool = False


class TranscodePlan(BaseModel):
    """Selection plus the container the client receives"""
    selection: FormatSelection
    ext: str
    media_type: str
