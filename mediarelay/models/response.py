from typing import List, Optional

from pydantic import BaseModel


class VideoDetails(BaseModel):
    author: Optional[str] = None
    lengthSeconds: Optional[int] = None
    viewCount: Optional[int] = None


class FormatOption(BaseModel):
    """Entry of the download menu shown to the user"""
    qualityLabel: str
    itag: str
    container: str
    hasAudio: bool
    hasVideo: bool


class VideoInfo(BaseModel):
    """Video information response"""
    title: str
    thumbnail: Optional[str] = None
    videoDetails: VideoDetails
    formats: List[FormatOption] = []


class ErrorResponse(BaseModel):
    error: str
