from dataclasses import dataclass
from typing import Optional

from mediarelay.services.stream import TranscodeRelay
from mediarelay.services.ytdlp import ExtractorClient


@dataclass
class RuntimeState:
    """
    Process-wide collaborators, built by the startup hook and attached to
    app.state. Read-only once startup has finished.
    """
    extractor: ExtractorClient
    relay: TranscodeRelay
    ytdlp_path: str
    ffmpeg_path: str
    ytdlp_version: str = "unknown"
    ffmpeg_version: Optional[str] = None
