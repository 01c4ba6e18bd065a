from .internal import FormatEntry, FormatSelection, MediaCatalog, OutputKind, TranscodePlan
from .request import AUDIO_ONLY_TOKEN, DownloadRequest, InfoRequest
from .response import ErrorResponse, FormatOption, VideoDetails, VideoInfo

__all__ = [
    "AUDIO_ONLY_TOKEN",
    "DownloadRequest",
    "ErrorResponse",
    "FormatEntry",
    "FormatOption",
    "FormatSelection",
    "InfoRequest",
    "MediaCatalog",
    "OutputKind",
    "TranscodePlan",
    "VideoDetails",
    "VideoInfo",
]
