from .errors import (
    AudioNotFound,
    BinaryNotFound,
    BlockedUrl,
    ExtractionError,
    FormatNotFound,
    InvalidInput,
    MalformedUrl,
    MediaRelayError,
    TranscodeFailed,
)

__all__ = [
    "AudioNotFound",
    "BinaryNotFound",
    "BlockedUrl",
    "ExtractionError",
    "FormatNotFound",
    "InvalidInput",
    "MalformedUrl",
    "MediaRelayError",
    "TranscodeFailed",
]
