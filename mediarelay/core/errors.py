from typing import Any


class MediaRelayError(Exception):
    """
    Base for every error the service reports to a client.
    Carries the HTTP status and the i18n key of the client-facing message;
    the exception text itself is the server-side detail that gets logged.
    """
    status_code: int = 500
    message_key: str = "error.internal"

    def __init__(self, detail: str = "", **params: Any):
        super().__init__(detail or self.message_key)
        self.detail = detail
        self.params = params


class InvalidInput(MediaRelayError):
    """Missing, malformed or blocked source URL"""
    status_code = 400
    message_key = "error.invalid_url"


class ExtractionError(MediaRelayError):
    """yt-dlp failed to start, exited non-zero or printed garbage"""
    status_code = 500
    message_key = "error.fetch_info_failed"


class FormatNotFound(MediaRelayError):
    """No requested or fallback source in the catalog"""
    status_code = 404
    message_key = "error.format_not_found"


class TranscodeFailed(MediaRelayError):
    """ffmpeg could not be spawned or reported an error"""
    status_code = 500
    message_key = "error.transcode_failed"


class BinaryNotFound(MediaRelayError):
    """A configured executable does not resolve to a file on this host"""
    status_code = 500
    message_key = "error.binary_missing"


class MalformedUrl(InvalidInput):
    """Source URL is not an http(s) URL with a host"""
    message_key = "error.malformed_url"


class BlockedUrl(InvalidInput):
    """Source host resolves to a loopback, private or link-local address"""
    message_key = "error.blocked_url"


class AudioNotFound(FormatNotFound):
    """Audio-only download requested but the catalog has no audio-only stream"""
    message_key = "error.audio_not_found"
