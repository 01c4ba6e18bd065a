from typing import Optional

from fastapi import Request
from pydantic import ValidationError

from mediarelay.core.errors import BlockedUrl, InvalidInput, MalformedUrl
from mediarelay.core.security import SecurityValidator, UrlValidationResult
from mediarelay.core.state import RuntimeState
from mediarelay.models.request import DownloadRequest, InfoRequest
from mediarelay.services.stream import TranscodeRelay
from mediarelay.services.ytdlp import ExtractorClient


def get_runtime(request: Request) -> RuntimeState:
    return request.app.state.runtime


def get_extractor(request: Request) -> ExtractorClient:
    return get_runtime(request).extractor


def get_relay(request: Request) -> TranscodeRelay:
    return get_runtime(request).relay


async def _check_url(url: str) -> None:
    """SSRF check (separated from validation layer)"""
    result = await SecurityValidator.validate_url(url)
    if result == UrlValidationResult.BLOCKED:
        raise BlockedUrl(f"Blocked host in {url}")
    if result == UrlValidationResult.INVALID:
        raise MalformedUrl(f"Malformed URL: {url}")


async def validate_info_request(url: Optional[str]) -> InfoRequest:
    try:
        info_request = InfoRequest(url=url or "")
    except ValidationError:
        raise InvalidInput("URL is required")
    await _check_url(info_request.url)
    return info_request


async def validate_download_request(url: Optional[str], itag: Optional[str]) -> DownloadRequest:
    try:
        download_request = DownloadRequest(url=url or "", itag=itag)
    except ValidationError:
        raise InvalidInput("URL is required")
    await _check_url(download_request.url)
    return download_request
