import functools
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from mediarelay.api.deps import get_extractor, validate_info_request
from mediarelay.core.errors import MediaRelayError
from mediarelay.core.logging import log_error, log_info
from mediarelay.i18n import i18n
from mediarelay.models.response import ErrorResponse, VideoInfo
from mediarelay.services.info import VideoInfoService
from mediarelay.services.ytdlp import ExtractorClient
from mediarelay.utils.locale import get_locale, safe_url_for_log

router = APIRouter()


@router.get(
    "/info",
    response_model=VideoInfo,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_video_info(
    request: Request,
    url: Optional[str] = Query(None, description="Video page URL"),
    extractor: ExtractorClient = Depends(get_extractor),
):
    """Title, details and the download menu for a video URL"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    info_request = await validate_info_request(url)

    safe_url = safe_url_for_log(info_request.url)
    log_info(request, _("log.fetching_info", url=safe_url))

    try:
        catalog = await extractor.get_info(info_request.url)
        video_info = VideoInfoService.to_response(catalog)
    except MediaRelayError:
        raise
    except Exception as e:
        log_error(request, f"Video info error: {str(e)}")
        raise MediaRelayError(str(e))

    log_info(request, _("log.info_retrieved", title=video_info.title, count=len(catalog.formats)))
    return video_info
