import functools
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from mediarelay.api.deps import get_extractor, get_relay, validate_download_request
from mediarelay.core.errors import MediaRelayError, TranscodeFailed
from mediarelay.core.logging import log_debug, log_error, log_info
from mediarelay.i18n import i18n
from mediarelay.models.response import ErrorResponse
from mediarelay.services.format import FormatSelector
from mediarelay.services.stream import TranscodeRelay, TranscodeStream
from mediarelay.services.ytdlp import ExtractorClient
from mediarelay.utils.filename import content_disposition, download_filename
from mediarelay.utils.locale import get_locale, safe_url_for_log

router = APIRouter()


class RelayResponse(StreamingResponse):
    """
    StreamingResponse that owns a TranscodeStream.
    The stream is closed however the response ends, so a client that goes
    away mid-download takes the ffmpeg process with it.
    """

    def __init__(self, stream: TranscodeStream, request: Request, **kwargs):
        super().__init__(stream, **kwargs)
        self.stream = stream
        self.request = request

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except TranscodeFailed as e:
            # Headers are already out: returning without the final body
            # message makes the server drop the connection, so the client
            # sees a truncated download instead of a second response.
            log_error(self.request, f"Stream aborted: {str(e)}")
        finally:
            await self.stream.aclose()
            log_info(self.request, i18n.get("log.stream_closed", state=self.stream.state.value))


@router.get(
    "/download",
    response_class=StreamingResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def download_video(
    request: Request,
    url: Optional[str] = Query(None, description="Video page URL"),
    itag: Optional[str] = Query(None, description="format id from /info, or 'mp3'"),
    extractor: ExtractorClient = Depends(get_extractor),
    relay: TranscodeRelay = Depends(get_relay),
):
    """Stream the selected format, remuxed or transcoded on the fly"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    download_request = await validate_download_request(url, itag)
    safe_url = safe_url_for_log(download_request.url)

    try:
        catalog = await extractor.get_info(download_request.url)
        selection = FormatSelector.select(catalog, download_request.itag)
        plan = FormatSelector.plan(selection)
        filename = download_filename(catalog.title, plan.ext, download_request.url)

        kind = "mux" if selection.needs_mux else selection.output_kind.value
        log_info(request, _("log.starting_stream", kind=kind, url=safe_url, itag=download_request.itag or "auto"))
        log_debug(
            request,
            f"video={selection.video.format_id if selection.video else None} "
            f"audio={selection.audio.format_id if selection.audio else None}"
        )

        stream = await relay.open_stream(plan)
    except MediaRelayError:
        raise
    except Exception as e:
        log_error(request, f"Download error: {str(e)}")
        raise MediaRelayError(str(e))

    headers = {
        'Content-Disposition': content_disposition(filename),
        'X-Content-Type-Options': 'nosniff',
        'Cache-Control': 'no-cache',
        'Accept-Ranges': 'none',
    }

    return RelayResponse(stream, request, media_type=plan.media_type, headers=headers)
