import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mediarelay.api import download, health, info, ui
from mediarelay.config.settings import config
from mediarelay.core.errors import MediaRelayError
from mediarelay.core.logging import log_error, log_warning, setup_logging
from mediarelay.core.middleware import RequestIdMiddleware
from mediarelay.core.state import RuntimeState
from mediarelay.i18n import i18n
from mediarelay.services.ffmpeg import probe_version, resolve_binary
from mediarelay.services.stream import TranscodeRelay
from mediarelay.services.ytdlp import ExtractorClient
from mediarelay.utils.locale import get_locale

logger = logging.getLogger("mediarelay")

app = FastAPI(
    title=config.api.title,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)
app.add_middleware(RequestIdMiddleware)

# Routes
app.include_router(ui.router, tags=["UI"])
app.include_router(health.router, tags=["Health"])
app.include_router(info.router, tags=["Info"])
app.include_router(download.router, tags=["Download"])


@app.exception_handler(MediaRelayError)
async def media_relay_error_handler(request: Request, exc: MediaRelayError):
    locale = get_locale(request.headers.get("accept-language"))
    log = log_warning if exc.status_code < 500 else log_error
    log(request, f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": i18n.get(exc.message_key, locale=locale, **exc.params)},
    )


@app.on_event("startup")
async def startup_event():
    setup_logging()

    # Fail fast: a missing binary stops the server instead of every request
    ytdlp_path = resolve_binary(config.binaries.ytdlp)
    ffmpeg_path = resolve_binary(config.binaries.ffmpeg)

    extractor = ExtractorClient(ytdlp_path)
    relay = TranscodeRelay(ffmpeg_path)

    app.state.runtime = RuntimeState(
        extractor=extractor,
        relay=relay,
        ytdlp_path=ytdlp_path,
        ffmpeg_path=ffmpeg_path,
        ytdlp_version=await extractor.version(),
        ffmpeg_version=await probe_version(relay.commands),
    )
    logger.info(f"yt-dlp {app.state.runtime.ytdlp_version} at {ytdlp_path}")
    logger.info(f"{app.state.runtime.ffmpeg_version or 'ffmpeg'} at {ffmpeg_path}")


@app.on_event("shutdown")
async def shutdown_event():
    app.state.runtime = None
    logger.info("Shutdown complete")


def run() -> None:
    uvicorn.run(
        "mediarelay.main:app",
        host=config.api.host,
        port=config.api.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
