from fastapi import APIRouter, Depends

from mediarelay.api.deps import get_runtime
from mediarelay.config.settings import config
from mediarelay.core.state import RuntimeState
from mediarelay.i18n import i18n

router = APIRouter()


@router.get("/health")
async def health_check():
    """Lightweight health check"""
    return {"status": i18n.get("health.status")}


@router.get("/health/full")
async def health_check_full(runtime: RuntimeState = Depends(get_runtime)):
    """Detailed health check"""
    return {
        "status": i18n.get("health.status"),
        "service": config.api.title,
        "version": config.api.version,
        "ytdlp_version": runtime.ytdlp_version,
        "ytdlp_path": runtime.ytdlp_path,
        "ffmpeg_version": runtime.ffmpeg_version,
        "ffmpeg_path": runtime.ffmpeg_path,
    }
