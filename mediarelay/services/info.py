from typing import Any, Dict, List, Optional

from mediarelay.models.internal import FormatEntry, MediaCatalog
from mediarelay.models.request import AUDIO_ONLY_TOKEN
from mediarelay.models.response import FormatOption, VideoDetails, VideoInfo

MP4 = "mp4"


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def normalize_format(raw: Dict[str, Any]) -> Optional[FormatEntry]:
    """Map one yt-dlp format dict; None for entries with neither track"""
    vcodec = raw.get("vcodec")
    acodec = raw.get("acodec")
    has_video = vcodec != "none"
    has_audio = acodec != "none"
    if not has_video and not has_audio:
        return None

    height = _as_int(raw.get("height"))
    label = raw.get("format_note") or (f"{height}p" if height else "Audio")

    return FormatEntry(
        format_id=str(raw.get("format_id", "")),
        quality_label=str(label),
        container=str(raw.get("ext") or "unknown"),
        has_audio=has_audio,
        has_video=has_video,
        height=height,
        vcodec=vcodec,
        acodec=acodec,
        abr=_as_float(raw.get("abr")),
        tbr=_as_float(raw.get("tbr")),
        url=raw.get("url"),
    )


def build_catalog(info: Dict[str, Any]) -> MediaCatalog:
    """Normalize a yt-dlp --dump-json document"""
    formats = []
    for raw in info.get("formats") or []:
        if not isinstance(raw, dict):
            continue
        entry = normalize_format(raw)
        if entry is not None:
            formats.append(entry)

    return MediaCatalog(
        title=info.get("title") or "video",
        thumbnail=info.get("thumbnail"),
        duration=_as_int(info.get("duration")),
        author=info.get("uploader") or info.get("channel"),
        view_count=_as_int(info.get("view_count")),
        formats=formats,
    )


def dedupe_by_quality(formats: List[FormatEntry]) -> List[FormatEntry]:
    """
    Keep one video-bearing entry per quality key.

    A later entry replaces the kept one when it is mp4 and the kept one is
    not, or when both share a container. An mp4 entry is never displaced by
    another container, so applying this twice changes nothing.
    """
    unique: Dict[str, FormatEntry] = {}

    for entry in formats:
        if not entry.has_video:
            continue

        key = entry.quality_key
        existing = unique.get(key)
        if existing is None:
            unique[key] = entry
        elif entry.container == MP4 and existing.container != MP4:
            unique[key] = entry
        elif entry.container == existing.container:
            unique[key] = entry

    return list(unique.values())


def build_format_menu(catalog: MediaCatalog) -> List[FormatOption]:
    """Deduplicated video options, highest first, plus the mp3 option"""
    entries = sorted(
        dedupe_by_quality(catalog.formats),
        key=lambda f: f.height or 0,
        reverse=True
    )

    menu = [
        FormatOption(
            qualityLabel=entry.quality_key,
            itag=entry.format_id,
            container=entry.container,
            hasAudio=entry.has_audio,
            hasVideo=entry.has_video,
        )
        for entry in entries
    ]
    menu.append(
        FormatOption(
            qualityLabel="Audio Only (MP3)",
            itag=AUDIO_ONLY_TOKEN,
            container="mp3",
            hasAudio=True,
            hasVideo=False,
        )
    )
    return menu


class VideoInfoService:
    """Video info response assembly"""

    @staticmethod
    def to_response(catalog: MediaCatalog) -> VideoInfo:
        return VideoInfo(
            title=catalog.title,
            thumbnail=catalog.thumbnail,
            videoDetails=VideoDetails(
                author=catalog.author,
                lengthSeconds=catalog.duration,
                viewCount=catalog.view_count,
            ),
            formats=build_format_menu(catalog),
        )
