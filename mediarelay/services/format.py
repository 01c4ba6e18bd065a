from typing import Callable, Iterable, Optional

from mediarelay.core.errors import AudioNotFound, FormatNotFound
from mediarelay.models.internal import (
    FormatEntry,
    FormatSelection,
    MediaCatalog,
    OutputKind,
    TranscodePlan,
)
from mediarelay.models.request import AUDIO_ONLY_TOKEN


def _best(entries: Iterable[FormatEntry], key: Callable[[FormatEntry], tuple]) -> Optional[FormatEntry]:
    """Highest by key; the last one in catalog order wins ties"""
    best = None
    for entry in entries:
        if best is None or key(entry) >= key(best):
            best = entry
    return best


def _audio_rank(entry: FormatEntry) -> tuple:
    return (entry.abr or 0.0, entry.tbr or 0.0)


def _video_rank(entry: FormatEntry) -> tuple:
    return (entry.height or 0, entry.tbr or 0.0)


class FormatSelector:
    """Pick the concrete streams for a download"""

    @staticmethod
    def best_audio(catalog: MediaCatalog) -> Optional[FormatEntry]:
        return _best(
            (f for f in catalog.formats if f.is_audio_only and f.url),
            _audio_rank
        )

    @staticmethod
    def best_video(catalog: MediaCatalog) -> Optional[FormatEntry]:
        return _best(
            (f for f in catalog.formats if f.has_video and f.url),
            _video_rank
        )

    @staticmethod
    def select(catalog: MediaCatalog, requested_id: Optional[str]) -> FormatSelection:
        if requested_id == AUDIO_ONLY_TOKEN:
            audio = FormatSelector.best_audio(catalog)
            if audio is None:
                raise AudioNotFound("No audio-only source in catalog")
            return FormatSelection(output_kind=OutputKind.AUDIO, audio=audio)

        video = None
        if requested_id:
            video = next(
                (f for f in catalog.formats if f.format_id == str(requested_id)),
                None
            )
        if video is None:
            # Unknown or missing id: fall back to the best video track
            video = FormatSelector.best_video(catalog)

        if video is None or not video.url:
            raise FormatNotFound(f"No source for format {requested_id or 'auto'}")

        audio = None
        if not video.has_audio:
            audio = FormatSelector.best_audio(catalog)

        return FormatSelection(
            output_kind=OutputKind.VIDEO,
            video=video,
            audio=audio,
            needs_mux=audio is not None,
        )

    @staticmethod
    def plan(selection: FormatSelection) -> TranscodePlan:
        if selection.output_kind is OutputKind.AUDIO:
            return TranscodePlan(selection=selection, ext="mp3", media_type="audio/mpeg")
        return TranscodePlan(selection=selection, ext="mp4", media_type="video/mp4")
