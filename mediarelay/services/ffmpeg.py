import asyncio
import logging
import shutil
from typing import List, Optional

from mediarelay.config.settings import config
from mediarelay.core.errors import BinaryNotFound, TranscodeFailed
from mediarelay.models.internal import OutputKind, TranscodePlan
from mediarelay.services.ytdlp import SubprocessExecutor

logger = logging.getLogger(__name__)

FRAGMENTED_MP4 = ['-movflags', 'frag_keyframe+empty_moov', '-f', 'mp4']
STDOUT = 'pipe:1'


def resolve_binary(name: str) -> str:
    """
    Resolve a configured executable name or path once, at startup.
    Raises BinaryNotFound instead of letting requests discover it later.
    """
    path = shutil.which(name)
    if not path:
        raise BinaryNotFound(f"Executable not found: {name}")
    return path


class FFmpegCommandBuilder:
    """Build ffmpeg commands that write the result to stdout"""

    def __init__(self, binary: str):
        self.binary = binary

    def _base(self) -> List[str]:
        return [
            self.binary,
            '-hide_banner',
            '-loglevel', config.transcode.loglevel,
            '-nostdin',
        ]

    def build_audio_command(self, audio_url: str) -> List[str]:
        """Any audio source to MP3"""
        return self._base() + [
            '-i', audio_url,
            '-vn',
            '-c:a', 'libmp3lame',
            '-q:a', str(config.transcode.mp3_quality),
            '-f', 'mp3',
            STDOUT,
        ]

    def build_remux_command(self, video_url: str) -> List[str]:
        """Single muxed source, streams copied verbatim"""
        return self._base() + [
            '-i', video_url,
            '-c:v', 'copy',
            '-c:a', 'copy',
        ] + FRAGMENTED_MP4 + [STDOUT]

    def build_mux_command(self, video_url: str, audio_url: str) -> List[str]:
        """Video copied, separate audio re-encoded to AAC and interleaved"""
        return self._base() + [
            '-i', video_url,
            '-i', audio_url,
            '-c:v', 'copy',
            '-c:a', 'aac',
            '-map', '0:v:0',
            '-map', '1:a:0',
        ] + FRAGMENTED_MP4 + [STDOUT]

    def build(self, plan: TranscodePlan) -> List[str]:
        selection = plan.selection

        if selection.output_kind is OutputKind.AUDIO:
            if selection.audio is None or not selection.audio.url:
                raise TranscodeFailed("Audio plan without an audio source")
            return self.build_audio_command(selection.audio.url)

        if selection.video is None or not selection.video.url:
            raise TranscodeFailed("Video plan without a video source")

        if selection.needs_mux and selection.audio is not None and selection.audio.url:
            return self.build_mux_command(selection.video.url, selection.audio.url)

        return self.build_remux_command(selection.video.url)

    def build_version_command(self) -> List[str]:
        return [self.binary, '-version']


async def probe_version(commands: FFmpegCommandBuilder) -> Optional[str]:
    """First line of `ffmpeg -version`, or None when the probe fails"""
    try:
        result = await SubprocessExecutor.run(commands.build_version_command(), timeout=10.0)
    except (OSError, asyncio.TimeoutError) as e:
        logger.warning(f"ffmpeg version probe failed: {e}")
        return None
    if result.returncode != 0:
        return None
    lines = result.stdout.decode(errors="ignore").splitlines()
    return lines[0].strip() if lines else None
