import asyncio
import json
import logging
from typing import List, NamedTuple

from mediarelay.config.settings import config
from mediarelay.core.errors import ExtractionError, InvalidInput, MalformedUrl
from mediarelay.core.security import SecurityValidator, UrlValidationResult
from mediarelay.models.internal import MediaCatalog
from mediarelay.services.info import build_catalog

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 200


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(cmd: List[str], timeout: float) -> CompletedProcess:
        """
        Run subprocess with timeout and proper cleanup.
        The child is killed and reaped on timeout or cancellation.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )
            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr
            )
        except BaseException:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    def __init__(self, binary: str):
        self.binary = binary

    def build_info_command(self, url: str) -> List[str]:
        """Build command for fetching video info"""
        cmd = [
            self.binary,
            '--dump-json',
            '--no-playlist',
            '--no-warnings',
            '--socket-timeout', str(config.extractor.socket_timeout),
        ]
        cmd.extend(config.extractor.extra_args)
        # "--" keeps URLs starting with "-" from being parsed as options
        cmd.extend(['--', url])
        return cmd

    def build_version_command(self) -> List[str]:
        return [self.binary, '--version']


class ExtractorClient:
    """
    Metadata client around the yt-dlp executable.
    One instance per application, created by the startup hook.
    Every call spawns a fresh process: no retries, no caching.
    """

    def __init__(self, binary: str, timeout: float = None):
        self.commands = YTDLPCommandBuilder(binary)
        self.timeout = timeout or config.extractor.timeout_seconds

    async def get_info(self, url: str) -> MediaCatalog:
        if not url or not url.strip():
            raise InvalidInput("URL is required")

        url = url.strip()
        try:
            syntax = SecurityValidator.check_syntax(url)
        except ValueError:
            syntax = UrlValidationResult.INVALID
        if syntax is not UrlValidationResult.OK:
            raise MalformedUrl(f"Malformed URL: {url}")

        cmd = self.commands.build_info_command(url)

        try:
            result = await SubprocessExecutor.run(cmd, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ExtractionError(f"yt-dlp timed out after {self.timeout:.0f}s")
        except OSError as e:
            raise ExtractionError(f"Failed to start yt-dlp: {e}")

        if result.returncode != 0:
            error_msg = result.stderr.decode(errors="ignore").strip()
            raise ExtractionError(
                f"yt-dlp exited with {result.returncode}: {error_msg[-STDERR_TAIL_CHARS:]}"
            )

        try:
            info = json.loads(result.stdout.decode(errors="ignore"))
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Malformed yt-dlp output: {e}")

        if not isinstance(info, dict):
            raise ExtractionError("Malformed yt-dlp output: expected a JSON object")

        return build_catalog(info)

    async def version(self) -> str:
        try:
            result = await SubprocessExecutor.run(
                self.commands.build_version_command(), timeout=10.0
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning(f"yt-dlp version probe failed: {e}")
            return "unknown"
        if result.returncode != 0:
            return "unknown"
        return result.stdout.decode(errors="ignore").strip() or "unknown"
