import asyncio
import logging
from collections import deque
from contextlib import suppress
from enum import Enum
from typing import List, Optional

from mediarelay.config.settings import config
from mediarelay.core.errors import TranscodeFailed
from mediarelay.models.internal import TranscodePlan
from mediarelay.services.ffmpeg import FFmpegCommandBuilder

logger = logging.getLogger("mediarelay.transcode")

STDERR_MAX_LINES = 50


class RelayState(str, Enum):
    IDLE = "idle"
    SPAWNED = "spawned"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


FINISHED = (RelayState.COMPLETED, RelayState.FAILED, RelayState.CANCELLED)


class TranscodeStream:
    """
    Async byte iterator over one child process's stdout.

    Owns the process exclusively. Chunks are read only when the consumer
    asks for the next one, so a slow client throttles the child through
    the pipe. aclose() kills the child if it is still running and must be
    called when the consumer stops early.
    """

    def __init__(self, cmd: List[str], chunk_size: int = None, kill_grace: float = None):
        self.cmd = cmd
        self.chunk_size = chunk_size or config.transcode.chunk_size
        self.kill_grace = kill_grace or config.transcode.kill_grace_seconds
        self.state = RelayState.IDLE
        self.process: Optional[asyncio.subprocess.Process] = None
        self.stderr_lines = deque(maxlen=STDERR_MAX_LINES)
        self._stderr_task: Optional[asyncio.Task] = None
        self._pending: Optional[bytes] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    async def start(self) -> None:
        """Spawn the child and wait for its first chunk of output"""
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL
            )
        except OSError as e:
            self.state = RelayState.FAILED
            raise TranscodeFailed(f"Failed to start {self.cmd[0]}: {e}")

        self.state = RelayState.SPAWNED
        logger.debug(f"Spawned pid {self.process.pid}")
        self._stderr_task = asyncio.create_task(self._drain_stderr())

        try:
            first = await self.process.stdout.read(self.chunk_size)
            if first:
                self._pending = first
            else:
                await self._finish()
        except BaseException:
            if self.state not in FINISHED:
                self.state = RelayState.CANCELLED
            await self._terminate()
            raise

    async def _drain_stderr(self) -> None:
        """Drain stderr to prevent buffer deadlock"""
        while True:
            try:
                line = await self.process.stderr.readline()
            except ValueError:
                # Line over the stream limit; the rest is not worth keeping
                logger.warning(f"ffmpeg[{self.process.pid}]: stderr line too long, draining raw")
                while await self.process.stderr.read(self.chunk_size):
                    pass
                break
            if not line:
                break
            decoded = line.decode(errors="ignore").rstrip()
            if decoded:
                self.stderr_lines.append(decoded)
                logger.debug(f"ffmpeg[{self.process.pid}]: {decoded}")

    async def _finish(self) -> None:
        returncode = await self.process.wait()
        await self._stop_stderr()
        if returncode != 0:
            self.state = RelayState.FAILED
            error_summary = "\n".join(self.stderr_lines)
            raise TranscodeFailed(f"ffmpeg exited with {returncode}: {error_summary[-200:]}")
        self.state = RelayState.COMPLETED
        logger.debug(f"pid {self.process.pid} completed")

    async def _stop_stderr(self) -> None:
        if self._stderr_task is None:
            return
        if self.process.returncode is not None:
            # Process gone: stderr hits EOF shortly, let the tail land
            await asyncio.wait({self._stderr_task}, timeout=1.0)
        self._stderr_task.cancel()
        with suppress(asyncio.CancelledError):
            await self._stderr_task

    async def _terminate(self) -> None:
        if self.process is None:
            return
        if self.process.returncode is None:
            # Synchronous kill first; the reaping below may be interrupted
            with suppress(ProcessLookupError):
                self.process.kill()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.kill_grace)
            except asyncio.TimeoutError:
                logger.error(f"pid {self.process.pid} did not exit within {self.kill_grace}s")
        await self._stop_stderr()

    def __aiter__(self) -> "TranscodeStream":
        return self

    async def __anext__(self) -> bytes:
        if self._pending is not None:
            chunk, self._pending = self._pending, None
            self.state = RelayState.STREAMING
            return chunk

        if self.state in FINISHED or self.process is None:
            raise StopAsyncIteration

        chunk = await self.process.stdout.read(self.chunk_size)
        if chunk:
            return chunk

        await self._finish()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Stop relaying; kills the child if it is still running"""
        if self.state not in FINISHED:
            self.state = RelayState.CANCELLED
            if self.process is not None:
                logger.info(f"Cancelling pid {self.process.pid}")
        self._pending = None
        await self._terminate()

    async def __aenter__(self) -> "TranscodeStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class TranscodeRelay:
    """Spawn ffmpeg for a plan and hand back its output stream"""

    def __init__(self, ffmpeg_binary: str):
        self.commands = FFmpegCommandBuilder(ffmpeg_binary)

    async def spawn(self, cmd: List[str]) -> TranscodeStream:
        stream = TranscodeStream(cmd)
        await stream.start()
        return stream

    async def open_stream(self, plan: TranscodePlan) -> TranscodeStream:
        return await self.spawn(self.commands.build(plan))
