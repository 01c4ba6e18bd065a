import asyncio
import logging
import sys

import pytest
from starlette.requests import ClientDisconnect, Request

from mediarelay.api.download import RelayResponse
from mediarelay.core.errors import BinaryNotFound, TranscodeFailed
from mediarelay.models.internal import FormatEntry, FormatSelection, OutputKind, TranscodePlan
from mediarelay.services.ffmpeg import FFmpegCommandBuilder, resolve_binary
from mediarelay.services.stream import RelayState, TranscodeRelay

ENDLESS = (
    "import sys\n"
    "block = b'x' * 65536\n"
    "while True:\n"
    "    sys.stdout.buffer.write(block)\n"
    "    sys.stdout.buffer.flush()\n"
)


def python(script):
    return [sys.executable, "-c", script]


def fmt(format_id, audio, video):
    return FormatEntry(
        format_id=format_id,
        quality_label=format_id,
        container="mp4",
        has_audio=audio,
        has_video=video,
        url=f"https://cdn.test/{format_id}",
    )


class TestCommands:
    builder = FFmpegCommandBuilder("/opt/ffmpeg")

    def test_audio(self):
        plan = TranscodePlan(
            selection=FormatSelection(output_kind=OutputKind.AUDIO, audio=fmt("a", True, False)),
            ext="mp3",
            media_type="audio/mpeg",
        )
        cmd = self.builder.build(plan)
        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "https://cdn.test/a"
        assert cmd[-8:] == ["-vn", "-c:a", "libmp3lame", "-q:a", "2", "-f", "mp3", "pipe:1"]
        assert "-nostdin" in cmd

    def test_remux_copies_streams(self):
        plan = TranscodePlan(
            selection=FormatSelection(output_kind=OutputKind.VIDEO, video=fmt("18", True, True)),
            ext="mp4",
            media_type="video/mp4",
        )
        cmd = self.builder.build(plan)
        assert cmd.count("-i") == 1
        assert ["-c:v", "copy", "-c:a", "copy"] == cmd[cmd.index("-c:v"):cmd.index("-c:v") + 4]
        assert cmd[-5:] == ["-movflags", "frag_keyframe+empty_moov", "-f", "mp4", "pipe:1"]

    def test_mux_reencodes_audio(self):
        plan = TranscodePlan(
            selection=FormatSelection(
                output_kind=OutputKind.VIDEO,
                video=fmt("137", False, True),
                audio=fmt("140", True, False),
                needs_mux=True,
            ),
            ext="mp4",
            media_type="video/mp4",
        )
        cmd = self.builder.build(plan)
        inputs = [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"]
        assert inputs == ["https://cdn.test/137", "https://cdn.test/140"]
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-c:v") + 1] == "copy"
        assert "0:v:0" in cmd and "1:a:0" in cmd
        assert "frag_keyframe+empty_moov" in cmd

    def test_video_plan_without_source(self):
        plan = TranscodePlan(
            selection=FormatSelection(output_kind=OutputKind.VIDEO),
            ext="mp4",
            media_type="video/mp4",
        )
        with pytest.raises(TranscodeFailed):
            self.builder.build(plan)


def test_resolve_binary():
    assert resolve_binary(sys.executable) == sys.executable
    with pytest.raises(BinaryNotFound):
        resolve_binary("definitely-not-an-installed-ffmpeg")


@pytest.mark.asyncio
async def test_relays_all_output():
    relay = TranscodeRelay("unused")
    stream = await relay.spawn(python("import sys; sys.stdout.buffer.write(b'y' * 200000)"))
    assert stream.state is RelayState.SPAWNED

    received = b"".join([chunk async for chunk in stream])

    assert received == b"y" * 200000
    assert stream.state is RelayState.COMPLETED
    assert stream.process.returncode == 0


@pytest.mark.asyncio
async def test_error_before_output_fails_at_start():
    relay = TranscodeRelay("unused")
    script = "import sys; sys.stderr.write('Server returned 403 Forbidden\\n'); sys.exit(1)"

    with pytest.raises(TranscodeFailed) as excinfo:
        await relay.spawn(python(script))

    assert "403 Forbidden" in str(excinfo.value)


@pytest.mark.asyncio
async def test_error_mid_stream():
    relay = TranscodeRelay("unused")
    script = "import sys; sys.stdout.buffer.write(b'partial'); sys.stdout.flush(); sys.exit(2)"
    stream = await relay.spawn(python(script))

    with pytest.raises(TranscodeFailed):
        async for _ in stream:
            pass

    assert stream.state is RelayState.FAILED


@pytest.mark.asyncio
async def test_spawn_failure():
    relay = TranscodeRelay("/nonexistent/ffmpeg")
    plan = TranscodePlan(
        selection=FormatSelection(output_kind=OutputKind.VIDEO, video=fmt("18", True, True)),
        ext="mp4",
        media_type="video/mp4",
    )
    with pytest.raises(TranscodeFailed):
        await relay.open_stream(plan)


@pytest.mark.asyncio
async def test_close_kills_running_process():
    relay = TranscodeRelay("unused")
    stream = await relay.spawn(python(ENDLESS))
    first = await stream.__anext__()
    assert first

    await asyncio.wait_for(stream.aclose(), timeout=5)

    assert stream.state is RelayState.CANCELLED
    assert stream.process.returncode is not None
    # Closing twice is harmless
    await stream.aclose()


@pytest.mark.asyncio
async def test_context_manager_closes():
    relay = TranscodeRelay("unused")
    async with await relay.spawn(python(ENDLESS)) as stream:
        await stream.__anext__()
    assert stream.process.returncode is not None


@pytest.mark.asyncio
async def test_stderr_is_logged_at_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="mediarelay.transcode")
    relay = TranscodeRelay("unused")
    script = "import sys; sys.stderr.write('frame=1 fps=0.0\\n'); sys.stdout.buffer.write(b'ok')"
    stream = await relay.spawn(python(script))

    assert b"".join([chunk async for chunk in stream]) == b"ok"

    (record,) = [r for r in caplog.records if "frame=1" in r.getMessage()]
    assert record.name == "mediarelay.transcode"
    assert record.levelno == logging.DEBUG
    assert list(stream.stderr_lines) == ["frame=1 fps=0.0"]


def http_scope(spec_version):
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": spec_version},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/download",
        "raw_path": b"/download",
        "query_string": b"",
        "headers": [],
        "state": {"request_id": "disconnect-test"},
    }


@pytest.mark.asyncio
async def test_cancelled_response_kills_process():
    """A cancelled response must not leave the child running"""
    relay = TranscodeRelay("unused")
    stream = await relay.spawn(python(ENDLESS))

    scope = http_scope("2.4")
    response = RelayResponse(stream, Request(scope), media_type="video/mp4")

    first_body = asyncio.Event()

    async def send(message):
        if message["type"] == "http.response.body" and message.get("body"):
            first_body.set()
            # Client stopped reading
            await asyncio.Event().wait()

    async def receive():
        await asyncio.Event().wait()

    task = asyncio.create_task(response(scope, receive, send))
    await asyncio.wait_for(first_body.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=10)

    assert stream.process.returncode is not None
    assert stream.state is RelayState.CANCELLED


@pytest.mark.asyncio
async def test_disconnect_message_kills_process():
    """Servers before ASGI 2.4 report a gone client through receive()"""
    relay = TranscodeRelay("unused")
    stream = await relay.spawn(python(ENDLESS))

    scope = http_scope("2.3")
    response = RelayResponse(stream, Request(scope), media_type="video/mp4")

    first_body = asyncio.Event()

    async def send(message):
        if message["type"] == "http.response.body" and message.get("body"):
            first_body.set()
            await asyncio.Event().wait()

    async def receive():
        await first_body.wait()
        return {"type": "http.disconnect"}

    await asyncio.wait_for(response(scope, receive, send), timeout=10)

    assert stream.process.returncode is not None
    assert stream.state is RelayState.CANCELLED


@pytest.mark.asyncio
async def test_failed_send_kills_process():
    """ASGI 2.4 servers raise OSError from send() once the client is gone"""
    relay = TranscodeRelay("unused")
    stream = await relay.spawn(python(ENDLESS))

    scope = http_scope("2.4")
    response = RelayResponse(stream, Request(scope), media_type="video/mp4")

    async def send(message):
        if message["type"] == "http.response.body":
            raise OSError("Connection reset by peer")

    async def receive():
        await asyncio.Event().wait()

    with pytest.raises(ClientDisconnect):
        await asyncio.wait_for(response(scope, receive, send), timeout=10)

    assert stream.process.returncode is not None
    assert stream.state is RelayState.CANCELLED
