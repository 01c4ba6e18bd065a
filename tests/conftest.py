import pytest

from mediarelay.api.deps import get_extractor, get_relay, get_runtime
from mediarelay.config.settings import config
from mediarelay.core.errors import TranscodeFailed
from mediarelay.core.state import RuntimeState
from mediarelay.main import app
from mediarelay.services.info import build_catalog
from mediarelay.services.stream import FINISHED, RelayState

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def make_info(formats=None, title="Never Gonna Give You Up"):
    """yt-dlp --dump-json shaped document"""
    if formats is None:
        formats = [
            {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.2",
             "abr": 129.5, "format_note": "medium", "url": "https://cdn.test/140"},
            {"format_id": "251", "ext": "webm", "vcodec": "none", "acodec": "opus",
             "abr": 135.9, "format_note": "medium", "url": "https://cdn.test/251"},
            {"format_id": "18", "ext": "mp4", "vcodec": "avc1.42001E", "acodec": "mp4a.40.2",
             "height": 360, "format_note": "360p", "url": "https://cdn.test/18"},
            {"format_id": "243", "ext": "webm", "vcodec": "vp9", "acodec": "none",
             "height": 360, "format_note": "360p", "url": "https://cdn.test/243"},
            {"format_id": "136", "ext": "mp4", "vcodec": "avc1.4d401f", "acodec": "none",
             "height": 720, "format_note": "720p", "url": "https://cdn.test/136"},
            {"format_id": "248", "ext": "webm", "vcodec": "vp9", "acodec": "none",
             "height": 1080, "format_note": "1080p", "url": "https://cdn.test/248"},
        ]
    return {
        "id": "dQw4w9WgXcQ",
        "title": title,
        "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
        "duration": 212,
        "uploader": "Rick Astley",
        "view_count": 1500000000,
        "formats": formats,
    }


class FakeExtractor:
    def __init__(self, info=None, error=None):
        self.info = info if info is not None else make_info()
        self.error = error
        self.calls = []

    async def get_info(self, url):
        self.calls.append(url)
        if self.error:
            raise self.error
        return build_catalog(self.info)


class FakeStream:
    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.state = RelayState.SPAWNED
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        self.state = RelayState.STREAMING
        for chunk in self.chunks:
            yield chunk
        self.state = RelayState.COMPLETED

    async def aclose(self):
        if self.state not in FINISHED:
            self.state = RelayState.CANCELLED
        self.closed = True


class FakeRelay:
    def __init__(self, chunks=(b"chunk-1", b"chunk-2"), error=None):
        self.chunks = chunks
        self.error = error
        self.plans = []
        self.streams = []

    async def open_stream(self, plan):
        self.plans.append(plan)
        if self.error:
            raise self.error
        stream = FakeStream(self.chunks)
        self.streams.append(stream)
        return stream


@pytest.fixture(autouse=True)
def no_dns(monkeypatch):
    """Test URLs point at real hosts; skip resolving them"""
    monkeypatch.setattr(config.security, "enable_ssrf_protection", False)


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def wired(extractor, relay):
    """Point the app's dependencies at the fakes"""
    runtime = RuntimeState(
        extractor=extractor,
        relay=relay,
        ytdlp_path="/usr/bin/yt-dlp",
        ffmpeg_path="/usr/bin/ffmpeg",
        ytdlp_version="2024.12.13",
        ffmpeg_version="ffmpeg version 6.1.1",
    )
    app.dependency_overrides[get_runtime] = lambda: runtime
    app.dependency_overrides[get_extractor] = lambda: extractor
    app.dependency_overrides[get_relay] = lambda: relay
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def failing_relay():
    return FakeRelay(error=TranscodeFailed("Failed to start ffmpeg: [Errno 2] No such file"))
