"""
Pytest fixtures shared across the suite
"""
import pytest
from fastapi.testclient import TestClient
from io import BytesIO
from multidict import CIMultiDict
from PIL import Image as PILImage
import aiohttp
import sys
import os

# Make the flat top-level packages importable
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ["AI_PROVIDER"] = "mock"

from config.settings import Settings, get_settings
from main import app


class FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    async def iter_chunked(self, size):
        for chunk in self._chunks:
            yield chunk


class FakeResponse:
    """Stands in for aiohttp.ClientResponse inside `async with session.post(...)`"""

    def __init__(self, status=200, json_body=None, text="", headers=None, chunks=None):
        self.status = status
        self._json = json_body
        self._text = text
        self.headers = CIMultiDict(headers or {})
        self.content = FakeStream(chunks or [])

    async def json(self):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    async def text(self):
        return self._text

    async def read(self):
        return b"".join(self.content._chunks)

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(None, (), status=self.status, message="error")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, transport):
        self.transport = transport

    def _next(self, method, url, **kwargs):
        self.transport.calls.append({"method": method, "url": url, **kwargs})
        item = self.transport.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeTransport:
    """Queue of canned responses handed out to every session it creates"""

    def __init__(self):
        self.responses = []
        self.calls = []
        self.session_kwargs = []

    def queue(self, *items):
        self.responses.extend(items)

    def __call__(self, **kwargs):
        self.session_kwargs.append(kwargs)
        return FakeSession(self)


def chat_body(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_png_bytes(size=(64, 32), color=(200, 40, 40)):
    buffer = BytesIO()
    PILImage.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleeps():
    """Recorded retry delays; pass `record_sleep` as the provider's sleep"""
    return []


@pytest.fixture
def record_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)
    return _sleep


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        AI_PROVIDER="mock",
        OPENAI_API_KEY="",
        SCRATCH_DIR=str(tmp_path / "scratch"),
        LEGACY_ERRORS=False,
    )


@pytest.fixture
def client(test_settings):
    """FastAPI test client on the mock provider"""
    app.dependency_overrides[get_settings] = lambda: test_settings
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def png_bytes():
    return make_png_bytes()


@pytest.fixture
def png_file(tmp_path, png_bytes):
    path = tmp_path / "picture.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def sample_story():
    return (
        "Once upon a time a lighthouse keeper found a glass bottle\n\n"
        "Inside the bottle was a map of the bay\n\n"
        "She followed it to a cave full of singing shells"
    )


@pytest.fixture
def five_paragraphs():
    return "\n\n".join(f"Paragraph number {i} of the tale." for i in range(1, 6))
