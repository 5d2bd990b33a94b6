"""Shared fixtures and fakes for the test suite."""

from io import BytesIO

import pytest
import requests
from PIL import Image


def make_png(size=(4, 3), color=(255, 0, 0, 255)) -> bytes:
    buf = BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_rotated_jpeg(size=(40, 20), orientation=6) -> bytes:
    """JPEG whose stored pixels are `size` but whose EXIF tag asks for a rotation."""
    exif = Image.Exif()
    exif[0x0112] = orientation
    buf = BytesIO()
    Image.new("RGB", size, (200, 10, 10)).save(buf, format="JPEG", exif=exif)
    return buf.getvalue()


def open_png(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image


class FakeResponse:
    def __init__(self, payload=None, status_code=200, content=b""):
        self._payload = payload
        self.status_code = status_code
        self.content = content

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return dict(self._payload) if isinstance(self._payload, dict) else self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Records requests and replays queued responses in order."""

    def __init__(self, post_responses=(), get_responses=()):
        self.headers = {}
        self.post_responses = list(post_responses)
        self.get_responses = list(get_responses)
        self.posts = []
        self.gets = []
        self.sent_headers = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append((url, json))
        self.sent_headers.append(headers)
        if not self.post_responses:
            return FakeResponse({"id": "cancelled"})
        return self.post_responses.pop(0)

    def get(self, url, headers=None, timeout=None):
        self.gets.append(url)
        self.sent_headers.append(headers)
        return self.get_responses.pop(0)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeRemover:
    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.calls = []

    def remove_background(self, image_bytes, content_type, cancel_event=None):
        self.calls.append((image_bytes, content_type))
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def clock():
    return FakeClock()
