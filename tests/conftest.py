"""Shared test fixtures and fakes."""

import io
import json
from pathlib import Path
from typing import Any, Iterable, List, Optional

import pytest
from PIL import Image

from config import Config

# =============================================================================
# Images
# =============================================================================


def image_bytes(size=(64, 48), fmt="PNG", mode="RGB", color=(200, 40, 40)) -> bytes:
    """Encode a solid-color image in memory."""
    if mode in ("RGBA", "LA"):
        color = color + (128,) if mode == "RGBA" else (128, 128)
    elif mode == "L":
        color = 128
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image(tmp_path: Path):
    """Factory writing an image file into tmp_path and returning its path."""

    def _make(name="sample.png", size=(64, 48), fmt="PNG", mode="RGB") -> Path:
        path = tmp_path / name
        path.write_bytes(image_bytes(size=size, fmt=fmt, mode=mode))
        return path

    return _make


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path / "artifacts"


@pytest.fixture
def config(temp_dir: Path) -> Config:
    """Configuration with a usable key and an isolated temp directory."""
    return Config(
        api_key="sk-test-0123456789",
        api_base_url="https://models.test/api/v4",
        model="glm-4.5v",
        temp_dir=str(temp_dir),
        model_max_retries=1,
    )


# =============================================================================
# requests fakes
# =============================================================================


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        chunks: Optional[Iterable[bytes]] = None,
        headers: Optional[dict] = None,
        text: Optional[str] = None,
        reason: str = "",
    ):
        self.status_code = status_code
        self._json = json_data
        self._chunks = chunks if chunks is not None else []
        self.headers = headers or {}
        self.reason = reason
        self.text = text if text is not None else (json.dumps(json_data) if json_data is not None else "")
        self.bytes_streamed = 0
        self.closed = False

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size: int = 1):
        for chunk in self._chunks:
            self.bytes_streamed += len(chunk)
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    """Records requests and replays queued responses (or raises queued errors)."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.headers = {}
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    def _next(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url: str, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self._next("POST", url, **kwargs)


def completion(content: str, response_id: str = "chatcmpl-1") -> dict:
    """Chat-completions response body with one choice."""
    return {
        "id": response_id,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


# =============================================================================
# Clipboard fake
# =============================================================================


class FakeClipboardBackend:
    """Writes preset PNG bytes, or reports an empty clipboard."""

    name = "fake"

    def __init__(self, data: Optional[bytes] = None, error: Optional[Exception] = None):
        self.data = data
        self.error = error
        self.paths: List[Path] = []

    def try_capture(self, output_path: Path) -> bool:
        self.paths.append(output_path)
        if self.error is not None:
            raise self.error
        if self.data is None:
            return False
        output_path.write_bytes(self.data)
        return True
