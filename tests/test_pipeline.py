import json

import pytest
import requests

from analysis.client import ModelServiceClient, VisionClient
from analysis.pipeline import ImageAnalysisPipeline
from config import Config
from imaging.artifacts import TempArtifactManager
from imaging.clipboard import ClipboardCapture
from imaging.fetcher import RemoteFetcher
from shared.errors import (
    ConfigurationError,
    DownloadError,
    FileSystemError,
    InvalidImageError,
    NoImageAvailableError,
    RemoteServiceError,
)
from shared.schemas import Provenance
from tests.conftest import FakeClipboardBackend, FakeResponse, FakeSession, completion, image_bytes


class Harness:
    """A pipeline wired to fakes, exposing the fakes for assertions."""

    def __init__(self, config, clipboard_data=None, download_responses=None, model_responses=None):
        self.artifacts = TempArtifactManager(config.temp_dir)
        self.clipboard_backend = FakeClipboardBackend(data=clipboard_data)
        self.download_session = FakeSession(download_responses)
        self.model_session = FakeSession(model_responses)
        self.pipeline = ImageAnalysisPipeline(
            config,
            self.artifacts,
            ClipboardCapture(self.artifacts, backend=self.clipboard_backend),
            RemoteFetcher(self.artifacts, session=self.download_session),
            VisionClient(ModelServiceClient(config, session=self.model_session, retry_backoff=0.0)),
        )

    @property
    def network_calls(self):
        return self.download_session.calls + self.model_session.calls

    def temp_files(self):
        if not self.artifacts.root.exists():
            return []
        return list(self.artifacts.root.iterdir())


def _reply(text="A screenshot of a code editor."):
    return FakeResponse(json_data=completion(text))


# =============================================================================
# Local files
# =============================================================================


def test_local_png_with_error_focus(config, make_image):
    path = make_image("error.png", size=(320, 200))
    harness = Harness(config, model_responses=[_reply("The dialog text is blurry.")])

    result = harness.pipeline.run(str(path), "error")

    assert result.summary == "The dialog text is blurry."
    assert result.source is Provenance.FILE
    assert result.metadata.format == "png"
    assert (result.metadata.width, result.metadata.height) == (320, 200)
    assert result.metadata.file_size.endswith(" KB")
    # The caller's file is never treated as a temp artifact
    assert path.exists()


@pytest.mark.parametrize(
    "name, size, fmt, expected",
    [
        ("photo.jpg", (2500, 1600), "JPEG", "jpeg"),
        ("anim.gif", (10, 10), "GIF", "gif"),
        ("scan.bmp", (300, 3000), "BMP", "bmp"),
        ("misnamed.png", (50, 60), "JPEG", "jpeg"),
    ],
)
def test_metadata_matches_source_image(config, make_image, name, size, fmt, expected):
    path = make_image(name, size=size, fmt=fmt)
    harness = Harness(config, model_responses=[_reply()])

    result = harness.pipeline.run(str(path))

    assert result.metadata.format == expected
    assert (result.metadata.width, result.metadata.height) == size
    assert result.source is Provenance.FILE


def test_structured_reply_is_mapped(config, make_image):
    raw = json.dumps({"summary": "Architecture diagram", "issues": ["tiny labels"]})
    harness = Harness(config, model_responses=[_reply(raw)])

    result = harness.pipeline.run(str(make_image()), "architecture")

    assert result.summary == "Architecture diagram"
    assert result.issues == ["tiny labels"]
    assert result.confidence == 0.9


def test_missing_path_fails_fast(config, tmp_path):
    harness = Harness(config)

    with pytest.raises(FileSystemError, match="does not exist"):
        harness.pipeline.run(str(tmp_path / "nope.png"))

    assert harness.network_calls == []


def test_directory_path_is_not_a_file(config, tmp_path):
    with pytest.raises(FileSystemError):
        Harness(config).pipeline.run(str(tmp_path))


def test_non_image_file_raises_invalid_image(config, tmp_path):
    path = tmp_path / "readme.png"
    path.write_text("hello")
    harness = Harness(config)

    with pytest.raises(InvalidImageError):
        harness.pipeline.run(str(path))

    assert path.exists()
    assert harness.model_session.calls == []


# =============================================================================
# Clipboard
# =============================================================================


def test_empty_clipboard_without_input_fails_with_no_network(config):
    harness = Harness(config, clipboard_data=None)

    with pytest.raises(NoImageAvailableError):
        harness.pipeline.run(None)

    assert harness.network_calls == []
    assert harness.temp_files() == []


def test_clipboard_image_is_analyzed_and_cleaned_up(config):
    harness = Harness(config, clipboard_data=image_bytes(size=(90, 70)), model_responses=[_reply()])

    result = harness.pipeline.run()

    assert result.source is Provenance.CLIPBOARD
    assert (result.metadata.width, result.metadata.height) == (90, 70)
    assert len(harness.clipboard_backend.paths) == 1
    assert not harness.clipboard_backend.paths[0].exists()
    assert harness.temp_files() == []


def test_clipboard_temp_file_removed_when_analysis_fails(config):
    harness = Harness(
        config,
        clipboard_data=image_bytes(),
        model_responses=[FakeResponse(status_code=500, json_data={"error": {"message": "overloaded"}})],
    )

    with pytest.raises(RemoteServiceError, match="overloaded"):
        harness.pipeline.run("")

    assert harness.temp_files() == []


def test_undecodable_clipboard_data_is_cleaned_up(config):
    harness = Harness(config, clipboard_data=b"not a png")

    with pytest.raises(InvalidImageError):
        harness.pipeline.run()

    assert harness.temp_files() == []


# =============================================================================
# URLs
# =============================================================================


def test_url_image_is_analyzed_and_cleaned_up(config):
    png = image_bytes(size=(64, 32))
    harness = Harness(config, download_responses=[FakeResponse(chunks=[png])], model_responses=[_reply()])

    result = harness.pipeline.run("https://example.com/photo.jpg", "documentation")

    assert result.source is Provenance.URL
    assert result.metadata.format == "png"
    assert (result.metadata.width, result.metadata.height) == (64, 32)
    assert harness.download_session.calls[0]["url"] == "https://example.com/photo.jpg"
    assert harness.temp_files() == []


def test_url_404_raises_download_error_and_leaves_nothing(config):
    harness = Harness(config, download_responses=[FakeResponse(status_code=404)])

    with pytest.raises(DownloadError) as excinfo:
        harness.pipeline.run("https://example.com/photo.jpg")

    assert excinfo.value.status_code == 404
    assert harness.temp_files() == []
    assert harness.model_session.calls == []


def test_hostless_http_uri_fails_as_download(config):
    harness = Harness(config, download_responses=[requests.exceptions.InvalidURL("No host supplied")])

    with pytest.raises(DownloadError):
        harness.pipeline.run("http:foo")

    assert harness.download_session.calls[0]["url"] == "http:foo"
    assert harness.temp_files() == []


def test_url_temp_file_removed_when_model_fails(config):
    harness = Harness(
        config,
        download_responses=[FakeResponse(chunks=[image_bytes()])],
        model_responses=[FakeResponse(status_code=400, json_data={"error": {"message": "bad image"}})],
    )

    with pytest.raises(RemoteServiceError):
        harness.pipeline.run("https://example.com/photo.png")

    assert harness.temp_files() == []


# =============================================================================
# Preconditions
# =============================================================================


def test_missing_api_key_stops_before_acquisition(temp_dir):
    config = Config(api_key="", temp_dir=str(temp_dir))
    harness = Harness(config, clipboard_data=image_bytes())

    with pytest.raises(ConfigurationError):
        harness.pipeline.run(None)

    assert harness.clipboard_backend.paths == []
    assert harness.network_calls == []


def test_invalid_focus_area(config, make_image):
    harness = Harness(config)

    with pytest.raises(ValueError):
        harness.pipeline.run(str(make_image()), "poetry")

    assert harness.network_calls == []


def test_empty_model_reply_is_an_error(config, make_image):
    harness = Harness(config, model_responses=[_reply("   ")])

    with pytest.raises(RemoteServiceError, match="empty"):
        harness.pipeline.run(str(make_image()))


def test_cleanup_failure_does_not_mask_result(config, monkeypatch):
    harness = Harness(config, clipboard_data=image_bytes(), model_responses=[_reply("ok")])

    def fail(path):
        raise PermissionError("locked")

    monkeypatch.setattr("imaging.artifacts.os.unlink", fail)

    result = harness.pipeline.run()

    assert result.summary == "ok"


def test_from_config_wires_default_collaborators(config):
    pipeline = ImageAnalysisPipeline.from_config(config)
    assert str(pipeline.artifacts.root) == config.temp_dir
