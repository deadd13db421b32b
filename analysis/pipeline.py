# =============================================================================
# MCP-VL Image Analysis - Pipeline Orchestrator
# =============================================================================
# Ties the pipeline together for one invocation:
#
#   1. Check credentials (no acquisition or network traffic without a key)
#   2. Resolve the image reference (path | url | clipboard)
#   3. Acquire the bytes (use path directly | download | capture clipboard)
#   4. Normalize into the canonical JPEG form
#   5. Ask the model to describe it
#   6. Interpret the reply into an AnalysisResult
#   7. Delete any temp artifact, success or failure
# =============================================================================

import logging
import os
import time
from pathlib import Path
from typing import Optional, Union

from analysis.client import ModelServiceClient, VisionClient
from analysis.interpreter import build_result, interpret_response
from config import Config
from imaging.artifacts import AcquiredImage, TempArtifactManager
from imaging.clipboard import ClipboardCapture, select_clipboard_backend
from imaging.fetcher import RemoteFetcher
from imaging.normalizer import normalize_image
from imaging.resolver import ImageReference, resolve_image_reference
from shared.errors import FileSystemError, NoImageAvailableError, RemoteServiceError
from shared.schemas import AnalysisResult, FocusArea, Provenance

logger = logging.getLogger(__name__)


class ImageAnalysisPipeline:
    """
    Orchestrator for one ``auto_analyze_image`` invocation.

    Args:
        config:    Immutable configuration.
        artifacts: Temp artifact manager shared by the acquisition steps.
        clipboard: Clipboard capture adapter.
        fetcher:   Remote image fetcher.
        vision:    Vision analysis client.
    """

    def __init__(
        self,
        config: Config,
        artifacts: TempArtifactManager,
        clipboard: ClipboardCapture,
        fetcher: RemoteFetcher,
        vision: VisionClient,
    ):
        self._config = config
        self._artifacts = artifacts
        self._clipboard = clipboard
        self._fetcher = fetcher
        self._vision = vision

    @classmethod
    def from_config(cls, config: Config) -> "ImageAnalysisPipeline":
        """Wire the default collaborators for ``config``."""
        artifacts = TempArtifactManager(config.temp_dir)
        clipboard = ClipboardCapture(
            artifacts,
            backend=select_clipboard_backend(timeout=config.clipboard_timeout_seconds),
        )
        fetcher = RemoteFetcher(
            artifacts,
            timeout=config.download_timeout_seconds,
            max_bytes=config.max_download_bytes,
            user_agent=config.user_agent,
        )
        vision = VisionClient(ModelServiceClient(config))
        return cls(config, artifacts, clipboard, fetcher, vision)

    @property
    def artifacts(self) -> TempArtifactManager:
        return self._artifacts

    # -----------------------------------------------------------------
    # Acquisition
    # -----------------------------------------------------------------

    def _acquire(self, reference: ImageReference) -> AcquiredImage:
        """Turn a resolved reference into image bytes on disk."""
        if reference.is_clipboard:
            acquired = self._clipboard.capture()
            if acquired is None:
                raise NoImageAvailableError(
                    "No image to analyze: no file path or URL was provided "
                    "and the clipboard does not contain an image"
                )
            return acquired

        if reference.is_url:
            return self._fetcher.fetch(reference.location)

        if not os.path.isfile(reference.location):
            raise FileSystemError(f"File does not exist: {reference.location}")
        logger.info("Using provided file path: %s", reference.location)
        return AcquiredImage(path=Path(reference.location), provenance=Provenance.FILE)

    # -----------------------------------------------------------------
    # Run
    # -----------------------------------------------------------------

    def run(
        self,
        image_path: Optional[str] = None,
        focus_area: Union[FocusArea, str] = FocusArea.CODE,
    ) -> AnalysisResult:
        """
        Acquire, normalize and analyze one image.

        Args:
            image_path: File path or http(s) URL; None/empty uses the clipboard.
            focus_area: code, architecture, error or documentation.

        Returns:
            AnalysisResult with ``source`` set to the image provenance.

        Raises:
            ValueError:            Unknown focus area.
            ConfigurationError:    Missing or placeholder API key.
            NoImageAvailableError: No input and an empty clipboard.
            FileSystemError:       The given path does not exist.
            DownloadError:         The URL could not be fetched.
            InvalidImageError:     The bytes are not a decodable image.
            RemoteServiceError:    The model call failed or replied with nothing.
        """
        focus = FocusArea(focus_area)
        self._vision.ensure_configured()

        reference = resolve_image_reference(image_path)
        logger.info(
            "Starting image analysis (source=%s, focus=%s)",
            reference.kind.value,
            focus.value,
        )
        start = time.monotonic()

        acquired = self._acquire(reference)
        try:
            canonical = normalize_image(
                acquired.path,
                max_dimension=self._config.max_image_dimension,
                quality=self._config.jpeg_quality,
            )
            raw_text = self._vision.analyze(canonical, focus)
            if not raw_text.strip():
                raise RemoteServiceError("Model service returned an empty reply")

            reply = interpret_response(raw_text)
            result = build_result(reply, canonical.metadata(), source=acquired.provenance)
        finally:
            if acquired.is_temporary:
                self._artifacts.release(acquired.path)

        logger.info(
            "Image analysis complete (source=%s, %s, confidence=%.1f, %.1fms)",
            acquired.provenance.value,
            type(reply).__name__,
            result.confidence,
            (time.monotonic() - start) * 1000.0,
        )
        return result
