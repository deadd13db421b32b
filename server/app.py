# =============================================================================
# MCP-VL Image Analysis - FastAPI HTTP Mirror
# =============================================================================
# Exposes the same pipeline over HTTP for local tooling that does not speak
# MCP:  POST /api/v1/analyze runs one analysis, DELETE /api/v1/temp purges
# the temp directory, GET /health reports readiness.  Pipeline errors map to
# HTTP status codes; nothing is thrown across the wire.
# =============================================================================

import logging
import time
from typing import Optional

from fastapi import FastAPI, HTTPException

from analysis.pipeline import ImageAnalysisPipeline
from config import Config
from shared.errors import (
    ConfigurationError,
    DownloadError,
    FileSystemError,
    ImageAnalysisError,
    InvalidImageError,
    NoImageAvailableError,
    RemoteServiceError,
)
from shared.schemas import AnalyzeRequest, HealthResponse, PurgeResponse

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ConfigurationError, 503),
    (NoImageAvailableError, 422),
    (FileSystemError, 404),
    (InvalidImageError, 422),
    (DownloadError, 502),
    (RemoteServiceError, 502),
)


def _status_for(exc: ImageAnalysisError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app(config: Config, pipeline: Optional[ImageAnalysisPipeline] = None) -> FastAPI:
    """
    Build the FastAPI application around one pipeline instance.

    Args:
        config:   Immutable configuration.
        pipeline: Pipeline to serve; built from ``config`` when omitted.
    """
    pipeline = pipeline or ImageAnalysisPipeline.from_config(config)
    start_time = time.time()

    app = FastAPI(
        title="MCP-VL Image Analysis",
        description=(
            "Acquires an image from a path, URL or the clipboard, normalizes "
            "it and describes it with a vision-language model."
        ),
        version=config.server_version,
    )

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Server status, configured model and uptime."""
        return HealthResponse(
            status="ok" if config.has_api_key else "unconfigured",
            model=config.model,
            api_key_configured=config.has_api_key,
            uptime_seconds=round(time.time() - start_time, 2),
        )

    @app.post("/api/v1/analyze")
    def analyze(request: AnalyzeRequest):
        """
        Run one analysis.

        Returns the AnalysisResult payload, identical to the MCP tool's JSON.
        """
        try:
            result = pipeline.run(
                image_path=request.image_path,
                focus_area=request.focus_area,
            )
        except ImageAnalysisError as exc:
            status_code = _status_for(exc)
            logger.error("Analyze request failed (%d): %s", status_code, exc)
            raise HTTPException(status_code=status_code, detail=str(exc))
        return result.to_payload()

    @app.delete("/api/v1/temp", response_model=PurgeResponse)
    def purge_temp():
        """Delete the whole temp directory."""
        removed = pipeline.artifacts.purge()
        return PurgeResponse(temp_dir=str(pipeline.artifacts.root), removed=removed)

    return app
