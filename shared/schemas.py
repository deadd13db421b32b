# =============================================================================
# MCP-VL Image Analysis - Shared Schemas
# =============================================================================
# Pydantic models defining the data contracts returned by the pipeline and
# accepted by the transports.  AnalysisResult is what the MCP tool serializes
# into its text payload and what the HTTP mirror returns as JSON.
#
# Field names follow the wire format of earlier releases: metadata carries a
# camelCase ``fileSize`` and the request body uses ``imagePath`` /
# ``focusArea``.  Python code uses the snake_case attribute names.
# =============================================================================

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FocusArea(str, Enum):
    """Analysis lens selecting the instruction template sent to the model."""

    CODE = "code"
    ARCHITECTURE = "architecture"
    ERROR = "error"
    DOCUMENTATION = "documentation"


class Provenance(str, Enum):
    """Where an acquired image came from."""

    FILE = "file"
    CLIPBOARD = "clipboard"
    URL = "url"


class ImageMetadata(BaseModel):
    """
    Basic properties of the analyzed image.

    Attributes:
        format:    Lowercase format of the *original* decode (e.g. "png").
        width:     Original width in pixels.
        height:    Original height in pixels.
        file_size: Size of the re-encoded payload, e.g. "12.34 KB".
    """

    model_config = ConfigDict(populate_by_name=True)

    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[str] = Field(default=None, alias="fileSize")


class AnalysisResult(BaseModel):
    """
    Stable result shape returned for every successful pipeline run.

    ``summary`` is always populated.  The optional fields are only present
    when the model answered with a JSON object that carried them.
    """

    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(..., description="Model summary or raw response text")
    confidence: float = Field(..., ge=0.0, le=1.0)
    metadata: ImageMetadata
    description: Optional[str] = None
    type: Optional[str] = None
    layout: Optional[Any] = None
    issues: Optional[List[Any]] = None
    details: Optional[Any] = None
    source: Optional[Provenance] = None

    def to_payload(self) -> dict:
        """JSON-compatible dict with wire field names and unset keys dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AnalyzeRequest(BaseModel):
    """Request body for ``POST /api/v1/analyze`` on the HTTP mirror."""

    model_config = ConfigDict(populate_by_name=True)

    image_path: Optional[str] = Field(
        default=None,
        alias="imagePath",
        description="Image file path or http(s) URL; omit to use the clipboard",
    )
    focus_area: FocusArea = Field(default=FocusArea.CODE, alias="focusArea")


class HealthResponse(BaseModel):
    """Response of ``GET /health`` on the HTTP mirror."""

    status: str
    model: str
    api_key_configured: bool
    uptime_seconds: float


class PurgeResponse(BaseModel):
    """Response of ``DELETE /api/v1/temp`` on the HTTP mirror."""

    temp_dir: str
    removed: bool
