# =============================================================================
# MCP-VL Image Analysis - Result Interpreter
# =============================================================================
# The model is asked for a description, not for a schema, so its reply may be
# a JSON object or free text.  interpret_response() decodes the reply into a
# tagged value (StructuredReply | FreeformReply) and build_result() maps
# either variant onto the stable AnalysisResult shape.  Nothing here raises:
# any JSON object is structured, a recognized key with an unexpected type is
# dropped on its own, and only undecodable or non-object text is freeform.
# =============================================================================

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from shared.schemas import AnalysisResult, ImageMetadata, Provenance

logger = logging.getLogger(__name__)

STRUCTURED_CONFIDENCE = 0.9
FREEFORM_CONFIDENCE = 0.8
SUMMARY_PREVIEW_CHARS = 500

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(?P<body>.*?)\n?```$", re.DOTALL)


class ReplyFields(BaseModel):
    """
    Fields recognized in a JSON reply; all optional, extras ignored.

    A field whose value does not fit its type becomes None instead of
    failing the whole object, so one odd key never costs the summary.
    """

    model_config = ConfigDict(extra="ignore")

    description: Optional[str] = None
    content: Optional[str] = None
    type: Optional[str] = None
    layout: Optional[Any] = None
    issues: Optional[List[Any]] = None
    details: Optional[Any] = None
    summary: Optional[str] = None

    @field_validator("*", mode="wrap")
    @classmethod
    def _drop_mistyped(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        try:
            return handler(value)
        except ValidationError:
            logger.debug("Ignoring reply field %r with unexpected type %s", info.field_name, type(value).__name__)
            return None


@dataclass(frozen=True)
class StructuredReply:
    """The reply decoded as a JSON object."""

    raw_text: str
    fields: ReplyFields
    confidence: float = STRUCTURED_CONFIDENCE


@dataclass(frozen=True)
class FreeformReply:
    """The reply kept as opaque text."""

    raw_text: str
    confidence: float = FREEFORM_CONFIDENCE


ModelReply = Union[StructuredReply, FreeformReply]


def _strip_code_fence(text: str) -> str:
    match = _FENCE_RE.match(text.strip())
    return match.group("body") if match else text


def interpret_response(raw_text: str) -> ModelReply:
    """
    Decode the model's reply.

    Args:
        raw_text: Reply text exactly as returned by the model.

    Returns:
        StructuredReply when the text (optionally inside one Markdown code
        fence) decodes to a JSON object, otherwise
        FreeformReply.
    """
    try:
        decoded = json.loads(_strip_code_fence(raw_text))
        fields = ReplyFields.model_validate(decoded)
    except (ValueError, TypeError, ValidationError) as exc:
        logger.debug("Reply is not structured JSON (%s); using freeform text", exc)
        return FreeformReply(raw_text=raw_text)
    return StructuredReply(raw_text=raw_text, fields=fields)


def build_result(
    reply: ModelReply,
    metadata: ImageMetadata,
    source: Optional[Provenance] = None,
) -> AnalysisResult:
    """
    Map an interpreted reply onto AnalysisResult.

    Structured replies keep their recognized fields; a missing ``summary``
    becomes the first 500 characters of the raw text.  Freeform replies use
    the entire raw text as ``summary``.
    """
    if isinstance(reply, StructuredReply):
        fields = reply.fields
        return AnalysisResult(
            summary=fields.summary or reply.raw_text[:SUMMARY_PREVIEW_CHARS],
            confidence=reply.confidence,
            metadata=metadata,
            description=fields.description or fields.content,
            type=fields.type,
            layout=fields.layout,
            issues=fields.issues,
            details=fields.details,
            source=source,
        )

    return AnalysisResult(
        summary=reply.raw_text,
        confidence=reply.confidence,
        metadata=metadata,
        source=source,
    )
