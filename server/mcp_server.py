# =============================================================================
# MCP-VL Image Analysis - MCP Tool Surface
# =============================================================================
# Registers the single ``auto_analyze_image`` tool on a FastMCP server.  The
# tool runs the blocking pipeline in a worker thread and returns the
# JSON-serialized AnalysisResult as text.  Failures are raised as ToolError
# with the bare message; FastMCP prefixes it with the tool name and returns
# an error-flagged result rather than a protocol error.
# =============================================================================

import asyncio
import json
import logging
from typing import Annotated, Literal, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from analysis.pipeline import ImageAnalysisPipeline
from config import Config
from shared.errors import ImageAnalysisError

logger = logging.getLogger(__name__)

TOOL_NAME = "auto_analyze_image"
TOOL_DESCRIPTION = (
    "Automatically acquire and analyze an image with a vision-language model. "
    "Accepts a local file path or an http(s) URL; when neither is given the "
    "image currently on the clipboard is used."
)

FocusAreaName = Literal["code", "architecture", "error", "documentation"]


def handle_auto_analyze_image(
    pipeline: ImageAnalysisPipeline,
    image_path: Optional[str] = None,
    focus_area: str = "code",
) -> str:
    """
    Run the pipeline and render the tool's text payload.

    Returns:
        str: The AnalysisResult (with ``source``) as indented JSON.

    Raises:
        ToolError: With the human-readable failure message.  FastMCP reports
                   it as "Error executing tool auto_analyze_image: <message>"
                   with ``isError`` set.
    """
    try:
        result = pipeline.run(image_path=image_path, focus_area=focus_area or "code")
    except (ImageAnalysisError, ValueError) as exc:
        logger.error("Tool call failed: %s (%s)", TOOL_NAME, exc)
        raise ToolError(str(exc)) from exc
    except Exception as exc:
        logger.exception("Unexpected failure in %s", TOOL_NAME)
        raise ToolError(f"unexpected failure while analyzing the image: {exc}") from exc

    return json.dumps(result.to_payload(), indent=2, ensure_ascii=False)


def build_mcp_server(config: Config, pipeline: Optional[ImageAnalysisPipeline] = None) -> FastMCP:
    """
    Create the FastMCP server with the ``auto_analyze_image`` tool registered.

    Args:
        config:   Immutable configuration (server name).
        pipeline: Pipeline to run; built from ``config`` when omitted.
    """
    pipeline = pipeline or ImageAnalysisPipeline.from_config(config)
    mcp = FastMCP(config.server_name)

    @mcp.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION)
    async def auto_analyze_image(
        imagePath: Annotated[  # noqa: N803
            Optional[str],
            Field(description="Image file path or http(s) URL (optional; the clipboard is used when omitted)"),
        ] = None,
        focusArea: Annotated[  # noqa: N803
            FocusAreaName,
            Field(description="Analysis focus area"),
        ] = "code",
    ) -> str:
        return await asyncio.to_thread(handle_auto_analyze_image, pipeline, imagePath, focusArea)

    return mcp
