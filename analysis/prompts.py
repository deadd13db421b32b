# =============================================================================
# MCP-VL Image Analysis - Instruction Templates
# =============================================================================
# One fixed instruction per focus area.  The text part of the multimodal
# message is exactly one of these strings.
# =============================================================================

from typing import Union

from shared.schemas import FocusArea

_CODE_PROMPT = """Describe the content of this image, including:
1. What the image shows
2. Any text it contains
3. Its visual elements and layout
4. The overall visual impression

Give an objective description; do not perform code analysis."""

_ARCHITECTURE_PROMPT = """Describe the visual structure and layout of this image:
1. The overall layout
2. The main visual elements
3. How text and graphics are arranged
4. Notable colors and styles"""

_ERROR_PROMPT = """Describe anything in this image that may need attention:
1. Image clarity
2. Legibility of the text
3. Visual problems
4. Areas that deserve special attention"""

_DOCUMENTATION_PROMPT = """Describe the content of this image in full detail:
1. Its subject and content
2. All of the text it contains
3. Its visual elements and layout
4. The overall visual impression"""

FOCUS_PROMPTS = {
    FocusArea.CODE: _CODE_PROMPT,
    FocusArea.ARCHITECTURE: _ARCHITECTURE_PROMPT,
    FocusArea.ERROR: _ERROR_PROMPT,
    FocusArea.DOCUMENTATION: _DOCUMENTATION_PROMPT,
}


def prompt_for(focus_area: Union[FocusArea, str]) -> str:
    """Return the instruction for a focus area (raises ValueError if unknown)."""
    return FOCUS_PROMPTS[FocusArea(focus_area)]
