# =============================================================================
# MCP-VL Image Analysis - Analysis Package
# =============================================================================
# This package contains the model-facing side of the pipeline: instruction
# templates, the chat-completions client, response interpretation, and the
# orchestrator that ties acquisition and analysis together.
# =============================================================================
