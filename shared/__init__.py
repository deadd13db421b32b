# =============================================================================
# MCP-VL Image Analysis - Shared Package
# =============================================================================
# Data contracts and the error taxonomy used by the pipeline, the MCP tool and
# the HTTP mirror.
# =============================================================================
