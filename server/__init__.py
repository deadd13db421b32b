# =============================================================================
# MCP-VL Image Analysis - Server Package
# =============================================================================
# This package contains the transports: the MCP stdio tool surface, the
# FastAPI HTTP mirror, and the CLI entry point that starts either one.
# =============================================================================
