# =============================================================================
# MCP-VL Image Analysis - Imaging Package
# =============================================================================
# This package contains the image acquisition side of the pipeline: source
# resolution, clipboard capture, remote download, normalization into the
# canonical JPEG form, and temporary artifact bookkeeping.
# =============================================================================
