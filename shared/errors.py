# =============================================================================
# MCP-VL Image Analysis - Error Taxonomy
# =============================================================================
# Every failure the pipeline surfaces to a caller is one of these classes.
# Messages are human readable; the transports (MCP tool, HTTP mirror) turn
# them into error payloads instead of letting them cross the wire as
# exceptions.
# =============================================================================

from typing import Optional


class ImageAnalysisError(Exception):
    """Base exception for all pipeline errors."""


class ConfigurationError(ImageAnalysisError):
    """Missing or placeholder credentials, or an unusable setting."""


class NoImageAvailableError(ImageAnalysisError):
    """No path or URL was given and the clipboard holds no image."""


class DownloadError(ImageAnalysisError):
    """A remote image could not be fetched (timeout, size limit, non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidImageError(ImageAnalysisError):
    """Bytes failed to decode as an image."""


class RemoteServiceError(ImageAnalysisError):
    """The model service call failed or returned an error body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class FileSystemError(ImageAnalysisError):
    """A source path does not exist or cannot be read."""
