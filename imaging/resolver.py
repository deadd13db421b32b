# =============================================================================
# MCP-VL Image Analysis - Image Source Resolver
# =============================================================================
# Classifies the optional ``imagePath`` argument into one of three image
# references: a remote URL, a local path, or "use the clipboard".  Pure
# classification; nothing is read or fetched here.
# =============================================================================

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from shared.schemas import Provenance

_URL_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class ImageReference:
    """
    Tagged union of the three ways an image can be referenced.

    ``kind`` is the provenance the image will carry once acquired;
    ``location`` is the path or URL, and is None for the clipboard.
    """

    kind: Provenance
    location: Optional[str] = None

    @classmethod
    def path(cls, location: str) -> "ImageReference":
        return cls(Provenance.FILE, location)

    @classmethod
    def url(cls, location: str) -> "ImageReference":
        return cls(Provenance.URL, location)

    @classmethod
    def clipboard(cls) -> "ImageReference":
        return cls(Provenance.CLIPBOARD)

    @property
    def is_url(self) -> bool:
        return self.kind is Provenance.URL

    @property
    def is_clipboard(self) -> bool:
        return self.kind is Provenance.CLIPBOARD


def is_http_url(value: str) -> bool:
    """
    True if ``value`` is an absolute URI with an http(s) scheme.

    A missing host does not make it a path: ``http:foo`` is still a URL and
    is reported as a failed download rather than a missing file.
    """
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme.lower() in _URL_SCHEMES


def resolve_image_reference(value: Optional[str]) -> ImageReference:
    """
    Decide which image source an optional input string refers to.

    Args:
        value: A file path, an http(s) URL, or None/empty for the clipboard.

    Returns:
        ImageReference: URL for absolute http(s) URIs, Path for anything
        else (with ``~`` expanded), Clipboard when the input is absent.
    """
    if value is None or not value.strip():
        return ImageReference.clipboard()

    value = value.strip()
    if is_http_url(value):
        return ImageReference.url(value)
    return ImageReference.path(os.path.expanduser(value))
