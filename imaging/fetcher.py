# =============================================================================
# MCP-VL Image Analysis - Remote Image Fetcher
# =============================================================================
# Provides the RemoteFetcher class that downloads an http(s) image into the
# temp directory under hard bounds (30 s, 10 MiB), then validates that the
# bytes decode as an image before anything downstream sees the file.
# =============================================================================

import hashlib
import logging
import posixpath
import time
import uuid
from typing import Optional
from urllib.parse import urlsplit

import requests
from PIL import Image

from imaging.artifacts import AcquiredImage, TempArtifactManager
from shared.errors import DownloadError, InvalidImageError
from shared.schemas import Provenance

logger = logging.getLogger(__name__)

KNOWN_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "bmp", "tif", "tiff"}
DEFAULT_EXTENSION = "png"

_CHUNK_SIZE = 64 * 1024


def extension_from_url(url: str) -> str:
    """
    Pick the temp file extension for a URL.

    The suffix of the URL path is used when it is a known image extension;
    anything else gets ``png``.  The name is advisory only: the validation
    decode decides what the file really is.
    """
    suffix = posixpath.splitext(urlsplit(url).path)[1].lstrip(".").lower()
    return suffix if suffix in KNOWN_IMAGE_EXTENSIONS else DEFAULT_EXTENSION


def _url_tag(url: str) -> str:
    """Short digest of the URL plus a random token for the temp file name."""
    token = f"{url}:{uuid.uuid4().hex}".encode("utf-8")
    return hashlib.sha1(token).hexdigest()[:10]


def _format_mib(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.1f} MiB"


class RemoteFetcher:
    """
    Bounded HTTP downloader for remote images.

    Args:
        artifacts:   Temp artifact manager that owns downloaded files.
        session:     requests.Session (or compatible) used for the GET.
        timeout:     Seconds allowed for the whole download.
        max_bytes:   Largest accepted response body.
        user_agent:  Client identifier sent as User-Agent; some origins
                     reject requests without one.
    """

    def __init__(
        self,
        artifacts: TempArtifactManager,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        max_bytes: int = 10 * 1024 * 1024,
        user_agent: str = "mcp-vl/1.0.0 (+image-fetcher)",
    ):
        self._artifacts = artifacts
        self._session = session or requests.Session()
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._user_agent = user_agent

    def fetch(self, url: str) -> AcquiredImage:
        """
        Download ``url`` and validate it decodes as an image.

        Args:
            url: Absolute http(s) URL.

        Returns:
            AcquiredImage with provenance ``url``, ``is_temporary`` set and
            ``detected_format`` taken from the validation decode.

        Raises:
            DownloadError:     Timeout, size limit exceeded, transport failure
                               or non-2xx status (``status_code`` is set).
            InvalidImageError: The downloaded bytes are not an image.
        """
        output_path = self._artifacts.new_path(
            "downloaded", extension_from_url(url), tag=_url_tag(url)
        )
        logger.info("Downloading %s -> %s", url, output_path.name)
        start = time.monotonic()

        try:
            written = self._download(url, output_path, start)
        except DownloadError:
            self._artifacts.release(output_path)
            raise
        except requests.exceptions.Timeout as exc:
            self._artifacts.release(output_path)
            raise DownloadError(
                f"Timed out after {self._timeout:.0f}s downloading {url}"
            ) from exc
        except requests.exceptions.RequestException as exc:
            self._artifacts.release(output_path)
            raise DownloadError(f"Failed to download {url}: {exc}") from exc
        except OSError as exc:
            self._artifacts.release(output_path)
            raise DownloadError(f"Failed to store download of {url}: {exc}") from exc

        detected_format = self._validate(url, output_path)

        logger.info(
            "Downloaded %s (%d bytes, format=%s, %.1fms)",
            url,
            written,
            detected_format,
            (time.monotonic() - start) * 1000.0,
        )
        return AcquiredImage(
            path=output_path,
            provenance=Provenance.URL,
            is_temporary=True,
            detected_format=detected_format,
        )

    def _download(self, url: str, output_path, start: float) -> int:
        """Stream the body to disk, enforcing the time and size bounds."""
        response = self._session.get(
            url,
            stream=True,
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
        )
        try:
            if not 200 <= response.status_code < 300:
                raise DownloadError(
                    f"Download of {url} failed with HTTP {response.status_code}"
                    + (f" {response.reason}" if getattr(response, "reason", None) else ""),
                    status_code=response.status_code,
                )

            declared = response.headers.get("Content-Length")
            if declared is not None and declared.isdigit() and int(declared) > self._max_bytes:
                raise DownloadError(
                    f"Image at {url} is {_format_mib(int(declared))}, "
                    f"limit is {_format_mib(self._max_bytes)}"
                )

            written = 0
            with open(output_path, "wb") as fh:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if not chunk:
                        continue
                    written += len(chunk)
                    if written > self._max_bytes:
                        raise DownloadError(
                            f"Image at {url} exceeds the {_format_mib(self._max_bytes)} limit"
                        )
                    if time.monotonic() - start > self._timeout:
                        raise DownloadError(
                            f"Timed out after {self._timeout:.0f}s downloading {url}"
                        )
                    fh.write(chunk)
            return written
        finally:
            response.close()

    def _validate(self, url: str, output_path) -> str:
        """Decode format and size; delete the file and raise if that fails."""
        try:
            with Image.open(output_path) as img:
                detected_format = (img.format or "").lower()
                width, height = img.size
                img.verify()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
            self._artifacts.release(output_path)
            raise InvalidImageError(f"Content downloaded from {url} is not a valid image: {exc}") from exc

        logger.debug("Validated download %s: %s %dx%d", output_path.name, detected_format, width, height)
        return detected_format
