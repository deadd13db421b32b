# =============================================================================
# MCP-VL Image Analysis - Image Normalizer
# =============================================================================
# Decodes any Pillow-supported image and re-encodes it into the canonical form
# sent to the model: RGB JPEG at fixed quality, neither side above the
# configured bound (2048 px by default), never upscaled.  The metadata
# reported back to the caller describes the *original* decode.
# =============================================================================

import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from PIL import Image

from shared.errors import FileSystemError, InvalidImageError
from shared.schemas import ImageMetadata

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = "JPEG"
CANONICAL_MIME = "image/jpeg"


@dataclass(frozen=True)
class CanonicalImage:
    """
    Bounded, re-encoded image payload plus metadata of the source image.

    Attributes:
        data:           Re-encoded JPEG bytes.
        format:         Lowercase format of the original decode (e.g. "png").
        width:          Original width in pixels.
        height:         Original height in pixels.
        encoded_width:  Width of the re-encoded payload.
        encoded_height: Height of the re-encoded payload.
    """

    data: bytes
    format: str
    width: int
    height: int
    encoded_width: int
    encoded_height: int

    @property
    def byte_size(self) -> int:
        return len(self.data)

    @property
    def file_size(self) -> str:
        """Re-encoded size in KiB, two decimals, e.g. ``"12.34 KB"``."""
        return f"{self.byte_size / 1024:.2f} KB"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{CANONICAL_MIME};base64,{self.to_base64()}"

    def metadata(self) -> ImageMetadata:
        return ImageMetadata(
            format=self.format,
            width=self.width,
            height=self.height,
            file_size=self.file_size,
        )


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def normalize_image(
    path: Union[str, Path],
    max_dimension: int = 2048,
    quality: int = 90,
) -> CanonicalImage:
    """
    Produce the canonical JPEG form of an image file.

    Steps:
        1. Read the source bytes.
        2. Decode them with Pillow and record format and size.
        3. Flatten to RGB.
        4. Shrink to fit ``max_dimension`` x ``max_dimension`` keeping the
           aspect ratio; smaller images are left at their size.
        5. Re-encode as JPEG at ``quality``.

    Args:
        path:          Image file to normalize.
        max_dimension: Largest allowed width or height of the output.
        quality:       JPEG quality for the re-encode.

    Returns:
        CanonicalImage with the encoded payload and the original metadata.

    Raises:
        FileSystemError:   The file is missing or unreadable.
        InvalidImageError: The bytes do not decode as an image.
    """
    try:
        source_bytes = Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise FileSystemError(f"Image file does not exist: {path}") from exc
    except OSError as exc:
        raise FileSystemError(f"Cannot read image file {path}: {exc}") from exc

    try:
        with Image.open(io.BytesIO(source_bytes)) as img:
            original_format = (img.format or "").lower()
            original_width, original_height = img.size
            img.load()
            image = _flatten_to_rgb(img)
            # thumbnail() only ever shrinks
            image.thumbnail((max_dimension, max_dimension), Image.LANCZOS)

            encoded_width, encoded_height = image.size

            buffer = io.BytesIO()
            image.save(buffer, format=CANONICAL_FORMAT, quality=quality)
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise InvalidImageError(f"Cannot decode image {path}: {exc}") from exc

    canonical = CanonicalImage(
        data=buffer.getvalue(),
        format=original_format,
        width=original_width,
        height=original_height,
        encoded_width=encoded_width,
        encoded_height=encoded_height,
    )
    logger.info(
        "Normalized %s: %s %dx%d -> jpeg %dx%d (%s, source %d bytes)",
        Path(path).name,
        canonical.format,
        canonical.width,
        canonical.height,
        canonical.encoded_width,
        canonical.encoded_height,
        canonical.file_size,
        len(source_bytes),
    )
    return canonical
