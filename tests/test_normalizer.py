import base64
import io

import pytest
from PIL import Image

from imaging.normalizer import normalize_image
from shared.errors import FileSystemError, InvalidImageError


def _decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_metadata_describes_original_image(make_image):
    path = make_image("wide.png", size=(4000, 1000))

    canonical = normalize_image(path)

    assert canonical.format == "png"
    assert (canonical.width, canonical.height) == (4000, 1000)
    metadata = canonical.metadata()
    assert metadata.format == "png"
    assert metadata.width == 4000
    assert metadata.height == 1000


def test_large_images_shrink_to_bound_keeping_aspect_ratio(make_image):
    canonical = normalize_image(make_image("wide.png", size=(4000, 1000)))

    output = _decode(canonical.data)
    assert output.format == "JPEG"
    assert output.size == (2048, 512)
    assert (canonical.encoded_width, canonical.encoded_height) == (2048, 512)


def test_tall_images_bound_height(make_image):
    canonical = normalize_image(make_image("tall.png", size=(600, 3000)))
    assert max(canonical.encoded_width, canonical.encoded_height) == 2048
    assert canonical.encoded_height == 2048


def test_small_images_are_never_upscaled(make_image):
    canonical = normalize_image(make_image("small.png", size=(120, 80)))
    assert _decode(canonical.data).size == (120, 80)


def test_normalizing_canonical_output_keeps_dimensions(tmp_path, make_image):
    first = normalize_image(make_image("source.png", size=(3000, 2000)))
    canonical_path = tmp_path / "canonical.jpg"
    canonical_path.write_bytes(first.data)

    second = normalize_image(canonical_path)

    assert second.format == "jpeg"
    assert (second.width, second.height) == (first.encoded_width, first.encoded_height)
    assert (second.encoded_width, second.encoded_height) == (first.encoded_width, first.encoded_height)


def test_custom_dimension_bound(make_image):
    canonical = normalize_image(make_image("img.png", size=(1000, 500)), max_dimension=100)
    assert (canonical.encoded_width, canonical.encoded_height) == (100, 50)


@pytest.mark.parametrize("mode", ["RGBA", "LA", "L"])
def test_non_rgb_modes_are_flattened(make_image, mode):
    canonical = normalize_image(make_image(f"{mode}.png", mode=mode))
    assert _decode(canonical.data).mode == "RGB"


def test_palette_with_transparency(tmp_path):
    image = Image.new("P", (16, 16), 0)
    path = tmp_path / "palette.gif"
    image.save(path, format="GIF", transparency=0)

    canonical = normalize_image(path)

    assert canonical.format == "gif"
    assert _decode(canonical.data).mode == "RGB"


def test_file_size_is_reencoded_length_in_kib(make_image):
    canonical = normalize_image(make_image())
    assert canonical.byte_size == len(canonical.data)
    assert canonical.file_size == f"{len(canonical.data) / 1024:.2f} KB"
    assert canonical.metadata().file_size == canonical.file_size


def test_data_uri_wraps_base64_jpeg(make_image):
    canonical = normalize_image(make_image())
    prefix = "data:image/jpeg;base64,"
    uri = canonical.to_data_uri()
    assert uri.startswith(prefix)
    assert base64.b64decode(uri[len(prefix):]) == canonical.data


def test_missing_file_raises_filesystem_error(tmp_path):
    with pytest.raises(FileSystemError):
        normalize_image(tmp_path / "missing.png")


def test_non_image_raises_invalid_image(tmp_path):
    path = tmp_path / "notes.png"
    path.write_text("definitely not pixels")
    with pytest.raises(InvalidImageError):
        normalize_image(path)


def test_truncated_image_raises_invalid_image(tmp_path, make_image):
    data = make_image("full.png", size=(200, 200)).read_bytes()
    path = tmp_path / "truncated.png"
    path.write_bytes(data[: len(data) // 2])
    with pytest.raises(InvalidImageError):
        normalize_image(path)
