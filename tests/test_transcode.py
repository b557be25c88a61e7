from io import BytesIO

import pytest
from PIL import Image

from comicenc.testing import image_bytes
from comicenc.transcode import TranscodeError, transcode_to_webp


def decode(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


@pytest.mark.parametrize("mode", ["L", "LA"])
def test_grayscale_is_promoted_to_rgb(mode):
    out = transcode_to_webp(image_bytes("PNG", mode))
    img = decode(out)
    assert img.format == "WEBP"
    assert img.mode == "RGB"
    assert img.size == (8, 12)


def test_rgb_jpeg_to_webp():
    img = decode(transcode_to_webp(image_bytes("JPEG", "RGB")))
    assert img.format == "WEBP"


def test_palette_image_is_encoded():
    img = decode(transcode_to_webp(image_bytes("GIF", "P")))
    assert img.format == "WEBP"


def test_undecodable_bytes_raise():
    with pytest.raises(TranscodeError):
        transcode_to_webp(b"definitely not an image")
