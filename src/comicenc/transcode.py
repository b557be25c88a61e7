"""WebP transcoding of page images with Pillow."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

WEBP_QUALITY = 60

# Single-channel layouts, with or without alpha, are re-encoded as RGB
GRAYSCALE_MODES = frozenset({"1", "L", "LA", "I", "I;16", "F"})
WEBP_MODES = frozenset({"RGB", "RGBA"})


class TranscodeError(ValueError):
    """The source bytes could not be decoded as an image."""


def needs_transcode(path: Path) -> bool:
    """Return True unless `path` already holds a WebP image.

    >>> needs_transcode(Path('001.png')), needs_transcode(Path('001.WEBP'))
    (True, False)
    """
    return Path(path).suffix.lower() != ".webp"


def _to_webp_mode(img: Image.Image) -> Image.Image:
    if img.mode in GRAYSCALE_MODES:
        return img.convert("RGB")
    if img.mode not in WEBP_MODES:
        has_alpha = "transparency" in img.info or img.mode.endswith("A")
        return img.convert("RGBA" if has_alpha else "RGB")
    return img


def transcode_to_webp(data: bytes, quality: int = WEBP_QUALITY) -> bytes:
    """Decode `data` and re-encode it as lossy WebP.

    Raises:
        TranscodeError: when `data` is not a decodable image.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            converted = _to_webp_mode(img)
            out = BytesIO()
            converted.save(out, format="WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise TranscodeError(str(e)) from e
    return out.getvalue()
