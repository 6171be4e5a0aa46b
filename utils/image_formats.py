"""
Image format normalization.

Decodes image bytes of any container format Pillow understands into the
canonical bitmap the image backend expects: a fully loaded, upright RGB
PIL image. Decode failures return None rather than raising.
"""

import io
import logging
import threading
from typing import Callable, Dict, Optional

from PIL import Image, ImageFile, ImageOps

logger = logging.getLogger(__name__)

# Formats the fast path is allowed to open.
COMMON_FORMATS = ("JPEG", "PNG", "GIF")

UNCOMMON_FORMATS = frozenset({"HEIC", "HEIF", "WEBP", "BMP", "TIFF"})

FORMAT_NAMES: Dict[str, str] = {
    "JPEG": "JPEG",
    "MPO": "JPEG",
    "PNG": "PNG",
    "HEIC": "HEIC",
    "HEIF": "HEIC",
    "GIF": "GIF",
    "TIFF": "TIFF",
    "BMP": "BMP",
    "WEBP": "WebP",
}

EXIF_ORIENTATION_TAG = 0x0112

# LOAD_TRUNCATED_IMAGES is a Pillow module global
_TRUNCATED_LOCK = threading.Lock()

# EXIF orientation value -> operation that makes the pixels upright
_ORIENTATION_FIXES: Dict[int, Callable[[Image.Image], Image.Image]] = {
    1: lambda im: im,
    2: lambda im: im.transpose(Image.Transpose.FLIP_LEFT_RIGHT),
    3: lambda im: im.transpose(Image.Transpose.ROTATE_180),
    4: lambda im: im.transpose(Image.Transpose.FLIP_TOP_BOTTOM),
    5: lambda im: im.transpose(Image.Transpose.TRANSPOSE),
    6: lambda im: im.transpose(Image.Transpose.ROTATE_270),
    7: lambda im: im.transpose(Image.Transpose.TRANSVERSE),
    8: lambda im: im.transpose(Image.Transpose.ROTATE_90),
}


def to_canonical(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def exif_orientation(image: Image.Image) -> int:
    try:
        value = image.getexif().get(EXIF_ORIENTATION_TAG, 1)
        return int(value)
    except Exception:
        return 1


def apply_orientation(image: Image.Image, orientation: int) -> Image.Image:
    fix = _ORIENTATION_FIXES.get(orientation, _ORIENTATION_FIXES[1])
    return fix(image)


def _detached(result: Image.Image, source: Image.Image) -> Image.Image:
    # the source file is closed on return, keep a copy if nothing was derived from it
    return source.copy() if result is source else result


def _decode_fast(data: bytes) -> Optional[Image.Image]:
    try:
        with Image.open(io.BytesIO(data), formats=COMMON_FORMATS) as im:
            im.load()
            upright = ImageOps.exif_transpose(im)
            return _detached(to_canonical(upright), im)
    except Exception as e:
        logger.debug("[ImageFormats] fast decode failed: %r", e)
        return None


def _decode_permissive(data: bytes) -> Optional[Image.Image]:
    with _TRUNCATED_LOCK:
        previous = ImageFile.LOAD_TRUNCATED_IMAGES
        ImageFile.LOAD_TRUNCATED_IMAGES = True
        try:
            with Image.open(io.BytesIO(data)) as im:
                im.load()
                orientation = exif_orientation(im)
                return _detached(to_canonical(apply_orientation(im, orientation)), im)
        except Exception as e:
            logger.debug("[ImageFormats] permissive decode failed: %r", e)
            return None
        finally:
            ImageFile.LOAD_TRUNCATED_IMAGES = previous


def decode_image(data: bytes) -> Optional[Image.Image]:
    """
    Decode bytes into an upright RGB image.

    Tries the common formats first, then anything Pillow can parse,
    including truncated files. Returns None if nothing works.
    """
    if not data:
        return None

    image = _decode_fast(data)
    if image is not None:
        return image

    image = _decode_permissive(data)
    if image is None:
        logger.warning("[ImageFormats] could not decode %d bytes", len(data))
    return image


def decode_image_file(path: str) -> Optional[Image.Image]:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.warning("[ImageFormats] cannot read %s: %s", path, e)
        return None
    return decode_image(data)


def detect_image_format(data: bytes) -> Optional[str]:
    """Pillow format id (e.g. "JPEG", "WEBP") or None."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as im:
            return im.format
    except Exception:
        return None


def format_name(fmt: Optional[str]) -> str:
    if not fmt:
        return "Unknown"
    return FORMAT_NAMES.get(fmt.upper(), fmt.upper())


def is_uncommon_format(fmt: Optional[str]) -> bool:
    return bool(fmt) and fmt.upper() in UNCOMMON_FORMATS


def process_picker_image(data: bytes) -> Optional[Image.Image]:
    """Decode bytes handed over by an image picker, logging what came in."""
    fmt = detect_image_format(data)
    if fmt is not None:
        logger.info("[ImageFormats] detected image format: %s", format_name(fmt))
        if is_uncommon_format(fmt):
            logger.info("[ImageFormats] converting uncommon format %s", format_name(fmt))
    return decode_image(data)
