"""Image preparation helpers shared by the image backend."""

from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image

PIXEL_LAYOUTS = ("nchw", "nhwc")


def fit_size(width: int, height: int, target: int) -> Tuple[int, int]:
    """Largest (w, h) with the same aspect ratio that fits in target x target."""
    if width <= 0 or height <= 0:
        raise ValueError("size must be positive")
    ratio = min(target / width, target / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def letterbox(image: Image.Image, target: int, fill: Tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """
    Scale to fit a target x target square, centered, padding with `fill`.
    Aspect ratio is preserved.
    """
    rgb = image.convert("RGB")
    new_w, new_h = fit_size(rgb.width, rgb.height, target)
    if (new_w, new_h) != rgb.size:
        rgb = rgb.resize((new_w, new_h), Image.Resampling.BILINEAR)

    canvas = Image.new("RGB", (target, target), fill)
    canvas.paste(rgb, ((target - new_w) // 2, (target - new_h) // 2))
    return canvas


def to_pixel_array(
    image: Image.Image,
    layout: str = "nchw",
    mean: Optional[Sequence[float]] = None,
    std: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """
    RGB image -> float32 batch of one, values in [0,1] before normalization.
    """
    if layout not in PIXEL_LAYOUTS:
        raise ValueError(f"unknown pixel layout {layout!r}")

    arr = np.asarray(image.convert("RGB"), dtype=np.float32) / 255.0  # HWC
    if mean is not None:
        arr = arr - np.asarray(mean, dtype=np.float32).reshape(1, 1, 3)
    if std is not None:
        arr = arr / np.asarray(std, dtype=np.float32).reshape(1, 1, 3)

    if layout == "nchw":
        arr = np.transpose(arr, (2, 0, 1))
    return np.ascontiguousarray(arr[np.newaxis, ...], dtype=np.float32)
