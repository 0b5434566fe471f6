"""Fit an image inside a width/height box without ever enlarging it."""
import logging
from typing import Optional, Tuple

from PIL import Image

logger = logging.getLogger("converter.resize")


def fit_inside(
    size: Tuple[int, int],
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Largest size with the same aspect ratio that fits the given bounds.
    A missing bound is unconstrained; the result is never larger than `size`.
    """
    width, height = size
    ratios = [1.0]
    if target_width is not None:
        ratios.append(target_width / width)
    if target_height is not None:
        ratios.append(target_height / height)
    scale = min(ratios)
    return max(1, round(width * scale)), max(1, round(height * scale))


def resize_keep_aspect(
    img: Image.Image,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
) -> Image.Image:
    new_size = fit_inside(img.size, target_width, target_height)
    if new_size == img.size:
        return img
    logger.debug("Resizing %sx%s -> %sx%s", img.width, img.height, *new_size)
    return img.resize(new_size, Image.Resampling.LANCZOS)
