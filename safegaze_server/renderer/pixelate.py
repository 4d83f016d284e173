"""Grayscale pixelation used for every redaction."""

import math
from typing import Optional

import cv2
import numpy as np

from ..core.config import RendererSettings

LARGE_IMAGE_SIDE = 1000
GRAY_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


def pixel_block_size(width: int, height: int, settings: Optional[RendererSettings] = None) -> int:
    """Block size scaled to the smaller image side, capped, at least 1."""
    settings = settings or RendererSettings()
    smaller = min(width, height)
    cap = settings.max_pixel_block_large if smaller > LARGE_IMAGE_SIDE else settings.max_pixel_block
    return max(1, min(math.floor(settings.pixel_block_ratio * smaller), cap))


def pixelate(
    image: np.ndarray,
    block_size: Optional[int] = None,
    settings: Optional[RendererSettings] = None,
) -> np.ndarray:
    """Return a pixelated grayscale copy of an RGB image.

    The image is sampled down to ``ceil(w / block) x ceil(h / block)`` and
    back up with nearest-neighbour interpolation, then converted to luminosity
    grayscale (kept as three channels).
    """
    height, width = image.shape[:2]
    if block_size is None:
        block_size = pixel_block_size(width, height, settings)

    small_w = max(1, math.ceil(width / block_size))
    small_h = max(1, math.ceil(height / block_size))
    small = cv2.resize(image[..., :3], (small_w, small_h), interpolation=cv2.INTER_NEAREST)
    blocky = cv2.resize(small, (width, height), interpolation=cv2.INTER_NEAREST)

    gray = np.clip(np.rint(blocky.astype(np.float32) @ GRAY_WEIGHTS), 0, 255).astype(np.uint8)
    return np.repeat(gray[..., np.newaxis], 3, axis=2)
