"""Image decoding, resizing and encoding helpers.

All images are ``H x W x 3`` uint8 numpy arrays in RGB channel order.
"""

import base64
import io
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from ..core.errors import ImageDecodeError
from ..models.geometry import PixelRect


def decode_image(data: bytes) -> np.ndarray:
    """Decode raw image bytes (JPEG, PNG, GIF, WebP, ...) to an RGB array.

    Animated images yield their first frame; alpha is dropped.

    Raises:
        ImageDecodeError: If the bytes are empty or not an image
    """
    if not data:
        raise ImageDecodeError("Empty image payload")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.seek(0)
            rgb = img.convert("RGB")
            return np.array(rgb, dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Unable to decode image: {e}") from e


def calculate_resize_dimensions(
    width: int, height: int, max_width: int, max_height: int
) -> Tuple[int, int, float]:
    """Fit ``width x height`` inside the max box, keeping aspect ratio.

    Never upscales.

    Returns:
        (new_width, new_height, ratio)
    """
    ratio = min(max_width / width, max_height / height, 1.0)
    new_width = max(1, int(round(width * ratio)))
    new_height = max(1, int(round(height * ratio)))
    return new_width, new_height, ratio


def resize_to_fit(image: np.ndarray, max_width: int, max_height: int) -> Tuple[np.ndarray, float]:
    """Downscale ``image`` so it fits in ``max_width x max_height``.

    Returns:
        (resized_image, ratio) where ratio is new size / old size
    """
    img_h, img_w = image.shape[:2]
    new_w, new_h, ratio = calculate_resize_dimensions(img_w, img_h, max_width, max_height)
    if (new_w, new_h) == (img_w, img_h):
        return image, 1.0
    resized = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
    return resized, ratio


def center_thumbnail(image: np.ndarray, size: int) -> np.ndarray:
    """Crop the largest centered square and scale it to ``size x size``."""
    img_h, img_w = image.shape[:2]
    side = min(img_h, img_w)
    y0 = (img_h - side) // 2
    x0 = (img_w - side) // 2
    square = image[y0:y0 + side, x0:x0 + side]
    interpolation = cv2.INTER_AREA if side > size else cv2.INTER_LINEAR
    return cv2.resize(square, (size, size), interpolation=interpolation)


def to_input_tensor(image: np.ndarray, size: int) -> np.ndarray:
    """Classifier input: centered ``size x size x 3`` float32 in [0, 1]."""
    return center_thumbnail(image, size).astype(np.float32) / 255.0


def crop(image: np.ndarray, rect: PixelRect) -> np.ndarray:
    """Crop a pixel rectangle, clamped to the image bounds.

    Returns an empty array when the clamped rectangle has no area.
    """
    if not isinstance(rect, PixelRect):
        raise TypeError(f"crop() needs a PixelRect, got {type(rect).__name__}")
    img_h, img_w = image.shape[:2]
    bounded = rect.clamp(img_w, img_h)
    x0, y0 = int(round(bounded.x)), int(round(bounded.y))
    x1, y1 = int(round(bounded.x_max)), int(round(bounded.y_max))
    return image[y0:y1, x0:x1].copy()


def encode_png(image: np.ndarray) -> bytes:
    """Encode an RGB array as PNG bytes."""
    ok, buffer = cv2.imencode(".png", cv2.cvtColor(image, cv2.COLOR_RGB2BGR))
    if not ok:
        raise ValueError("PNG encoding failed")
    return buffer.tobytes()


def encode_png_data_url(image: np.ndarray) -> str:
    """Encode an RGB array as a ``data:image/png;base64,...`` URL."""
    payload = base64.b64encode(encode_png(image)).decode("ascii")
    return f"data:image/png;base64,{payload}"
