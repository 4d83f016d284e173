"""Utility functions for the inference host."""

from .formatters import detection_result_to_wire, nsfw_wire_payload, wire_to_detection_result
from .imaging import decode_image, encode_png_data_url, resize_to_fit

__all__ = [
    "detection_result_to_wire",
    "nsfw_wire_payload",
    "wire_to_detection_result",
    "decode_image",
    "encode_png_data_url",
    "resize_to_fit",
]
