"""Redaction renderer: skin analysis, skeleton masks and pixelation."""

from .pixelate import pixel_block_size, pixelate
from .redactor import Redactor, RenderOutcome, RenderState
from .skeleton import SkeletonDrawer
from .skin import SkinDetector

__all__ = [
    "pixel_block_size",
    "pixelate",
    "Redactor",
    "RenderOutcome",
    "RenderState",
    "SkeletonDrawer",
    "SkinDetector",
]
