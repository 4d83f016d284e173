"""Skin-color heuristic and per-mask skin ratio analysis."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from ..core.config import RendererSettings, SkinRanges

logger = logging.getLogger(__name__)

SKIN_OVERLAY_COLOR = (255, 0, 0)
NON_SKIN_OVERLAY_COLOR = (0, 255, 0)
OVERLAY_ALPHA = 100


class AnalysisRegion(str, Enum):
    """Which part of the body the detection mask covers."""

    FULL = "full"
    LOWER_BODY = "lowerBody"


@dataclass
class SkinAnalysis:
    """Skin statistics for the pixels under one detection mask."""

    skin_pixels: int
    total_pixels: int
    skin_ratio: float
    has_skin: bool
    region: AnalysisRegion
    visualization: Optional[np.ndarray] = None


class SkinDetector:
    """Fixed empirical RGB skin classifier.

    A pixel is skin when each channel is inside its range, red dominates
    green and blue, ``|r - g|`` is at least ``min_rg_diff`` and the pixel is
    neither near-white nor near-black.
    """

    def __init__(
        self,
        ranges: Optional[SkinRanges] = None,
        min_skin_ratio: float = 0.3,
        lower_body_min_skin_ratio: float = 0.2,
        min_rg_diff: int = 15,
    ):
        self.ranges = ranges or SkinRanges()
        self.min_skin_ratio = min_skin_ratio
        self.lower_body_min_skin_ratio = lower_body_min_skin_ratio
        self.min_rg_diff = min_rg_diff

    @classmethod
    def from_settings(cls, settings: RendererSettings) -> "SkinDetector":
        return cls(
            ranges=settings.skin_ranges,
            min_skin_ratio=settings.min_skin_ratio,
            lower_body_min_skin_ratio=settings.lower_body_min_skin_ratio,
            min_rg_diff=settings.min_skin_rg_diff,
        )

    def threshold_for(self, region: AnalysisRegion) -> float:
        if region == AnalysisRegion.LOWER_BODY:
            return self.lower_body_min_skin_ratio
        return self.min_skin_ratio

    def skin_mask(self, image: np.ndarray) -> np.ndarray:
        """Boolean ``H x W`` map of skin-colored pixels in an RGB image."""
        rgb = image[..., :3].astype(np.int16)
        r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
        ranges = self.ranges

        in_range = (
            (r >= ranges.r.min) & (r <= ranges.r.max)
            & (g >= ranges.g.min) & (g <= ranges.g.max)
            & (b >= ranges.b.min) & (b <= ranges.b.max)
        )
        red_dominant = (r >= g) & (r >= b)
        distinct = np.abs(r - g) >= self.min_rg_diff
        near_white = (r > 220) & (g > 210) & (b > 170)
        near_black = (r < 100) & (g < 100) & (b < 100)

        return in_range & red_dominant & distinct & ~near_white & ~near_black

    def is_skin_pixel(self, r: int, g: int, b: int) -> bool:
        pixel = np.array([[[r, g, b]]], dtype=np.uint8)
        return bool(self.skin_mask(pixel)[0, 0])

    def analyze(
        self,
        image: np.ndarray,
        mask: np.ndarray,
        region: AnalysisRegion = AnalysisRegion.FULL,
        visualize: bool = False,
    ) -> SkinAnalysis:
        """Measure the share of skin pixels under ``mask``.

        Args:
            image: RGB image, same height and width as ``mask``
            mask: Boolean map of the pixels covered by the detection mask
            region: Body region the mask covers; selects the threshold
            visualize: Also build an RGBA overlay (red skin, green non-skin)

        Returns:
            SkinAnalysis; ``skin_ratio`` is 0 for an empty mask
        """
        if image.shape[:2] != mask.shape[:2]:
            raise ValueError(
                f"Mask shape {mask.shape[:2]} does not match image shape {image.shape[:2]}"
            )

        skin = self.skin_mask(image) & mask
        total_pixels = int(np.count_nonzero(mask))
        skin_pixels = int(np.count_nonzero(skin))
        skin_ratio = skin_pixels / total_pixels if total_pixels > 0 else 0.0

        visualization = None
        if visualize:
            visualization = np.zeros((*mask.shape[:2], 4), dtype=np.uint8)
            visualization[skin] = (*SKIN_OVERLAY_COLOR, OVERLAY_ALPHA)
            visualization[mask & ~skin] = (*NON_SKIN_OVERLAY_COLOR, OVERLAY_ALPHA)

        analysis = SkinAnalysis(
            skin_pixels=skin_pixels,
            total_pixels=total_pixels,
            skin_ratio=skin_ratio,
            has_skin=skin_ratio >= self.threshold_for(region),
            region=region,
            visualization=visualization,
        )
        logger.debug(
            f"Skin {region.value}: {skin_pixels}/{total_pixels} ({skin_ratio:.3f}) "
            f"-> has_skin={analysis.has_skin}"
        )
        return analysis
