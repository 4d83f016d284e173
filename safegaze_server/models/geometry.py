"""Typed points and rectangles for the pipeline's coordinate spaces.

Three spaces are in play and each has its own types:

- Normalized: [0, 1] relative to the detection image. Detectors may report
  these with a top-left or a bottom-left origin, so the origin travels with
  the rectangle.
- Pixel: absolute pixels of the (possibly resized) detection image, top-left
  origin. Pose keypoints, pose boxes and matched face boxes live here.
- Canvas: absolute pixels of the displayed canvas the renderer draws on. It
  differs from pixel space by ``CanvasScale`` (``ratio_x``/``ratio_y``).

Conversions are explicit methods. Mixing spaces (e.g. measuring the distance
between a pixel point and a canvas point) raises ``TypeError``.
"""

import math
from enum import Enum
from typing import Iterable, Tuple

from pydantic import BaseModel, Field


class Origin(str, Enum):
    """Where a normalized coordinate system puts y == 0."""

    TOP_LEFT = "top_left"
    BOTTOM_LEFT = "bottom_left"


class _Point(BaseModel):
    class Config:
        frozen = True

    x: float = Field(..., description="Horizontal position")
    y: float = Field(..., description="Vertical position")

    def distance_to(self, other: "_Point") -> float:
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot measure distance between {type(self).__name__} "
                f"and {type(other).__name__}"
            )
        return math.hypot(self.x - other.x, self.y - other.y)


class PixelPoint(_Point):
    """Point in detection-image pixels."""

    def to_canvas(self, scale: "CanvasScale") -> "CanvasPoint":
        return CanvasPoint(x=self.x * scale.ratio_x, y=self.y * scale.ratio_y)


class CanvasPoint(_Point):
    """Point in displayed-canvas pixels."""


class _Rect(BaseModel):
    class Config:
        frozen = True

    x: float = Field(..., description="Left edge")
    y: float = Field(..., description="Top edge (bottom edge for bottom-left origins)")
    width: float = Field(..., ge=0.0, description="Width")
    height: float = Field(..., ge=0.0, description="Height")

    @property
    def x_max(self) -> float:
        return self.x + self.width

    @property
    def y_max(self) -> float:
        return self.y + self.height

    @property
    def max_side(self) -> float:
        return max(self.width, self.height)

    def _center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0


class NormalizedRect(_Rect):
    """Rectangle in [0, 1] units of the detection image."""

    origin: Origin = Field(default=Origin.TOP_LEFT, description="Origin convention")

    def to_pixel(self, image_width: float, image_height: float) -> "PixelRect":
        """Convert to top-left pixel space of an image of the given size.

        Bottom-left rectangles are flipped: ``y' = (1 - y - h) * height``.
        """
        if self.origin == Origin.BOTTOM_LEFT:
            top = (1.0 - self.y - self.height) * image_height
        else:
            top = self.y * image_height
        return PixelRect(
            x=self.x * image_width,
            y=top,
            width=self.width * image_width,
            height=self.height * image_height,
        )


class PixelRect(_Rect):
    """Rectangle in detection-image pixels, top-left origin."""

    @property
    def center(self) -> PixelPoint:
        cx, cy = self._center()
        return PixelPoint(x=cx, y=cy)

    def to_normalized(
        self,
        image_width: float,
        image_height: float,
        origin: Origin = Origin.TOP_LEFT,
    ) -> NormalizedRect:
        width = self.width / image_width
        height = self.height / image_height
        top = self.y / image_height
        if origin == Origin.BOTTOM_LEFT:
            top = 1.0 - top - height
        return NormalizedRect(
            x=self.x / image_width, y=top, width=width, height=height, origin=origin
        )

    def to_canvas(self, scale: "CanvasScale") -> "CanvasRect":
        return CanvasRect(
            x=self.x * scale.ratio_x,
            y=self.y * scale.ratio_y,
            width=self.width * scale.ratio_x,
            height=self.height * scale.ratio_y,
        )

    def clamp(self, image_width: float, image_height: float) -> "PixelRect":
        """Intersect with the image bounds."""
        x0 = min(max(self.x, 0.0), image_width)
        y0 = min(max(self.y, 0.0), image_height)
        x1 = min(max(self.x_max, 0.0), image_width)
        y1 = min(max(self.y_max, 0.0), image_height)
        return PixelRect(x=x0, y=y0, width=x1 - x0, height=y1 - y0)

    @classmethod
    def bounding(cls, points: Iterable[PixelPoint]) -> "PixelRect":
        """Smallest rectangle enclosing all points.

        Raises:
            ValueError: If ``points`` is empty
        """
        xs, ys = [], []
        for point in points:
            if not isinstance(point, PixelPoint):
                raise TypeError(f"Expected PixelPoint, got {type(point).__name__}")
            xs.append(point.x)
            ys.append(point.y)
        if not xs:
            raise ValueError("Cannot bound an empty point set")
        return cls(x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys))


class CanvasRect(_Rect):
    """Rectangle in displayed-canvas pixels."""

    @property
    def center(self) -> CanvasPoint:
        cx, cy = self._center()
        return CanvasPoint(x=cx, y=cy)


class CanvasScale(BaseModel):
    """Scale from detection-image pixels to displayed-canvas pixels."""

    class Config:
        frozen = True

    ratio_x: float = Field(default=1.0, gt=0.0)
    ratio_y: float = Field(default=1.0, gt=0.0)

    @classmethod
    def between(
        cls,
        detection_width: float,
        detection_height: float,
        canvas_width: float,
        canvas_height: float,
    ) -> "CanvasScale":
        return cls(
            ratio_x=canvas_width / detection_width,
            ratio_y=canvas_height / detection_height,
        )


class BoxSpace(str, Enum):
    """Coordinate space a detector backend reports its boxes in."""

    PIXEL = "pixel"
    NORMALIZED_TOP_LEFT = "normalized_top_left"
    NORMALIZED_BOTTOM_LEFT = "normalized_bottom_left"
