"""Face detector: face boxes tagged with the backend's coordinate space."""

import logging
from typing import List

import numpy as np

from ..core.errors import InferenceError
from ..models.detection import FaceDetection
from ..models.geometry import BoxSpace, NormalizedRect, Origin, PixelRect
from .base import BaseDetector

logger = logging.getLogger(__name__)


class FaceDetector(BaseDetector):
    """Locate faces. Boxes keep the space the backend emitted them in;
    conversion to pixels happens in the person matcher."""

    model_type = "face"

    def __init__(self, handle):
        super().__init__(handle)
        self.model_version = "face-v1"

    @property
    def box_space(self) -> BoxSpace:
        return BoxSpace(getattr(self.handle.backend, "box_space", BoxSpace.PIXEL))

    def detect(self, image: np.ndarray) -> List[FaceDetection]:
        """Detect faces in ``image``.

        Raises:
            ModelUnavailableError: If the face model never loaded
            InferenceError: If the model fails or returns a malformed array
        """
        output = np.asarray(self.handle.invoke(image), dtype=np.float32)
        if output.size == 0:
            return []
        if output.ndim != 2 or output.shape[1] not in (4, 5):
            raise InferenceError(f"Face output must be (N, 4|5), got {output.shape}")

        space = self.box_space
        faces = []
        for row in output:
            x, y, w, h = (float(v) for v in row[:4])
            score = float(row[4]) if row.shape[0] == 5 else 1.0
            if w <= 0 or h <= 0:
                continue
            faces.append(FaceDetection(rect=self._make_rect(space, x, y, w, h), score=score))

        logger.debug(f"Detected {len(faces)} face(s) ({space.value})")
        return faces

    @staticmethod
    def _make_rect(space: BoxSpace, x: float, y: float, w: float, h: float):
        if space == BoxSpace.PIXEL:
            return PixelRect(x=x, y=y, width=w, height=h)
        origin = Origin.BOTTOM_LEFT if space == BoxSpace.NORMALIZED_BOTTOM_LEFT else Origin.TOP_LEFT
        return NormalizedRect(x=x, y=y, width=w, height=h, origin=origin)
