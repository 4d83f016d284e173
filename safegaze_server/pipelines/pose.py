"""Pose estimator: skeletons of 17 keypoints in detection-image pixels."""

import logging
from typing import Callable, List, Optional

import numpy as np

from ..core.errors import InferenceError
from ..models.detection import BodyPart, KeyPoint, Person
from ..models.geometry import PixelPoint, PixelRect
from .base import BaseDetector

logger = logging.getLogger(__name__)

NUM_KEYPOINTS = len(BodyPart)


class PoseEstimator(BaseDetector):
    """Detect 0..N people and turn each skeleton into a ``Person``."""

    model_type = "pose"

    def __init__(
        self,
        handle,
        keypoint_threshold: Optional[Callable[[str], float]] = None,
    ):
        """Initialize pose estimator.

        Args:
            handle: Pose model handle
            keypoint_threshold: Maps a body part name to the confidence a
                keypoint must exceed to be kept (default 0.1 for all parts)
        """
        super().__init__(handle)
        self.model_version = "pose-coco17-v1"
        self.keypoint_threshold = keypoint_threshold or (lambda part: 0.1)

    def detect(self, image: np.ndarray) -> List[Person]:
        """Estimate poses in ``image``.

        Raises:
            ModelUnavailableError: If the pose model never loaded
            InferenceError: If the model fails or returns a malformed array
        """
        output = np.asarray(self.handle.invoke(image), dtype=np.float32)
        if output.size == 0:
            return []
        if output.ndim != 3 or output.shape[1] != NUM_KEYPOINTS or output.shape[2] != 3:
            raise InferenceError(
                f"Pose output must be (N, {NUM_KEYPOINTS}, 3), got {output.shape}"
            )
        return self.parse_poses(output)

    def parse_poses(self, poses: np.ndarray) -> List[Person]:
        """Convert raw ``(N, 17, 3)`` pose rows to persons.

        Keypoints at or below their body part's threshold are dropped and do
        not contribute to the pose box or score. Poses left without any
        keypoint are skipped; ids keep the detector's scan order.
        """
        persons = []
        for pose_id, pose in enumerate(poses):
            keypoints = []
            for part in BodyPart:
                x, y, confidence = (float(v) for v in pose[part.position])
                if confidence <= self.keypoint_threshold(part.value):
                    continue
                keypoints.append(
                    KeyPoint(
                        body_part=part,
                        coordinate=PixelPoint(x=x, y=y),
                        score=min(max(confidence, 0.0), 1.0),
                    )
                )

            if not keypoints:
                continue

            persons.append(
                Person(
                    id=pose_id,
                    keypoints=keypoints,
                    score=sum(kp.score for kp in keypoints) / len(keypoints),
                    pose_box=PixelRect.bounding(kp.coordinate for kp in keypoints),
                )
            )

        logger.debug(f"Parsed {len(persons)} pose(s) from {len(poses)} raw detection(s)")
        return persons
