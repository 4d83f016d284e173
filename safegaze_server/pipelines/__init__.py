"""Detection pipeline: leaf detectors, person matcher and orchestrator."""

from .base import BaseDetector
from .face import FaceDetector
from .gender import GenderClassifier
from .matcher import PersonMatcher
from .nsfw import NsfwClassifier
from .orchestrator import DetectionOrchestrator
from .pose import PoseEstimator

__all__ = [
    "BaseDetector",
    "FaceDetector",
    "GenderClassifier",
    "PersonMatcher",
    "NsfwClassifier",
    "DetectionOrchestrator",
    "PoseEstimator",
]
