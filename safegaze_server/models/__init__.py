"""Pydantic models for the detection pipeline and the HTTP API."""

from .detection import (
    BodyPart,
    DetectionResult,
    FaceDetection,
    Gender,
    KeyPoint,
    NsfwPrediction,
    Person,
)
from .geometry import CanvasRect, CanvasScale, NormalizedRect, Origin, PixelPoint, PixelRect
from .request import DetectRequest, MessageRequest, ScriptMessage
from .response import HealthResponse, MessageResponse, RedactResponse, StatsResponse, VersionInfo

__all__ = [
    "BodyPart",
    "DetectionResult",
    "FaceDetection",
    "Gender",
    "KeyPoint",
    "NsfwPrediction",
    "Person",
    "CanvasRect",
    "CanvasScale",
    "NormalizedRect",
    "Origin",
    "PixelPoint",
    "PixelRect",
    "DetectRequest",
    "MessageRequest",
    "ScriptMessage",
    "HealthResponse",
    "MessageResponse",
    "RedactResponse",
    "StatsResponse",
    "VersionInfo",
]
