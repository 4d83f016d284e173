"""Detection entities exchanged between pipeline stages.

All entities are created fresh for each processed image. Ownership passes
from stage to stage; a ``Person`` is only written by one stage at a time.
"""

from enum import Enum
from typing import ClassVar, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from .geometry import NormalizedRect, PixelPoint, PixelRect


class BodyPart(str, Enum):
    """The 17 skeletal landmarks, in pose-model output order."""

    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"

    @property
    def position(self) -> int:
        """Index of this body part in a pose model's keypoint array."""
        return list(BodyPart).index(self)


FACE_PARTS = frozenset(
    {
        BodyPart.NOSE,
        BodyPart.LEFT_EYE,
        BodyPart.RIGHT_EYE,
        BodyPart.LEFT_EAR,
        BodyPart.RIGHT_EAR,
    }
)


class Gender(str, Enum):
    """Gender of a detected person.

    UNKNOWN means no face was matched (or classification failed). Consumers
    must pick a conservative fallback for it rather than treating it as MALE.
    """

    FEMALE = "female"
    MALE = "male"
    UNKNOWN = "unknown"


class KeyPoint(BaseModel):
    """One skeletal landmark in detection-image pixels."""

    class Config:
        frozen = True

    body_part: BodyPart
    coordinate: PixelPoint
    score: float = Field(..., ge=0.0, le=1.0, description="Detector confidence")


class Person(BaseModel):
    """One detected individual: a pose, optionally matched to a face."""

    id: int = Field(default=-1, description="Detector order index, -1 when unassigned")
    keypoints: List[KeyPoint] = Field(default_factory=list)
    score: float = Field(default=0.0, description="Mean keypoint confidence")
    pose_box: Optional[PixelRect] = Field(default=None, description="Bounds of kept keypoints")
    face_box: Optional[NormalizedRect] = Field(default=None, description="Matched face, normalized")
    face_box_pixel: Optional[PixelRect] = Field(default=None, description="Matched face, pixels")
    gender: Gender = Field(default=Gender.UNKNOWN)
    gender_score: float = Field(default=0.0, description="Confidence of the gender decision")

    @property
    def has_face(self) -> bool:
        return self.face_box_pixel is not None

    @property
    def is_female(self) -> bool:
        return self.gender == Gender.FEMALE

    def keypoint(self, body_part: BodyPart) -> Optional[KeyPoint]:
        for kp in self.keypoints:
            if kp.body_part == body_part:
                return kp
        return None


class NsfwPrediction(BaseModel):
    """Five category scores from the NSFW classifier.

    Scores are each in [0, 1] but are not guaranteed to sum to 1.
    """

    class Config:
        frozen = True

    LABELS: ClassVar[Tuple[str, ...]] = ("drawing", "hentai", "neutral", "porn", "sexy")
    UNSAFE_THRESHOLD: ClassVar[float] = 0.85

    drawing: float = Field(..., ge=0.0, le=1.0)
    hentai: float = Field(..., ge=0.0, le=1.0)
    neutral: float = Field(..., ge=0.0, le=1.0)
    porn: float = Field(..., ge=0.0, le=1.0)
    sexy: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_scores(cls, scores: Sequence[float]) -> "NsfwPrediction":
        """Build from a score vector in ``LABELS`` order.

        Raises:
            ValueError: If the vector does not have exactly five entries
        """
        if len(scores) != len(cls.LABELS):
            raise ValueError(
                f"Expected {len(cls.LABELS)} NSFW scores, got {len(scores)}"
            )
        return cls(**{label: float(s) for label, s in zip(cls.LABELS, scores)})

    @property
    def unsafe_score(self) -> float:
        return self.hentai + self.porn + self.sexy

    @property
    def safe_score(self) -> float:
        return self.drawing + self.neutral

    def is_safe(self) -> bool:
        return self.unsafe_score < self.UNSAFE_THRESHOLD

    def top_label(self) -> Tuple[str, float]:
        scores = [getattr(self, label) for label in self.LABELS]
        best = max(range(len(scores)), key=lambda i: scores[i])
        return self.LABELS[best], scores[best]


class FaceDetection(BaseModel):
    """A face box as emitted by a face detector backend, in its native space."""

    class Config:
        frozen = True

    rect: Union[PixelRect, NormalizedRect]
    score: float = Field(default=1.0)

    def to_pixel(self, image_width: float, image_height: float) -> PixelRect:
        if isinstance(self.rect, PixelRect):
            return self.rect
        return self.rect.to_pixel(image_width, image_height)


class DetectionResult(BaseModel):
    """Result for one processed image.

    Coordinates of every person are expressed against ``image_width`` x
    ``image_height`` (the working image the detectors saw).
    """

    image_width: int = Field(..., ge=0)
    image_height: int = Field(..., ge=0)
    is_nsfw: bool = Field(default=False)
    persons: List[Person] = Field(default_factory=list)
