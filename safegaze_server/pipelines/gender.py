"""Gender classifier for cropped face regions."""

import logging

import numpy as np
from pydantic import BaseModel, Field

from ..core.errors import InferenceError
from ..models.detection import Gender
from ..utils.imaging import to_input_tensor
from .base import BaseDetector

logger = logging.getLogger(__name__)


class GenderPrediction(BaseModel):
    """Outcome of classifying one face crop."""

    female_probability: float = Field(..., ge=0.0, le=1.0)
    gender: Gender
    score: float = Field(..., ge=0.0, le=1.0, description="Confidence of ``gender``")


class GenderClassifier(BaseDetector):
    """Two-class (female, male) classifier run once per matched face."""

    model_type = "gender"

    def __init__(self, handle, input_size: int = 224):
        super().__init__(handle)
        self.model_version = "gender-cls-v1"
        self.input_size = input_size

    def detect(self, face_image: np.ndarray) -> GenderPrediction:
        """Classify a face crop.

        Raises:
            ModelUnavailableError: If the classifier never loaded
            InferenceError: On empty crops, model failures or bad outputs
        """
        if face_image.size == 0 or min(face_image.shape[:2]) < 1:
            raise InferenceError("Empty face crop")

        tensor = to_input_tensor(face_image, self.input_size)
        output = np.asarray(self.handle.invoke(tensor), dtype=np.float32).reshape(-1)
        if output.shape[0] != 2:
            raise InferenceError(f"Gender output must have 2 scores, got {output.shape[0]}")

        total = float(output.sum())
        if total <= 0:
            raise InferenceError("Gender scores sum to zero")
        p_female = float(np.clip(output[0] / total, 0.0, 1.0))

        if p_female >= 0.5:
            prediction = GenderPrediction(female_probability=p_female, gender=Gender.FEMALE, score=p_female)
        else:
            prediction = GenderPrediction(female_probability=p_female, gender=Gender.MALE, score=1.0 - p_female)

        logger.debug(f"Gender {prediction.gender.value} ({prediction.score:.3f})")
        return prediction
