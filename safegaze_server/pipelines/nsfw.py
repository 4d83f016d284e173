"""NSFW classifier: five category scores for a whole image."""

import logging

import numpy as np

from ..core.errors import InferenceError
from ..models.detection import NsfwPrediction
from ..utils.imaging import to_input_tensor
from .base import BaseDetector

logger = logging.getLogger(__name__)


class NsfwClassifier(BaseDetector):
    """Classify an image into drawing/hentai/neutral/porn/sexy."""

    model_type = "nsfw"

    def __init__(self, handle, input_size: int = 224):
        super().__init__(handle)
        self.model_version = "nsfw-cls-v1"
        self.input_size = input_size

    def detect(self, image: np.ndarray) -> NsfwPrediction:
        """Score ``image``.

        Raises:
            ModelUnavailableError: If the classifier never loaded
            InferenceError: If the model fails or returns other than 5 scores
        """
        tensor = to_input_tensor(image, self.input_size)
        output = np.asarray(self.handle.invoke(tensor), dtype=np.float32).reshape(-1)

        try:
            prediction = NsfwPrediction.from_scores(np.clip(output, 0.0, 1.0).tolist())
        except ValueError as e:
            raise InferenceError(str(e)) from e

        label, confidence = prediction.top_label()
        logger.debug(
            f"NSFW unsafe={prediction.unsafe_score:.3f} safe={prediction.safe_score:.3f} "
            f"top={label}({confidence:.3f})"
        )
        return prediction
