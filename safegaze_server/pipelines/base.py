"""Abstract base class for leaf detectors."""

from abc import ABC, abstractmethod
from typing import Any, Dict

import numpy as np

from ..core.engine import ModelHandle


class BaseDetector(ABC):
    """Abstract base class for the leaf detectors (NSFW, face, pose, gender).

    A detector owns preprocessing and postprocessing around one model handle;
    the handle owns the runtime and serializes calls into it. Detectors raise
    ``SafegazeError`` subclasses on failure and leave degradation policy to
    the orchestrator.
    """

    model_type = "unknown"

    def __init__(self, handle: ModelHandle):
        """Initialize detector with its model handle.

        Args:
            handle: Model handle from the inference engine
        """
        self.handle = handle
        self.model_version = "unknown"

    @property
    def available(self) -> bool:
        return self.handle.available

    @abstractmethod
    def detect(self, image: np.ndarray) -> Any:
        """Run the detector on an RGB image.

        Args:
            image: ``H x W x 3`` uint8 RGB array

        Returns:
            Detector-specific result
        """
        pass

    def get_version(self) -> str:
        """Get detector version string.

        Returns:
            str: Version identifier for this detector
        """
        return self.model_version

    def get_info(self) -> Dict[str, Any]:
        """Get detector information and metadata.

        Returns:
            dict: Detector metadata (type, version, model handle state)
        """
        return {
            "type": self.model_type,
            "version": self.get_version(),
            "model": self.handle.get_info(),
        }
