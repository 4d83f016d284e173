"""Model runtime backends.

Every backend exposes ``invoke(input) -> np.ndarray`` and nothing else the
pipeline depends on, so tests can substitute fakes and weights stay opaque.

Input/output contracts:
- Classifiers: ``S x S x 3`` float32 RGB in [0, 1] -> probability vector in
  the order of the ``labels`` the backend was built with.
- Pose: ``H x W x 3`` uint8 RGB -> ``(N, 17, 3)`` of ``x, y, confidence`` in
  pixels, keypoints in COCO order.
- Face: ``H x W x 3`` uint8 RGB -> ``(N, 5)`` of ``x, y, w, h, score`` in the
  backend's ``box_space``.
"""

import logging
from pathlib import Path
from typing import Sequence

import cv2
import numpy as np

from ..core.config import ModelSettings
from ..models.detection import BodyPart, NsfwPrediction
from ..models.geometry import BoxSpace

logger = logging.getLogger(__name__)

GENDER_LABELS = ("female", "male")
NUM_KEYPOINTS = len(BodyPart)


def resolve_device(device: str = "auto") -> str:
    """Pick cuda, then mps, then cpu when ``device`` is "auto"."""
    if device != "auto":
        return device

    import torch

    if torch.cuda.is_available():
        return "cuda"
    if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        return "mps"
    return "cpu"


def resolve_model_path(model_path: str) -> Path:
    """Resolve relative weight paths against the package directory.

    Raises:
        FileNotFoundError: If the weights do not exist
    """
    path = Path(model_path)
    if not path.is_absolute():
        path = Path(__file__).parent.parent / path
    if not path.exists():
        raise FileNotFoundError(f"Model weights not found: {path}")
    return path


def _load_yolo(model_path: str):
    try:
        from ultralytics import YOLO
    except ImportError:
        raise ImportError(
            "ultralytics is required for YOLO backends. "
            "Install with: pip install ultralytics"
        )
    return YOLO(str(resolve_model_path(model_path)))


class UltralyticsClassifierBackend:
    """YOLO classification model (NSFW categories, gender)."""

    def __init__(self, model_path: str, labels: Sequence[str], device: str = "auto"):
        self.model = _load_yolo(model_path)
        self.device = resolve_device(device)
        self.labels = tuple(labels)

        names = self.model.names
        if not isinstance(names, dict):
            names = dict(enumerate(names))
        by_name = {str(v).lower(): int(k) for k, v in names.items()}
        missing = [label for label in self.labels if label not in by_name]
        if missing:
            raise ValueError(f"Model classes {sorted(by_name)} lack labels {missing}")
        self.label_indices = [by_name[label] for label in self.labels]
        logger.info(f"Loaded classifier {model_path} on {self.device}: {self.labels}")

    def invoke(self, tensor: np.ndarray) -> np.ndarray:
        import torch

        batch = torch.from_numpy(np.ascontiguousarray(tensor.transpose(2, 0, 1))).unsqueeze(0)
        results = self.model.predict(
            source=batch,
            imgsz=tensor.shape[0],
            device=self.device,
            verbose=False,
        )
        probs = results[0].probs.data.cpu().numpy()
        return probs[self.label_indices].astype(np.float32)


class UltralyticsPoseBackend:
    """YOLO pose model producing 17 COCO keypoints per person."""

    def __init__(self, model_path: str, conf_threshold: float = 0.25, device: str = "auto"):
        self.model = _load_yolo(model_path)
        self.device = resolve_device(device)
        self.conf_threshold = conf_threshold

    def invoke(self, image: np.ndarray) -> np.ndarray:
        results = self.model.predict(
            source=cv2.cvtColor(image, cv2.COLOR_RGB2BGR),
            conf=self.conf_threshold,
            device=self.device,
            verbose=False,
        )
        keypoints = results[0].keypoints
        if keypoints is None or len(results[0].boxes) == 0:
            return np.zeros((0, NUM_KEYPOINTS, 3), dtype=np.float32)

        data = keypoints.data.cpu().numpy().astype(np.float32)
        if data.shape[-1] == 2:
            # Model without visibility scores
            ones = np.ones(data.shape[:-1] + (1,), dtype=np.float32)
            data = np.concatenate([data, ones], axis=-1)
        return data


class UltralyticsFaceBackend:
    """YOLO face detector. Reports normalized top-left boxes."""

    box_space = BoxSpace.NORMALIZED_TOP_LEFT

    def __init__(self, model_path: str, conf_threshold: float = 0.25, device: str = "auto"):
        self.model = _load_yolo(model_path)
        self.device = resolve_device(device)
        self.conf_threshold = conf_threshold

    def invoke(self, image: np.ndarray) -> np.ndarray:
        results = self.model.predict(
            source=cv2.cvtColor(image, cv2.COLOR_RGB2BGR),
            conf=self.conf_threshold,
            device=self.device,
            verbose=False,
        )
        boxes = results[0].boxes
        if boxes is None or len(boxes) == 0:
            return np.zeros((0, 5), dtype=np.float32)

        xyxyn = boxes.xyxyn.cpu().numpy()
        conf = boxes.conf.cpu().numpy()
        out = np.empty((len(xyxyn), 5), dtype=np.float32)
        out[:, 0] = xyxyn[:, 0]
        out[:, 1] = xyxyn[:, 1]
        out[:, 2] = xyxyn[:, 2] - xyxyn[:, 0]
        out[:, 3] = xyxyn[:, 3] - xyxyn[:, 1]
        out[:, 4] = conf
        return out


class HaarCascadeFaceBackend:
    """OpenCV frontal-face Haar cascade. Reports pixel boxes."""

    box_space = BoxSpace.PIXEL

    def __init__(
        self,
        cascade_path: str = "",
        scale_factor: float = 1.1,
        min_neighbors: int = 5,
        min_size: int = 24,
    ):
        path = cascade_path or cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
        self.classifier = cv2.CascadeClassifier(path)
        if self.classifier.empty():
            raise FileNotFoundError(f"Haar cascade not loadable: {path}")
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size

    def invoke(self, image: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        rects = self.classifier.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=(self.min_size, self.min_size),
        )
        if len(rects) == 0:
            return np.zeros((0, 5), dtype=np.float32)
        out = np.ones((len(rects), 5), dtype=np.float32)
        out[:, :4] = np.asarray(rects, dtype=np.float32)
        return out


def load_backend(name: str, settings: ModelSettings):
    """Construct the backend configured for model type ``name``.

    Raises:
        ValueError: For unknown backend names or classifier label mismatches
        FileNotFoundError: If weights are missing
        ImportError: If the runtime library is not installed
    """
    backend = settings.backend

    if backend == "ultralytics_classify":
        if name == "nsfw":
            labels = NsfwPrediction.LABELS
        elif name == "gender":
            labels = GENDER_LABELS
        else:
            raise ValueError(f"No classifier labels defined for model '{name}'")
        return UltralyticsClassifierBackend(settings.model_path, labels, settings.device)

    if backend == "ultralytics_pose":
        return UltralyticsPoseBackend(
            settings.model_path, settings.conf_threshold, settings.device
        )

    if backend == "ultralytics_face":
        return UltralyticsFaceBackend(
            settings.model_path, settings.conf_threshold, settings.device
        )

    if backend == "haar_cascade":
        return HaarCascadeFaceBackend(settings.model_path)

    raise ValueError(f"Unknown backend '{backend}' for model '{name}'")
