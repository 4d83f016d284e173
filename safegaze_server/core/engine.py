"""Inference engine: one serialized handle per model type."""

import logging
import threading
from typing import Any, Callable, Dict, Optional

import numpy as np

from .config import ModelSettings, SafegazeConfig
from .errors import InferenceError, ModelUnavailableError

logger = logging.getLogger(__name__)

MODEL_TYPES = ("nsfw", "face", "pose", "gender")


class ModelHandle:
    """A loaded model backend plus the lock that serializes calls into it.

    Interpreters hold scratch buffers and are not reentrant, so every
    ``invoke`` takes the handle's lock. A handle whose backend failed to load
    stays unavailable for the whole session.
    """

    def __init__(self, name: str, backend: Optional[Any] = None, error: Optional[str] = None):
        self.name = name
        self.backend = backend
        self.load_error = error
        self.invocation_count = 0
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self.backend is not None

    def invoke(self, tensor: np.ndarray) -> np.ndarray:
        """Run the backend on ``tensor``.

        Raises:
            ModelUnavailableError: If the backend never loaded
            InferenceError: If the backend raised
        """
        if self.backend is None:
            raise ModelUnavailableError(f"Model '{self.name}' is not loaded")

        with self._lock:
            self.invocation_count += 1
            try:
                return self.backend.invoke(tensor)
            except Exception as e:
                raise InferenceError(f"Model '{self.name}' failed: {e}") from e

    def get_info(self) -> Dict[str, Any]:
        info = {
            "available": self.available,
            "invocations": self.invocation_count,
        }
        if self.backend is not None:
            info["backend"] = type(self.backend).__name__
        if self.load_error:
            info["error"] = self.load_error
        return info


BackendLoader = Callable[[str, ModelSettings], Any]


class InferenceEngine:
    """Owns the NSFW, face, pose and gender model handles.

    Built once at startup and injected into the orchestrator.
    """

    def __init__(self, handles: Dict[str, ModelHandle]):
        missing = [name for name in MODEL_TYPES if name not in handles]
        if missing:
            raise ValueError(f"Missing model handles: {missing}")
        self.handles = handles

    @property
    def nsfw(self) -> ModelHandle:
        return self.handles["nsfw"]

    @property
    def face(self) -> ModelHandle:
        return self.handles["face"]

    @property
    def pose(self) -> ModelHandle:
        return self.handles["pose"]

    @property
    def gender(self) -> ModelHandle:
        return self.handles["gender"]

    @classmethod
    def from_backends(cls, **backends: Any) -> "InferenceEngine":
        """Wrap already-constructed backends. Omitted models are unavailable."""
        handles = {}
        for name in MODEL_TYPES:
            backend = backends.get(name)
            handles[name] = ModelHandle(
                name, backend, None if backend is not None else "not provided"
            )
        return cls(handles)

    @classmethod
    def from_config(
        cls, config: SafegazeConfig, loader: Optional[BackendLoader] = None
    ) -> "InferenceEngine":
        """Load every enabled model. Load failures leave the handle unavailable."""
        if loader is None:
            from ..pipelines.backends import load_backend

            loader = load_backend

        handles = {}
        for name in MODEL_TYPES:
            settings: ModelSettings = getattr(config.models, name)
            if not settings.enabled:
                logger.warning(f"Model '{name}' disabled in configuration")
                handles[name] = ModelHandle(name, None, "disabled")
                continue
            try:
                backend = loader(name, settings)
                handles[name] = ModelHandle(name, backend)
                logger.info(f"Loaded model '{name}' ({settings.backend})")
            except Exception as e:
                logger.error(f"Failed to load model '{name}' ({settings.backend}): {e}")
                handles[name] = ModelHandle(name, None, str(e))

        return cls(handles)

    def get_info(self) -> Dict[str, Any]:
        return {name: handle.get_info() for name, handle in self.handles.items()}
