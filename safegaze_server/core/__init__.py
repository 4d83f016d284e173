"""Core functionality for the Safegaze inference host."""

from .config import SafegazeConfig, get_default_config, load_config
from .engine import InferenceEngine, ModelHandle
from .errors import (
    ImageDecodeError,
    ImageFetchError,
    InferenceError,
    InferenceTimeoutError,
    ModelUnavailableError,
    SafegazeError,
)
from .fetcher import ImageFetcher
from .telemetry import RedactionCounters

__all__ = [
    "SafegazeConfig",
    "get_default_config",
    "load_config",
    "InferenceEngine",
    "ModelHandle",
    "ImageDecodeError",
    "ImageFetchError",
    "InferenceError",
    "InferenceTimeoutError",
    "ModelUnavailableError",
    "SafegazeError",
    "ImageFetcher",
    "RedactionCounters",
]
