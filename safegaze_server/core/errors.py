"""Exception types raised inside the detection pipeline.

None of these cross the orchestrator boundary: the orchestrator catches them
and degrades to an empty (or fail-closed) detection.
"""


class SafegazeError(Exception):
    """Base class for pipeline errors."""


class ImageFetchError(SafegazeError):
    """Raised when source image bytes cannot be downloaded."""


class ImageDecodeError(SafegazeError):
    """Raised when image bytes cannot be decoded to pixels."""


class ModelUnavailableError(SafegazeError):
    """Raised when a model handle is used but its backend never loaded."""


class InferenceError(SafegazeError):
    """Raised when a backend call fails or returns a malformed output."""


class InferenceTimeoutError(InferenceError):
    """Raised when a backend call does not finish within the configured timeout."""
