"""Pydantic models for inference host response payloads."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="UP", description="Server status")
    models: Optional[Dict[str, bool]] = Field(default=None, description="Model availability")


class VersionInfo(BaseModel):
    """Version information response."""

    version: str = Field(..., description="Server version")
    models: Dict[str, Any] = Field(default_factory=dict, description="Per-model handle info")
    config: Optional[Dict[str, Any]] = Field(default=None, description="Configuration info")


class StatsResponse(BaseModel):
    """Telemetry counters since the process started."""

    blurred_images: int = Field(..., description="Images blurred in whole or in part")
    harmful_sites: int = Field(..., description="Distinct domains with an NSFW image")
    blurred_by_domain: Dict[str, int] = Field(default_factory=dict)


class RedactResponse(BaseModel):
    """Result of detection plus redaction for one uploaded image.

    Example:
        {
            "state": "safe_partial_redaction",
            "detection": {"imageWidth": 800, "imageHeight": 600, "persons": {...}},
            "image": "data:image/png;base64,...",
            "decisions": [{"personId": 0, "gender": "male", "redacted": false, ...}]
        }
    """

    state: str = Field(..., description="Terminal render state")
    detection: Dict[str, Any] = Field(..., description="Detection wire payload")
    image: str = Field(..., description="Rendered image as a PNG data URL")
    decisions: List[Dict[str, Any]] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """Reply to a page-script message."""

    status: str = Field(default="ok")
    uid: Optional[str] = Field(default=None, description="Image id the page script assigned")
    detection: Optional[Dict[str, Any]] = Field(default=None, description="Detection wire payload")
