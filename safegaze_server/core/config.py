"""Configuration loading and validation."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"
CONFIG_ENV_VAR = "SAFEGAZE_CONFIG"


class ServerSettings(BaseModel):
    """Server configuration settings."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=9090, description="Server port")
    version: str = Field(default="0.1.0", description="Server version")


class ModelSettings(BaseModel):
    """Settings for one model backend."""

    enabled: bool = Field(default=True, description="Load this model at startup")
    backend: str = Field(..., description="Backend name (ultralytics_classify, haar_cascade, ...)")
    model_path: str = Field(default="", description="Path to model weights")
    device: str = Field(default="auto", description="Device (auto, cuda, mps, cpu)")
    conf_threshold: float = Field(default=0.25, description="Detector confidence threshold")
    input_size: int = Field(default=224, description="Square classifier input size")


def _default_models() -> Dict[str, ModelSettings]:
    return {
        "nsfw": ModelSettings(backend="ultralytics_classify", model_path="models/nsfw_cls.pt"),
        "face": ModelSettings(backend="haar_cascade", conf_threshold=0.0),
        "pose": ModelSettings(backend="ultralytics_pose", model_path="models/yolov8n-pose.pt"),
        "gender": ModelSettings(backend="ultralytics_classify", model_path="models/gender_cls.pt"),
    }


class ModelsSettings(BaseModel):
    """Backends for the four leaf models."""

    nsfw: ModelSettings = Field(default_factory=lambda: _default_models()["nsfw"])
    face: ModelSettings = Field(default_factory=lambda: _default_models()["face"])
    pose: ModelSettings = Field(default_factory=lambda: _default_models()["pose"])
    gender: ModelSettings = Field(default_factory=lambda: _default_models()["gender"])


class PipelineSettings(BaseModel):
    """Detection orchestrator settings."""

    max_image_size: int = Field(default=800, description="Max working width/height in pixels")
    min_image_size: int = Field(default=45, description="Smaller images skip detection")
    keypoint_min_confidence: float = Field(default=0.1, description="Default keypoint cutoff")
    keypoint_thresholds: Dict[str, float] = Field(
        default_factory=dict, description="Per-body-part keypoint cutoffs"
    )
    max_workers: int = Field(default=4, ge=1, description="Inference worker pool size")
    invocation_timeout: float = Field(default=10.0, gt=0.0, description="Seconds per model call")
    download_timeout: float = Field(default=10.0, gt=0.0, description="Seconds per image download")

    def keypoint_threshold(self, body_part: str) -> float:
        return self.keypoint_thresholds.get(body_part, self.keypoint_min_confidence)


class ChannelRange(BaseModel):
    """Inclusive range for one RGB channel."""

    min: int = Field(..., ge=0, le=255)
    max: int = Field(..., ge=0, le=255)


class SkinRanges(BaseModel):
    """RGB ranges a skin pixel must fall into."""

    r: ChannelRange = Field(default_factory=lambda: ChannelRange(min=95, max=255))
    g: ChannelRange = Field(default_factory=lambda: ChannelRange(min=40, max=220))
    b: ChannelRange = Field(default_factory=lambda: ChannelRange(min=20, max=200))


class RendererSettings(BaseModel):
    """Redaction renderer policy constants."""

    min_pose_score: float = Field(default=0.2, description="Persons below this are noise")
    min_part_score: float = Field(default=0.0, description="Body keypoint cutoff")
    min_part_score_male: float = Field(default=0.07, description="Body keypoint cutoff for males")
    min_face_part_score: float = Field(default=0.05, description="Face keypoint cutoff")
    min_skin_ratio: float = Field(default=0.3, description="Skin threshold, full body")
    lower_body_min_skin_ratio: float = Field(default=0.2, description="Skin threshold, lower body")
    skin_ranges: SkinRanges = Field(default_factory=SkinRanges)
    min_skin_rg_diff: int = Field(default=15, description="Minimum |r - g| for skin")
    female_stroke_multiplier: float = Field(default=0.32)
    male_stroke_multiplier: float = Field(default=0.27)
    fallback_male_stroke_multiplier: float = Field(
        default=0.25, description="Male multiplier when no keypoint is valid"
    )
    min_stroke_width: int = Field(default=15)
    pixel_block_ratio: float = Field(default=0.08, description="Block size per min(w, h)")
    max_pixel_block: int = Field(default=29)
    max_pixel_block_large: int = Field(default=35, description="Cap when min(w, h) > 1000")
    face_oval_divisor: float = Field(default=2.2, description="Face box side / oval radius")
    debug: bool = Field(default=False, description="Overlay masks, skin map and labels")


class SafegazeConfig(BaseModel):
    """Complete service configuration."""

    server: ServerSettings = Field(default_factory=ServerSettings)
    models: ModelsSettings = Field(default_factory=ModelsSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    renderer: RendererSettings = Field(default_factory=RendererSettings)


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    """Pick the config file: explicit path, then $SAFEGAZE_CONFIG, then the bundled one."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(config_path: Path) -> SafegazeConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        SafegazeConfig: Validated configuration object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValidationError: If config doesn't match schema
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    return SafegazeConfig(**config_data)


def get_default_config() -> SafegazeConfig:
    """Get default configuration.

    Returns:
        SafegazeConfig: Default configuration
    """
    return SafegazeConfig()
