"""
Configuration management for the hand detection library.

Provides a layered configuration system with the following precedence
(highest to lowest):

    Environment variables > YAML config file > Defaults

Design constraints:
    - The library MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, inference, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: hand_detection/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_path: Path to the palm detection network (relative to project root).
                    Any format cv2.dnn.readNet understands (.onnx, .pb, .tflite).
        backend: Compute backend: 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) the network expects.
        input_layout: Tensor layout the network consumes: 'nhwc' or 'nchw'.
        swap_rb: Convert BGR input frames to RGB before inference.
    """

    model_path: str = "models/palm_detection.onnx"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (256, 256)
    input_layout: str = "nhwc"
    swap_rb: bool = True


@dataclass(frozen=True)
class AnchorConfig:
    """Anchor table configuration.

    Attributes:
        path: Optional JSON file holding the anchor table. None means the
              anchors are generated from the strides below.
        strides: Per-layer strides of the SSD feature maps.
        offset: Offset of the anchor center inside its cell, in cell units.
    """

    path: Optional[str] = None
    strides: Tuple[int, ...] = (8, 16, 32, 32, 32)
    offset: float = 0.5


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        score_threshold: Minimum confidence to keep a candidate.
        iou_threshold: IoU threshold for non-maximum suppression.
    """

    score_threshold: float = 0.5
    iou_threshold: float = 0.3


@dataclass(frozen=True)
class VisualizationConfig:
    """Visualization rendering parameters.

    Attributes:
        box_color: BGR color tuple for the bounding box.
        landmark_color: BGR color tuple for landmark points.
        thickness: Line thickness in pixels.
        landmark_radius: Radius of landmark points in pixels.
        show_confidence: Whether to render the confidence score label.
    """

    box_color: Tuple[int, int, int] = (0, 255, 0)
    landmark_color: Tuple[int, int, int] = (0, 0, 255)
    thickness: int = 2
    landmark_radius: int = 3
    show_confidence: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level library configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    anchors: AnchorConfig = field(default_factory=AnchorConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_LAYOUTS = {"nhwc", "nchw"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if config.model.input_layout not in _VALID_LAYOUTS:
        raise ValueError(
            f"Invalid model.input_layout: '{config.model.input_layout}'. "
            f"Must be one of {_VALID_LAYOUTS}."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if not config.anchors.strides or any(s <= 0 for s in config.anchors.strides):
        raise ValueError(
            f"anchors.strides must be a non-empty list of positive integers, "
            f"got {config.anchors.strides}."
        )

    if not (0.0 <= config.anchors.offset <= 1.0):
        raise ValueError(
            f"anchors.offset must be in [0.0, 1.0], got {config.anchors.offset}."
        )

    if not (0.0 <= config.detection.score_threshold <= 1.0):
        raise ValueError(
            f"detection.score_threshold must be in [0.0, 1.0], "
            f"got {config.detection.score_threshold}."
        )

    if not (0.0 <= config.detection.iou_threshold <= 1.0):
        raise ValueError(
            f"detection.iou_threshold must be in [0.0, 1.0], "
            f"got {config.detection.iou_threshold}."
        )

    if config.visualization.thickness <= 0:
        raise ValueError(
            f"visualization.thickness must be positive, "
            f"got {config.visualization.thickness}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Interpret YAML booleans and their string forms from the environment."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "input_layout" in raw:
        kwargs["input_layout"] = str(raw["input_layout"]).lower()
    if "swap_rb" in raw:
        kwargs["swap_rb"] = _parse_bool(raw["swap_rb"])
    return ModelConfig(**kwargs)


def _build_anchor_config(raw: dict) -> AnchorConfig:
    """Build AnchorConfig from a raw YAML dict."""
    kwargs = {}
    if "path" in raw:
        val = raw["path"]
        kwargs["path"] = str(val) if val is not None else None
    if "strides" in raw:
        kwargs["strides"] = tuple(int(s) for s in raw["strides"])
    if "offset" in raw:
        kwargs["offset"] = float(raw["offset"])
    return AnchorConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "score_threshold" in raw:
        kwargs["score_threshold"] = float(raw["score_threshold"])
    if "iou_threshold" in raw:
        kwargs["iou_threshold"] = float(raw["iou_threshold"])
    return DetectionConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "box_color" in raw:
        kwargs["box_color"] = _parse_tuple(raw["box_color"], 3, int)
    if "landmark_color" in raw:
        kwargs["landmark_color"] = _parse_tuple(raw["landmark_color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "landmark_radius" in raw:
        kwargs["landmark_radius"] = int(raw["landmark_radius"])
    if "show_confidence" in raw:
        kwargs["show_confidence"] = _parse_bool(raw["show_confidence"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "HAND_DETECT_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        HAND_DETECT_MODEL_BACKEND=cuda
        HAND_DETECT_DETECTION_SCORE_THRESHOLD=0.7
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_INPUT_LAYOUT": ("model", "input_layout"),
        f"{_ENV_PREFIX}MODEL_SWAP_RB": ("model", "swap_rb"),
        f"{_ENV_PREFIX}ANCHORS_PATH": ("anchors", "path"),
        f"{_ENV_PREFIX}DETECTION_SCORE_THRESHOLD": ("detection", "score_threshold"),
        f"{_ENV_PREFIX}DETECTION_IOU_THRESHOLD": ("detection", "iou_threshold"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate library configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the library runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        anchors=_build_anchor_config(raw.get("anchors", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
