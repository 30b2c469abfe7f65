"""
Configuration management for the RetinaFace detector.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - The stride table is the model's architecture contract. The defaults
      match the shipped network exactly; overriding them targets another
      backbone without code changes.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: retinaface_detector/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StrideConfig:
    """One feature-map level of the detection head.

    Attributes:
        stride: Pixel step between adjacent cells of the feature map.
        scales: Anchor scales generated at this level.
    """

    stride: int
    scales: Tuple[float, ...]


_DEFAULT_STRIDES: Tuple[StrideConfig, ...] = (
    StrideConfig(stride=32, scales=(32.0, 16.0)),
    StrideConfig(stride=16, scales=(8.0, 4.0)),
    StrideConfig(stride=8, scales=(2.0, 1.0)),
)


@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_path: Path to the RetinaFace .onnx file (relative to project root).
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Fixed network input resolution (width, height).
        input_name: Name of the network's image input.
    """

    model_path: str = "models/retinaface.onnx"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (512, 512)
    input_name: str = "data"


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds and anchor geometry.

    Attributes:
        prob_threshold: Minimum face probability to keep a proposal.
        nms_threshold: IoU above which a lower-confidence face is suppressed.
        base_size: Base anchor size in pixels.
        ratios: Anchor aspect ratios.
        strides: Per-stride anchor scales, in decode order.
    """

    prob_threshold: float = 0.75
    nms_threshold: float = 0.5
    base_size: int = 16
    ratios: Tuple[float, ...] = (1.0,)
    strides: Tuple[StrideConfig, ...] = _DEFAULT_STRIDES


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Image file or directory of images.
    """

    source: str = "images/"


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        save_path: Directory where result files are written.
        format: Result file format — 'json' or 'csv'.
    """

    save_path: str = "output/"
    format: str = "json"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_OUTPUT_FORMATS = {"json", "csv"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if config.output.format not in _VALID_OUTPUT_FORMATS:
        raise ValueError(
            f"Invalid output.format: '{config.output.format}'. "
            f"Must be one of {_VALID_OUTPUT_FORMATS}."
        )

    if not (0.0 <= config.detection.prob_threshold <= 1.0):
        raise ValueError(
            f"detection.prob_threshold must be in [0.0, 1.0], "
            f"got {config.detection.prob_threshold}."
        )

    if not (0.0 <= config.detection.nms_threshold <= 1.0):
        raise ValueError(
            f"detection.nms_threshold must be in [0.0, 1.0], "
            f"got {config.detection.nms_threshold}."
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

    if config.detection.base_size <= 0:
        raise ValueError(
            f"detection.base_size must be positive, "
            f"got {config.detection.base_size}."
        )

    if not config.detection.ratios or any(r <= 0 for r in config.detection.ratios):
        raise ValueError(
            f"detection.ratios must be a non-empty list of positive values, "
            f"got {config.detection.ratios}."
        )

    if not config.detection.strides:
        raise ValueError("detection.strides must define at least one stride.")

    for entry in config.detection.strides:
        if entry.stride <= 0:
            raise ValueError(
                f"detection.strides: stride must be positive, got {entry.stride}."
            )
        if not entry.scales or any(s <= 0 for s in entry.scales):
            raise ValueError(
                f"detection.strides: scales for stride {entry.stride} must be "
                f"a non-empty list of positive values, got {entry.scales}."
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


def _parse_floats(value) -> Tuple[float, ...]:
    """Convert a scalar or list from YAML into a tuple of floats."""
    if isinstance(value, (list, tuple)):
        return tuple(float(v) for v in value)
    return (float(value),)


def _parse_strides(value) -> Tuple[StrideConfig, ...]:
    """Convert a YAML list of {stride, scales} mappings into StrideConfigs."""
    if not isinstance(value, (list, tuple)):
        raise ValueError(
            f"detection.strides must be a list of {{stride, scales}} entries, "
            f"got {value!r}."
        )
    strides = []
    for entry in value:
        if not isinstance(entry, dict) or "stride" not in entry or "scales" not in entry:
            raise ValueError(
                f"Each detection.strides entry needs 'stride' and 'scales', "
                f"got {entry!r}."
            )
        strides.append(
            StrideConfig(stride=int(entry["stride"]), scales=_parse_floats(entry["scales"]))
        )
    return tuple(strides)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "input_name" in raw:
        kwargs["input_name"] = str(raw["input_name"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "prob_threshold" in raw:
        kwargs["prob_threshold"] = float(raw["prob_threshold"])
    if "nms_threshold" in raw:
        kwargs["nms_threshold"] = float(raw["nms_threshold"])
    if "base_size" in raw:
        kwargs["base_size"] = int(raw["base_size"])
    if "ratios" in raw:
        kwargs["ratios"] = _parse_floats(raw["ratios"])
    if "strides" in raw:
        kwargs["strides"] = _parse_strides(raw["strides"])
    return DetectionConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    if "format" in raw:
        kwargs["format"] = str(raw["format"]).lower()
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "RETINAFACE_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        RETINAFACE_MODEL_BACKEND=cuda
        RETINAFACE_DETECTION_PROB_THRESHOLD=0.8
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}DETECTION_PROB_THRESHOLD": ("detection", "prob_threshold"),
        f"{_ENV_PREFIX}DETECTION_NMS_THRESHOLD": ("detection", "nms_threshold"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
        f"{_ENV_PREFIX}OUTPUT_FORMAT": ("output", "format"),
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
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults.

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
        detection=_build_detection_config(raw.get("detection", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config


def apply_overrides(config: AppConfig, overrides: Dict[str, Dict[str, Any]]) -> AppConfig:
    """Return a copy of config with per-section overrides applied.

    Args:
        config: The loaded configuration.
        overrides: Mapping of section name to {field: value}. None values
                   are skipped, so unset CLI flags can be passed as-is.

    Returns:
        A new, validated AppConfig.

    Raises:
        ValueError: If a section is unknown or an overridden value is invalid.
    """
    sections = {}
    for section, values in overrides.items():
        if not hasattr(config, section):
            raise ValueError(f"Unknown configuration section: '{section}'.")
        changes = {k: v for k, v in values.items() if v is not None}
        if changes:
            sections[section] = replace(getattr(config, section), **changes)
            logger.debug("Config override for %s: %s", section, changes)

    updated = replace(config, **sections)
    _validate(updated)
    return updated
