"""
Configuration management for the identity face comparison core.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection, scoring, I/O or model loading belongs here.

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
# Resolved relative to this file's location: idmatch/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Face localization model configuration.

    Attributes:
        prototxt_path: Path to the .prototxt network definition (relative to project root).
        weights_path: Path to the .caffemodel weights file (relative to project root).
        backend: Compute backend, 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        mean_values: Per-channel mean subtraction values (BGR order).
        scale_factor: Pixel value scale factor applied during blob creation.
    """

    prototxt_path: str = "models/deploy.prototxt"
    weights_path: str = "models/res10_300x300_ssd_iter_140000.caffemodel"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (300, 300)
    mean_values: Tuple[float, float, float] = (104.0, 177.0, 123.0)
    scale_factor: float = 1.0


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        confidence_threshold: Minimum confidence to accept a face box.
    """

    confidence_threshold: float = 0.5


@dataclass(frozen=True)
class QualityConfig:
    """Identity-document image quality gate.

    Attributes:
        min_pixels: Minimum total pixel count (roughly 550x545).
        edge_threshold: Summed RGB difference above which two adjacent
                        pixels count as an edge.
        min_sharpness: Minimum number of edges per hundred pixels.
        min_brightness: Mean brightness below which an image is too dark.
        max_brightness: Mean brightness above which an image is overexposed.
    """

    min_pixels: int = 300_000
    edge_threshold: int = 50
    min_sharpness: float = 2.0
    min_brightness: float = 30.0
    max_brightness: float = 240.0


@dataclass(frozen=True)
class ExtractionConfig:
    """Face region extraction.

    Attributes:
        padding: Fraction of the box width/height added on each side.
    """

    padding: float = 0.2


@dataclass(frozen=True)
class ComparisonConfig:
    """Similarity scoring and classification.

    Attributes:
        canonical_size: Side length of the square canvas faces are
                        resized to before scoring.
        match_threshold: Minimum similarity classified as a match.
    """

    canonical_size: int = 100
    match_threshold: float = 0.70


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'log', 'save_json', 'save_faces'.
              Example: "log,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "log"
    save_path: str = "output/"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    comparison: ComparisonConfig = field(default_factory=ComparisonConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_OUTPUT_MODES = {"log", "save_json", "save_faces"}


def validate_config(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    modes = set(m.strip() for m in config.output.mode.split(","))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.confidence_threshold <= 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detection.confidence_threshold}."
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

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    if config.quality.min_pixels <= 0:
        raise ValueError(
            f"quality.min_pixels must be positive, "
            f"got {config.quality.min_pixels}."
        )

    if config.quality.edge_threshold < 0:
        raise ValueError(
            f"quality.edge_threshold must be non-negative, "
            f"got {config.quality.edge_threshold}."
        )

    if config.quality.min_brightness >= config.quality.max_brightness:
        raise ValueError(
            f"quality.min_brightness ({config.quality.min_brightness}) must be "
            f"below quality.max_brightness ({config.quality.max_brightness})."
        )

    if config.extraction.padding < 0:
        raise ValueError(
            f"extraction.padding must be non-negative, "
            f"got {config.extraction.padding}."
        )

    if config.comparison.canonical_size <= 0:
        raise ValueError(
            f"comparison.canonical_size must be positive, "
            f"got {config.comparison.canonical_size}."
        )

    if not (0.0 <= config.comparison.match_threshold <= 1.0):
        raise ValueError(
            f"comparison.match_threshold must be in [0.0, 1.0], "
            f"got {config.comparison.match_threshold}."
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


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "prototxt_path" in raw:
        kwargs["prototxt_path"] = str(raw["prototxt_path"])
    if "weights_path" in raw:
        kwargs["weights_path"] = str(raw["weights_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    return DetectionConfig(**kwargs)


def _build_quality_config(raw: dict) -> QualityConfig:
    """Build QualityConfig from a raw YAML dict."""
    kwargs = {}
    if "min_pixels" in raw:
        kwargs["min_pixels"] = int(raw["min_pixels"])
    if "edge_threshold" in raw:
        kwargs["edge_threshold"] = int(raw["edge_threshold"])
    for key in ("min_sharpness", "min_brightness", "max_brightness"):
        if key in raw:
            kwargs[key] = float(raw[key])
    return QualityConfig(**kwargs)


def _build_extraction_config(raw: dict) -> ExtractionConfig:
    kwargs = {}
    if "padding" in raw:
        kwargs["padding"] = float(raw["padding"])
    return ExtractionConfig(**kwargs)


def _build_comparison_config(raw: dict) -> ComparisonConfig:
    """Build ComparisonConfig from a raw YAML dict."""
    kwargs = {}
    if "canonical_size" in raw:
        kwargs["canonical_size"] = int(raw["canonical_size"])
    if "match_threshold" in raw:
        kwargs["match_threshold"] = float(raw["match_threshold"])
    return ComparisonConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "ID_MATCH_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        ID_MATCH_MODEL_BACKEND=cuda
        ID_MATCH_COMPARISON_MATCH_THRESHOLD=0.8

    The variable name maps to the nested config key: the first word after
    the prefix is the section, the remainder is the key.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_PROTOTXT_PATH": ("model", "prototxt_path"),
        f"{_ENV_PREFIX}MODEL_WEIGHTS_PATH": ("model", "weights_path"),
        f"{_ENV_PREFIX}MODEL_SCALE_FACTOR": ("model", "scale_factor"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}QUALITY_MIN_PIXELS": ("quality", "min_pixels"),
        f"{_ENV_PREFIX}QUALITY_MIN_SHARPNESS": ("quality", "min_sharpness"),
        f"{_ENV_PREFIX}EXTRACTION_PADDING": ("extraction", "padding"),
        f"{_ENV_PREFIX}COMPARISON_CANONICAL_SIZE": ("comparison", "canonical_size"),
        f"{_ENV_PREFIX}COMPARISON_MATCH_THRESHOLD": ("comparison", "match_threshold"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
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
                     the system runs entirely on defaults (safe for
                     programmatic usage).

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
        quality=_build_quality_config(raw.get("quality", {})),
        extraction=_build_extraction_config(raw.get("extraction", {})),
        comparison=_build_comparison_config(raw.get("comparison", {})),
        output=_build_output_config(raw.get("output", {})),
    )

    # --- Validate ---
    validate_config(config)

    logger.debug("Configuration loaded: %s", config)
    return config
