"""Configuration management for RoadYear.

Provides YAML-based configuration loading with validation and override support.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from omegaconf import DictConfig, OmegaConf

from roadyear.utils.logging import get_logger

logger = get_logger(__name__)


# Required configuration fields for validation, per section
REQUIRED_FIELDS = {
    "roads": [
        "path",
        "id_field",
        "target_crs",
    ],
    "normalization": [
        "length_threshold",
        "shorten_margin",
        "degenerate_policy",
        "min_residual",
    ],
    "rasters": [
        "canlad_65",
        "canlad_85",
    ],
    "sampling": [
        "buffer_radius",
        "resolution",
        "percentile",
        "n_workers",
    ],
    "export": [
        "output_dir",
        "file_prefix",
        "format",
        "selectors",
    ],
}

REQUIRED_LAYER_FIELDS = [
    "path",
    "property",
    "start_year",
    "end_year",
]

DEGENERATE_POLICIES = ("clamp", "keep", "error")
EXPORT_FORMATS = ("csv", "json")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Dictionary containing YAML contents

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        yaml.YAMLError: If YAML is malformed
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error parsing YAML file {path}: {e}")

    return config if config is not None else {}


def load_config(
    config_path: Union[str, Path],
    overrides: Optional[Dict[str, Any]] = None,
    validate: bool = True,
) -> DictConfig:
    """Load configuration from YAML file with optional overrides.

    Args:
        config_path: Path to main config YAML file
        overrides: Optional dictionary of dotted overrides
            (e.g., {'sampling.buffer_radius': 60})
        validate: Whether to validate required fields (default: True)

    Returns:
        OmegaConf DictConfig object with merged configuration

    Raises:
        ConfigValidationError: If validation fails and validate=True
        FileNotFoundError: If config file doesn't exist

    Example:
        >>> cfg = load_config('configs/default.yaml')
        >>> print(cfg.normalization.length_threshold)
        180
        >>> cfg = load_config('configs/default.yaml', overrides={'sampling.percentile': 10})
        >>> print(cfg.sampling.percentile)
        10
    """
    config_path = Path(config_path)
    logger.info(f"Loading config from: {config_path}")

    base_config = load_yaml(config_path)
    cfg = apply_overrides(OmegaConf.create(base_config), overrides)

    if validate:
        validate_config(cfg)

    logger.info("Configuration loaded successfully")
    return cfg


def validate_config(cfg: DictConfig) -> None:
    """Validate required fields and the handful of enumerated values.

    Args:
        cfg: Configuration to validate

    Raises:
        ConfigValidationError: If required fields are missing or invalid
    """
    missing_fields = []

    for section, fields in REQUIRED_FIELDS.items():
        if section not in cfg:
            missing_fields.append(section)
            continue
        for field in fields:
            if field not in cfg[section]:
                missing_fields.append(f"{section}.{field}")

    if "rasters" in cfg:
        for layer in ("canlad_65", "canlad_85"):
            if layer not in cfg.rasters:
                continue
            for field in REQUIRED_LAYER_FIELDS:
                if field not in cfg.rasters[layer]:
                    missing_fields.append(f"rasters.{layer}.{field}")

    if missing_fields:
        raise ConfigValidationError(
            f"Missing required config fields: {', '.join(missing_fields)}"
        )

    problems = []
    norm = cfg.normalization
    if norm.length_threshold <= 0:
        problems.append("normalization.length_threshold must be positive")
    if norm.shorten_margin < 0:
        problems.append("normalization.shorten_margin must be >= 0")
    if norm.min_residual <= 0:
        problems.append("normalization.min_residual must be positive")
    if norm.degenerate_policy not in DEGENERATE_POLICIES:
        problems.append(
            f"normalization.degenerate_policy must be one of {DEGENERATE_POLICIES}, "
            f"got '{norm.degenerate_policy}'"
        )

    sampling = cfg.sampling
    if sampling.buffer_radius < 0:
        problems.append("sampling.buffer_radius must be >= 0")
    if sampling.resolution <= 0:
        problems.append("sampling.resolution must be positive")
    if not 0 <= sampling.percentile <= 100:
        problems.append("sampling.percentile must be within [0, 100]")
    if sampling.n_workers < 1:
        problems.append("sampling.n_workers must be >= 1")

    if cfg.export.format not in EXPORT_FORMATS:
        problems.append(
            f"export.format must be one of {EXPORT_FORMATS}, got '{cfg.export.format}'"
        )
    if len(cfg.export.selectors) == 0:
        problems.append("export.selectors must not be empty")

    if problems:
        raise ConfigValidationError("Invalid config: " + "; ".join(problems))

    logger.debug("Configuration validation passed")


def apply_overrides(cfg: DictConfig, overrides: Optional[Dict[str, Any]]) -> DictConfig:
    """Apply dotted overrides (e.g., {'roads.path': 'quebec.gpkg'}) in place."""
    if overrides:
        logger.info(f"Applying {len(overrides)} config overrides")
        for key, value in overrides.items():
            OmegaConf.update(cfg, key, value, merge=True)
    return cfg


def merge_configs(
    base_config_path: Union[str, Path],
    override_config_path: Union[str, Path],
    overrides: Optional[Dict[str, Any]] = None,
    validate: bool = True,
) -> DictConfig:
    """Merge two configuration files, with override taking precedence.

    Used by the extraction script (``--override-config``) for study-area
    configs that only swap input paths (e.g., a Quebec run inheriting
    everything else from default.yaml).

    Args:
        base_config_path: Path to base config file
        override_config_path: Path to override config file
        overrides: Optional dotted overrides applied after the merge
        validate: Whether to validate the merged config (default: True)

    Returns:
        Merged OmegaConf DictConfig

    Raises:
        ConfigValidationError: If validation fails and validate=True
        FileNotFoundError: If either config file doesn't exist
    """
    logger.info(f"Merging configs: {base_config_path} <- {override_config_path}")

    base = load_yaml(base_config_path)
    override = load_yaml(override_config_path)

    merged = OmegaConf.merge(OmegaConf.create(base), OmegaConf.create(override))
    apply_overrides(merged, overrides)

    if validate:
        validate_config(merged)

    logger.info("Configs merged successfully")
    return merged


def save_config(cfg: DictConfig, path: Union[str, Path]) -> None:
    """Save configuration to YAML file.

    The pipeline saves the exact config next to each export.

    Args:
        cfg: Configuration to save
        path: Output path for YAML file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        OmegaConf.save(cfg, f)

    logger.info(f"Configuration saved to: {path}")
