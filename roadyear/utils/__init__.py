"""Utility functions for RoadYear."""

from roadyear.utils.config import (
    ConfigValidationError,
    apply_overrides,
    load_config,
    merge_configs,
    save_config,
    validate_config,
)
from roadyear.utils.logging import get_logger, setup_logger

__all__ = [
    "get_logger",
    "setup_logger",
    "load_config",
    "merge_configs",
    "save_config",
    "validate_config",
    "apply_overrides",
    "ConfigValidationError",
]
