"""Viewer configuration: dataclass, YAML loading and validation."""

from __future__ import annotations

from stacklens.config.base import ViewerConfig
from stacklens.config.loader import args_to_config, config_from_dict, load_config, save_config
from stacklens.config.validation import ConfigValidator, ValidationError


__all__ = [
    "ConfigValidator",
    "ValidationError",
    "ViewerConfig",
    "args_to_config",
    "config_from_dict",
    "load_config",
    "save_config",
]
