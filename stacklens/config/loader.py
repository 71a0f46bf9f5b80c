"""Configuration loading and saving utilities."""

from __future__ import annotations

import argparse
import copy
from dataclasses import fields
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger

from stacklens.config.base import ViewerConfig
from stacklens.config.validation import ConfigValidator, ValidationError


def load_config(config_path: str, _visited: Optional[set] = None) -> ViewerConfig:
    """Load viewer configuration from a YAML file with support for inheritance.

    Supports the 'extends' keyword for config inheritance; the parent path is
    resolved relative to the file that extends it. Child values override
    parent values (deep merge for nested dicts).

    Args:
        config_path: Path to YAML configuration file
        _visited: Internal parameter to track visited configs (prevents circular refs)

    Returns:
        Validated ViewerConfig

    Raises:
        FileNotFoundError: If a config file doesn't exist
        ValueError: If config inheritance is circular
        ValidationError: If a key or value is invalid
    """
    if _visited is None:
        _visited = set()

    data = _load_config_data(Path(config_path).resolve(), _visited)
    config = config_from_dict(data)
    logger.debug(f"Loaded config from {config_path}: {config}")
    return config


def config_from_dict(data: dict[str, Any]) -> ViewerConfig:
    """Build and validate a ViewerConfig, rejecting unknown keys."""
    valid_keys = [f.name for f in fields(ViewerConfig)]
    for key in data:
        if key not in valid_keys:
            raise ValidationError(ConfigValidator.format_enum_error("config key", key, valid_keys))
    config = ViewerConfig(**data)
    config.validate()
    return config


def _resolve_config_path(extends_path: str, current_dir: Path) -> Path:
    """Resolve the 'extends' field relative to the extending file's directory."""
    extends_path_obj = Path(extends_path)
    if extends_path_obj.is_absolute():
        resolved = extends_path_obj.resolve()
    else:
        resolved = (current_dir / extends_path_obj).resolve()
        if not resolved.exists() and resolved.suffix != ".yaml":
            resolved = resolved.with_suffix(".yaml")

    if not resolved.exists():
        raise FileNotFoundError(
            f"Config inheritance failed: cannot resolve '{extends_path}'\n"
            f"  Searched relative to {current_dir}\n"
            f"  Make sure the parent config file exists"
        )
    return resolved


def _load_config_data(config_path: Path, visited: set) -> dict[Any, Any]:
    """Load a config file as a raw dictionary with inheritance resolved."""
    if str(config_path) in visited:
        raise ValueError(f"Circular config inheritance detected: {config_path}")
    visited.add(str(config_path))

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}

    if "extends" in data:
        parent_path = data.pop("extends")
        parent_path_resolved = _resolve_config_path(parent_path, config_path.parent)
        parent_data = _load_config_data(parent_path_resolved, visited)
        data = _deep_merge_dicts(parent_data, data)

    return data


def _deep_merge_dicts(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries (override values take precedence).

    Examples:
        >>> _deep_merge_dicts({"a": 1, "b": {"c": 2}}, {"b": {"c": 3}})
        {'a': 1, 'b': {'c': 3}}
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def save_config(config: ViewerConfig, output_path: str, minimal: bool = False) -> None:
    """Save viewer configuration to a YAML file.

    Args:
        config: ViewerConfig to save
        output_path: Path to output YAML file
        minimal: If True, save only values that differ from the defaults
    """
    if minimal:
        defaults = ViewerConfig()
        config_dict = {
            f.name: getattr(config, f.name)
            for f in fields(config)
            if getattr(config, f.name) != getattr(defaults, f.name)
        }
    else:
        config_dict = config.to_dict()

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


def args_to_config(args: argparse.Namespace, base: Optional[ViewerConfig] = None) -> ViewerConfig:
    """Overlay CLI arguments that were explicitly given onto ``base``."""
    config = copy.deepcopy(base) if base is not None else ViewerConfig()
    for name in ("implementation", "max_depth", "transforms", "log_level"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(config, name, value)
    if getattr(args, "inverted", False):
        config.inverted = True
    if getattr(args, "no_lib", False):
        config.show_lib = False
    config.validate()
    return config
