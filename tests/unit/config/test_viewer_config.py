"""
Unit tests for the viewer configuration system.

Tests cover:
    - Defaults and validation with suggestions
    - YAML loading with 'extends' inheritance
    - Saving (full and minimal)
    - Overlaying command-line arguments
"""

from __future__ import annotations

import argparse

import pytest
import yaml

from stacklens.config import (
    ConfigValidator,
    ValidationError,
    ViewerConfig,
    args_to_config,
    config_from_dict,
    load_config,
    save_config,
)
from stacklens.config.loader import _deep_merge_dicts
from stacklens.profiling.transform_types import TRANSFORM_BY_SHORT_KEY


class TestViewerConfig:
    """Test ViewerConfig defaults and validation."""

    def test_defaults(self):
        config = ViewerConfig()
        config.validate()
        assert config.implementation == "combined"
        assert config.inverted is False
        assert config.max_depth is None
        assert config.jit_address_prefixes == ["0x"]
        assert config.show_lib is True

    def test_invalid_implementation_suggests_correction(self):
        with pytest.raises(ValidationError) as exc_info:
            ViewerConfig(implementation="jss").validate()
        message = str(exc_info.value)
        assert "Did you mean 'js'?" in message
        assert "'cpp'" in message

    def test_non_positive_depth(self):
        with pytest.raises(ValidationError, match="max_depth"):
            ViewerConfig(max_depth=0).validate()

    def test_invalid_prefixes(self):
        with pytest.raises(ValidationError, match="jit_address_prefixes"):
            ViewerConfig(jit_address_prefixes=[""]).validate()

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="log_level"):
            ViewerConfig(log_level="LOUD").validate()

    def test_matcher_uses_prefixes(self):
        matcher = ViewerConfig(jit_address_prefixes=["jit_", "0x"]).matcher()
        assert matcher.jit_address_prefixes == ("jit_", "0x")


class TestLoadConfig:
    """Test YAML loading."""

    def test_unknown_key_suggestion(self):
        """Test a misspelled key names the closest valid key."""
        with pytest.raises(ValidationError, match="Did you mean 'implementation'"):
            config_from_dict({"implementaton": "js"})

    def test_extends_merges_parent(self, tmp_path):
        (tmp_path / "base.yaml").write_text(
            yaml.dump({"implementation": "js", "max_depth": 4, "show_lib": False})
        )
        (tmp_path / "child.yaml").write_text(yaml.dump({"extends": "base", "max_depth": 8}))

        config = load_config(str(tmp_path / "child.yaml"))
        assert config.implementation == "js"
        assert config.max_depth == 8
        assert config.show_lib is False

    def test_circular_extends(self, tmp_path):
        (tmp_path / "a.yaml").write_text(yaml.dump({"extends": "b.yaml"}))
        (tmp_path / "b.yaml").write_text(yaml.dump({"extends": "a.yaml"}))
        with pytest.raises(ValueError, match="Circular"):
            load_config(str(tmp_path / "a.yaml"))

    def test_missing_parent(self, tmp_path):
        (tmp_path / "child.yaml").write_text(yaml.dump({"extends": "nowhere"}))
        with pytest.raises(FileNotFoundError, match="nowhere"):
            load_config(str(tmp_path / "child.yaml"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == ViewerConfig()

    def test_deep_merge(self):
        merged = _deep_merge_dicts({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"c": 4}})
        assert merged == {"a": 1, "b": {"c": 4, "d": 3}}


class TestSaveConfig:
    """Test save_config."""

    def test_full_round_trip(self, tmp_path):
        config = ViewerConfig(implementation="cpp", inverted=True, transforms="f-combined-0w2")
        path = tmp_path / "out" / "viewer.yaml"
        save_config(config, str(path))
        assert load_config(str(path)) == config

    def test_minimal_only_writes_changes(self, tmp_path):
        config = ViewerConfig(max_depth=3)
        path = tmp_path / "minimal.yaml"
        save_config(config, str(path), minimal=True)
        assert yaml.safe_load(path.read_text()) == {"max_depth": 3}
        assert load_config(str(path)) == config


class TestArgsToConfig:
    """Test overlaying command-line arguments."""

    def test_explicit_arguments_win(self):
        base = ViewerConfig(implementation="js", max_depth=4)
        args = argparse.Namespace(
            implementation="cpp",
            max_depth=None,
            transforms="mcn-cpp-1",
            log_level=None,
            inverted=True,
            no_lib=True,
        )
        config = args_to_config(args, base)
        assert config.implementation == "cpp"
        assert config.max_depth == 4
        assert config.transforms == "mcn-cpp-1"
        assert config.inverted is True
        assert config.show_lib is False
        assert base.implementation == "js"

    def test_missing_attributes_keep_defaults(self):
        assert args_to_config(argparse.Namespace()) == ViewerConfig()

    def test_invalid_argument_is_rejected(self):
        with pytest.raises(ValidationError):
            args_to_config(argparse.Namespace(max_depth=-2))


def test_help_topics_list_every_option():
    assert set(ConfigValidator.IMPLEMENTATION_DESCRIPTIONS) == set(ConfigValidator.VALID_IMPLEMENTATIONS)
    assert set(ConfigValidator.TRANSFORM_DESCRIPTIONS) == set(ConfigValidator.VALID_TRANSFORMS)
    assert set(ConfigValidator.VALID_TRANSFORMS) == set(TRANSFORM_BY_SHORT_KEY)
