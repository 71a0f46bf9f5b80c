"""
Unit tests for the stacklens command line.

Tests cover:
    - Argument parsing for every subcommand
    - Tree rendering with transforms, inversion and depth limits
    - Decoding transform tokens
    - Checking transformed profiles
    - Exit codes of the main entry point
    - Log level and log file options
"""

from __future__ import annotations

import io
import json
import sys
from dataclasses import replace

import pytest
import yaml
from loguru import logger
from rich.console import Console

from stacklens.cli import create_parser, main
from stacklens.cli.commands import (
    check_command,
    check_thread,
    help_command,
    transforms_command,
    tree_command,
)
from stacklens.profiling.builder import thread_from_func_columns
from stacklens.profiling.storage import profile_to_dict, save_profile
from stacklens.profiling.tables import StackTable


PROFILE_TEXT = """\
main     main     main
parse    parse    render
lex      eval
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures loguru; put a plain stderr sink back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture
def profile_file(tmp_path):
    path = tmp_path / "app.txt"
    path.write_text(PROFILE_TEXT)
    return path


@pytest.fixture
def console():
    return Console(record=True, width=120, file=io.StringIO())


def _run(command, argv, console):
    args = create_parser().parse_args(argv)
    code = command(args, console)
    return code, console.export_text()


class TestParser:
    """Test create_parser."""

    def test_tree_arguments(self):
        args = create_parser().parse_args(
            ["tree", "p.json", "-t", "f-combined-0", "-i", "js", "--inverted", "--max-depth", "3", "--no-lib"]
        )
        assert args.command == "tree"
        assert args.transforms == "f-combined-0"
        assert args.implementation == "js"
        assert args.inverted and args.no_lib
        assert args.max_depth == 3
        assert args.thread is None

    def test_invalid_implementation_exits(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["tree", "p.json", "-i", "rust"])

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_log_options(self, tmp_path):
        args = create_parser().parse_args(
            ["--log-level", "debug", "--log-file", str(tmp_path / "run.log"), "check", "p.json"]
        )
        assert args.log_level == "DEBUG"
        assert args.log_file == tmp_path / "run.log"

    def test_unknown_log_level_exits(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--log-level", "LOUD", "check", "p.json"])


class TestTreeCommand:
    """Test tree_command."""

    def test_prints_tree(self, profile_file, console):
        code, output = _run(tree_command, ["tree", str(profile_file)], console)
        assert code == 0
        assert "Complete 'app 0'" in output
        for name in ["main", "parse", "lex", "eval", "render"]:
            assert name in output
        assert "100%" in output
        assert "67%" in output

    def test_transforms_change_the_tree(self, profile_file, console):
        # func 0 is main and func 1 is parse: focus on main → parse.
        code, output = _run(tree_command, ["tree", str(profile_file), "-t", "f-combined-01"], console)
        assert code == 0
        assert "Focus Node: parse" in output
        assert "render" not in output.split("\n", 1)[1]

    def test_inverted(self, profile_file, console):
        code, output = _run(tree_command, ["tree", str(profile_file), "--inverted"], console)
        assert code == 0
        assert "(inverted)" in output

    def test_max_depth_elides_children(self, profile_file, console):
        code, output = _run(tree_command, ["tree", str(profile_file), "--max-depth", "1"], console)
        assert code == 0
        assert "…" in output
        assert "parse" not in output

    def test_config_file(self, profile_file, tmp_path, console):
        config_path = tmp_path / "viewer.yaml"
        config_path.write_text(yaml.dump({"max_depth": 1}))
        code, output = _run(
            tree_command,
            ["--log-level", "WARNING", "tree", str(profile_file), "-c", str(config_path)],
            console,
        )
        assert code == 0
        assert "parse" not in output

    def test_missing_profile(self, tmp_path, console):
        code, _ = _run(tree_command, ["tree", str(tmp_path / "missing.json")], console)
        assert code == 1

    def test_bad_thread_index(self, profile_file, console):
        code, _ = _run(tree_command, ["tree", str(profile_file), "--thread", "5"], console)
        assert code == 1

    def test_json_profile(self, tmp_path, console):
        path = tmp_path / "profile.json"
        save_profile([thread_from_func_columns([["main", "run"]], name="Main")], path)
        code, output = _run(tree_command, ["tree", str(path)], console)
        assert code == 0
        assert "Complete 'Main'" in output

    def test_function_missing_from_profile(self, profile_file, console):
        """Test a link naming a function the profile lacks still renders."""
        code, output = _run(tree_command, ["tree", str(profile_file), "-t", "f-combined-v"], console)
        assert code == 0
        assert "Focus Node: <func 31>" in output

    def test_merge_function(self, profile_file, console):
        code, output = _run(tree_command, ["tree", str(profile_file), "-t", "mf-1"], console)
        assert code == 0
        assert "Merge: parse" in output
        body = output.split("\n", 1)[1]
        assert "parse" not in body
        assert "lex" in body


class TestTransformsCommand:
    """Test transforms_command."""

    def test_decodes_without_profile(self, console):
        code, output = _run(transforms_command, ["transforms", "f-js-0w2-i~ms-combined-5"], console)
        assert code == 0
        assert "focus-subtree" in output
        assert "merge-subtree" in output
        assert "0, 1, 2" in output
        assert "f-js-0w2-i~ms-combined-5" in output

    def test_names_from_profile(self, profile_file, console):
        code, output = _run(
            transforms_command, ["transforms", "mcn-combined-01", "--profile", str(profile_file)], console
        )
        assert code == 0
        assert "main → parse" in output
        assert "Merge Node: parse" in output

    def test_empty_token(self, console):
        code, output = _run(transforms_command, ["transforms", ""], console)
        assert code == 0
        assert "(empty)" in output


class TestCheckCommand:
    """Test check_command and check_thread."""

    def test_check_passes(self, profile_file, console):
        code, output = _run(check_command, ["check", str(profile_file), "-t", "ms-combined-01"], console)
        assert code == 0
        assert "ok" in output
        assert "3/3" in output

    def test_check_thread_reports_problems(self):
        thread = thread_from_func_columns([["A", "B"]])
        broken = replace(thread, stack_table=StackTable(frame=[0, 1], prefix=[1, None], length=2))
        problems = check_thread(broken)
        assert problems == ["stack 0 is stored before its prefix 1"]
        assert check_thread(thread) == []


class TestHelpCommand:
    """Test help_command."""

    @pytest.mark.parametrize("topic,expected", [("implementation", "cpp"), ("transforms", "mcn")])
    def test_topics(self, topic, expected, console):
        code, output = _run(help_command, ["help", topic], console)
        assert code == 0
        assert expected in output


class TestMain:
    """Test the main entry point exit codes."""

    def test_success(self, profile_file):
        assert main(["--log-level", "ERROR", "tree", str(profile_file)]) == 0

    def test_missing_file(self, tmp_path):
        assert main(["--log-level", "ERROR", "check", str(tmp_path / "missing.txt")]) == 1

    def test_corrupt_profile_reference(self, tmp_path):
        """Test a stack pointing past the frame table is a format error, not a crash."""
        data = profile_to_dict([thread_from_func_columns([["main", "run"]], name="Main")])
        data["threads"][0]["stackTable"]["frame"][0] = 99
        path = tmp_path / "corrupt.json"
        path.write_text(json.dumps(data))
        assert main(["--log-level", "CRITICAL", "tree", str(path)]) == 1

    def test_log_file(self, profile_file, tmp_path):
        log_path = tmp_path / "stacklens.log"
        assert main(["--log-level", "DEBUG", "--log-file", str(log_path), "tree", str(profile_file)]) == 0
        logger.remove()
        text = log_path.read_text()
        assert "load_profile(app.txt) took" in text
        assert "| DEBUG" in text or "| INFO" in text
