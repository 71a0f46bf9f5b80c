"""
Unit tests for building threads from text samples.

Tests cover:
    - Column parsing of the text layout
    - Func naming conventions (js, js-relevant)
    - Bracketed modifiers for libs, files, JIT tiers and lines
    - Error reporting for malformed input
"""

from __future__ import annotations

import pytest

from stacklens.profiling.builder import (
    get_func_names_dict,
    parse_text_samples,
    profile_from_text_samples,
    strip_modifiers,
    thread_from_func_columns,
    thread_from_text_samples,
)
from stacklens.profiling.errors import ProfileFormatError


class TestParseTextSamples:
    """Test parse_text_samples."""

    def test_columns_are_read_top_down(self):
        columns = parse_text_samples(
            """
            main     main
            parse    render
            lex
            """
        )
        assert columns == [["main", "parse", "lex"], ["main", "render"]]

    def test_column_stops_at_first_empty_cell(self):
        columns = parse_text_samples("A  A\n   B\nC  D\n")
        assert columns == [["A"], ["A", "B", "D"]]

    def test_empty_input(self):
        with pytest.raises(ProfileFormatError):
            parse_text_samples("   \n\n")

    def test_strip_modifiers(self):
        assert strip_modifiers("A[lib:libc.so][line:3]") == "A"
        assert strip_modifiers("A") == "A"


class TestThreadFromFuncColumns:
    """Test thread_from_func_columns."""

    def test_func_index_equals_string_index(self):
        thread = thread_from_func_columns([["main", "parse[lib:app]"], ["main", "lex"]])
        funcs = get_func_names_dict(thread)
        assert funcs == {"main": 0, "parse": 1, "lex": 2}
        for name, func in funcs.items():
            assert thread.string_table.get_string(func) == name

    def test_js_naming(self):
        thread = thread_from_func_columns([["A", "Bjs", "Cjs-relevant"]])
        funcs = get_func_names_dict(thread)
        assert thread.func_table.is_js[funcs["Bjs"]]
        assert not thread.func_table.is_js[funcs["A"]]
        assert not thread.func_table.is_js[funcs["Cjs-relevant"]]
        assert thread.func_table.relevant_for_js[funcs["Cjs-relevant"]]

    def test_lib_modifier_shares_resources(self):
        thread = thread_from_func_columns([["A[lib:libxul.so]", "B[lib:libxul.so]", "C[lib:libc.so]"]])
        funcs = get_func_names_dict(thread)
        assert thread.resource_table.length == 2
        assert thread.func_table.resource[funcs["A"]] == thread.func_table.resource[funcs["B"]]
        lib = thread.resource_table.name[thread.func_table.resource[funcs["C"]]]
        assert thread.string_table.get_string(lib) == "libc.so"

    def test_frame_modifiers(self):
        """Test JIT tier and line create distinct frames of one func."""
        thread = thread_from_func_columns([["Ajs[jit:ion][line:12]"], ["Ajs[jit:baseline]"], ["Ajs"]])
        assert thread.func_table.length == 1
        assert thread.frame_table.length == 3
        assert thread.frame_table.implementation == ["ion", "baseline", None]
        assert thread.frame_table.line == [12, None, None]

    def test_unknown_jit_tier_is_ignored(self):
        thread = thread_from_func_columns([["Ajs[jit:warp]"]])
        assert thread.frame_table.implementation == [None]

    def test_invalid_line(self):
        with pytest.raises(ProfileFormatError, match="line"):
            thread_from_func_columns([["A[line:x]"]])

    def test_file_modifier(self):
        thread = thread_from_func_columns([["run[file:app.js]"]])
        assert thread.string_table.get_string(thread.func_table.file_name[0]) == "app.js"

    def test_stacks_are_shared(self):
        thread = thread_from_func_columns([["A", "B"], ["A", "B"], ["A", "C"]])
        assert thread.stack_table.length == 3
        assert thread.samples.stack == [1, 1, 2]

    def test_empty_samples(self):
        thread = thread_from_func_columns([["A"], None, []])
        assert thread.get_sample_func_names() == [["A"], None, None]

    def test_weights(self):
        thread = thread_from_func_columns([["A"], ["B"]], weights=[2.0, 0.5])
        assert thread.samples.weight == [2.0, 0.5]
        with pytest.raises(ProfileFormatError, match="weights"):
            thread_from_func_columns([["A"]], weights=[1.0, 2.0])


class TestProfileFromTextSamples:
    """Test multi-thread construction."""

    def test_threads_and_func_dicts(self):
        threads, funcs = profile_from_text_samples("A  A\nB  C", "X")
        assert [thread.name for thread in threads] == ["Thread 0", "Thread 1"]
        assert funcs[0] == {"A": 0, "B": 1, "C": 2}
        assert funcs[1] == {"X": 0}

    def test_named_thread(self):
        thread = thread_from_text_samples("A", name="Main")
        assert thread.name == "Main"
        assert thread.get_sample_func_names() == [["A"]]
