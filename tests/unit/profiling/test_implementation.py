"""
Unit tests for implementation filters.

Tests cover:
    - Stack type classification (native, js, unsymbolicated)
    - The JIT address heuristic and its configuration
    - Filtering threads and paths by implementation
"""

from __future__ import annotations

import pytest

from stacklens.profiling.builder import get_func_names_dict, thread_from_func_columns
from stacklens.profiling.call_node_info import filter_thread_by_implementation
from stacklens.profiling.implementation import (
    DEFAULT_MATCHER,
    FUNC_MATCHES,
    FuncMatcher,
    filter_call_node_path_by_implementation,
    get_stack_type,
    to_valid_implementation_filter,
)


class TestStackType:
    """Test get_stack_type."""

    def test_classification(self, mixed_thread, mixed_funcs):
        assert get_stack_type(mixed_thread, mixed_funcs["A"]) == "native"
        assert get_stack_type(mixed_thread, mixed_funcs["N"]) == "native"
        assert get_stack_type(mixed_thread, mixed_funcs["Bjs"]) == "js"
        assert get_stack_type(mixed_thread, mixed_funcs["0x1f00"]) == "unsymbolicated"

    def test_custom_jit_prefixes(self, mixed_thread, mixed_funcs):
        """Test an address name is native once it no longer matches a JIT prefix."""
        matcher = FuncMatcher(jit_address_prefixes=("jit_",))
        assert get_stack_type(mixed_thread, mixed_funcs["0x1f00"], matcher) == "native"

    def test_function_with_resource_is_never_jit(self):
        thread = thread_from_func_columns([["0xdead[lib:libc.so]"]])
        assert not DEFAULT_MATCHER.is_probably_jit_code(thread, 0)


class TestPredicates:
    """Test FuncMatcher predicates."""

    def test_relevant_for_js(self):
        """Test a native function flagged relevant for JS shows in both views."""
        thread = thread_from_func_columns([["A", "Fjs-relevant", "Gjs"]])
        funcs = get_func_names_dict(thread)
        assert DEFAULT_MATCHER.js(thread, funcs["Fjs-relevant"])
        assert DEFAULT_MATCHER.cpp(thread, funcs["Fjs-relevant"])
        assert not DEFAULT_MATCHER.js(thread, funcs["A"])
        assert not DEFAULT_MATCHER.cpp(thread, funcs["Gjs"])

    def test_default_predicates_table(self, mixed_thread, mixed_funcs):
        assert set(FUNC_MATCHES) == {"combined", "js", "cpp"}
        assert FUNC_MATCHES["js"](mixed_thread, mixed_funcs["Cjs"])
        assert not FUNC_MATCHES["cpp"](mixed_thread, mixed_funcs["0x1f00"])

    def test_combined_accepts_everything(self, mixed_thread):
        predicate = DEFAULT_MATCHER.predicate("combined")
        assert all(predicate(mixed_thread, f) for f in range(mixed_thread.func_table.length))

    def test_unknown_filter_raises(self):
        with pytest.raises(ValueError, match="Unknown implementation"):
            DEFAULT_MATCHER.predicate("wasm")

    @pytest.mark.parametrize(
        "value,expected",
        [("js", "js"), ("cpp", "cpp"), ("combined", "combined"), ("JS", "combined"), (None, "combined")],
    )
    def test_to_valid_implementation_filter(self, value, expected):
        assert to_valid_implementation_filter(value) == expected


class TestFiltering:
    """Test filtering threads and paths."""

    def test_filter_thread_cpp(self, mixed_thread):
        result = filter_thread_by_implementation(mixed_thread, "cpp")
        assert result.get_sample_func_names() == [["A", "N"], ["A"], ["A"]]

    def test_filter_thread_js(self, mixed_thread):
        result = filter_thread_by_implementation(mixed_thread, "js")
        assert result.get_sample_func_names() == [["Bjs", "Cjs"], ["Bjs", "Cjs", "Ejs"], ["Djs"]]

    def test_combined_returns_same_thread(self, mixed_thread):
        assert filter_thread_by_implementation(mixed_thread, "combined") is mixed_thread

    def test_filter_path(self, mixed_thread, mixed_funcs):
        path = tuple(mixed_funcs[name] for name in ["A", "Bjs", "N", "Cjs"])
        filtered = filter_call_node_path_by_implementation(mixed_thread, "js", path)
        assert filtered == (mixed_funcs["Bjs"], mixed_funcs["Cjs"])
