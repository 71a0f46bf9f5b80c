"""
Unit tests for CallNodePath helpers.

Tests cover:
    - Path prefix checks and hashing
    - PathSet membership and ordering
    - Moving paths through transforms and func maps
    - Restoring filtered paths and inverting paths
"""

from __future__ import annotations

import pytest

from stacklens.profiling.call_node_path import (
    PathSet,
    apply_func_map_to_path,
    apply_func_map_to_path_set,
    apply_func_map_to_transform_stack,
    apply_transform_to_call_node_path,
    call_node_path_has_prefix_path,
    hash_path,
    invert_call_node_path,
    paths_equal,
    restore_all_functions_in_call_node_path,
)
from stacklens.profiling.call_tree import compute_call_tree
from stacklens.profiling.transform_types import (
    CollapseDirectRecursion,
    CollapseFunctionSubtree,
    DropFunction,
    FocusFunction,
    FocusSubtree,
    MergeCallNode,
    MergeFunction,
    MergeSubtree,
)


class TestPathBasics:
    """Test hashing and prefix checks."""

    def test_hash_path(self):
        assert hash_path((1, 2, 3)) == "1,2,3"
        assert hash_path(()) == ""

    def test_paths_equal_accepts_any_sequence(self):
        assert paths_equal([1, 2], (1, 2))
        assert not paths_equal((1, 2), (2, 1))

    def test_has_prefix_path(self):
        assert call_node_path_has_prefix_path((0, 1), (0, 1, 2))
        assert call_node_path_has_prefix_path((), (0,))
        assert not call_node_path_has_prefix_path((0, 2), (0, 1, 2))
        assert not call_node_path_has_prefix_path((0, 1, 2), (0, 1))


class TestPathSet:
    """Test PathSet."""

    def test_membership(self):
        paths = PathSet([(0, 1), (0, 2), (0, 1)])
        assert len(paths) == 2
        assert (0, 1) in paths
        assert [0, 2] in paths
        assert (0,) not in paths
        assert "0,1" not in paths

    def test_iteration_order_and_discard(self):
        paths = PathSet()
        paths.add((3,))
        paths.add((1, 2))
        paths.discard((3,))
        paths.discard((9,))
        assert list(paths) == [(1, 2)]

    def test_equality_ignores_order(self):
        assert PathSet([(1,), (2,)]) == PathSet([(2,), (1,)])

    def test_copy_is_independent(self):
        paths = PathSet([(1,)])
        copy = paths.copy()
        copy.add((2,))
        assert len(paths) == 1
        assert len(copy) == 2


class TestApplyTransformToPath:
    """Test apply_transform_to_call_node_path."""

    @pytest.mark.parametrize(
        "transform,path,expected",
        [
            (FocusSubtree((0, 1)), (0, 1, 2), (1, 2)),
            (FocusSubtree((0, 1)), (0, 1), (1,)),
            (FocusSubtree((0, 1)), (0, 5), ()),
            (MergeCallNode((0, 1)), (0, 1, 2), (0, 2)),
            (MergeCallNode((0, 1)), (0, 5, 2), (0, 5, 2)),
            (MergeSubtree((0, 1)), (0, 1, 2, 3), (0,)),
            (MergeSubtree((0, 1)), (0, 4), (0, 4)),
            (FocusSubtree(()), (0, 1), (0, 1)),
            (FocusFunction(1), (0, 1, 2), (1, 2)),
            (FocusFunction(5), (0, 1), ()),
            (FocusFunction(1), (0, 1, 2, 1), (1, 2, 1)),
            (MergeFunction(1), (0, 1, 2, 1), (0, 2)),
            (DropFunction(2), (0, 1, 2), ()),
            (DropFunction(5), (0, 1), (0, 1)),
            (CollapseFunctionSubtree(1), (0, 1, 2, 3), (0, 1)),
            (CollapseFunctionSubtree(5), (0, 1), (0, 1)),
            (CollapseDirectRecursion(1), (0, 1, 1, 1, 2, 1), (0, 1, 2, 1)),
        ],
    )
    def test_cases(self, transform, path, expected):
        assert apply_transform_to_call_node_path(path, transform) == expected


class TestFuncMaps:
    """Test func remapping for paths and transforms."""

    def test_path(self):
        assert apply_func_map_to_path((0, 1, 2), {1: 5}) == (0, 5, 2)

    def test_path_set(self):
        remapped = apply_func_map_to_path_set(PathSet([(0, 1), (1,)]), {1: 7})
        assert remapped == PathSet([(0, 7), (7,)])

    def test_transform_stack_keeps_other_fields(self):
        transforms = [MergeCallNode((1, 2), implementation="js", inverted=True)]
        (remapped,) = apply_func_map_to_transform_stack(transforms, {2: 4})
        assert remapped == MergeCallNode((1, 4), implementation="js", inverted=True)

    def test_function_transforms(self):
        transforms = [MergeFunction(2), CollapseDirectRecursion(2, implementation="js"), DropFunction(3)]
        assert apply_func_map_to_transform_stack(transforms, {2: 4}) == [
            MergeFunction(4),
            CollapseDirectRecursion(4, implementation="js"),
            DropFunction(3),
        ]


class TestRestoreAndInvert:
    """Test restore_all_functions_in_call_node_path and invert_call_node_path."""

    def test_restore_hidden_functions(self, mixed_thread, mixed_funcs):
        """Test a JS-only path expands to the full stack it was taken from."""
        path = (mixed_funcs["Bjs"], mixed_funcs["Cjs"])
        restored = restore_all_functions_in_call_node_path(mixed_thread, "js", path)
        assert restored == tuple(mixed_funcs[name] for name in ["A", "Bjs", "N", "Cjs"])

    def test_restore_without_match(self, mixed_thread, mixed_funcs):
        path = (mixed_funcs["Ejs"],)
        assert restore_all_functions_in_call_node_path(mixed_thread, "js", path) == ()

    def test_invert_follows_heaviest_child(self, simple_thread, simple_funcs):
        call_tree = compute_call_tree(simple_thread)
        path = (simple_funcs["A"], simple_funcs["B"])
        inverted = invert_call_node_path(path, call_tree)
        assert inverted == tuple(simple_funcs[name] for name in ["E", "C", "B", "A"])

    def test_invert_missing_path(self, simple_thread, simple_funcs):
        call_tree = compute_call_tree(simple_thread)
        assert invert_call_node_path((simple_funcs["F"],), call_tree) == ()
