# Stacklens call tree transforms
#
# Focus and merge edits over sampled call stacks, with a compact URL-safe
# encoding of the transform stack.
#
# Usage:
#     from stacklens.profiling import compute_call_tree, parse_transforms
#
#     threads = load_profile("profile.json")
#     transforms = parse_transforms("f-combined-0w2~mcn-js-3")
#     tree = compute_call_tree(threads[0], transforms, implementation="js")
#     for root in tree.get_roots():
#         print(tree.get_display_data(root).name)

from __future__ import annotations

from stacklens.profiling.builder import (
    get_func_names_dict,
    profile_from_text_samples,
    thread_from_func_columns,
    thread_from_text_samples,
)
from stacklens.profiling.call_node_info import (
    CallNodeInfo,
    CallNodeTable,
    compute_call_node_info,
    compute_call_tree_timings,
    filter_thread_by_implementation,
    invert_thread,
)
from stacklens.profiling.call_node_path import (
    PathSet,
    apply_func_map_to_path,
    apply_func_map_to_path_set,
    apply_func_map_to_transform,
    apply_func_map_to_transform_stack,
    apply_transform_to_call_node_path,
    invert_call_node_path,
    restore_all_functions_in_call_node_path,
)
from stacklens.profiling.call_tree import CallTree, compute_call_tree
from stacklens.profiling.errors import (
    ProfileFormatError,
    StacklensError,
    StackTranslationError,
    TransformError,
    UnknownTransformError,
)
from stacklens.profiling.implementation import FUNC_MATCHES, FuncMatcher
from stacklens.profiling.storage import load_profile, save_profile
from stacklens.profiling.tables import Thread
from stacklens.profiling.transform_codec import parse_transforms, stringify_transforms
from stacklens.profiling.transform_types import (
    CollapseDirectRecursion,
    CollapseFunctionSubtree,
    DropFunction,
    FocusFunction,
    FocusSubtree,
    MergeCallNode,
    MergeFunction,
    MergeSubtree,
    Transform,
    TransformType,
)
from stacklens.profiling.transforms import (
    apply_transform,
    apply_transform_stack,
    collapse_direct_recursion,
    collapse_function_subtree,
    drop_function,
    focus_function,
    focus_inverted_subtree,
    focus_subtree,
    get_transform_labels,
    merge_call_node,
    merge_function,
    merge_inverted_call_node,
    merge_inverted_subtree,
    merge_subtree,
)


__all__ = [
    "CallNodeInfo",
    "CallNodeTable",
    "CallTree",
    "CollapseDirectRecursion",
    "CollapseFunctionSubtree",
    "DropFunction",
    "FocusFunction",
    "FocusSubtree",
    "FuncMatcher",
    "FUNC_MATCHES",
    "MergeCallNode",
    "MergeFunction",
    "MergeSubtree",
    "PathSet",
    "ProfileFormatError",
    "StacklensError",
    "StackTranslationError",
    "Thread",
    "Transform",
    "TransformError",
    "TransformType",
    "UnknownTransformError",
    "apply_func_map_to_path",
    "apply_func_map_to_path_set",
    "apply_func_map_to_transform",
    "apply_func_map_to_transform_stack",
    "apply_transform",
    "apply_transform_stack",
    "apply_transform_to_call_node_path",
    "collapse_direct_recursion",
    "collapse_function_subtree",
    "compute_call_node_info",
    "compute_call_tree",
    "compute_call_tree_timings",
    "drop_function",
    "filter_thread_by_implementation",
    "focus_function",
    "focus_inverted_subtree",
    "focus_subtree",
    "get_func_names_dict",
    "get_transform_labels",
    "invert_call_node_path",
    "invert_thread",
    "load_profile",
    "merge_call_node",
    "merge_function",
    "merge_inverted_call_node",
    "merge_inverted_subtree",
    "merge_subtree",
    "parse_transforms",
    "profile_from_text_samples",
    "restore_all_functions_in_call_node_path",
    "save_profile",
    "stringify_transforms",
    "thread_from_func_columns",
    "thread_from_text_samples",
]
