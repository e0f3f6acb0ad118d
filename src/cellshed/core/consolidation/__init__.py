"""
Region consolidation passes: merge, convexify, filter, finalize.
"""

from .filtering import filter_regions, finalize, initial_inclusion
from .labels import apply_merge, convexify
from .merge import find_merge_pairs, intersection_ratio, merge_boxes, merge_groups

__all__ = [
    "merge_groups",
    "intersection_ratio",
    "find_merge_pairs",
    "merge_boxes",
    "apply_merge",
    "convexify",
    "initial_inclusion",
    "filter_regions",
    "finalize",
]
