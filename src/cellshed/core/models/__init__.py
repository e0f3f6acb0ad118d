"""Data models for cellshed modules."""

from .data_models import *

__all__ = [
    "RegionId",
    "region_slot",
    "slot_region",
    "BoundingBox",
    "Region",
    "MergeMapping",
    "MergeResult",
    "FinalizedRegions",
    "DetectionRecord",
]
