"""cellshed core: watershed partition, region consolidation and I/O."""

from .config import SegmentationOptions, load_options, save_options
from .consolidation import (
    apply_merge,
    convexify,
    filter_regions,
    finalize,
    merge_boxes,
)
from .errors import CellshedError, ConfigurationError, EnumerationError
from .models import (
    BoundingBox,
    DetectionRecord,
    MergeMapping,
    Region,
    RegionId,
)
from .partition import prepare_markers, watershed_partition
from .pipeline import RegionConsolidator, WatershedDetector
from .progress import ProgressEmitter, ProgressEvent
from .regions import RegionTable, region_stats, relabel_contiguous

__all__ = [
    # Options
    "SegmentationOptions",
    "load_options",
    "save_options",
    # Errors
    "CellshedError",
    "ConfigurationError",
    "EnumerationError",
    # Models
    "BoundingBox",
    "DetectionRecord",
    "MergeMapping",
    "Region",
    "RegionId",
    # Partition producer and region statistics
    "prepare_markers",
    "watershed_partition",
    "RegionTable",
    "region_stats",
    "relabel_contiguous",
    # Consolidation passes
    "merge_boxes",
    "apply_merge",
    "convexify",
    "filter_regions",
    "finalize",
    # Pipeline
    "RegionConsolidator",
    "WatershedDetector",
    "ProgressEmitter",
    "ProgressEvent",
]
