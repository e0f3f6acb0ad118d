"""
Watershed-based cell detection.

``RegionConsolidator`` turns a labeled watershed partition into final
detections; ``WatershedDetector`` also produces that partition from an
image and a feature image.
"""

import logging

import numpy as np

from .config import SegmentationOptions
from .consolidation import (
    apply_merge,
    convexify,
    filter_regions,
    finalize,
    initial_inclusion,
    merge_boxes,
)
from .models import DetectionRecord, MergeMapping
from .partition import MarkerSet, log_feature, prepare_markers, watershed_partition
from .progress import ProgressEmitter
from .regions import RegionTable, relabel_contiguous

logger = logging.getLogger(__name__)

CONSOLIDATION_STAGES = ("enumerate", "merge", "convexify", "filter", "finalize")
PARTITION_STAGES = ("markers", "watershed")


class RegionConsolidator:
    """Merge over-segmented fragments and drop wrongly sized regions.

    The label image handed to :meth:`consolidate` is copied once; all passes
    then edit that copy in place.
    """

    def __init__(
        self,
        options: SegmentationOptions | None = None,
        progress: ProgressEmitter | None = None,
        stage_offset: int = 0,
    ):
        self.options = (options or SegmentationOptions()).validate()
        self.progress = progress or ProgressEmitter()
        self._stage_offset = stage_offset
        self._stage_total = stage_offset + len(CONSOLIDATION_STAGES)

    def _emit(self, stage: str, detail: str = "") -> None:
        current = self._stage_offset + CONSOLIDATION_STAGES.index(stage) + 1
        self.progress.emit(stage, current, self._stage_total, detail)

    def consolidate(self, label_image: np.ndarray) -> DetectionRecord:
        """Run merge, convexify, size filter and finalize on a partition.

        Parameters
        ----------
        label_image : np.ndarray
            2D watershed labels (0 = boundary/background). Labels are made
            contiguous before enumeration; the input is not modified.

        Returns
        -------
        DetectionRecord
            Final label image, per-region boxes and active mask, plus the
            initial boxes and inclusion mask for overlay rendering
        """
        options = self.options
        labels = relabel_contiguous(label_image)
        watershed_labels = labels.copy()

        table = RegionTable.from_label_image(labels)
        n_regions = table.n_regions
        self._emit("enumerate", f"{n_regions} regions")

        if n_regions == 0:
            logger.info("No regions in partition; nothing to consolidate")
            empty = np.zeros(0, dtype=bool)
            return DetectionRecord(
                label_image=labels,
                boxes=[],
                active=empty,
                initial_boxes=[],
                initial_mask=empty.copy(),
                watershed_labels=watershed_labels,
                mapping=MergeMapping.identity(0),
            )

        min_area, max_area = options.area_range(labels.shape)
        areas = table.areas(labels)
        boxes = table.bounding_boxes(labels)
        included = initial_inclusion(areas, max_area)
        logger.info(
            f"{int(included.sum())}/{n_regions} regions at most {max_area:g} px before merging"
        )

        if options.merge_regions:
            merge = merge_boxes(boxes, included, options.merge_intersection_ratio)
            mapping, updated_mask = merge.mapping, merge.updated_mask
        else:
            mapping, updated_mask = MergeMapping.identity(n_regions), included.copy()
        self._emit("merge", f"{mapping.n_absorbed} absorbed")

        apply_merge(labels, mapping)
        convexify(labels, mapping.merged_survivors())
        self._emit("convexify", f"{len(mapping.merged_survivors())} hulls")

        lower = min_area if options.filter_small_regions else 0
        active = filter_regions(labels, table, mapping, lower, max_area, included=updated_mask)
        self._emit("filter", f"{int(active.sum())} active")

        final = finalize(labels, table, active)
        self._emit("finalize", f"{final.n_active} detections")

        return DetectionRecord(
            label_image=final.label_image,
            boxes=final.boxes,
            active=final.active,
            initial_boxes=boxes,
            initial_mask=included,
            watershed_labels=watershed_labels,
            mapping=mapping,
        )


class WatershedDetector:
    """Detect cells with a marker-controlled watershed and region consolidation."""

    def __init__(self, options: SegmentationOptions | None = None, progress: ProgressEmitter | None = None):
        """Validate options up front; nothing is computed before they pass."""
        self.options = (options or SegmentationOptions()).validate()
        self.progress = progress or ProgressEmitter()
        self.consolidator = RegionConsolidator(self.options, self.progress, stage_offset=len(PARTITION_STAGES))
        self.markers: MarkerSet | None = None

    def partition(self, image: np.ndarray, feature: np.ndarray | None = None) -> np.ndarray:
        """Compute the watershed partition of ``image``.

        Parameters
        ----------
        image : np.ndarray
            Preprocessed 2D image
        feature : np.ndarray, optional
            Cell feature image; defaults to a LoG response of ``image``

        Returns
        -------
        np.ndarray
            Label image (0 = watershed lines)
        """
        image = np.asarray(image)
        if image.ndim != 2:
            raise ValueError(f"Expected a 2D image, got shape {image.shape}")
        if feature is None:
            logger.debug("No feature image given; using LoG response")
            feature = log_feature(image)

        total = len(PARTITION_STAGES) + len(CONSOLIDATION_STAGES)
        self.markers = prepare_markers(image, np.asarray(feature), self.options)
        self.progress.emit("markers", 1, total, f"{int(self.markers.markers.sum())} marker px")

        labels = watershed_partition(self.markers.gradient, self.markers.markers)
        self.progress.emit("watershed", 2, total, f"{int(labels.max())} regions")
        return labels

    def detect(self, image: np.ndarray, feature: np.ndarray | None = None) -> DetectionRecord:
        """Partition ``image`` and consolidate the regions into detections."""
        labels = self.partition(image, feature)
        record = self.consolidator.consolidate(labels)
        logger.info(f"Detected {record.n_detections} cells from {record.n_regions} watershed regions")
        return record
