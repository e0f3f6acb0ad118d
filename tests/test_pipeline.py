"""End-to-end tests for region consolidation and detection."""

import numpy as np
import pytest

from cellshed.core.config import SegmentationOptions
from cellshed.core.errors import ConfigurationError
from cellshed.core.models import BoundingBox
from cellshed.core.pipeline import CONSOLIDATION_STAGES, RegionConsolidator, WatershedDetector
from cellshed.core.progress import ProgressEmitter


def test_quarter_overlap_keeps_both_regions(non_overlapping_labels):
    record = RegionConsolidator().consolidate(non_overlapping_labels)

    assert record.mapping.is_identity
    np.testing.assert_array_equal(record.active, [True, True])
    assert record.boxes == [BoundingBox(0, 0, 10, 10), BoundingBox(5, 5, 10, 10)]
    np.testing.assert_array_equal(record.label_image, non_overlapping_labels)


def test_overlapping_fragments_become_one_convex_region(overlapping_labels):
    record = RegionConsolidator().consolidate(overlapping_labels)

    assert record.mapping.surviving_of(2) == 1
    np.testing.assert_array_equal(record.active, [True, False])
    assert record.boxes == [BoundingBox(0, 0, 12, 12), None]
    assert not np.any(record.label_image == 2)

    area = int((record.label_image == 1).sum())
    assert 136 <= area <= 144
    # Every original pixel of either fragment now belongs to the survivor
    assert np.all(record.label_image[overlapping_labels > 0] == 1)


def test_merged_region_survives_regardless_of_area(overlapping_labels):
    options = SegmentationOptions(min_cell_area=200, max_cell_area=500)
    record = RegionConsolidator(options).consolidate(overlapping_labels)

    np.testing.assert_array_equal(record.active, [True, False])
    assert record.n_detections == 1


def test_small_unmerged_region_is_deleted(tiny_and_cell_labels):
    record = RegionConsolidator().consolidate(tiny_and_cell_labels)

    np.testing.assert_array_equal(record.active, [False, True])
    assert record.boxes[0] is None
    assert not np.any(record.label_image == 1)
    assert int((record.label_image == 2).sum()) == 25


def test_without_merging_regions_are_filtered_alone(overlapping_labels):
    options = SegmentationOptions(merge_regions=False, min_cell_area=50)
    record = RegionConsolidator(options).consolidate(overlapping_labels)

    assert record.mapping.is_identity
    # Region 1 (area 36) gets no exemption
    np.testing.assert_array_equal(record.active, [False, True])
    assert record.boxes == [None, BoundingBox(2, 2, 10, 10)]


def test_merging_exempts_the_same_region(overlapping_labels):
    options = SegmentationOptions(min_cell_area=50)
    record = RegionConsolidator(options).consolidate(overlapping_labels)
    np.testing.assert_array_equal(record.active, [True, False])


def test_filter_small_off_keeps_small_regions(tiny_and_cell_labels):
    options = SegmentationOptions(filter_small_regions=False)
    record = RegionConsolidator(options).consolidate(tiny_and_cell_labels)
    np.testing.assert_array_equal(record.active, [True, True])


def test_oversized_region_is_excluded(non_overlapping_labels):
    options = SegmentationOptions(max_cell_area=80)
    record = RegionConsolidator(options).consolidate(non_overlapping_labels)

    np.testing.assert_array_equal(record.initial_mask, [True, False])
    np.testing.assert_array_equal(record.active, [True, False])
    assert not np.any(record.label_image == 2)


def test_input_is_not_modified(overlapping_labels):
    before = overlapping_labels.copy()
    RegionConsolidator().consolidate(overlapping_labels)
    np.testing.assert_array_equal(overlapping_labels, before)


def test_sparse_labels_are_enumerated_in_order():
    labels = np.zeros((20, 20), dtype=np.int32)
    labels[0:5, 0:5] = 4
    labels[10:15, 10:15] = 9
    record = RegionConsolidator().consolidate(labels)

    assert record.n_regions == 2
    assert record.boxes == [BoundingBox(0, 0, 5, 5), BoundingBox(10, 10, 5, 5)]
    assert set(np.unique(record.label_image)) == {0, 1, 2}


def test_record_keeps_initial_state(overlapping_labels):
    record = RegionConsolidator().consolidate(overlapping_labels)

    assert record.initial_boxes == [BoundingBox(0, 0, 10, 10), BoundingBox(2, 2, 10, 10)]
    np.testing.assert_array_equal(record.initial_mask, [True, True])
    np.testing.assert_array_equal(record.watershed_labels, overlapping_labels)


def test_zero_regions_give_empty_record():
    record = RegionConsolidator().consolidate(np.zeros((16, 16), dtype=np.int32))

    assert record.n_regions == 0
    assert record.boxes == []
    assert record.active.shape == (0,)
    assert not record.label_image.any()


def test_consolidation_reports_progress(overlapping_labels):
    emitter = ProgressEmitter()
    events = []
    emitter.progress.connect(events.append)

    RegionConsolidator(progress=emitter).consolidate(overlapping_labels)

    assert [e.stage for e in events] == list(CONSOLIDATION_STAGES)
    assert [e.current for e in events] == [1, 2, 3, 4, 5]
    assert all(e.total == 5 for e in events)


def test_invalid_options_rejected_before_running():
    with pytest.raises(ConfigurationError):
        RegionConsolidator(SegmentationOptions(merge_intersection_ratio=1.5))
    with pytest.raises(ConfigurationError):
        WatershedDetector(SegmentationOptions(min_cell_area=-5))


def test_detector_finds_blobs(blob_image):
    emitter = ProgressEmitter()
    events = []
    emitter.progress.connect(events.append)
    detector = WatershedDetector(progress=emitter)

    record = detector.detect(blob_image, feature=blob_image)

    assert detector.markers is not None
    assert record.n_regions >= 1
    assert 1 <= record.n_detections <= record.n_regions
    assert len(record.boxes) == len(record.active) == record.n_regions

    kept = set(np.unique(record.label_image)) - {0}
    assert kept == {i + 1 for i in np.flatnonzero(record.active)}
    for region_id, box in record.active_boxes():
        assert box is not None and box.area > 0

    assert [e.stage for e in events][:2] == ["markers", "watershed"]
    assert events[-1].stage == "finalize"
    assert all(e.total == 7 for e in events)


def test_detector_rejects_non_2d_image():
    with pytest.raises(ValueError):
        WatershedDetector().partition(np.zeros((4, 4, 3)))
