"""Tests for HDF5, CSV and PNG outputs."""

import csv

import numpy as np
import pytest
import tifffile

from cellshed.core.config import SegmentationOptions
from cellshed.core.io import (
    boxes_from_array,
    boxes_to_array,
    load_detections_hdf5,
    load_image,
    rgb_labels_path,
    save_detections_csv,
    save_detections_hdf5,
    save_rgb_labels,
)
from cellshed.core.models import BoundingBox
from cellshed.core.pipeline import RegionConsolidator


@pytest.fixture
def record(overlapping_labels):
    return RegionConsolidator().consolidate(overlapping_labels)


def test_boxes_array_marks_missing_rows():
    arr = boxes_to_array([BoundingBox(1, 2, 3, 4), None])
    np.testing.assert_array_equal(arr, [[1, 2, 3, 4], [-1, -1, -1, -1]])
    assert boxes_from_array(arr) == [BoundingBox(1, 2, 3, 4), None]
    assert boxes_to_array([]).shape == (0, 4)


def test_hdf5_round_trip(tmp_path, record):
    options = SegmentationOptions(min_cell_area=12)
    path = save_detections_hdf5(record, tmp_path / "out" / "boxes.h5", options=options)

    loaded = load_detections_hdf5(path)
    restored = loaded["record"]

    assert restored.boxes == record.boxes
    np.testing.assert_array_equal(restored.active, record.active)
    np.testing.assert_array_equal(restored.label_image, record.label_image)
    assert restored.mapping == record.mapping
    assert restored.initial_boxes == record.initial_boxes
    np.testing.assert_array_equal(restored.initial_mask, record.initial_mask)
    assert loaded["options"] == options
    assert loaded["metadata"]["n_detections"] == 1


def test_hdf5_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_detections_hdf5(tmp_path / "nope.h5")


def test_csv_has_one_row_per_region(tmp_path, record):
    path = save_detections_csv(record, tmp_path / "boxes.csv")

    with open(path, newline="") as f:
        rows = list(csv.reader(f))

    assert rows[0] == ["index", "x", "y", "w", "h", "active"]
    assert rows[1] == ["1", "0", "0", "12", "12", "1"]
    assert rows[2] == ["2", "", "", "", "", "0"]


def test_rgb_labels(tmp_path, record):
    path = rgb_labels_path(tmp_path / "boxes.h5")
    assert path.name == "boxes-rgb-labels.png"

    save_rgb_labels(record.label_image, path)
    assert path.exists()


def test_load_image_squeezes_singleton_axes(tmp_path):
    path = tmp_path / "img.tif"
    tifffile.imwrite(path, np.arange(12, dtype=np.uint16).reshape(1, 3, 4))

    image = load_image(path)

    assert image.shape == (3, 4)


def test_load_image_rejects_stacks(tmp_path):
    path = tmp_path / "stack.tif"
    tifffile.imwrite(path, np.zeros((2, 3, 4), dtype=np.uint16))
    with pytest.raises(ValueError):
        load_image(path)
