"""Tests for region enumeration and statistics."""

import numpy as np
import pytest

from cellshed.core.errors import EnumerationError
from cellshed.core.models import BoundingBox
from cellshed.core.regions import (
    RegionTable,
    convex_hull_mask,
    hull_vertices,
    region_stats,
    relabel_contiguous,
)


def test_relabel_contiguous_preserves_order():
    labels = np.array([[0, 7, 7], [3, 0, 12]])
    out = relabel_contiguous(labels)

    np.testing.assert_array_equal(out, [[0, 2, 2], [1, 0, 3]])
    assert out.dtype == np.int32
    assert labels[0, 1] == 7


def test_relabel_contiguous_rejects_bad_input():
    with pytest.raises(EnumerationError):
        relabel_contiguous(np.zeros((2, 2, 2), dtype=int))
    with pytest.raises(EnumerationError):
        relabel_contiguous(np.array([[0, -1]]))


def test_table_requires_contiguous_labels():
    with pytest.raises(EnumerationError):
        RegionTable.from_label_image(np.array([[0, 1, 3]]))


def test_table_counts_regions(non_overlapping_labels):
    table = RegionTable.from_label_image(non_overlapping_labels)
    assert len(table) == 2
    assert table.ids() == [1, 2]
    np.testing.assert_array_equal(table.areas(non_overlapping_labels), [75, 100])


def test_table_of_empty_image():
    table = RegionTable.from_label_image(np.zeros((4, 4), dtype=np.int32))
    assert len(table) == 0
    assert table.bounding_boxes(np.zeros((4, 4), dtype=np.int32)) == []


def test_table_check_rejects_foreign_ids(non_overlapping_labels):
    table = RegionTable.from_label_image(non_overlapping_labels)
    labels = non_overlapping_labels.copy()
    labels[0, 0] = 3
    with pytest.raises(EnumerationError):
        table.areas(labels)
    with pytest.raises(EnumerationError):
        table.check(np.zeros((5, 5), dtype=np.int32))


def test_bounding_boxes(overlapping_labels):
    table = RegionTable.from_label_image(overlapping_labels)
    assert table.bounding_boxes(overlapping_labels) == [
        BoundingBox(0, 0, 10, 10),
        BoundingBox(2, 2, 10, 10),
    ]


def test_region_stats_reports_every_slot():
    labels = np.zeros((6, 6), dtype=np.int32)
    labels[0:2, 0:3] = 1
    labels[4, 4] = 3
    table = RegionTable(3, labels.shape)

    regions = region_stats(labels, ("area", "bbox", "pixels", "convex_hull"), table=table)

    assert [r.id for r in regions] == [1, 2, 3]
    assert regions[0].area == 6
    assert regions[0].bbox == BoundingBox(0, 0, 3, 2)
    assert len(regions[0].pixels) == 6
    assert regions[1].is_empty
    assert regions[1].bbox is None
    assert regions[1].pixels.shape == (0, 2)
    assert regions[2].area == 1


def test_region_stats_unknown_property():
    with pytest.raises(ValueError):
        region_stats(np.ones((2, 2), dtype=np.int32), ("perimeter",))


def test_hull_vertices_of_square():
    pixels = np.array([(r, c) for r in range(3) for c in range(3)])
    vertices = hull_vertices(pixels)
    assert len(vertices) == 4
    assert {tuple(v) for v in vertices} == {(0, 0), (2, 0), (0, 2), (2, 2)}


def test_hull_vertices_of_line_is_pixel_set():
    pixels = np.array([(0, 0), (0, 1), (0, 2)])
    np.testing.assert_array_equal(hull_vertices(pixels), [(0, 0), (1, 0), (2, 0)])


def test_convex_hull_mask_contains_input():
    mask = np.zeros((7, 7), dtype=bool)
    mask[1, 1] = mask[1, 5] = mask[5, 3] = True
    hull = convex_hull_mask(mask)
    assert np.all(hull[mask])
    assert hull[2, 3]
    assert hull.sum() > mask.sum()
