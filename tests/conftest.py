"""Shared fixtures: small synthetic label images."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest


def paint(label_image: np.ndarray, region_id: int, rows: slice, cols: slice) -> np.ndarray:
    """Set a rectangular block of ``label_image`` to ``region_id``."""
    label_image[rows, cols] = region_id
    return label_image


@pytest.fixture
def non_overlapping_labels():
    """Boxes (0,0,10,10) and (5,5,10,10): intersection ratio 0.25."""
    labels = np.zeros((20, 20), dtype=np.int32)
    paint(labels, 1, slice(0, 10), slice(0, 10))
    paint(labels, 2, slice(5, 15), slice(5, 15))
    # Region 1 is an L-shape (area 75), region 2 a full square (area 100)
    return labels


@pytest.fixture
def overlapping_labels():
    """Boxes (0,0,10,10) and (2,2,10,10): intersection ratio 0.64."""
    labels = np.zeros((30, 30), dtype=np.int32)
    paint(labels, 1, slice(0, 10), slice(0, 10))
    paint(labels, 2, slice(2, 12), slice(2, 12))
    # Region 1 is an L-shape (area 36), region 2 a full square (area 100)
    return labels


@pytest.fixture
def tiny_and_cell_labels():
    """A 1x5 sliver (area 5) and a 5x5 cell (area 25), far apart."""
    labels = np.zeros((20, 20), dtype=np.int32)
    paint(labels, 1, slice(0, 1), slice(0, 5))
    paint(labels, 2, slice(10, 15), slice(10, 15))
    return labels


@pytest.fixture
def blob_image():
    """Four bright Gaussian blobs on a dark background."""
    rows, cols = np.mgrid[0:128, 0:128]
    image = np.zeros((128, 128), dtype=np.float64)
    for cy, cx in [(32, 32), (32, 96), (96, 32), (96, 96)]:
        image += np.exp(-((rows - cy) ** 2 + (cols - cx) ** 2) / (2 * 6.0 ** 2))
    return image
