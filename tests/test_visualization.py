"""Smoke tests for result rendering."""

import matplotlib.pyplot as plt
import numpy as np

from cellshed.core.models import BoundingBox
from cellshed.core.pipeline import RegionConsolidator
from cellshed.core.visualization import draw_boxes, plot_detections, save_figures


def test_draw_boxes_skips_inactive_and_missing():
    fig, ax = plt.subplots()
    boxes = [BoundingBox(0, 0, 4, 4), None, BoundingBox(5, 5, 2, 2)]

    drawn = draw_boxes(ax, boxes, np.array([True, True, False]))

    assert drawn == 1
    assert len(ax.patches) == 1
    plt.close(fig)


def test_plot_detections_and_save(tmp_path, overlapping_labels):
    record = RegionConsolidator().consolidate(overlapping_labels)
    image = np.random.default_rng(1).random(overlapping_labels.shape)

    fig = plot_detections(image, record)
    paths = save_figures({"detections": fig}, tmp_path)
    plt.close(fig)

    assert len(fig.axes) == 3
    assert paths == [tmp_path / "detections.png"]
    assert paths[0].exists()
