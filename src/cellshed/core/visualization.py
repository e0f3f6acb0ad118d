"""
Rendering of intermediate and final detection results.
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle
from skimage.color import label2rgb

from .models import DetectionRecord
from .partition import MarkerSet

logger = logging.getLogger(__name__)

BOX_COLOR = (1.0, 0.0, 1.0)
OVERLAY_ALPHA = 0.2


def overlay_labels(ax: Axes, image: np.ndarray, label_image: np.ndarray, alpha: float = OVERLAY_ALPHA) -> None:
    """Draw ``image`` in gray with the colored labels blended on top."""
    ax.imshow(image, cmap="gray")
    rgb = label2rgb(label_image, bg_label=0, bg_color=(0.5, 0.5, 0.5))
    ax.imshow(rgb, alpha=alpha)
    ax.set_axis_off()


def draw_boxes(
    ax: Axes,
    boxes: list,
    mask: np.ndarray,
    color: tuple[float, ...] = BOX_COLOR,
    linewidth: float = 1.0,
    annotate: bool = True,
) -> int:
    """Draw the boxes flagged in ``mask``, labeled with their 1-based index.

    Returns
    -------
    int
        Number of boxes drawn
    """
    drawn = 0
    for i, (box, keep) in enumerate(zip(boxes, mask), start=1):
        if not keep or box is None:
            continue
        # Pixel centers sit on integer coordinates in imshow
        ax.add_patch(
            Rectangle(
                (box.x - 0.5, box.y - 0.5),
                box.width,
                box.height,
                fill=False,
                edgecolor=color,
                linewidth=linewidth,
            )
        )
        if annotate:
            ax.text(box.x, box.y - 8, str(i), color=color, fontsize=7)
        drawn += 1
    return drawn


def plot_marker_stages(markers: MarkerSet, figsize: tuple[int, int] = (15, 8)) -> Figure:
    """One panel per marker preparation stage."""
    panels = [
        ("Low resolution version of image", markers.smooth),
        ("Background candidates (opening)", markers.background_candidates),
        ("Distance transform", markers.distance),
        ("Foreground markers", markers.foreground),
        ("Background markers", markers.background),
        ("Gradient magnitude", markers.gradient),
    ]
    panels = [(title, img) for title, img in panels if img is not None]

    fig, axes = plt.subplots(2, 3, figsize=figsize)
    for ax, (title, img) in zip(axes.ravel(), panels):
        ax.imshow(img, cmap="gray")
        ax.set_title(title, fontsize=9)
    for ax in axes.ravel():
        ax.set_axis_off()
    fig.tight_layout()
    return fig


def plot_detections(
    image: np.ndarray,
    record: DetectionRecord,
    figsize: tuple[int, int] = (15, 5),
) -> Figure:
    """Three panels: raw watershed with initial boxes, final labels, final boxes."""
    fig, axes = plt.subplots(1, 3, figsize=figsize)

    watershed_labels = record.watershed_labels
    if watershed_labels is None:
        watershed_labels = record.label_image

    overlay_labels(axes[0], image, watershed_labels)
    n_initial = draw_boxes(axes[0], record.initial_boxes, record.initial_mask)
    axes[0].set_title(f"Watershed transform ({n_initial} boxes, large regions removed)", fontsize=9)

    overlay_labels(axes[1], image, record.label_image)
    axes[1].set_title("Watershed transform-based segmentation", fontsize=9)

    axes[2].imshow(image, cmap="gray")
    axes[2].set_axis_off()
    n_final = draw_boxes(axes[2], record.boxes, record.active, annotate=False)
    axes[2].set_title(f"Size-filtered detections ({n_final})", fontsize=9)

    fig.tight_layout()
    return fig


def save_figures(figures: dict[str, Figure], output_dir: str | Path, dpi: int = 150) -> list[Path]:
    """Save figures as ``<name>.png`` in ``output_dir``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for name, fig in figures.items():
        path = output_dir / f"{name}.png"
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
        paths.append(path)
        logger.debug(f"Saved figure {path}")
    return paths
