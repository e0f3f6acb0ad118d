"""Image loading and plain-file exports (CSV boxes, colored label PNG)."""

import csv
import logging
from pathlib import Path

import numpy as np
import tifffile
from skimage import io as skio
from skimage.color import label2rgb

from ..models import DetectionRecord

logger = logging.getLogger(__name__)


def load_image(path: str | Path) -> np.ndarray:
    """Read a single-plane TIFF as a 2D array.

    Singleton leading axes are squeezed; anything else that is not 2D is
    rejected.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    data = tifffile.imread(str(path))
    data = np.squeeze(data)
    if data.ndim != 2:
        raise ValueError(f"Expected a 2D image in {path}, got shape {data.shape}")

    logger.debug(f"Loaded {path} with shape {data.shape} and dtype {data.dtype}")
    return data


def save_detections_csv(record: DetectionRecord, output_path: str | Path) -> Path:
    """Save one row per original region: index, box and active flag.

    Box columns are empty for inactive regions.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["index", "x", "y", "w", "h", "active"])
        for i, (box, keep) in enumerate(zip(record.boxes, record.active), start=1):
            if keep and box is not None:
                writer.writerow([i, box.x, box.y, box.width, box.height, 1])
            else:
                writer.writerow([i, "", "", "", "", 0])

    logger.info(f"Saved {record.n_regions} box rows to {output_path}")
    return output_path


def rgb_labels_path(output_path: str | Path) -> Path:
    """Sibling path ``<stem>-rgb-labels.png`` of a results file."""
    output_path = Path(output_path)
    return output_path.with_name(f"{output_path.stem}-rgb-labels.png")


def save_rgb_labels(label_image: np.ndarray, output_path: str | Path) -> Path:
    """Write the label image as a colored PNG (background gray)."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    rgb = label2rgb(label_image, bg_label=0, bg_color=(0.5, 0.5, 0.5))
    skio.imsave(str(output_path), (rgb * 255).astype(np.uint8), check_contrast=False)

    logger.info(f"Saved colored labels to {output_path}")
    return output_path
