"""
HDF5 I/O for detection records.

Layout::

    /detections/boxes        (N, 4) int32, x y width height; -1 rows where inactive
    /detections/active       (N,) bool
    /detections/merged_into  (N,) int32, survivor id of absorbed regions, else 0
    /detections/label_image  (H, W) int32
    /initial/boxes           (N, 4) int32, boxes before merging
    /initial/included        (N,) bool
    /metadata                attrs: options, creation time, counts
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import h5py
import numpy as np
import yaml

from ..config import SegmentationOptions
from ..models import BoundingBox, DetectionRecord, MergeMapping

logger = logging.getLogger(__name__)

MISSING_BOX = (-1, -1, -1, -1)


def boxes_to_array(boxes: list) -> np.ndarray:
    """Stack boxes into an (N, 4) array, -1 rows for missing boxes."""
    rows = [box.as_tuple() if box is not None else MISSING_BOX for box in boxes]
    return np.array(rows, dtype=np.int32).reshape(len(rows), 4)


def boxes_from_array(arr: np.ndarray, active: np.ndarray | None = None) -> list:
    """Inverse of :func:`boxes_to_array`."""
    boxes = []
    for i, row in enumerate(np.asarray(arr)):
        if (row < 0).any() or (active is not None and not active[i]):
            boxes.append(None)
        else:
            boxes.append(BoundingBox(*(int(v) for v in row)))
    return boxes


def save_detections_hdf5(
    record: DetectionRecord,
    output_path: str | Path,
    options: SegmentationOptions | None = None,
    compression: str | None = "gzip",
) -> Path:
    """
    Save a detection record to an HDF5 file.

    Parameters
    ----------
    record : DetectionRecord
        Consolidation output
    output_path : str or Path
        Output HDF5 file path
    options : SegmentationOptions, optional
        Options used for the run, stored as YAML in the metadata
    compression : str, optional
        Compression algorithm for the label image: 'gzip', 'lzf' or None

    Returns
    -------
    Path
        Path of the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    mapping = record.mapping or MergeMapping.identity(record.n_regions)

    with h5py.File(output_path, "w") as h5f:
        detections = h5f.create_group("detections")
        detections.create_dataset("boxes", data=boxes_to_array(record.boxes))
        detections.create_dataset("active", data=np.asarray(record.active, dtype=bool))
        detections.create_dataset("merged_into", data=mapping.to_array())
        detections.create_dataset(
            "label_image", data=record.label_image.astype(np.int32), compression=compression
        )

        initial = h5f.create_group("initial")
        initial.create_dataset("boxes", data=boxes_to_array(record.initial_boxes))
        initial.create_dataset("included", data=np.asarray(record.initial_mask, dtype=bool))

        metadata = h5f.create_group("metadata")
        metadata.attrs["creation_time"] = datetime.now().isoformat()
        metadata.attrs["n_regions"] = record.n_regions
        metadata.attrs["n_detections"] = record.n_detections
        if options is not None:
            metadata.attrs["options"] = yaml.safe_dump(options.to_dict(), sort_keys=False)

    logger.info(f"Saved {record.n_detections}/{record.n_regions} detections to {output_path}")
    return output_path


def load_detections_hdf5(file_path: str | Path) -> dict[str, Any]:
    """
    Load a detection record written by :func:`save_detections_hdf5`.

    Returns
    -------
    dict
        - 'record': DetectionRecord
        - 'options': SegmentationOptions or None
        - 'metadata': remaining metadata attributes
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Detections HDF5 file not found: {file_path}")

    with h5py.File(file_path, "r") as h5f:
        if "detections" not in h5f:
            raise ValueError(f"No detection data found in {file_path}")

        detections = h5f["detections"]
        active = detections["active"][()].astype(bool)
        record = DetectionRecord(
            label_image=detections["label_image"][()],
            boxes=boxes_from_array(detections["boxes"][()], active),
            active=active,
            mapping=MergeMapping.from_array(detections["merged_into"][()]),
        )
        if "initial" in h5f:
            record.initial_mask = h5f["initial"]["included"][()].astype(bool)
            record.initial_boxes = boxes_from_array(h5f["initial"]["boxes"][()])

        metadata = dict(h5f["metadata"].attrs) if "metadata" in h5f else {}

    options = None
    if "options" in metadata:
        options = SegmentationOptions.from_dict(yaml.safe_load(metadata.pop("options")))

    logger.info(f"Loaded {record.n_detections}/{record.n_regions} detections from {file_path}")
    return {"record": record, "options": options, "metadata": metadata}
