"""I/O utilities for cellshed."""

from .export import load_image, rgb_labels_path, save_detections_csv, save_rgb_labels
from .h5_io import boxes_from_array, boxes_to_array, load_detections_hdf5, save_detections_hdf5

__all__ = [
    "load_image",
    "save_detections_csv",
    "rgb_labels_path",
    "save_rgb_labels",
    "boxes_to_array",
    "boxes_from_array",
    "save_detections_hdf5",
    "load_detections_hdf5",
]
