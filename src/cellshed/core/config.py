"""Segmentation options and their YAML round-tripping."""

import logging
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MIN_CELL_AREA = 10
DEFAULT_MAX_AREA_FRACTION = 0.25


@dataclass
class SegmentationOptions:
    """Parameters for watershed-based cell detection.

    Attributes
    ----------
    min_cell_area : float
        Smallest accepted region area in pixels.
    max_cell_area : float, optional
        Largest accepted region area in pixels. ``None`` resolves to a quarter
        of the image area once the image shape is known.
    merge_intersection_ratio : float
        Intersection ratio (shared area over the smaller box area) at which
        two bounding boxes are merged. Must lie in (0, 1).
    merge_regions : bool
        Merge overlapping fragments. When off every region is filtered on
        its own, with no lower-bound exemption.
    filter_small_regions : bool
        Apply the lower area bound after merging.
    show_intermediate_results : bool
        Rendering toggle only; has no effect on the detections.
    save_results : bool
        Persist boxes and the colored label image.
    foreground_threshold : float
        Quantile of the feature image above which pixels are foreground markers.
    background_smoothing_fraction : float
        Gaussian sigma for background estimation, as a fraction of image width.
    background_level : float
        Interpolation weight between min and max of the smoothed image below
        which pixels are background candidates.
    background_opening_radius : int
        Disk radius for the opening applied to background candidates.
    use_distance_transform : bool
        Derive background markers from watershed lines of a distance transform.
    distance_transform_over_foreground : bool
        Compute that distance transform from the foreground markers instead of
        from the background candidates.
    """

    min_cell_area: float = DEFAULT_MIN_CELL_AREA
    max_cell_area: Optional[float] = None
    merge_intersection_ratio: float = 0.33
    merge_regions: bool = True
    filter_small_regions: bool = True
    show_intermediate_results: bool = True
    save_results: bool = True
    foreground_threshold: float = 0.92
    background_smoothing_fraction: float = 0.01
    background_level: float = 0.1
    background_opening_radius: int = 20
    use_distance_transform: bool = True
    distance_transform_over_foreground: bool = True

    def validate(self) -> "SegmentationOptions":
        """Check option values; raises ConfigurationError on the first problem."""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type in (bool, "bool") and not isinstance(value, bool):
                raise ConfigurationError(f"Option '{f.name}' must be a boolean, got {value!r}")

        for name in (
            "min_cell_area",
            "merge_intersection_ratio",
            "foreground_threshold",
            "background_smoothing_fraction",
            "background_level",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
                raise ConfigurationError(f"Option '{name}' must be a number, got {value!r}")

        if self.min_cell_area < 0:
            raise ConfigurationError(f"min_cell_area must be >= 0, got {self.min_cell_area}")

        if self.max_cell_area is not None:
            if isinstance(self.max_cell_area, bool) or not isinstance(self.max_cell_area, (int, float)):
                raise ConfigurationError(f"max_cell_area must be a number, got {self.max_cell_area!r}")
            if self.max_cell_area < self.min_cell_area:
                raise ConfigurationError(
                    f"max_cell_area ({self.max_cell_area}) is smaller than "
                    f"min_cell_area ({self.min_cell_area})"
                )

        if not 0 < self.merge_intersection_ratio < 1:
            raise ConfigurationError(
                f"merge_intersection_ratio must be in (0, 1), got {self.merge_intersection_ratio}"
            )
        if not 0 < self.foreground_threshold < 1:
            raise ConfigurationError(
                f"foreground_threshold must be in (0, 1), got {self.foreground_threshold}"
            )
        if not 0 <= self.background_level <= 1:
            raise ConfigurationError(f"background_level must be in [0, 1], got {self.background_level}")
        if self.background_smoothing_fraction <= 0:
            raise ConfigurationError("background_smoothing_fraction must be positive")
        if not isinstance(self.background_opening_radius, int) or self.background_opening_radius < 0:
            raise ConfigurationError(
                f"background_opening_radius must be a non-negative integer, "
                f"got {self.background_opening_radius!r}"
            )
        return self

    def resolve_max_cell_area(self, image_shape: tuple[int, int]) -> float:
        """Upper area bound for an image of the given (rows, cols) shape."""
        if self.max_cell_area is not None:
            return float(self.max_cell_area)
        rows, cols = image_shape[:2]
        return DEFAULT_MAX_AREA_FRACTION * rows * cols

    def area_range(self, image_shape: tuple[int, int]) -> tuple[float, float]:
        return float(self.min_cell_area), self.resolve_max_cell_area(image_shape)

    def to_dict(self) -> dict:
        """Serialize to dict for YAML round-tripping."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "SegmentationOptions":
        """Create from dict (e.g. loaded from YAML); unknown keys are ignored."""
        if not isinstance(d, dict):
            raise ConfigurationError(f"Options must be a mapping, got {type(d).__name__}")
        known_fields = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known_fields)
        if unknown:
            logger.warning(f"Ignoring unknown segmentation options: {', '.join(unknown)}")
        filtered = {k: v for k, v in d.items() if k in known_fields}
        return cls(**filtered).validate()


def save_options(options: SegmentationOptions, output_path: str | Path) -> Path:
    """Write options to a YAML file.

    Parameters
    ----------
    options : SegmentationOptions
        Options to save
    output_path : str or Path
        Output YAML path

    Returns
    -------
    Path
        Path to the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        yaml.safe_dump({"segmentation": options.to_dict()}, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved segmentation options to {output_path}")
    return output_path


def load_options(config_path: str | Path) -> SegmentationOptions:
    """Load options from a YAML file.

    The options may sit at the top level or under a ``segmentation`` key.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    ConfigurationError
        If the file content is not a valid option mapping
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            data: Any = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if isinstance(data, dict) and isinstance(data.get("segmentation"), dict):
        data = data["segmentation"]

    options = SegmentationOptions.from_dict(data)
    logger.debug(f"Loaded segmentation options from {config_path}: {options}")
    return options
