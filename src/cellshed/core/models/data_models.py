"""
Simple data models shared by the consolidation passes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, NewType, Optional, Tuple

import numpy as np

# Watershed label value; 1-based, 0 is background/boundary.
RegionId = NewType("RegionId", int)


def region_slot(region_id: int) -> int:
    """Position of a region id in per-region sequences."""
    return int(region_id) - 1


def slot_region(slot: int) -> RegionId:
    """Region id stored at a per-region sequence position."""
    return RegionId(int(slot) + 1)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in image coordinates.

    ``x`` is the first column and ``y`` the first row covered by the box.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        """Calculate bounding box area."""
        return self.width * self.height

    @property
    def x_end(self) -> int:
        """First column past the box."""
        return self.x + self.width

    @property
    def y_end(self) -> int:
        """First row past the box."""
        return self.y + self.height

    def intersection_area(self, other: "BoundingBox") -> int:
        """Area shared with another box (0 when disjoint)."""
        overlap_w = min(self.x_end, other.x_end) - max(self.x, other.x)
        overlap_h = min(self.y_end, other.y_end) - max(self.y, other.y)
        if overlap_w <= 0 or overlap_h <= 0:
            return 0
        return overlap_w * overlap_h

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest box enclosing both boxes."""
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return BoundingBox(
            x=x,
            y=y,
            width=max(self.x_end, other.x_end) - x,
            height=max(self.y_end, other.y_end) - y,
        )

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    @classmethod
    def from_slices(cls, slices: Tuple[slice, slice]) -> "BoundingBox":
        """Create from a (rows, cols) slice pair as returned by ``find_objects``."""
        rows, cols = slices
        return cls(
            x=int(cols.start),
            y=int(rows.start),
            width=int(cols.stop - cols.start),
            height=int(rows.stop - rows.start),
        )


@dataclass
class Region:
    """View of one watershed label derived from the label image.

    Only the properties requested from the statistics extractor are filled.
    """
    id: RegionId
    area: int = 0
    bbox: Optional[BoundingBox] = None
    pixels: Optional[np.ndarray] = None  # (N, 2) row/col coordinates
    convex_hull: Optional[np.ndarray] = None  # (M, 2) x/y polygon vertices

    @property
    def is_empty(self) -> bool:
        return self.area == 0


class MergeMapping:
    """Absorbed region id -> surviving region id.

    The mapping is kept flat: every absorbed id points directly at a
    survivor, and survivors never point anywhere. Ids not in the mapping
    survive as themselves.
    """

    def __init__(self, n_regions: int, absorbed: Optional[Dict[int, int]] = None):
        self.n_regions = int(n_regions)
        self._parent: Dict[RegionId, RegionId] = {}
        for child, parent in (absorbed or {}).items():
            self._check_id(child)
            self._check_id(parent)
            if child == parent:
                raise ValueError(f"Region {child} cannot absorb itself")
            self._parent[RegionId(int(child))] = RegionId(int(parent))

        for child, parent in self._parent.items():
            if parent in self._parent:
                raise ValueError(
                    f"Region {child} is absorbed into {parent}, which is itself absorbed"
                )

    @classmethod
    def identity(cls, n_regions: int) -> "MergeMapping":
        """Mapping in which every region survives untouched."""
        return cls(n_regions)

    def _check_id(self, region_id: int) -> None:
        if not 1 <= int(region_id) <= self.n_regions:
            raise ValueError(f"Region id {region_id} outside 1..{self.n_regions}")

    @property
    def n_absorbed(self) -> int:
        return len(self._parent)

    @property
    def is_identity(self) -> bool:
        return not self._parent

    def items(self):
        return sorted(self._parent.items())

    def surviving_of(self, region_id: int) -> RegionId:
        self._check_id(region_id)
        return self._parent.get(RegionId(int(region_id)), RegionId(int(region_id)))

    def is_absorbed(self, region_id: int) -> bool:
        return int(region_id) in self._parent

    def absorbed_by(self, region_id: int) -> List[RegionId]:
        return sorted(c for c, p in self._parent.items() if p == region_id)

    def merged_survivors(self) -> List[RegionId]:
        """Survivors that absorbed at least one region, ascending."""
        return sorted(set(self._parent.values()))

    def absorbed_mask(self) -> np.ndarray:
        """Boolean array over region slots, true where the region was absorbed."""
        mask = np.zeros(self.n_regions, dtype=bool)
        for child in self._parent:
            mask[region_slot(child)] = True
        return mask

    def merged_mask(self) -> np.ndarray:
        """Boolean array over region slots, true for survivors that absorbed something."""
        mask = np.zeros(self.n_regions, dtype=bool)
        for parent in self._parent.values():
            mask[region_slot(parent)] = True
        return mask

    def lookup_table(self) -> np.ndarray:
        """Label lookup table of length ``n_regions + 1`` (index 0 stays 0)."""
        lut = np.arange(self.n_regions + 1, dtype=np.int64)
        for child, parent in self._parent.items():
            lut[child] = parent
        return lut

    def to_array(self) -> np.ndarray:
        """Survivor id per slot for absorbed regions, 0 elsewhere."""
        arr = np.zeros(self.n_regions, dtype=np.int32)
        for child, parent in self._parent.items():
            arr[region_slot(child)] = parent
        return arr

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "MergeMapping":
        """Inverse of :meth:`to_array`."""
        arr = np.asarray(arr)
        absorbed = {i + 1: int(p) for i, p in enumerate(arr) if p != 0}
        return cls(len(arr), absorbed)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MergeMapping):
            return NotImplemented
        return self.n_regions == other.n_regions and self._parent == other._parent

    def __repr__(self) -> str:
        return f"MergeMapping(n_regions={self.n_regions}, absorbed={dict(self.items())})"


@dataclass
class MergeResult:
    """Output of the box merge engine, aligned to the region enumeration."""
    merged_boxes: list
    mapping: "MergeMapping"
    updated_mask: np.ndarray


@dataclass
class FinalizedRegions:
    """Output of the finalizer."""
    label_image: np.ndarray
    boxes: list
    active: np.ndarray

    @property
    def n_active(self) -> int:
        return int(np.count_nonzero(self.active))


@dataclass
class DetectionRecord:
    """Everything the consolidation hands to rendering and persistence.

    ``boxes`` and ``active`` have one entry per original region index;
    ``boxes[i]`` is meaningful only where ``active[i]`` is true.
    """
    label_image: np.ndarray
    boxes: list
    active: np.ndarray
    initial_boxes: list = field(default_factory=list)
    initial_mask: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=bool))
    watershed_labels: Optional[np.ndarray] = None
    mapping: Optional["MergeMapping"] = None

    @property
    def n_regions(self) -> int:
        return len(self.active)

    @property
    def n_detections(self) -> int:
        return int(np.count_nonzero(self.active))

    def active_boxes(self) -> list:
        """Boxes of the active regions as ``(region_id, box)`` pairs."""
        return [
            (slot_region(i), box)
            for i, (box, keep) in enumerate(zip(self.boxes, self.active))
            if keep
        ]
