"""Region enumeration and per-region statistics for watershed label images."""

import logging
from typing import Iterable

import numpy as np
from scipy import ndimage
from scipy.spatial import ConvexHull, QhullError
from skimage.measure import regionprops
from skimage.morphology import convex_hull_image
from skimage.segmentation import relabel_sequential

from .errors import EnumerationError
from .models import BoundingBox, Region, RegionId, region_slot, slot_region

logger = logging.getLogger(__name__)

REGION_PROPERTIES = frozenset({"area", "bbox", "pixels", "convex_hull"})


def relabel_contiguous(label_image: np.ndarray) -> np.ndarray:
    """Return a copy of ``label_image`` whose labels are exactly 1..N.

    Label order is preserved; 0 stays background.
    """
    label_image = np.asarray(label_image)
    if label_image.ndim != 2:
        raise EnumerationError(f"Expected a 2D label image, got {label_image.ndim}D")
    if label_image.size and label_image.min() < 0:
        raise EnumerationError("Label image contains negative labels")

    relabeled, _, _ = relabel_sequential(label_image.astype(np.int32, copy=False))
    return relabeled.astype(np.int32, copy=False)


class RegionTable:
    """Enumeration of the regions of one label image.

    Built once at the start of consolidation; region ``i`` is label value
    ``i`` and occupies slot ``i - 1`` in every per-region sequence. The
    number of regions is fixed for the lifetime of the table.
    """

    def __init__(self, n_regions: int, shape: tuple[int, int]):
        if n_regions < 0:
            raise EnumerationError(f"Region count must be >= 0, got {n_regions}")
        self.n_regions = int(n_regions)
        self.shape = tuple(shape)

    @classmethod
    def from_label_image(cls, label_image: np.ndarray) -> "RegionTable":
        """Build the table, rejecting labels that are not exactly 1..N."""
        label_image = np.asarray(label_image)
        if label_image.ndim != 2:
            raise EnumerationError(f"Expected a 2D label image, got {label_image.ndim}D")

        labels = np.unique(label_image)
        labels = labels[labels != 0]
        if len(labels) and labels[0] < 0:
            raise EnumerationError("Label image contains negative labels")
        if not np.array_equal(labels, np.arange(1, len(labels) + 1)):
            raise EnumerationError(
                f"Labels must be contiguous 1..{len(labels)}; "
                f"found max label {int(labels.max())} (relabel first)"
            )

        table = cls(len(labels), label_image.shape)
        logger.debug(f"Enumerated {table.n_regions} regions in {label_image.shape} label image")
        return table

    def __len__(self) -> int:
        return self.n_regions

    def ids(self) -> list[RegionId]:
        return [slot_region(i) for i in range(self.n_regions)]

    def check(self, label_image: np.ndarray) -> None:
        """Assert ``label_image`` only holds ids of this table."""
        if label_image.shape != self.shape:
            raise EnumerationError(
                f"Label image shape {label_image.shape} does not match enumeration {self.shape}"
            )
        if label_image.size == 0:
            return
        lo, hi = int(label_image.min()), int(label_image.max())
        if lo < 0 or hi > self.n_regions:
            raise EnumerationError(
                f"Label image holds ids outside 0..{self.n_regions} (found {lo}..{hi})"
            )

    def areas(self, label_image: np.ndarray) -> np.ndarray:
        """Pixel count per region slot."""
        self.check(label_image)
        counts = np.bincount(label_image.ravel(), minlength=self.n_regions + 1)
        return counts[1:self.n_regions + 1].astype(np.int64)

    def bounding_boxes(self, label_image: np.ndarray) -> list:
        """Bounding box per region slot, ``None`` for regions with no pixels."""
        self.check(label_image)
        if self.n_regions == 0:
            return []
        slices = ndimage.find_objects(label_image, max_label=self.n_regions)
        return [BoundingBox.from_slices(s) if s is not None else None for s in slices]


def hull_vertices(pixels: np.ndarray) -> np.ndarray:
    """Ordered convex hull vertices (x, y) of a set of (row, col) pixels.

    Degenerate sets (fewer than three points, or all collinear) yield the
    pixel coordinates themselves.
    """
    xy = np.asarray(pixels, dtype=np.float64)[:, ::-1]
    if len(xy) < 3 or np.linalg.matrix_rank(xy - xy.mean(axis=0)) < 2:
        return xy
    try:
        hull = ConvexHull(xy)
    except QhullError:
        logger.debug(f"Convex hull failed for {len(xy)} points; using pixel set")
        return xy
    return xy[hull.vertices]


def convex_hull_mask(mask: np.ndarray) -> np.ndarray:
    """Rasterized convex hull of a boolean mask.

    The result always contains ``mask``; degenerate pixel sets (a single
    point or a line) return ``mask`` unchanged.
    """
    mask = np.asarray(mask, dtype=bool)
    coords = np.argwhere(mask)
    if len(coords) < 3 or np.linalg.matrix_rank(coords - coords.mean(axis=0)) < 2:
        return mask.copy()

    hull = convex_hull_image(mask)
    return hull | mask


def region_stats(
    label_image: np.ndarray,
    properties: Iterable[str] = ("area", "bbox"),
    table: RegionTable | None = None,
) -> list[Region]:
    """Compute region views, one per enumerated region, in id order.

    Parameters
    ----------
    label_image : np.ndarray
        2D label image (0 = background)
    properties : iterable of str
        Subset of ``{"area", "bbox", "pixels", "convex_hull"}``
    table : RegionTable, optional
        Enumeration to report against; built from ``label_image`` if None

    Returns
    -------
    list[Region]
        ``len(table)`` regions; regions without pixels have area 0 and no box
    """
    properties = set(properties)
    unknown = properties - REGION_PROPERTIES
    if unknown:
        raise ValueError(f"Unknown region properties: {sorted(unknown)}")

    if table is None:
        table = RegionTable.from_label_image(label_image)
    table.check(label_image)

    regions = [Region(id=region_id) for region_id in table.ids()]
    if table.n_regions == 0:
        return regions

    if "area" in properties:
        for region, area in zip(regions, table.areas(label_image)):
            region.area = int(area)

    if "bbox" in properties:
        for region, box in zip(regions, table.bounding_boxes(label_image)):
            region.bbox = box

    if properties & {"pixels", "convex_hull"}:
        for region in regions:
            if "pixels" in properties:
                region.pixels = np.empty((0, 2), dtype=np.int64)
            if "convex_hull" in properties:
                region.convex_hull = np.empty((0, 2), dtype=np.float64)
        for props in regionprops(label_image):
            region = regions[region_slot(props.label)]
            coords = props.coords
            if "pixels" in properties:
                region.pixels = coords
            if "convex_hull" in properties:
                region.convex_hull = hull_vertices(coords)

    return regions
