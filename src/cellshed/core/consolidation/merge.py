"""Box merge engine: decide which bounding boxes are fragments of one object."""

import logging
from itertools import combinations
from typing import Sequence

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components

from ..errors import ConfigurationError
from ..models import BoundingBox, MergeMapping, MergeResult, region_slot, slot_region

logger = logging.getLogger(__name__)


def merge_groups(n_regions: int, pairs: Sequence[tuple[int, int]]) -> dict[int, list[int]]:
    """Connected components of the merge graph, keyed by their lowest region id.

    Only components with at least two regions are returned; members are
    sorted ascending, so the key is also the first member.
    """
    if not pairs:
        return {}

    rows, cols = np.asarray(pairs, dtype=np.int64).T - 1
    graph = csr_matrix(
        (np.ones(len(rows), dtype=np.bool_), (rows, cols)), shape=(n_regions, n_regions)
    )
    _, component_ids = connected_components(csgraph=graph, directed=False, return_labels=True)

    sizes = np.bincount(component_ids)
    groups: dict[int, list[int]] = {}
    for slot in np.flatnonzero(sizes[component_ids] > 1):
        members = groups.setdefault(int(component_ids[slot]), [])
        members.append(int(slot_region(slot)))
    return {members[0]: members for members in groups.values()}


def intersection_ratio(box_a: BoundingBox, box_b: BoundingBox) -> float:
    """Shared area of two boxes over the area of the smaller one.

    Boxes with zero area never overlap anything and give 0.
    """
    smaller = min(box_a.area, box_b.area)
    if smaller <= 0:
        return 0.0
    return box_a.intersection_area(box_b) / smaller


def find_merge_pairs(
    boxes: Sequence[BoundingBox | None],
    included: np.ndarray,
    overlap_threshold: float,
) -> list[tuple[int, int]]:
    """Pairs of region ids whose boxes overlap by at least ``overlap_threshold``.

    Only boxes flagged in ``included`` take part. Pairs are (lower, higher) id.
    """
    candidates = [
        slot_region(i)
        for i, (box, keep) in enumerate(zip(boxes, included))
        if keep and box is not None
    ]

    pairs = []
    for a, b in combinations(candidates, 2):
        ratio = intersection_ratio(boxes[region_slot(a)], boxes[region_slot(b)])
        if ratio >= overlap_threshold:
            logger.debug(f"Boxes {a} and {b} overlap with ratio {ratio:.3f}")
            pairs.append((int(a), int(b)))
    return pairs


def merge_boxes(
    boxes: Sequence[BoundingBox | None],
    included: np.ndarray,
    overlap_threshold: float,
) -> MergeResult:
    """Group overlapping boxes and merge each group into its lowest region id.

    Parameters
    ----------
    boxes : sequence of BoundingBox or None
        One entry per region slot, excluded regions included, so that slot
        ``i`` always belongs to region ``i + 1``
    included : np.ndarray
        Boolean mask of the boxes that may take part in merging
    overlap_threshold : float
        Intersection ratio in (0, 1) at which two boxes merge

    Returns
    -------
    MergeResult
        ``merged_boxes`` (survivors get the union box of their group, absorbed
        slots get None), the absorbed -> survivor ``mapping`` and
        ``updated_mask`` (``included`` with absorbed slots cleared)
    """
    included = np.asarray(included, dtype=bool)
    if len(boxes) != len(included):
        raise ValueError(
            f"Got {len(boxes)} boxes but an inclusion mask of length {len(included)}"
        )
    if not 0 < overlap_threshold < 1:
        raise ConfigurationError(f"Overlap threshold must be in (0, 1), got {overlap_threshold}")

    n_regions = len(boxes)
    pairs = find_merge_pairs(boxes, included, overlap_threshold)

    groups = merge_groups(n_regions, pairs)

    absorbed = {}
    merged_boxes = list(boxes)
    for root, members in groups.items():
        union_box = boxes[region_slot(root)]
        for member in members:
            if member == root:
                continue
            absorbed[member] = root
            union_box = union_box.union(boxes[region_slot(member)])
            merged_boxes[region_slot(member)] = None
        merged_boxes[region_slot(root)] = union_box

    mapping = MergeMapping(n_regions, absorbed)
    updated_mask = included & ~mapping.absorbed_mask()

    if mapping.n_absorbed:
        logger.info(
            f"Merged {mapping.n_absorbed} regions into {len(mapping.merged_survivors())} "
            f"survivors ({len(pairs)} overlapping pairs)"
        )
    else:
        logger.debug("No overlapping boxes to merge")

    return MergeResult(merged_boxes=merged_boxes, mapping=mapping, updated_mask=updated_mask)
