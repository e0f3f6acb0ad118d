"""Post-merge size filtering and finalization of the label image."""

import logging

import numpy as np

from ..models import FinalizedRegions, MergeMapping
from ..regions import RegionTable

logger = logging.getLogger(__name__)


def initial_inclusion(areas: np.ndarray, max_area: float) -> np.ndarray:
    """Regions eligible for merging and initial display.

    Only the upper bound applies before merging; small fragments must stay
    candidates so they can be merged into their neighbours.
    """
    return np.asarray(areas) <= max_area


def filter_regions(
    label_image: np.ndarray,
    table: RegionTable,
    mapping: MergeMapping,
    min_area: float,
    max_area: float,
    included: np.ndarray | None = None,
) -> np.ndarray:
    """Decide which regions survive into the final detections.

    Parameters
    ----------
    label_image : np.ndarray
        Label image after merging and convexification (not modified)
    table : RegionTable
        Region enumeration fixed at the start of consolidation
    mapping : MergeMapping
        Absorbed -> survivor mapping used for the merge
    min_area, max_area : float
        Accepted area range in pixels. Survivors that absorbed another region
        are exempt from ``min_area``.
    included : np.ndarray, optional
        Inclusion mask after merging; regions cleared there stay inactive

    Returns
    -------
    np.ndarray
        Boolean active mask, one entry per region slot
    """
    areas = table.areas(label_image)
    merged = mapping.merged_mask()

    large_enough = (areas >= min_area) | merged
    active = large_enough & (areas <= max_area) & ~mapping.absorbed_mask()
    if included is not None:
        included = np.asarray(included, dtype=bool)
        if len(included) != table.n_regions:
            raise ValueError(
                f"Inclusion mask has {len(included)} entries for {table.n_regions} regions"
            )
        active &= included

    logger.info(
        f"Size filter kept {int(active.sum())}/{table.n_regions} regions "
        f"(area range [{min_area:g}, {max_area:g}], {int(merged.sum())} merged exempt from lower bound)"
    )
    return active


def finalize(
    label_image: np.ndarray,
    table: RegionTable,
    active: np.ndarray,
) -> FinalizedRegions:
    """Delete inactive regions from the label image and box the rest.

    The label image is modified in place; calling this twice with the same
    mask leaves it unchanged. Active regions left without pixels are
    reported inactive.

    Returns
    -------
    FinalizedRegions
        The label image, one box per region slot (None where inactive) and
        the final active mask
    """
    active = np.array(active, dtype=bool)
    if len(active) != table.n_regions:
        raise ValueError(f"Active mask has {len(active)} entries for {table.n_regions} regions")
    table.check(label_image)

    keep = np.concatenate([[False], active])
    label_image[~keep[label_image]] = 0

    boxes = table.bounding_boxes(label_image)
    for slot, box in enumerate(boxes):
        if active[slot] and box is None:
            logger.warning(f"Region {slot + 1} lost all its pixels to a merged hull; dropping it")
            active[slot] = False

    logger.info(f"Finalized {int(active.sum())} detections out of {table.n_regions} regions")
    return FinalizedRegions(label_image=label_image, boxes=boxes, active=active)
