"""Label consolidation: fold absorbed labels into survivors and convexify them.

Both passes modify the label image in place and return the same array.
"""

import logging
from typing import Iterable

import numpy as np
from scipy import ndimage

from ..errors import EnumerationError
from ..models import MergeMapping
from ..regions import convex_hull_mask

logger = logging.getLogger(__name__)


def apply_merge(label_image: np.ndarray, mapping: MergeMapping) -> np.ndarray:
    """Relabel every absorbed region with the id of its survivor.

    Parameters
    ----------
    label_image : np.ndarray
        2D label image holding ids 0..mapping.n_regions; modified in place
    mapping : MergeMapping
        Absorbed -> survivor mapping

    Returns
    -------
    np.ndarray
        ``label_image`` itself
    """
    if mapping.is_identity:
        return label_image

    if label_image.size and int(label_image.max()) > mapping.n_regions:
        raise EnumerationError(
            f"Label image holds id {int(label_image.max())} beyond the "
            f"{mapping.n_regions} enumerated regions"
        )

    lut = mapping.lookup_table().astype(label_image.dtype, copy=False)
    label_image[...] = lut[label_image]

    logger.debug(f"Relabeled {mapping.n_absorbed} absorbed regions")
    return label_image


def convexify(label_image: np.ndarray, survivors: Iterable[int]) -> np.ndarray:
    """Replace each survivor's pixels by the rasterization of their convex hull.

    All hulls are computed from the label image as it is on entry, right
    after merging, and then written in ascending id order. Pixels inside a
    hull are overwritten whatever their current label, so a later hull
    takes pixels from an earlier hull or from an unrelated neighbour, and
    the highest-id survivor always keeps all of its own pixels.

    Parameters
    ----------
    label_image : np.ndarray
        2D label image; modified in place
    survivors : iterable of int
        Region ids that absorbed at least one other region

    Returns
    -------
    np.ndarray
        ``label_image`` itself
    """
    survivors = sorted({int(s) for s in survivors})
    if not survivors:
        return label_image

    slices = ndimage.find_objects(label_image, max_label=max(survivors))

    hulls = []
    for region_id in survivors:
        bounds = slices[region_id - 1]
        if bounds is None:
            logger.warning(f"Merged region {region_id} has no pixels; skipping convex hull")
            continue
        mask = label_image[bounds] == region_id
        hulls.append((region_id, bounds, convex_hull_mask(mask), int(mask.sum())))

    for region_id, bounds, hull, n_pixels in hulls:
        window = label_image[bounds]
        overwritten = np.count_nonzero(hull & (window != region_id) & (window != 0))
        window[hull] = region_id

        logger.debug(
            f"Region {region_id}: hull filled {int(hull.sum()) - n_pixels} pixels "
            f"({overwritten} taken from other labels)"
        )

    return label_image
