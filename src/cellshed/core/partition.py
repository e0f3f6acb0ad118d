"""
Marker preparation and the marker-controlled watershed partition.

Produces the labeled partition that the consolidation passes start from:
foreground markers from a quantile threshold of the feature image,
background markers from the watershed lines of a distance transform, and
a watershed over the gradient of the contrast-equalized feature image.
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy import ndimage
from skimage import exposure, filters
from skimage.measure import label
from skimage.morphology import disk
from skimage.segmentation import watershed

from .config import SegmentationOptions

logger = logging.getLogger(__name__)


@dataclass
class MarkerSet:
    """Intermediate images of the marker preparation, kept for rendering."""

    smooth: np.ndarray
    background_candidates: np.ndarray
    distance: np.ndarray | None
    foreground: np.ndarray
    background: np.ndarray
    gradient: np.ndarray

    @property
    def markers(self) -> np.ndarray:
        """Union of foreground and background markers."""
        return self.foreground | self.background


def normalize_minmax(image: np.ndarray) -> np.ndarray:
    """Scale to [0, 1]; constant images become all zeros."""
    image = np.asarray(image, dtype=np.float64)
    vmin, vmax = image.min(), image.max()
    if vmax - vmin < 1e-12:
        return np.zeros_like(image)
    return (image - vmin) / (vmax - vmin)


def smooth_image(image: np.ndarray, sigma: float) -> np.ndarray:
    """Low resolution version of the image, normalized to [0, 1]."""
    smooth = filters.gaussian(np.asarray(image, dtype=np.float64), sigma=sigma, preserve_range=True)
    return normalize_minmax(smooth)


def background_candidates(smooth: np.ndarray, level: float = 0.1, opening_radius: int = 20) -> np.ndarray:
    """Dark pixels of the smoothed image, cleaned with a disk opening.

    Parameters
    ----------
    smooth : np.ndarray
        Smoothed image in [0, 1]
    level : float
        Weight between the image minimum (0) and maximum (1) of the threshold
    opening_radius : int
        Radius of the disk used for the opening (0 disables it)
    """
    threshold = (1 - level) * smooth.min() + level * smooth.max()
    candidates = smooth < np.clip(threshold, 0, 1)
    if opening_radius > 0:
        candidates = ndimage.binary_opening(candidates, structure=disk(opening_radius))
    return candidates


def cdf_threshold(feature: np.ndarray, fraction: float) -> np.ndarray:
    """Pixels whose value lies above the ``fraction`` quantile of the image."""
    return np.asarray(feature) > np.quantile(feature, fraction)


def ridge_markers(mask: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Watershed lines of the distance transform to ``mask``.

    Returns
    -------
    tuple of np.ndarray
        (distance image, boolean ridge-line mask)
    """
    mask = np.asarray(mask, dtype=bool)
    if not mask.any():
        return np.zeros(mask.shape), np.zeros(mask.shape, dtype=bool)

    distance = ndimage.distance_transform_edt(~mask)
    basins = watershed(distance, watershed_line=True)
    return distance, basins == 0


def gradient_magnitude(feature: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude of the contrast-equalized feature image."""
    equalized = exposure.equalize_adapthist(normalize_minmax(feature))
    return filters.sobel(equalized)


def log_feature(image: np.ndarray, sigma: float = 2.0) -> np.ndarray:
    """Negated Laplacian of Gaussian, normalized to [0, 1] (bright blobs high)."""
    response = -ndimage.gaussian_laplace(np.asarray(image, dtype=np.float64), sigma=sigma)
    return normalize_minmax(response)


def prepare_markers(
    image: np.ndarray,
    feature: np.ndarray,
    options: SegmentationOptions,
) -> MarkerSet:
    """Compute foreground/background markers and the gradient to flood.

    Parameters
    ----------
    image : np.ndarray
        Preprocessed (illumination-corrected) 2D image
    feature : np.ndarray
        Cell feature image of the same shape (e.g. LoG response)
    options : SegmentationOptions
        Marker preparation parameters

    Returns
    -------
    MarkerSet
        All intermediate images
    """
    if image.shape[:2] != feature.shape[:2]:
        raise ValueError(f"Image shape {image.shape} does not match feature shape {feature.shape}")

    n_cols = image.shape[1]
    sigma = options.background_smoothing_fraction * n_cols
    smooth = smooth_image(image, sigma)

    candidates = background_candidates(
        smooth, level=options.background_level, opening_radius=options.background_opening_radius
    )
    background = candidates
    distance = None

    if options.use_distance_transform and not options.distance_transform_over_foreground:
        distance, background = ridge_markers(~candidates)

    foreground = cdf_threshold(feature, options.foreground_threshold)

    if options.use_distance_transform and options.distance_transform_over_foreground:
        distance, background = ridge_markers(foreground)

    gradient = gradient_magnitude(feature)

    logger.debug(
        f"Markers: {int(foreground.sum())} foreground px, {int(background.sum())} background px "
        f"(smoothing sigma {sigma:.2f})"
    )
    return MarkerSet(
        smooth=smooth,
        background_candidates=candidates,
        distance=distance,
        foreground=foreground,
        background=background,
        gradient=gradient,
    )


def watershed_partition(feature_image: np.ndarray, marker_mask: np.ndarray) -> np.ndarray:
    """Marker-controlled watershed of ``feature_image``.

    Every connected component of ``marker_mask`` seeds one basin; pixels on
    the lines between basins get label 0.

    Returns
    -------
    np.ndarray
        int32 label image with labels 1..N
    """
    markers = label(np.asarray(marker_mask, dtype=bool), connectivity=2)
    n_markers = int(markers.max())
    if n_markers == 0:
        logger.warning("No markers given; watershed partition is empty")
        return np.zeros(feature_image.shape[:2], dtype=np.int32)

    labels = watershed(feature_image, markers=markers, watershed_line=True)
    logger.info(f"Watershed produced {n_markers} regions")
    return labels.astype(np.int32)
