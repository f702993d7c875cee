# src/patlakpet/utilities/display.py

"""
Display Utilities for 2D Planes and 3D Plane Stacks

Renders arrays as grayscale image tiles with matplotlib. Every plane is
multiplied by its scale factor to obtain "real" values; negative values
are cut at 0.

Colour scaling:
- maxi == 0: every plane is scaled independently to its own maximum
- maxi > 0: all planes share the colour scale [0, maxi]; larger values
  saturate

Zoom enlarges the planes with linear interpolation. zoom == 0 picks the
largest integer enlargement that keeps a tile within MAX_TILE_PIXELS.
"""

import logging
import math
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
from scipy import ndimage

logger = logging.getLogger(__name__)

MAX_TILE_PIXELS = 256


def scaled_planes(
    plane_stack: np.ndarray,
    scale_factors: Optional[Sequence[float]] = None
) -> np.ndarray:
    """
    Apply per-plane scale factors and the threshold at 0.

    Args:
        plane_stack: (N, H, W) array
        scale_factors: (N,) factors, None means all ones

    Returns:
        (N, H, W) float array of real, non-negative values
    """
    planes = np.asarray(plane_stack, dtype=np.float64)
    if planes.ndim != 3:
        raise ValueError(f"Expected a (N, H, W) plane stack, got shape {planes.shape}")

    if scale_factors is not None:
        factors = np.asarray(scale_factors, dtype=np.float64)
        if factors.shape != (planes.shape[0],):
            raise ValueError(
                f"Need one scale factor per plane ({planes.shape[0]}), got {factors.shape}"
            )
        planes = planes * factors[:, np.newaxis, np.newaxis]

    return np.clip(planes, 0.0, None)


def compute_display_limits(
    plane_stack: np.ndarray,
    scale_factors: Optional[Sequence[float]] = None,
    maxi: float = 0.0
) -> np.ndarray:
    """
    Colour scale (vmin, vmax) for every plane.

    Returns:
        (N, 2) array of limits

    Example:
        >>> stack = np.stack([np.full((2, 2), 1.0), np.full((2, 2), 4.0)])
        >>> compute_display_limits(stack)[:, 1]
        array([1., 4.])
        >>> compute_display_limits(stack, maxi=2.0)[:, 1]
        array([2., 2.])
    """
    if maxi < 0:
        raise ValueError(f"maxi must be non-negative, got {maxi}")

    planes = scaled_planes(plane_stack, scale_factors)
    n_planes = planes.shape[0]

    if maxi > 0:
        upper = np.full(n_planes, float(maxi))
    else:
        upper = planes.reshape(n_planes, -1).max(axis=1) if planes.size else np.ones(n_planes)
        # Blank planes still need a non-empty colour range
        upper[upper <= 0] = 1.0

    return np.column_stack([np.zeros(n_planes), upper])


def resolve_zoom(plane_shape: Sequence[int], zoom: int = 0) -> int:
    """Integer enlargement factor; zoom == 0 means as large as fits a tile."""
    if zoom < 0:
        raise ValueError(f"zoom must be non-negative, got {zoom}")
    if zoom > 0:
        return zoom
    return max(1, MAX_TILE_PIXELS // max(1, *plane_shape))


def display_stack(
    plane_stack: np.ndarray,
    scale_factors: Optional[Sequence[float]] = None,
    text: Optional[Sequence[str]] = None,
    maxi: float = 0.0,
    title: Optional[str] = None,
    zoom: int = 0,
    cmap: str = 'gray'
) -> plt.Figure:
    """
    Display a 3D array as a grid of planes.

    Args:
        plane_stack: (N, H, W) array, one plane per tile
        scale_factors: (N,) factors giving the real values, or None
        text: (N,) captions shown below each plane, or None
        maxi: Real value mapped to the top of the colour scale.
            0 scales every plane independently.
        title: Figure title, or None for no title
        zoom: Enlargement factor (linear interpolation); 0 for maximum
        cmap: matplotlib colour map

    Returns:
        matplotlib Figure; the caller shows or saves it

    Note:
        scale_factors and text must have one entry per plane.
    """
    planes = scaled_planes(plane_stack, scale_factors)
    n_planes = planes.shape[0]

    if text is not None and len(text) != n_planes:
        raise ValueError(f"Need one caption per plane ({n_planes}), got {len(text)}")

    limits = compute_display_limits(planes, maxi=maxi)
    factor = resolve_zoom(planes.shape[1:], zoom)

    n_cols = max(1, math.ceil(math.sqrt(n_planes)))
    n_rows = max(1, math.ceil(n_planes / n_cols))

    fig, axes = plt.subplots(
        n_rows, n_cols,
        figsize=(2.5 * n_cols, 2.5 * n_rows + (0.4 if title else 0.0)),
        squeeze=False
    )

    for idx, ax in enumerate(axes.flat):
        ax.set_xticks([])
        ax.set_yticks([])
        if idx >= n_planes:
            ax.set_axis_off()
            continue

        plane = planes[idx]
        if factor > 1:
            plane = ndimage.zoom(plane, factor, order=1)

        vmin, vmax = limits[idx]
        ax.imshow(plane, cmap=cmap, vmin=vmin, vmax=vmax, interpolation='nearest')
        if text is not None:
            ax.set_xlabel(str(text[idx]))

    if title:
        fig.suptitle(title)

    fig.tight_layout()
    logger.debug(f"Displayed {n_planes} planes (zoom {factor}, maxi {maxi})")

    return fig


def display_plane(
    plane: np.ndarray,
    text: Optional[str] = None,
    maxi: float = 0.0,
    zoom: int = 0
) -> plt.Figure:
    """Display a single 2D array; text is shown below it."""
    plane = np.asarray(plane)
    if plane.ndim != 2:
        raise ValueError(f"Expected a 2D plane, got shape {plane.shape}")

    return display_stack(
        plane[np.newaxis],
        text=[text] if text is not None else None,
        maxi=maxi,
        zoom=zoom
    )
