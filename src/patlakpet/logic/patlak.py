# src/patlakpet/logic/patlak.py

"""
Patlak Fitting Logic

Stateless logic turning a dynamic image and the per-frame input function
into slope and intercept maps. Handles the Patlak transform of each
voxel's time-activity curve, batched regression and the central RoI
diagnostic curve.
"""

import logging
from typing import Optional, Tuple

import numpy as np
import torch

from patlakpet.engines import weighted_linear_regression
from patlakpet.kinetics.series import FrameTotals, TimeFrameDefinitions
from patlakpet.logic.contracts import RoiTac, ScanResult

logger = logging.getLogger(__name__)

# Half-width (in doubled index units) of the central RoI band: |max+min-2k| <= 6
ROI_BAND = 6


def central_region_mask(shape: Tuple[int, int, int], band: int = ROI_BAND) -> np.ndarray:
    """
    Boolean mask of voxels near the geometric centre of a (K, J, I) grid.

    A voxel (k, j, i) is selected when |max + min - 2 * index| <= band
    along every axis, with min = 0 and max = n - 1.

    Example:
        >>> central_region_mask((21, 21, 21)).sum()
        343
    """
    axes = []
    for size in shape:
        index = np.arange(size)
        axes.append(np.abs((size - 1) - 2 * index) <= band)
    return axes[0][:, None, None] & axes[1][None, :, None] & axes[2][None, None, :]


class PatlakLogic:
    """
    Stateless logic for Patlak parametric mapping.

    This class handles:
    - Patlak transform of tissue curves (x = cumulative plasma / plasma,
      y = blood-corrected tissue / plasma)
    - Weighted linear regression per voxel (unit weights)
    - Scanning the whole volume in k-major order with RoI accumulation

    Example:
        >>> logic = PatlakLogic()
        >>> scan = logic.scan_volume(frames, totals, blood_volume_fraction=0.05,
        ...                          starting_frame=16)
        >>> scan.slope_map.shape
        (47, 128, 128)
    """

    def __init__(self, device: Optional[torch.device] = None):
        self.device = device if device is not None else torch.device('cpu')

    @staticmethod
    def patlak_y(
        tissue_activity: np.ndarray,
        frame_totals: FrameTotals,
        blood_volume_fraction: float,
        starting_frame: int
    ) -> np.ndarray:
        """
        Patlak ordinate for frames starting_frame..num_frames.

        Args:
            tissue_activity: (F, ...) activity for all F frames; trailing
                axes are voxels
            frame_totals: Input function per frame
            blood_volume_fraction: Blood fraction subtracted from tissue
            starting_frame: First 1-based regression frame

        Returns:
            (F - starting_frame + 1, ...) array
        """
        first = starting_frame - 1
        tissue = np.asarray(tissue_activity, dtype=np.float64)[first:]
        extra_axes = (np.newaxis,) * (tissue.ndim - 1)
        blood = frame_totals.blood_total[first:][(slice(None),) + extra_axes]
        plasma = frame_totals.plasma_total[first:][(slice(None),) + extra_axes]
        return (tissue - blood_volume_fraction * blood) / plasma

    def fit_voxel(
        self,
        tissue_activity: np.ndarray,
        frame_totals: FrameTotals,
        blood_volume_fraction: float,
        starting_frame: int
    ) -> Tuple[float, float]:
        """
        Fit the Patlak plot of a single voxel.

        Args:
            tissue_activity: (F,) activity of the voxel in every frame
            frame_totals: Input function per frame
            blood_volume_fraction: Blood fraction subtracted from tissue
            starting_frame: First 1-based regression frame

        Returns:
            Tuple of (slope, intercept)
        """
        if len(tissue_activity) != frame_totals.num_frames:
            raise ValueError(
                f"Tissue curve has {len(tissue_activity)} frames, "
                f"input function has {frame_totals.num_frames}"
            )
        x = frame_totals.patlak_x(starting_frame)
        y = self.patlak_y(tissue_activity, frame_totals, blood_volume_fraction, starting_frame)

        fit = weighted_linear_regression(x, y, np.ones_like(x), device=self.device)
        return float(fit.slope[0]), float(fit.intercept[0])

    def scan_volume(
        self,
        frames: np.ndarray,
        frame_totals: FrameTotals,
        blood_volume_fraction: float,
        starting_frame: int,
        batch_size: int = 262144
    ) -> ScanResult:
        """
        Fit every voxel of a dynamic volume.

        Slabs of whole k-planes are processed in increasing k; within a slab
        voxels are flattened in (k, j, i) C order, so results land in
        k-major, j, i-minor order. RoI sums are accumulated per slab and
        reduced into the totals.

        Args:
            frames: (F, K, J, I) calibrated, decay corrected activity
            frame_totals: Input function per frame
            blood_volume_fraction: Blood fraction subtracted from tissue
            starting_frame: First 1-based regression frame
            batch_size: Approximate number of voxels per regression batch

        Returns:
            ScanResult with the two parametric maps and RoI sums
        """
        if frames.ndim != 4:
            raise ValueError(f"Expected a (F, K, J, I) series, got shape {frames.shape}")
        if frames.shape[0] != frame_totals.num_frames:
            raise ValueError(
                f"Image has {frames.shape[0]} frames, input function has "
                f"{frame_totals.num_frames}"
            )

        n_k, n_j, n_i = frames.shape[1:]
        first = starting_frame - 1
        n_points = frames.shape[0] - first

        x = frame_totals.patlak_x(starting_frame)
        weights = np.ones(n_points)
        plasma = frame_totals.plasma_total[first:]

        # Output volumes share the grid of the input, never its storage
        slope_map = np.zeros((n_k, n_j, n_i), dtype=np.float32)
        intercept_map = np.zeros((n_k, n_j, n_i), dtype=np.float32)

        roi_mask = central_region_mask((n_k, n_j, n_i))
        roi_plasma_sum = np.zeros(n_points)
        roi_tissue_sum = np.zeros(n_points)
        roi_x_sum = np.zeros(n_points)
        roi_y_sum = np.zeros(n_points)
        roi_voxels = 0

        slab_depth = max(1, batch_size // max(1, n_j * n_i))
        logger.info(
            f"Fitting {n_k * n_j * n_i:,} voxels over frames "
            f"{starting_frame}..{frames.shape[0]} ({n_points} points each)"
        )

        for k_start in range(0, n_k, slab_depth):
            k_end = min(k_start + slab_depth, n_k)

            slab = frames[:, k_start:k_end]
            y = self.patlak_y(slab, frame_totals, blood_volume_fraction, starting_frame)
            y_rows = y.reshape(n_points, -1).T

            fit = weighted_linear_regression(x, y_rows, weights, device=self.device)
            slab_shape = (k_end - k_start, n_j, n_i)
            slope_map[k_start:k_end] = fit.slope.cpu().numpy().reshape(slab_shape)
            intercept_map[k_start:k_end] = fit.intercept.cpu().numpy().reshape(slab_shape)

            slab_roi = roi_mask[k_start:k_end]
            n_roi = int(slab_roi.sum())
            if n_roi > 0:
                roi_tissue_sum += slab[first:][:, slab_roi].sum(axis=1)
                roi_y_sum += y[:, slab_roi].sum(axis=1)
                roi_x_sum += x * n_roi
                roi_plasma_sum += plasma * n_roi
                roi_voxels += n_roi

            logger.debug(f"  Planes {k_start}..{k_end - 1} done")

        n_bad = int(np.count_nonzero(~np.isfinite(slope_map)))
        if n_bad:
            logger.warning(f"{n_bad:,} voxels have a non-finite Patlak slope")

        logger.info("Fit complete:")
        logger.info(f"  Mean slope: {np.nanmean(slope_map):.6g}")
        logger.info(f"  Mean intercept: {np.nanmean(intercept_map):.6g}")
        logger.info(f"  RoI voxels: {roi_voxels}")

        return ScanResult(
            slope_map=slope_map,
            intercept_map=intercept_map,
            roi_plasma_sum=roi_plasma_sum,
            roi_tissue_sum=roi_tissue_sum,
            roi_x_sum=roi_x_sum,
            roi_y_sum=roi_y_sum,
            roi_voxels=roi_voxels
        )

    @staticmethod
    def build_roi_tac(
        scan: ScanResult,
        frame_definitions: TimeFrameDefinitions,
        starting_frame: int
    ) -> RoiTac:
        """Average the RoI sums of a scan into a time-activity curve."""
        frame_numbers = np.arange(starting_frame, frame_definitions.num_frames + 1)
        time_points = frame_definitions.midpoints[starting_frame - 1:]
        n_voxels = scan.roi_voxels

        if n_voxels == 0:
            raise ValueError("Central region of interest contains no voxels")

        return RoiTac(
            frame_numbers=frame_numbers,
            time_points=time_points,
            plasma=scan.roi_plasma_sum / n_voxels,
            tissue=scan.roi_tissue_sum / n_voxels,
            patlak_x=scan.roi_x_sum / n_voxels,
            patlak_y=scan.roi_y_sum / n_voxels,
            n_voxels=n_voxels
        )
