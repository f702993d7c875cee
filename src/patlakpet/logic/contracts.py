# src/patlakpet/logic/contracts.py

"""
Data Contracts for Patlak Analysis

These dataclasses define the explicit contracts for passing data between
orchestrators, logic layers, and utilities. They make dependencies clear
and enable type checking.

Principles:
- No hidden I/O
- Explicit path/data contracts
- Stateless - just data containers
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

from patlakpet.kinetics.series import FrameTotals
from patlakpet.utilities.io import VolumeGeometry

# Input function and frame timing contracts are in
# src/patlakpet/kinetics/series.py

# =============================================================================
# ANALYSIS CONTRACTS
# =============================================================================

@dataclass
class PatlakRequest:
    """
    Request to fit Patlak maps to a dynamic image.

    Attributes:
        dynamic_image_path: Path to the 4D image series
        plasma_path: Path to the blood/plasma sample file
        frame_definitions_path: Frame timing sidecar (JSON). None means
            the image path with a .json extension.
    """
    dynamic_image_path: Path
    plasma_path: Path
    frame_definitions_path: Optional[Path] = None


# =============================================================================
# RESULT CONTRACTS
# =============================================================================

@dataclass
class RoiTac:
    """
    Time-activity curve averaged over the central region of interest.

    Attributes:
        frame_numbers: (R,) 1-based frames starting_frame..num_frames
        time_points: (R,) frame midpoints in seconds
        plasma: (R,) mean plasma over the RoI
        tissue: (R,) mean tissue activity over the RoI
        patlak_x: (R,) mean Patlak abscissa over the RoI
        patlak_y: (R,) mean Patlak ordinate over the RoI
        n_voxels: Number of voxels inside the RoI
    """
    frame_numbers: np.ndarray
    time_points: np.ndarray
    plasma: np.ndarray
    tissue: np.ndarray
    patlak_x: np.ndarray
    patlak_y: np.ndarray
    n_voxels: int


@dataclass
class ScanResult:
    """
    Output of a full-volume scan.

    Attributes:
        slope_map: (K, J, I) Patlak slope per voxel
        intercept_map: (K, J, I) Patlak y-intersection per voxel
        roi_plasma_sum: (R,) RoI sum of frame plasma totals
        roi_tissue_sum: (R,) RoI sum of tissue activity
        roi_x_sum: (R,) RoI sum of Patlak x
        roi_y_sum: (R,) RoI sum of Patlak y
        roi_voxels: Number of voxels accumulated into the RoI sums
    """
    slope_map: np.ndarray
    intercept_map: np.ndarray
    roi_plasma_sum: np.ndarray
    roi_tissue_sum: np.ndarray
    roi_x_sum: np.ndarray
    roi_y_sum: np.ndarray
    roi_voxels: int


@dataclass
class PatlakResult:
    """
    Result of a Patlak run.

    Attributes:
        slope_map: (K, J, I) Patlak slope (influx constant) per voxel
        intercept_map: (K, J, I) Patlak y-intersection per voxel
        roi_tac: Central RoI time-activity curve
        frame_totals: Input function reduced per frame
        starting_frame: First regression frame used
        geometry: Geometry of the output volumes
        source_path: Dynamic image the maps were computed from
    """
    slope_map: np.ndarray
    intercept_map: np.ndarray
    roi_tac: RoiTac
    frame_totals: FrameTotals
    starting_frame: int
    geometry: VolumeGeometry = field(default_factory=VolumeGeometry)
    source_path: Optional[Path] = None
