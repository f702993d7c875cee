# src/patlakpet/logic/orchestrators.py

"""
High-Level Orchestrators

Pure orchestration functions that coordinate library components.
No argument parsing (argparse/Click), no logging setup - just business logic.

These functions are called by both:
- scripts/ (argparse-based standalone scripts)
- cli.py (Click-based CLI commands)
- Direct library users (import and call)

Design principles:
- Accept explicit parameters (Paths, primitives, dataclasses)
- Return dataclasses (contracts)
- Handle coordination logic only
- Delegate I/O to utilities
- Delegate computation to kinetics/engines
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import torch

from patlakpet.kinetics.config import MIN_FRAMES, PatlakConfig
from patlakpet.kinetics.integration import (
    calibrate_frames,
    check_regression_frames,
    decay_correct_frames,
    integrate_plasma_over_frames,
)
from patlakpet.kinetics.series import TimeFrameDefinitions
from patlakpet.logic.contracts import PatlakRequest, PatlakResult
from patlakpet.logic.patlak import PatlakLogic
from patlakpet.utilities.io import (
    default_frame_definitions_path,
    patlak_output_paths,
    read_dynamic_image,
    read_frame_definitions,
    read_plasma_series,
    write_roi_tac,
    write_volume,
)

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATION
# =============================================================================

def validate_frame_count(frame_definitions: TimeFrameDefinitions) -> None:
    """
    Reject series too short for the regression range.

    Raises:
        ValueError: If num_frames < MIN_FRAMES
    """
    num_frames = frame_definitions.num_frames
    if num_frames < MIN_FRAMES:
        raise ValueError(
            f"Patlak analysis needs at least {MIN_FRAMES} time frames, "
            f"got {num_frames}. The default regression uses the last 13 frames."
        )


# =============================================================================
# PATLAK ORCHESTRATOR
# =============================================================================

def run_patlak_analysis(
    request: PatlakRequest,
    config: PatlakConfig,
    device: Optional[torch.device] = None
) -> PatlakResult:
    """
    Orchestrate Patlak parametric mapping.

    Workflow:
    1. Check calibration and frame count (before any voxel data is read)
    2. Load and time-shift the plasma samples
    3. Load, calibrate and decay correct the dynamic image
    4. Integrate the input function over the frames
    5. Fit every voxel and average the central RoI

    Args:
        request: Input paths
        config: Numeric options
        device: torch.device (CPU if None)

    Returns:
        PatlakResult with slope/intercept maps and the RoI curve

    Raises:
        ValueError: Uncalibrated input, too few frames, bad starting frame,
            or zero plasma totals in the regression frames

    Example:
        >>> result = run_patlak_analysis(
        ...     PatlakRequest(Path("dyn.nii"), Path("plasma.txt")),
        ...     PatlakConfig(blood_volume_fraction=0.05)
        ... )
        >>> result.slope_map.shape
        (47, 128, 128)
    """
    if device is None:
        device = torch.device('cpu')

    logger.info(f"Using device: {device}")

    # 1. Preconditions
    if not config.is_calibrated:
        raise ValueError("The input image seems not to be calibrated")

    sidecar_path = request.frame_definitions_path
    if sidecar_path is None:
        sidecar_path = default_frame_definitions_path(request.dynamic_image_path)

    logger.info(f"Loading frame definitions: {sidecar_path}")
    frame_definitions = read_frame_definitions(sidecar_path)
    validate_frame_count(frame_definitions)
    num_frames = frame_definitions.num_frames
    starting_frame = config.resolve_starting_frame(num_frames)
    logger.info(f"  Regression frames: {starting_frame}..{num_frames}")

    # 2. Input function
    logger.info(f"Loading plasma data: {request.plasma_path}")
    plasma_series = read_plasma_series(request.plasma_path)
    plasma_series = plasma_series.shift_time(config.time_shift)
    logger.info(f"  Time shift: {config.time_shift} s")

    # 3. Dynamic image
    frames, geometry = read_dynamic_image(request.dynamic_image_path)
    if frames.shape[0] != num_frames:
        raise ValueError(
            f"Image has {frames.shape[0]} frames but {sidecar_path.name} "
            f"defines {num_frames}"
        )

    frames = calibrate_frames(frames, frame_definitions.calibration_factor)

    if (frame_definitions.is_decay_corrected is not None
            and frame_definitions.is_decay_corrected != config.is_decay_corrected):
        logger.warning(
            f"Sidecar declares ImageDecayCorrected={frame_definitions.is_decay_corrected}, "
            f"using is_decay_corrected={config.is_decay_corrected}"
        )

    if not config.is_decay_corrected:
        logger.info(f"Decay correcting image and plasma (half-life {config.half_life} s)")
        frames, _ = decay_correct_frames(frames, frame_definitions, config.half_life)
        plasma_series = plasma_series.decay_corrected(config.half_life)

    # 4. Frame integration
    frame_totals = integrate_plasma_over_frames(plasma_series, frame_definitions)
    check_regression_frames(frame_totals, starting_frame)

    # 5. Voxel-wise fit
    logic = PatlakLogic(device=device)
    scan = logic.scan_volume(
        frames=frames,
        frame_totals=frame_totals,
        blood_volume_fraction=config.blood_volume_fraction,
        starting_frame=starting_frame,
        batch_size=config.batch_size
    )
    roi_tac = logic.build_roi_tac(scan, frame_definitions, starting_frame)

    return PatlakResult(
        slope_map=scan.slope_map,
        intercept_map=scan.intercept_map,
        roi_tac=roi_tac,
        frame_totals=frame_totals,
        starting_frame=starting_frame,
        geometry=geometry,
        source_path=request.dynamic_image_path
    )


def save_patlak_result(
    result: PatlakResult,
    output_dir: Optional[Path] = None,
    image_path: Optional[Path] = None
) -> bool:
    """
    Save parametric maps and the RoI report.

    Writes slope_<base><ext>, y_intersection_<base><ext> and <base>.tac
    next to the input image (or into output_dir). Each image write is
    attempted even if the other fails.

    Args:
        result: PatlakResult from run_patlak_analysis()
        output_dir: Output directory (default: the input image's directory)
        image_path: Name source for the outputs (default: result.source_path)

    Returns:
        True only if both parametric maps were written
    """
    image_path = image_path if image_path is not None else result.source_path
    if image_path is None:
        raise ValueError("No image path to derive output names from")

    slope_path, intercept_path, tac_path = patlak_output_paths(image_path, output_dir)

    try:
        write_roi_tac(result.roi_tac, tac_path)
        logger.info(f"RoI time-activity curve saved to: {tac_path}")
    except OSError as err:
        logger.error(f"Cannot write {tac_path}: {err}")

    logger.info(f"Writing 'y_intersection' image: {intercept_path}")
    intercept_written = write_volume(result.intercept_map, result.geometry, intercept_path)

    logger.info(f"Writing 'slope' image: {slope_path}")
    slope_written = write_volume(result.slope_map, result.geometry, slope_path)

    logger.info("Patlak summary:")
    logger.info(f"  Starting frame: {result.starting_frame}")
    logger.info(f"  RoI voxels: {result.roi_tac.n_voxels}")
    logger.info(f"  Median slope: {np.nanmedian(result.slope_map):.6g}")

    return intercept_written and slope_written
