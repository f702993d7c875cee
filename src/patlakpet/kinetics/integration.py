# src/patlakpet/kinetics/integration.py

"""
Input Function Frame Integration

Reduces the sampled plasma/blood input function to one value per image
time frame, and applies the frame-wise calibration and decay correction
that bring image and plasma data to the same scale.

The trapezoidal integral of an empty or single-sample frame is 0.0.
Frames that end up with a zero plasma total cannot be used in the Patlak
regression (see DegeneratePlasmaError).
"""

import logging
from typing import Tuple

import numpy as np
from scipy.integrate import trapezoid

from patlakpet.kinetics.series import FrameTotals, PlasmaSeries, TimeFrameDefinitions

logger = logging.getLogger(__name__)


class DegeneratePlasmaError(ValueError):
    """Plasma total is zero or non-finite in a frame used for regression."""


def linear_integral(values: np.ndarray, times: np.ndarray) -> float:
    """
    Trapezoidal integral of values sampled at times.

    Returns 0.0 for fewer than two samples.

    Example:
        >>> linear_integral(np.array([10., 8., 6.]), np.array([0., 60., 120.]))
        960.0
    """
    if len(values) < 2:
        return 0.0
    return float(trapezoid(values, times))


def integrate_plasma_over_frames(
    plasma_series: PlasmaSeries,
    frame_definitions: TimeFrameDefinitions
) -> FrameTotals:
    """
    Integrate the input function over every time frame.

    Samples with start <= t < end belong to a frame. A single cursor walks
    the (time-ordered) samples across all frames, so the pass is linear in
    the number of samples.

    Args:
        plasma_series: Time-ordered plasma/blood samples
        frame_definitions: Frame timing, frames 1..num_frames

    Returns:
        FrameTotals with duration-normalised plasma/blood totals and the
        running sum of the raw plasma integrals
    """
    num_frames = frame_definitions.num_frames
    times = plasma_series.times
    n_samples = len(times)

    plasma_total = np.zeros(num_frames)
    blood_total = np.zeros(num_frames)
    plasma_cumulative_total = np.zeros(num_frames)

    running_sum = 0.0
    cursor = 0

    for frame in frame_definitions.frames:
        while cursor < n_samples and times[cursor] < frame.start_time:
            cursor += 1
        first = cursor
        while cursor < n_samples and times[cursor] < frame.end_time:
            cursor += 1

        frame_times = times[first:cursor]
        raw_plasma = linear_integral(plasma_series.plasma[first:cursor], frame_times)
        raw_blood = linear_integral(plasma_series.blood[first:cursor], frame_times)

        running_sum += raw_plasma
        plasma_cumulative_total[frame.index - 1] = running_sum

        # Image frames hold mean activity, so the totals are per unit time
        plasma_total[frame.index - 1] = raw_plasma / frame.duration
        blood_total[frame.index - 1] = raw_blood / frame.duration

        logger.debug(
            f"Frame {frame.index}: {cursor - first} samples, "
            f"plasma integral {raw_plasma:.4f}, cumulative {running_sum:.4f}"
        )

    return FrameTotals(
        plasma_total=plasma_total,
        blood_total=blood_total,
        plasma_cumulative_total=plasma_cumulative_total
    )


def check_regression_frames(frame_totals: FrameTotals, starting_frame: int) -> None:
    """
    Fail fast if any regression frame has a zero or non-finite plasma total.

    Raises:
        DegeneratePlasmaError: Listing the offending 1-based frames
    """
    plasma = frame_totals.plasma_total[starting_frame - 1:]
    bad = np.flatnonzero((plasma == 0) | ~np.isfinite(plasma)) + starting_frame
    if len(bad) > 0:
        raise DegeneratePlasmaError(
            f"Plasma total is zero or non-finite in regression frames {bad.tolist()}. "
            f"Check the plasma sampling or use a later starting frame."
        )


def calibrate_frames(frames: np.ndarray, calibration_factor: float) -> np.ndarray:
    """Scale every frame of a (T, K, J, I) series by calibration_factor."""
    return frames * calibration_factor


def frame_decay_factors(
    frame_definitions: TimeFrameDefinitions,
    half_life: float
) -> np.ndarray:
    """
    Decay correction factor per frame, accounting for decay during the frame.

    factor = lambda * d / (exp(-lambda * start) - exp(-lambda * end))
    """
    decay_constant = np.log(2.0) / half_life
    starts = np.array([frame.start_time for frame in frame_definitions.frames])
    ends = np.array([frame.end_time for frame in frame_definitions.frames])
    durations = ends - starts

    return decay_constant * durations / (
        np.exp(-decay_constant * starts) - np.exp(-decay_constant * ends)
    )


def decay_correct_frames(
    frames: np.ndarray,
    frame_definitions: TimeFrameDefinitions,
    half_life: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Decay correct a (T, K, J, I) series to time zero.

    Returns:
        Tuple of (corrected_frames, factors)
    """
    if frames.shape[0] != frame_definitions.num_frames:
        raise ValueError(
            f"Image has {frames.shape[0]} frames but frame definitions list "
            f"{frame_definitions.num_frames}"
        )
    factors = frame_decay_factors(frame_definitions, half_life)
    corrected = frames * factors[:, np.newaxis, np.newaxis, np.newaxis]
    return corrected, factors
