"""
Shared fixtures: a small synthetic dynamic PET dataset with an exactly
linear Patlak plot in every voxel.
"""

import matplotlib

matplotlib.use("Agg")

from pathlib import Path

import numpy as np
import pytest

from patlakpet.kinetics.integration import integrate_plasma_over_frames
from patlakpet.kinetics.series import PlasmaSeries, TimeFrameDefinitions
from patlakpet.utilities.io import VolumeGeometry, write_dynamic_image, write_frame_definitions

GRID_SIZE = 9
NUM_FRAMES = 16
FRAME_DURATION = 60.0
BLOOD_VOLUME = 0.05
TRUE_INTERCEPT = 0.3


@pytest.fixture
def frame_definitions():
    """16 contiguous 60 s frames."""
    starts = np.arange(NUM_FRAMES) * FRAME_DURATION
    durations = np.full(NUM_FRAMES, FRAME_DURATION)
    return TimeFrameDefinitions.from_starts_and_durations(
        starts, durations, is_decay_corrected=True
    )


@pytest.fixture
def plasma_series():
    """Samples every 10 s, mono-exponential washout on a plateau."""
    times = np.arange(0.0, NUM_FRAMES * FRAME_DURATION, 10.0)
    plasma = 100.0 * np.exp(-times / 600.0) + 5.0
    return PlasmaSeries(times=times, plasma=plasma, blood=0.9 * plasma)


@pytest.fixture
def true_slope_map():
    """Slope increases with k so that every plane is distinguishable."""
    k = np.arange(GRID_SIZE, dtype=float)
    slope = 0.001 * (k + 1)
    return np.broadcast_to(slope[:, None, None], (GRID_SIZE,) * 3).copy()


@pytest.fixture
def frame_totals(plasma_series, frame_definitions):
    return integrate_plasma_over_frames(plasma_series, frame_definitions)


@pytest.fixture
def linear_frames(frame_totals, true_slope_map):
    """
    (F, K, J, I) activity whose Patlak plot is exactly
    y = slope * x + TRUE_INTERCEPT in every voxel.
    """
    plasma = frame_totals.plasma_total[:, None, None, None]
    blood = frame_totals.blood_total[:, None, None, None]
    x = (frame_totals.plasma_cumulative_total / frame_totals.plasma_total)[:, None, None, None]

    return (true_slope_map[None] * x + TRUE_INTERCEPT) * plasma + BLOOD_VOLUME * blood


@pytest.fixture
def dataset_dir(tmp_path, plasma_series, frame_definitions, linear_frames):
    """Dynamic image, sidecar and plasma file on disk."""
    write_dynamic_image(linear_frames, VolumeGeometry(spacing=(2.0, 2.0, 3.0)), tmp_path / "dyn.nii")
    write_frame_definitions(frame_definitions, tmp_path / "dyn.json")

    with open(tmp_path / "plasma.txt", "w") as handle:
        handle.write(f"{len(plasma_series)}\n")
        for t, p, b in zip(plasma_series.times, plasma_series.plasma, plasma_series.blood):
            handle.write(f"{t:.3f} {p:.9f} {b:.9f}\n")

    return tmp_path


@pytest.fixture
def image_path(dataset_dir) -> Path:
    return dataset_dir / "dyn.nii"


@pytest.fixture
def plasma_path(dataset_dir) -> Path:
    return dataset_dir / "plasma.txt"
