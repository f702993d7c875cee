#!/usr/bin/env python3
# scripts/synthetic/make_patlak_phantom.py

"""
Synthetic Patlak Phantom Generation

Writes a small dynamic PET dataset with a known influx constant (Ki) map,
for trying out `patlakpet fit` end to end:

  - <name>.nii        4D image, frame means of Ki * int(Cp) + V0 * Cp
  - <name>.json       frame timing sidecar (decay corrected)
  - <name>_plasma.txt plasma / whole-blood samples (Feng input function)
  - <name>_ki.nii     ground-truth Ki map

Typical workflow
----------------
python make_patlak_phantom.py --output-dir phantom/ --size 32
patlakpet fit phantom/phantom.nii phantom/phantom_plasma.txt \\
    --time-shift 0 --decay-corrected

Authors:
    patlakpet developers
"""

import logging
from pathlib import Path

import click
import numpy as np

from patlakpet.kinetics.series import TimeFrameDefinitions
from patlakpet.utilities.io import (
    VolumeGeometry,
    write_dynamic_image,
    write_frame_definitions,
    write_volume,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("PatlakPhantom")

# Feng et al. FDG input function parameters (kBq/mL, 1/min)
FENG_PARAMS = (851.1225, 20.8113, 21.8798, -4.1339, -0.1191, -0.0104)

# (number of frames, duration in s)
FRAME_SCHEDULE = [(6, 10), (4, 30), (4, 60), (4, 120), (10, 300)]


def feng_input_function(times_s: np.ndarray) -> np.ndarray:
    """Plasma activity at times_s (seconds) from the Feng model."""
    a1, a2, a3, l1, l2, l3 = FENG_PARAMS
    t = np.clip(times_s, 0.0, None) / 60.0
    return (a1 * t - a2 - a3) * np.exp(l1 * t) + a2 * np.exp(l2 * t) + a3 * np.exp(l3 * t)


def ki_phantom(size: int, background_ki: float, hot_ki: float) -> np.ndarray:
    """(K, J, I) Ki map: background with a central hot sphere."""
    grid = np.indices((size, size, size)) - (size - 1) / 2.0
    radius = np.sqrt((grid ** 2).sum(axis=0))
    ki = np.full((size, size, size), background_ki)
    ki[radius <= size / 4.0] = hot_ki
    return ki


@click.command()
@click.option('--output-dir', type=click.Path(file_okay=False, path_type=Path), required=True,
              help='Directory for the generated files')
@click.option('--name', type=str, default='phantom', help='Base name of the files')
@click.option('--size', type=int, default=32, help='Voxels per axis')
@click.option('--background-ki', type=float, default=0.0005, help='Ki outside the sphere (1/s)')
@click.option('--hot-ki', type=float, default=0.002, help='Ki inside the sphere (1/s)')
@click.option('--blood-volume', type=float, default=0.05, help='Blood volume fraction V0')
@click.option('--noise', type=float, default=0.0, help='Relative Gaussian noise per voxel')
@click.option('--seed', type=int, default=42, help='Random seed')
def main(output_dir, name, size, background_ki, hot_ki, blood_volume, noise, seed):
    """Generate a synthetic dynamic PET phantom with a known Ki map."""
    rng = np.random.default_rng(seed)

    durations = np.concatenate([np.full(n, d, dtype=float) for n, d in FRAME_SCHEDULE])
    starts = np.concatenate([[0.0], np.cumsum(durations)[:-1]])
    definitions = TimeFrameDefinitions.from_starts_and_durations(
        starts, durations, is_decay_corrected=True
    )
    logger.info(f"Frames: {definitions.num_frames}, scan length {starts[-1] + durations[-1]:.0f} s")

    # Fine time grid for frame averages
    fine_t = np.arange(0.0, starts[-1] + durations[-1] + 1.0, 1.0)
    cp = feng_input_function(fine_t)
    cp_integral = np.concatenate([[0.0], np.cumsum(0.5 * (cp[1:] + cp[:-1]) * np.diff(fine_t))])

    frame_cp = np.empty(definitions.num_frames)
    frame_int_cp = np.empty(definitions.num_frames)
    for frame in definitions.frames:
        in_frame = (fine_t >= frame.start_time) & (fine_t < frame.end_time)
        frame_cp[frame.index - 1] = cp[in_frame].mean()
        frame_int_cp[frame.index - 1] = cp_integral[in_frame].mean()

    ki = ki_phantom(size, background_ki, hot_ki)
    frames = (
        ki[np.newaxis] * frame_int_cp[:, None, None, None]
        + blood_volume * frame_cp[:, None, None, None]
    )
    if noise > 0:
        frames = frames * (1.0 + noise * rng.standard_normal(frames.shape))

    output_dir.mkdir(parents=True, exist_ok=True)
    geometry = VolumeGeometry(spacing=(2.0, 2.0, 2.0))

    image_path = output_dir / f"{name}.nii"
    write_dynamic_image(frames, geometry, image_path)
    write_frame_definitions(definitions, output_dir / f"{name}.json")
    write_volume(ki, geometry, output_dir / f"{name}_ki.nii")

    # Samples every 5 s early on, every 60 s later
    sample_t = np.unique(np.concatenate([np.arange(0, 300, 5.0), np.arange(300, fine_t[-1], 60.0)]))
    sample_cp = feng_input_function(sample_t)
    plasma_path = output_dir / f"{name}_plasma.txt"
    with open(plasma_path, 'w') as handle:
        handle.write(f"{len(sample_t)}\n")
        for t, value in zip(sample_t, sample_cp):
            handle.write(f"{t:.1f}\t{value:.6f}\t{0.9 * value:.6f}\n")

    logger.info(f"Dynamic image: {image_path}")
    logger.info(f"Plasma samples: {plasma_path}")
    logger.info(f"Ki range: [{ki.min():.4g}, {ki.max():.4g}]")


if __name__ == "__main__":
    main()
