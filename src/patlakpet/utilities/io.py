# src/patlakpet/utilities/io.py

"""
I/O Utilities for Patlak Analysis

Handles reading dynamic PET images, plasma sample files and frame timing
sidecars, and writing parametric maps and the RoI report. Image access is
a thin wrapper around SimpleITK.

Principles:
- Explicit I/O (no hidden file operations)
- Convert to standard numpy arrays in (t, k, j, i) / (k, j, i) order
- Minimal dependencies on external formats
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import SimpleITK as sitk

from patlakpet.kinetics.series import PlasmaSeries, TimeFrameDefinitions

logger = logging.getLogger(__name__)

# Multi-part extensions SimpleITK recognises
_COMPOUND_SUFFIXES = ('.nii.gz', '.nrrd.gz')

TAC_COLUMNS = ("Frame", "TimePoint", "Plasma", "Tissue", "RoI-X", "RoI-Y")


@dataclass
class VolumeGeometry:
    """Physical placement of a 3D volume (SimpleITK x, y, z order)."""
    origin: Tuple[float, ...] = (0.0, 0.0, 0.0)
    spacing: Tuple[float, ...] = (1.0, 1.0, 1.0)
    direction: Tuple[float, ...] = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)


def split_image_name(image_path: Path) -> Tuple[str, str]:
    """
    Split an image file name into (base, extension).

    Example:
        >>> split_image_name(Path("/data/dyn.nii.gz"))
        ('dyn', '.nii.gz')
    """
    name = image_path.name
    for suffix in _COMPOUND_SUFFIXES:
        if name.lower().endswith(suffix):
            return name[:-len(suffix)], name[-len(suffix):]
    return image_path.stem, image_path.suffix


# =============================================================================
# PLASMA DATA
# =============================================================================

def read_plasma_series(plasma_path: Path) -> PlasmaSeries:
    """
    Read blood samples from a whitespace-separated text file.

    Each data row holds `time_s plasma_kBq blood_kBq`. Lines starting with
    '#' and blank lines are ignored. A leading line with a single integer
    is taken as the number of samples and checked against the rows read.

    Args:
        plasma_path: Path to plasma sample file

    Returns:
        PlasmaSeries ordered by time

    Raises:
        FileNotFoundError: If plasma_path does not exist
        ValueError: If a row is malformed or the declared count disagrees

    Example:
        >>> series = read_plasma_series(Path("plasma.txt"))
        >>> len(series)
        42
    """
    if not plasma_path.exists():
        raise FileNotFoundError(f"Plasma file not found: {plasma_path}")

    rows = []
    declared_count = None

    with open(plasma_path) as handle:
        for line_number, line in enumerate(handle, start=1):
            stripped = line.split('#', 1)[0].strip()
            if not stripped:
                continue
            fields = stripped.split()

            if len(fields) == 1 and not rows and declared_count is None:
                declared_count = int(fields[0])
                continue

            if len(fields) != 3:
                raise ValueError(
                    f"{plasma_path.name}:{line_number}: expected 3 columns "
                    f"(time plasma blood), got {len(fields)}"
                )
            rows.append([float(value) for value in fields])

    if not rows:
        raise ValueError(f"No plasma samples found in {plasma_path}")

    if declared_count is not None and declared_count != len(rows):
        raise ValueError(
            f"{plasma_path.name} declares {declared_count} samples but contains {len(rows)}"
        )

    data = np.array(rows)
    logger.info(f"  Loaded {len(data)} plasma samples ({data[0, 0]:.1f}s - {data[-1, 0]:.1f}s)")

    return PlasmaSeries(times=data[:, 0], plasma=data[:, 1], blood=data[:, 2])


# =============================================================================
# FRAME TIMING
# =============================================================================

def default_frame_definitions_path(image_path: Path) -> Path:
    """Sidecar next to the image: same base name, .json extension."""
    base, _ = split_image_name(image_path)
    return image_path.with_name(base + '.json')


def read_frame_definitions(sidecar_path: Path) -> TimeFrameDefinitions:
    """
    Read frame timing from a BIDS-style JSON sidecar.

    Required keys: FrameTimesStart, FrameDuration (seconds).
    Optional keys: ImageDecayCorrected, CalibrationFactor.

    Raises:
        FileNotFoundError: If the sidecar does not exist
        KeyError: If a required key is missing
    """
    if not sidecar_path.exists():
        raise FileNotFoundError(f"Frame definition sidecar not found: {sidecar_path}")

    with open(sidecar_path) as handle:
        metadata = json.load(handle)

    required_keys = ['FrameTimesStart', 'FrameDuration']
    missing = [k for k in required_keys if k not in metadata]
    if missing:
        raise KeyError(f"Sidecar {sidecar_path.name} missing keys: {missing}")

    definitions = TimeFrameDefinitions.from_starts_and_durations(
        metadata['FrameTimesStart'],
        metadata['FrameDuration'],
        is_decay_corrected=metadata.get('ImageDecayCorrected'),
        calibration_factor=float(metadata.get('CalibrationFactor', 1.0)),
    )
    logger.info(f"  Loaded {definitions.num_frames} time frames from {sidecar_path.name}")

    return definitions


def write_frame_definitions(definitions: TimeFrameDefinitions, sidecar_path: Path) -> None:
    """Write frame timing (and metadata) as a JSON sidecar."""
    metadata = {
        'FrameTimesStart': [frame.start_time for frame in definitions.frames],
        'FrameDuration': [frame.duration for frame in definitions.frames],
        'CalibrationFactor': definitions.calibration_factor,
    }
    if definitions.is_decay_corrected is not None:
        metadata['ImageDecayCorrected'] = definitions.is_decay_corrected

    sidecar_path.parent.mkdir(parents=True, exist_ok=True)
    with open(sidecar_path, 'w') as handle:
        json.dump(metadata, handle, indent=2)


# =============================================================================
# IMAGE I/O (SimpleITK)
# =============================================================================

def _geometry_from_image(image: sitk.Image) -> VolumeGeometry:
    """3D geometry of the spatial part of a 3D or 4D image."""
    dimension = image.GetDimension()
    direction = np.array(image.GetDirection()).reshape(dimension, dimension)
    return VolumeGeometry(
        origin=tuple(image.GetOrigin()[:3]),
        spacing=tuple(image.GetSpacing()[:3]),
        direction=tuple(direction[:3, :3].flatten().tolist()),
    )


def read_dynamic_image(image_path: Path) -> Tuple[np.ndarray, VolumeGeometry]:
    """
    Load a 4D dynamic image.

    Args:
        image_path: Path to a 4D image readable by SimpleITK

    Returns:
        Tuple of (frames, geometry)
        - frames: (T, K, J, I) float64 activity array
        - geometry: placement of each 3D frame

    Raises:
        FileNotFoundError: If image_path does not exist
        ValueError: If the image is not 4D
    """
    if not image_path.exists():
        raise FileNotFoundError(f"Dynamic image not found: {image_path}")

    logger.info(f"Loading dynamic image: {image_path}")
    image = sitk.ReadImage(str(image_path), sitk.sitkFloat64)

    if image.GetDimension() != 4:
        raise ValueError(
            f"Expected a 4D dynamic image, got {image.GetDimension()}D: {image_path}"
        )

    frames = sitk.GetArrayFromImage(image)
    geometry = _geometry_from_image(image)
    logger.info(
        f"  Size: {image.GetSize()}, "
        f"Spacing: {[f'{s:.2f}' for s in geometry.spacing]} mm"
    )

    return frames, geometry


def read_volume(image_path: Path) -> Tuple[np.ndarray, VolumeGeometry]:
    """Load a 3D volume as a (K, J, I) float64 array."""
    if not image_path.exists():
        raise FileNotFoundError(f"Image not found: {image_path}")

    image = sitk.ReadImage(str(image_path), sitk.sitkFloat64)
    return sitk.GetArrayFromImage(image), _geometry_from_image(image)


def write_dynamic_image(
    frames: np.ndarray,
    geometry: VolumeGeometry,
    output_path: Path
) -> None:
    """Write a (T, K, J, I) series as a 4D image."""
    image = sitk.GetImageFromArray(np.asarray(frames, dtype=np.float32), isVector=False)
    direction = np.eye(4)
    direction[:3, :3] = np.array(geometry.direction).reshape(3, 3)
    image.SetOrigin(tuple(geometry.origin) + (0.0,))
    image.SetSpacing(tuple(geometry.spacing) + (1.0,))
    image.SetDirection(tuple(direction.flatten().tolist()))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    sitk.WriteImage(image, str(output_path))


def write_volume(
    volume: np.ndarray,
    geometry: VolumeGeometry,
    output_path: Path
) -> bool:
    """
    Write a (K, J, I) volume with the given geometry.

    Write failures are logged, not raised, so that independent outputs can
    each be attempted.

    Returns:
        True if the file was written
    """
    image = sitk.GetImageFromArray(np.asarray(volume, dtype=np.float32))
    image.SetOrigin(tuple(geometry.origin))
    image.SetSpacing(tuple(geometry.spacing))
    image.SetDirection(tuple(geometry.direction))

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        sitk.WriteImage(image, str(output_path))
    except (RuntimeError, OSError) as err:
        logger.error(f"Cannot write {output_path}: {err}")
        return False

    return True


# =============================================================================
# ROI REPORT
# =============================================================================

def write_roi_tac(roi_tac, output_path: Path) -> None:
    """
    Write the RoI time-activity curve as a tab-separated table.

    Columns: Frame, TimePoint (frame midpoint), Plasma, Tissue, RoI-X, RoI-Y.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as handle:
        handle.write('\t'.join(TAC_COLUMNS) + '\n')
        for row in zip(
            roi_tac.frame_numbers,
            roi_tac.time_points,
            roi_tac.plasma,
            roi_tac.tissue,
            roi_tac.patlak_x,
            roi_tac.patlak_y,
        ):
            frame_num, *values = row
            handle.write('\t'.join([str(int(frame_num))] + [f"{v:.6g}" for v in values]) + '\n')


def read_roi_tac(tac_path: Path) -> dict:
    """Read a .tac report back into a dict of column name -> array."""
    with open(tac_path) as handle:
        header = handle.readline().rstrip('\n').split('\t')
        data = np.loadtxt(handle, delimiter='\t', ndmin=2)

    return {name: data[:, idx] for idx, name in enumerate(header)}


def patlak_output_paths(
    image_path: Path,
    output_dir: Optional[Path] = None
) -> Tuple[Path, Path, Path]:
    """
    Output file names for a dynamic image.

    Returns:
        Tuple of (slope_path, intercept_path, tac_path):
        slope_<base><ext>, y_intersection_<base><ext>, <base>.tac
    """
    base, extension = split_image_name(image_path)
    directory = output_dir if output_dir is not None else image_path.parent
    return (
        directory / f"slope_{base}{extension}",
        directory / f"y_intersection_{base}{extension}",
        directory / f"{base}.tac",
    )
