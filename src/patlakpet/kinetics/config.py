# src/patlakpet/kinetics/config.py

"""
Patlak Analysis Configuration

Numeric options for a Patlak run. Uses dataclass for type safety and clear
documentation. Physical constants are passed explicitly to the steps that
need them.
"""

from dataclasses import dataclass
from typing import Optional

# F-18 (FDG) half-life in seconds
FDG_HALF_LIFE = 6586.2

# Frames counted back from the last frame when no starting frame is given
DEFAULT_REGRESSION_FRAMES = 13

# Shortest dynamic series accepted for analysis
MIN_FRAMES = DEFAULT_REGRESSION_FRAMES + 1


@dataclass
class PatlakConfig:
    """
    Configuration for a Patlak linear-fit run.

    Attributes:
        time_shift: Seconds added to every plasma sample time
        blood_volume_fraction: Fraction of voxel activity attributed to blood
        starting_frame: First (1-based) frame used in the regression.
            None means the last 13 frames (num_frames - 12).
        is_decay_corrected: Whether image and plasma data are already
            decay corrected
        is_calibrated: Whether the image is calibrated. False is rejected.
        half_life: Isotope half-life in seconds, used for decay correction
        batch_size: Voxels per regression batch

    Example:
        >>> config = PatlakConfig(
        ...     time_shift=13.0,
        ...     blood_volume_fraction=0.05
        ... )
        >>> config.resolve_starting_frame(num_frames=28)
        16
    """

    # Input function
    time_shift: float = 13.0
    blood_volume_fraction: float = 0.05

    # Regression range
    starting_frame: Optional[int] = None

    # Input state
    is_decay_corrected: bool = False
    is_calibrated: bool = True

    # Isotope
    half_life: float = FDG_HALF_LIFE

    # Batching
    batch_size: int = 262144

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not 0 <= self.blood_volume_fraction < 1:
            raise ValueError(
                f"blood_volume_fraction must be in [0, 1), got {self.blood_volume_fraction}"
            )

        if self.half_life <= 0:
            raise ValueError(f"half_life must be positive, got {self.half_life}")

        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

        if self.starting_frame is not None and self.starting_frame < 1:
            raise ValueError(f"starting_frame is 1-based, got {self.starting_frame}")

    def resolve_starting_frame(self, num_frames: int) -> int:
        """
        Return the first regression frame for a series of num_frames frames.

        Raises:
            ValueError: If the frame range leaves fewer than two regression points
        """
        if self.starting_frame is None:
            starting_frame = num_frames - DEFAULT_REGRESSION_FRAMES + 1
        else:
            starting_frame = self.starting_frame

        if not 1 <= starting_frame < num_frames:
            raise ValueError(
                f"starting_frame must be in [1, {num_frames - 1}] for "
                f"{num_frames} frames, got {starting_frame}"
            )

        return starting_frame
