# src/patlakpet/kinetics/series.py

"""
Input Function and Frame Timing Contracts

Dataclasses for the sampled plasma input function, the acquisition time
frames of a dynamic series and the per-frame reduction of one onto the
other. Stateless containers; the transforms return new instances.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np


@dataclass(frozen=True)
class PlasmaSeries:
    """
    Time-ordered blood samples of the input function.

    Attributes:
        times: (S,) sample times in seconds, non-decreasing
        plasma: (S,) plasma activity in kBq
        blood: (S,) whole-blood activity in kBq
    """
    times: np.ndarray
    plasma: np.ndarray
    blood: np.ndarray

    def __post_init__(self):
        for name in ("times", "plasma", "blood"):
            object.__setattr__(self, name, np.asarray(getattr(self, name), dtype=np.float64))

        if not (len(self.times) == len(self.plasma) == len(self.blood)):
            raise ValueError(
                f"Plasma series columns differ in length: "
                f"{len(self.times)}, {len(self.plasma)}, {len(self.blood)}"
            )
        if np.any(np.diff(self.times) < 0):
            raise ValueError("Plasma sample times must be non-decreasing")

    def __len__(self) -> int:
        return len(self.times)

    def shift_time(self, time_shift: float) -> "PlasmaSeries":
        """Return a copy with time_shift seconds added to every sample time."""
        return PlasmaSeries(
            times=self.times + time_shift,
            plasma=self.plasma.copy(),
            blood=self.blood.copy()
        )

    def decay_corrected(self, half_life: float) -> "PlasmaSeries":
        """Return a copy decay corrected to time zero."""
        factors = np.exp(np.log(2.0) * self.times / half_life)
        return PlasmaSeries(
            times=self.times.copy(),
            plasma=self.plasma * factors,
            blood=self.blood * factors
        )


@dataclass(frozen=True)
class TimeFrame:
    """One acquisition time frame. index is 1-based."""
    index: int
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def midpoint(self) -> float:
        return self.start_time + 0.5 * self.duration


@dataclass
class TimeFrameDefinitions:
    """
    Frame timing of a dynamic series, plus acquisition metadata read
    alongside it.

    Attributes:
        frames: Frames in increasing start time, indexed 1..num_frames
        is_decay_corrected: Decay correction state declared by the sidecar
        calibration_factor: Factor applied by calibrate_frames()
    """
    frames: List[TimeFrame]
    is_decay_corrected: Optional[bool] = None
    calibration_factor: float = 1.0

    def __post_init__(self):
        for expected_index, frame in enumerate(self.frames, start=1):
            if frame.index != expected_index:
                raise ValueError(f"Frame {frame.index} out of sequence, expected {expected_index}")
            if frame.duration <= 0:
                raise ValueError(
                    f"Frame {frame.index} has non-positive duration {frame.duration}"
                )
        starts = [frame.start_time for frame in self.frames]
        if starts != sorted(starts):
            raise ValueError("Time frames must be ordered by start time")

        # Frame integration walks the samples once, so windows must not overlap
        for previous, frame in zip(self.frames, self.frames[1:]):
            if frame.start_time < previous.end_time:
                raise ValueError(
                    f"Frame {frame.index} starts at {frame.start_time} s and overlaps "
                    f"frame {previous.index}, which ends at {previous.end_time} s"
                )

    @classmethod
    def from_starts_and_durations(cls, starts, durations, **metadata) -> "TimeFrameDefinitions":
        if len(starts) != len(durations):
            raise ValueError(
                f"Got {len(starts)} frame start times but {len(durations)} durations"
            )
        frames = [
            TimeFrame(index=idx, start_time=float(start), end_time=float(start) + float(duration))
            for idx, (start, duration) in enumerate(zip(starts, durations), start=1)
        ]
        return cls(frames=frames, **metadata)

    @property
    def num_frames(self) -> int:
        return len(self.frames)

    def __getitem__(self, frame_num: int) -> TimeFrame:
        """1-based frame lookup."""
        if not 1 <= frame_num <= self.num_frames:
            raise IndexError(f"Frame {frame_num} outside 1..{self.num_frames}")
        return self.frames[frame_num - 1]

    @property
    def midpoints(self) -> np.ndarray:
        return np.array([frame.midpoint for frame in self.frames])


@dataclass
class FrameTotals:
    """
    Input function reduced to one value per frame. Arrays are indexed by
    frame_num - 1.

    Attributes:
        plasma_total: (F,) mean plasma activity per frame (integral / duration)
        blood_total: (F,) mean blood activity per frame (integral / duration)
        plasma_cumulative_total: (F,) running sum of the raw plasma integrals
    """
    plasma_total: np.ndarray
    blood_total: np.ndarray
    plasma_cumulative_total: np.ndarray

    @property
    def num_frames(self) -> int:
        return len(self.plasma_total)

    def patlak_x(self, starting_frame: int) -> np.ndarray:
        """Patlak abscissa for frames starting_frame..num_frames."""
        first = starting_frame - 1
        return self.plasma_cumulative_total[first:] / self.plasma_total[first:]
