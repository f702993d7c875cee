# src/patlakpet/kinetics/__init__.py
"""
Kinetics Public API

Exposes run configuration, input function / frame timing contracts and
frame integration.
"""

from patlakpet.kinetics.config import PatlakConfig, FDG_HALF_LIFE, MIN_FRAMES
from patlakpet.kinetics.series import (
    PlasmaSeries,
    TimeFrame,
    TimeFrameDefinitions,
    FrameTotals,
)
from patlakpet.kinetics.integration import (
    DegeneratePlasmaError,
    linear_integral,
    integrate_plasma_over_frames,
    check_regression_frames,
    calibrate_frames,
    decay_correct_frames,
)

__all__ = [
    # Configuration
    "PatlakConfig",
    "FDG_HALF_LIFE",
    "MIN_FRAMES",
    # Contracts
    "PlasmaSeries",
    "TimeFrame",
    "TimeFrameDefinitions",
    "FrameTotals",
    # Frame integration
    "DegeneratePlasmaError",
    "linear_integral",
    "integrate_plasma_over_frames",
    "check_regression_frames",
    "calibrate_frames",
    "decay_correct_frames",
]
