# src/patlakpet/utilities/__init__.py

"""
Utilities Public API

Exposes image/plasma/report I/O and array display.
"""

from patlakpet.utilities.io import (
    read_plasma_series,
    read_frame_definitions,
    write_frame_definitions,
    default_frame_definitions_path,
    read_dynamic_image,
    read_volume,
    write_dynamic_image,
    write_volume,
    write_roi_tac,
    read_roi_tac,
    patlak_output_paths,
)

from patlakpet.utilities.display import (
    compute_display_limits,
    display_stack,
    display_plane,
)

__all__ = [
    # I/O
    "read_plasma_series",
    "read_frame_definitions",
    "write_frame_definitions",
    "default_frame_definitions_path",
    "read_dynamic_image",
    "read_volume",
    "write_dynamic_image",
    "write_volume",
    "write_roi_tac",
    "read_roi_tac",
    "patlak_output_paths",
    # Display
    "compute_display_limits",
    "display_stack",
    "display_plane",
]
