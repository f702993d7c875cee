# src/patlakpet/logic/__init__.py
"""
Logic Public API

Exposes Patlak fitting logic, contracts and orchestrators.
"""

from patlakpet.logic.contracts import (
    PatlakRequest,
    PatlakResult,
    RoiTac,
    ScanResult,
)

from patlakpet.logic.patlak import PatlakLogic, central_region_mask

from patlakpet.logic.orchestrators import (
    validate_frame_count,
    run_patlak_analysis,
    save_patlak_result,
)

__all__ = [
    # Contracts
    "PatlakRequest",
    "PatlakResult",
    "RoiTac",
    "ScanResult",
    # Logic
    "PatlakLogic",
    "central_region_mask",
    # Orchestrators
    "validate_frame_count",
    "run_patlak_analysis",
    "save_patlak_result",
]
