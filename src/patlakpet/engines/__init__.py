# src/patlakpet/engines/__init__.py

"""
Numerical Engines

This module contains the computational engines for Patlak analysis. They
are torch functions that perform the core mathematical operations on
batches of voxels.

Engines are distinct from:
- Data contracts (logic/contracts.py, kinetics/series.py) - dataclass structures
- Utilities (utilities/) - file I/O and display
- Logic (logic/) - stateless orchestration

Available engines:
- weighted_linear_regression: Batched closed-form straight-line fit
"""

from patlakpet.engines.regression import RegressionResult, weighted_linear_regression

__all__ = [
    "RegressionResult",
    "weighted_linear_regression",
]
