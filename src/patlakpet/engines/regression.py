# src/patlakpet/engines/regression.py

"""
Weighted Linear Regression Engine

Closed-form weighted least squares fit of y = intercept + slope * x,
batched over many independent series (one per voxel). Runs on any
torch.device in float64.

For weights w_n (inverse variances):

    S   = sum w        Sx  = sum w x      Sy = sum w y
    Sxx = sum w x^2    Sxy = sum w x y    D  = S Sxx - Sx^2

    slope     = (S Sxy - Sx Sy) / D
    intercept = (Sxx Sy - Sx Sxy) / D
    var(intercept) = Sxx / D,  var(slope) = S / D,  cov = -Sx / D
    chi_square     = sum w (y - intercept - slope x)^2
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import torch

ArrayLike = Union[np.ndarray, torch.Tensor]


@dataclass
class RegressionResult:
    """
    Per-series regression outputs, each of shape (N,).

    Only slope and intercept end up in the parametric maps; the remaining
    fields are kept for error propagation.
    """
    intercept: torch.Tensor
    slope: torch.Tensor
    chi_square: torch.Tensor
    variance_of_intercept: torch.Tensor
    variance_of_slope: torch.Tensor
    covariance_of_intercept_with_slope: torch.Tensor


def _as_tensor(values: ArrayLike, device: torch.device) -> torch.Tensor:
    if isinstance(values, torch.Tensor):
        return values.to(device=device, dtype=torch.float64)
    return torch.as_tensor(np.asarray(values), dtype=torch.float64, device=device)


def weighted_linear_regression(
    x: ArrayLike,
    y: ArrayLike,
    weights: Optional[ArrayLike] = None,
    device: Optional[torch.device] = None
) -> RegressionResult:
    """
    Fit a straight line to each row of y.

    Args:
        x: (F,) abscissa shared by every series, or (N, F) per series
        y: (F,) single series or (N, F) batch of series
        weights: (F,) or (N, F) non-negative weights. None means all ones.
        device: torch.device for the computation (CPU if None)

    Returns:
        RegressionResult with (N,) tensors (N=1 for a single series)

    Raises:
        ValueError: If shapes or series counts disagree, or fewer than two
            points are given

    Example:
        >>> fit = weighted_linear_regression([1.0, 2.0], [2.0, 4.0])
        >>> fit.slope.item(), fit.intercept.item()
        (2.0, 0.0)
    """
    if device is None:
        device = torch.device('cpu')

    x_t = _as_tensor(x, device)
    y_t = _as_tensor(y, device)
    if y_t.ndim == 1:
        y_t = y_t.unsqueeze(0)
    if x_t.ndim == 1:
        x_t = x_t.unsqueeze(0)

    if x_t.shape[-1] != y_t.shape[-1]:
        raise ValueError(
            f"x has {x_t.shape[-1]} points but y has {y_t.shape[-1]}"
        )
    if y_t.shape[-1] < 2:
        raise ValueError("Linear regression needs at least two points")

    if weights is None:
        w_t = torch.ones_like(x_t)
    else:
        w_t = _as_tensor(weights, device)
        if w_t.ndim == 1:
            w_t = w_t.unsqueeze(0)
        if w_t.shape[-1] != y_t.shape[-1]:
            raise ValueError(
                f"weights have {w_t.shape[-1]} points but y has {y_t.shape[-1]}"
            )

    batch_sizes = {t.shape[0] for t in (x_t, y_t, w_t)} - {1}
    if len(batch_sizes) > 1:
        raise ValueError(f"Inconsistent series counts in x, y and weights: {sorted(batch_sizes)}")
    n_series = batch_sizes.pop() if batch_sizes else 1

    # Broadcast shared x / y / weights against the (N, F) batch
    y_t = y_t.expand(n_series, -1)
    s = w_t.sum(dim=-1)
    sx = (w_t * x_t).sum(dim=-1)
    sy = (w_t * y_t).sum(dim=-1)
    sxx = (w_t * x_t * x_t).sum(dim=-1)
    sxy = (w_t * x_t * y_t).sum(dim=-1)

    determinant = s * sxx - sx * sx

    slope = (s * sxy - sx * sy) / determinant
    intercept = (sxx * sy - sx * sxy) / determinant

    residuals = y_t - intercept.unsqueeze(-1) - slope.unsqueeze(-1) * x_t
    chi_square = (w_t * residuals * residuals).sum(dim=-1)

    return RegressionResult(
        intercept=intercept,
        slope=slope,
        chi_square=chi_square,
        variance_of_intercept=(sxx / determinant).expand(n_series),
        variance_of_slope=(s / determinant).expand(n_series),
        covariance_of_intercept_with_slope=(-sx / determinant).expand(n_series),
    )
