# export_forecaster_src/metrics_utils.py

import numpy as np
import pandas as pd
from dataclasses import dataclass, asdict
from typing import Dict, List, Tuple, Union
import logging

from .errors import AlignmentError

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]


@dataclass(frozen=True)
class DiagnosticStats:
    """In-sample accuracy of a fit: MAPE (percent), RMSE, MSE and MAE."""

    mape: float
    rmse: float
    mse: float
    mae: float
    n: int

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _paired(y_true: ArrayLike, y_hat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Pair two equal-length sequences position-wise and keep pairs where both are finite."""
    yt = np.asarray(y_true, dtype=float).ravel()
    yh = np.asarray(y_hat, dtype=float).ravel()
    if len(yt) != len(yh):
        raise AlignmentError(f"Length mismatch: {len(yt)} actual values vs {len(yh)} fitted values")
    mask = np.isfinite(yt) & np.isfinite(yh)
    return yt[mask], yh[mask]


def mape(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Mean Absolute Percentage Error in percent.

    Observations where the actual value is zero are excluded.
    """
    yt, yh = _paired(y_true, y_hat)
    nz = yt != 0.0
    if not nz.any():
        return float("nan")
    return float(np.mean(np.abs((yt[nz] - yh[nz]) / yt[nz])) * 100.0)


def mse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean Square Error, or NaN if no valid pairs."""
    yt, yh = _paired(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean((yh - yt) ** 2))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Root Mean Square Error.

    RMSE penalizes large errors more heavily than MAE.
    """
    value = mse(y_true, y_hat)
    return float(np.sqrt(value)) if np.isfinite(value) else float("nan")


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean Absolute Error, or NaN if no valid pairs."""
    yt, yh = _paired(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(np.abs(yh - yt)))


def compute_diagnostic_stats(y_true: ArrayLike, y_hat: ArrayLike) -> DiagnosticStats:
    """
    MAPE, RMSE, MSE and MAE of fitted values against actuals.

    Parameters
    ----------
    y_true : array-like
        Observed values
    y_hat : array-like
        Fitted or predicted values, position-aligned with y_true

    Returns
    -------
    DiagnosticStats

    Raises
    ------
    AlignmentError
        If the two sequences differ in length.
    """
    yt, _ = _paired(y_true, y_hat)
    return DiagnosticStats(
        mape=mape(y_true, y_hat),
        rmse=rmse(y_true, y_hat),
        mse=mse(y_true, y_hat),
        mae=mae(y_true, y_hat),
        n=int(yt.size),
    )


def diagnostic_stats_for(model) -> DiagnosticStats:
    """DiagnosticStats of a FittedModel: its series minus residuals gives the fit."""
    actual = model.series.to_numpy(dtype=float)
    fitted = actual - model.residuals.to_numpy(dtype=float)
    return compute_diagnostic_stats(actual, fitted)
