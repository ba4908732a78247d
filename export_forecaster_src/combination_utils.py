# export_forecaster_src/combination_utils.py

"""
Forecast combination and evaluation of combined in-sample fits.

Two evaluation modes are kept explicit because they answer different
questions:

- SUMMED_SERIES: the residuals of every supplied model (whatever its series)
  are averaged, and that mean residual is scored against the sum of the
  distinct series (e.g. CA + NY exports).
- RESIDUAL_AVERAGE: models of a single series have their residuals averaged,
  and the averaged residual is scored against that series.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence
import logging

from .errors import AlignmentError
from .forecasting_utils import FittedModel, Forecast
from .metrics_utils import DiagnosticStats, compute_diagnostic_stats

logger = logging.getLogger(__name__)


class EvaluationMode(Enum):
    """How a combination of fitted models is scored."""
    SUMMED_SERIES = "summed_series"
    RESIDUAL_AVERAGE = "residual_average"


@dataclass
class CombinationEvaluation:
    mode: EvaluationMode
    stats: DiagnosticStats
    actual: pd.Series
    fitted: pd.Series
    members: List[str]


def _normalized_weights(n: int, weights: Optional[Sequence[float]]) -> np.ndarray:
    if weights is None:
        return np.full(n, 1.0 / n)
    w = np.asarray(weights, dtype=float)
    if w.shape != (n,):
        raise AlignmentError(f"Expected {n} weights, got {w.size}")
    if np.any(w < 0) or w.sum() <= 0:
        raise ValueError("Weights must be non-negative and not all zero")
    return w / w.sum()


def combine(forecasts: Sequence[Forecast], weights: Optional[Sequence[float]] = None,
            label: str = "combination") -> Forecast:
    """
    Elementwise mean of forecasts aligned by horizon step.

    Point forecasts, lower bounds and upper bounds are averaged independently.

    Parameters
    ----------
    forecasts : Sequence[Forecast]
        Forecasts sharing horizon length and start period
    weights : Sequence[float], optional
        Combination weights; uniform when omitted

    Raises
    ------
    AlignmentError
        If the forecasts differ in horizon length or start period.
    """
    if not forecasts:
        raise ValueError("At least one forecast is required")

    first = forecasts[0]
    for fc in forecasts[1:]:
        if fc.horizon != first.horizon:
            raise AlignmentError(f"Horizon mismatch: {fc.label} has {fc.horizon} steps, "
                                 f"{first.label} has {first.horizon}")
        if fc.start != first.start:
            raise AlignmentError(f"Start period mismatch: {fc.label} starts {fc.start}, "
                                 f"{first.label} starts {first.start}")

    w = _normalized_weights(len(forecasts), weights)
    index = first.mean.index

    def _stack(attr: str) -> np.ndarray:
        return np.vstack([getattr(fc, attr).to_numpy(dtype=float) for fc in forecasts])

    mean = pd.Series(w @ _stack("mean"), index=index, name="mean")
    lower = pd.Series(w @ _stack("lower"), index=index, name="lower")
    upper = pd.Series(w @ _stack("upper"), index=index, name="upper")
    return Forecast(mean=mean, lower=lower, upper=upper, alpha=first.alpha, label=label)


def _group_by_series(models: Sequence[FittedModel]) -> Dict[str, List[FittedModel]]:
    groups: Dict[str, List[FittedModel]] = {}
    for m in models:
        groups.setdefault(m.name, []).append(m)
    return groups


def _check_common_index(models: Sequence[FittedModel]) -> pd.PeriodIndex:
    index = models[0].series.index
    for m in models[1:]:
        if not m.series.index.equals(index):
            raise AlignmentError(f"{m.label} is not fit on the same months as {models[0].label}")
    return index


def evaluate_combination(models: Sequence[FittedModel], mode: EvaluationMode) -> CombinationEvaluation:
    """
    Score a combination of fitted models in the requested evaluation mode.

    Raises
    ------
    AlignmentError
        If the models are not fit over identical months, or RESIDUAL_AVERAGE
        is requested for models of more than one series.
    """
    if not models:
        raise ValueError("At least one fitted model is required")
    index = _check_common_index(models)
    groups = _group_by_series(models)
    members = [m.label for m in models]

    if mode is EvaluationMode.SUMMED_SERIES:
        actual = sum(group[0].series.astype(float) for group in groups.values())
        # mean over all models, not a sum of per-series means
        mean_resid = pd.concat([m.residuals for m in models], axis=1).mean(axis=1)
        fitted = actual - mean_resid
        name = "+".join(groups)
    elif mode is EvaluationMode.RESIDUAL_AVERAGE:
        if len(groups) != 1:
            raise AlignmentError(f"Residual averaging needs models of one series, got {sorted(groups)}")
        (name, group), = groups.items()
        actual = group[0].series.astype(float)
        mean_resid = pd.concat([m.residuals for m in group], axis=1).mean(axis=1)
        fitted = actual - mean_resid
    else:
        raise ValueError(f"Unknown evaluation mode: {mode}")

    actual = pd.Series(np.asarray(actual), index=index, name=name)
    fitted = pd.Series(np.asarray(fitted), index=index, name=f"{name}_combined")
    stats = compute_diagnostic_stats(actual, fitted)
    logger.info("Combination (%s) of %d models: MAPE=%.3f RMSE=%.3f",
                mode.value, len(models), stats.mape, stats.rmse)
    return CombinationEvaluation(mode=mode, stats=stats, actual=actual, fitted=fitted, members=members)
