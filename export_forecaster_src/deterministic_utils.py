# export_forecaster_src/deterministic_utils.py

"""
Deterministic components of a monthly series: linear time trend, then trend
plus monthly seasonal indicators, followed by an inspection of the residual
PACF to choose the order of the remaining cyclical (AR) component.

The cyclical order is an analyst decision. `select_cyclical_order` reports
the band and every significant lag alongside a suggestion, and always honours
an explicit override.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import List, Optional
import logging

import statsmodels.api as sm
from statsmodels.regression.linear_model import OLS
from statsmodels.tsa.statespace.sarimax import SARIMAX

from helpers.temporal import calendar_time
from .decomposition_utils import compute_pacf, significance_band, significant_lags
from .errors import NonConvergenceError
from .forecasting_utils import ensure_converged

logger = logging.getLogger(__name__)


@dataclass
class DeterministicFit:
    """OLS fit of a deterministic component."""

    kind: str
    results: object
    fitted_values: pd.Series
    residuals: pd.Series

    @property
    def coefficients(self) -> pd.Series:
        return self.results.params

    @property
    def r_squared(self) -> float:
        return float(self.results.rsquared)


@dataclass
class CyclicalOrderSelection:
    """PACF-based choice of the AR order for deterministic-fit residuals."""

    pacf: pd.Series
    band: float
    significant_lags: List[int]
    suggested_order: int
    order: int
    overridden: bool = False


@dataclass
class DeterministicStageResult:
    trend: DeterministicFit
    trend_seasonal: DeterministicFit
    selection: CyclicalOrderSelection
    cyclical: Optional[object] = None


def trend_design(index: pd.PeriodIndex) -> pd.DataFrame:
    """Constant plus continuous calendar time."""
    X = pd.DataFrame({"time": calendar_time(index)}, index=index)
    return sm.add_constant(X, has_constant="add")


def trend_seasonal_design(index: pd.PeriodIndex) -> pd.DataFrame:
    """Constant, calendar time and 11 month indicators (January is the baseline)."""
    X = trend_design(index)
    months = pd.Categorical(index.month, categories=range(1, 13))
    dummies = pd.get_dummies(months, prefix="month", drop_first=True, dtype=float)
    dummies.index = index
    return pd.concat([X, dummies], axis=1)


def _fit_ols(series: pd.Series, X: pd.DataFrame, kind: str) -> DeterministicFit:
    y = pd.Series(series).astype(float)
    res = OLS(y, X).fit()
    fitted = pd.Series(np.asarray(res.fittedvalues), index=y.index, name=f"{kind}_fitted")
    resid = pd.Series(np.asarray(res.resid), index=y.index, name=f"{kind}_resid")
    logger.info("%s fit for %s: R^2=%.3f", kind, y.name, res.rsquared)
    return DeterministicFit(kind=kind, results=res, fitted_values=fitted, residuals=resid)


def fit_linear_trend(series: pd.Series) -> DeterministicFit:
    """OLS of the series on a constant and continuous calendar time."""
    return _fit_ols(series, trend_design(series.index), "trend")


def fit_trend_seasonal(series: pd.Series) -> DeterministicFit:
    """OLS of the series on time plus 11 seasonal indicators."""
    return _fit_ols(series, trend_seasonal_design(series.index), "trend_seasonal")


def select_cyclical_order(residuals: pd.Series,
                          max_lag: int = 24,
                          z: float = 2.0,
                          override: Optional[int] = None) -> CyclicalOrderSelection:
    """
    Choose the AR order of the cyclical component from the residual PACF.

    The suggestion is the last lag of the unbroken run of significant PACF
    values starting at lag 1 (0 when lag 1 is inside the band). Isolated
    significant lags further out are reported but not used.

    Parameters
    ----------
    residuals : pd.Series
        Residuals of the trend + seasonal fit, used as given.
    max_lag : int, default=24
        Largest PACF lag inspected (clipped to len(residuals)//2 - 1).
    z : float, default=2.0
        Band multiplier; the band is +/- z / sqrt(n).
    override : int, optional
        Analyst's chosen order; replaces the suggestion.
    """
    n = len(residuals)
    lag_cap = min(max_lag, n // 2 - 1)
    coeffs = compute_pacf(residuals, lag_cap)
    band = significance_band(n, z)
    sig = significant_lags(coeffs, n, z)

    suggested = 0
    for lag in range(1, lag_cap + 1):
        if lag in sig:
            suggested = lag
        else:
            break

    if override is not None:
        if override < 0:
            raise ValueError("Cyclical order override must be non-negative")
        logger.info("Cyclical order: suggested %d, overridden to %d", suggested, override)
        order, overridden = int(override), True
    else:
        logger.info("Cyclical order: suggested %d (significant lags: %s)", suggested, sig)
        order, overridden = suggested, False

    return CyclicalOrderSelection(pacf=coeffs, band=band, significant_lags=sig,
                                  suggested_order=suggested, order=order, overridden=overridden)


def fit_cyclical_component(residuals: pd.Series, order: int, maxiter: int = 200):
    """
    Fit AR(order) without constant to the deterministic-fit residuals.

    Returns None when order is 0.

    Raises
    ------
    NonConvergenceError
        If the optimizer does not converge.
    """
    if order == 0:
        return None
    try:
        res = SARIMAX(residuals, order=(order, 0, 0), trend="n").fit(disp=False, maxiter=maxiter)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise NonConvergenceError(f"AR({order}) on residuals failed: {e}") from e
    ensure_converged(res, f"AR({order}) on residuals", maxiter)
    return res


def run_deterministic_stage(series: pd.Series,
                            max_lag: int = 24,
                            z: float = 2.0,
                            override: Optional[int] = None,
                            maxiter: int = 200) -> DeterministicStageResult:
    """Trend, trend + seasonal, residual PACF order selection and cyclical AR fit."""
    trend = fit_linear_trend(series)
    trend_seasonal = fit_trend_seasonal(series)
    selection = select_cyclical_order(trend_seasonal.residuals, max_lag=max_lag, z=z, override=override)
    cyclical = fit_cyclical_component(trend_seasonal.residuals, selection.order, maxiter=maxiter)
    return DeterministicStageResult(trend=trend, trend_seasonal=trend_seasonal,
                                    selection=selection, cyclical=cyclical)
