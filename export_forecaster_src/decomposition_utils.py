# export_forecaster_src/decomposition_utils.py

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import List, Union
import logging

from scipy import stats
from statsmodels.tsa.seasonal import seasonal_decompose
from statsmodels.tsa.stattools import acf, pacf

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecompositionResult:
    """Additive seasonal-trend-remainder decomposition of a monthly series."""

    observed: pd.Series
    trend: pd.Series
    seasonal: pd.Series
    remainder: pd.Series
    period: int = 12

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "observed": self.observed,
            "trend": self.trend,
            "seasonal": self.seasonal,
            "remainder": self.remainder,
        })


def _clean(series: Union[pd.Series, np.ndarray]) -> pd.Series:
    s = pd.Series(series).astype(float)
    if s.isna().any():
        raise ValueError("Series contains missing values; ACF/PACF require a complete series.")
    return s


def compute_acf(series: Union[pd.Series, np.ndarray], max_lag: int) -> pd.Series:
    """
    Sample autocorrelations for lags 0..max_lag.

    Parameters
    ----------
    series : Union[pd.Series, np.ndarray]
        Observed series (no missing values).
    max_lag : int
        Largest lag; must satisfy 0 <= max_lag < len(series).

    Returns
    -------
    pd.Series
        Length max_lag + 1, indexed by lag, with value 1.0 at lag 0.
    """
    s = _clean(series)
    if max_lag < 0 or max_lag >= len(s):
        raise ValueError(f"max_lag must lie in [0, {len(s) - 1}], got {max_lag}")
    values = acf(s.to_numpy(), nlags=max_lag, fft=False)
    return pd.Series(values, index=pd.RangeIndex(max_lag + 1, name="lag"), name="acf")


def compute_pacf(series: Union[pd.Series, np.ndarray], max_lag: int) -> pd.Series:
    """
    Sample partial autocorrelations for lags 0..max_lag (Durbin-Levinson on
    the biased sample autocovariances). Lag 0 is 1.0 by convention.

    max_lag must be below len(series) // 2.
    """
    s = _clean(series)
    if max_lag < 0 or max_lag >= len(s) // 2:
        raise ValueError(f"max_lag must lie in [0, {len(s) // 2 - 1}], got {max_lag}")
    values = pacf(s.to_numpy(), nlags=max_lag, method="ldb")
    return pd.Series(values, index=pd.RangeIndex(max_lag + 1, name="lag"), name="pacf")


def significance_band(n: int, z: float = 2.0) -> float:
    """Half-width of the approximate white-noise band, z / sqrt(n)."""
    if n <= 0:
        raise ValueError("n must be positive")
    return float(z / np.sqrt(n))


def z_for_confidence(level: float = 0.95) -> float:
    """Two-sided standard normal quantile for a confidence level (0.95 -> 1.96)."""
    return float(stats.norm.ppf(0.5 + level / 2.0))


def significant_lags(coeffs: pd.Series, n: int, z: float = 2.0) -> List[int]:
    """Lags >= 1 whose coefficient magnitude exceeds the significance band."""
    band = significance_band(n, z)
    return [int(lag) for lag, value in coeffs.items() if lag >= 1 and abs(value) > band]


def decompose(series: pd.Series, period: int = 12) -> DecompositionResult:
    """
    Additive moving-average decomposition into trend, seasonal and remainder.

    The trend is extrapolated over the half-window at each end so that all
    three components have the input's length and
    trend + seasonal + remainder reproduces the observed series exactly.
    """
    s = pd.Series(series).astype(float)
    if len(s) < 2 * period:
        raise ValueError(f"Decomposition needs at least {2 * period} observations, got {len(s)}")

    # seasonal_decompose needs a frequency it can read or an explicit period
    values = pd.Series(s.to_numpy(), index=pd.RangeIndex(len(s)))
    res = seasonal_decompose(values, model="additive", period=period, extrapolate_trend="freq")

    trend = pd.Series(np.asarray(res.trend), index=s.index, name="trend")
    seasonal = pd.Series(np.asarray(res.seasonal), index=s.index, name="seasonal")
    remainder = pd.Series(s.to_numpy() - trend.to_numpy() - seasonal.to_numpy(),
                          index=s.index, name="remainder")
    logger.debug("Decomposed %s (n=%d, period=%d)", s.name, len(s), period)
    return DecompositionResult(observed=s, trend=trend, seasonal=seasonal,
                               remainder=remainder, period=period)


def seasonal_strength(decomposition: DecompositionResult) -> float:
    """
    Strength of seasonality, max(0, 1 - Var(R) / Var(S + R)).

    Values above ~0.64 are conventionally taken to warrant seasonal differencing.
    """
    r = decomposition.remainder.to_numpy()
    sr = decomposition.seasonal.to_numpy() + r
    var_sr = float(np.var(sr, ddof=1))
    if var_sr <= 0.0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(r, ddof=1) / var_sr))
