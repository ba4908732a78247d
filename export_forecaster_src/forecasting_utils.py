# export_forecaster_src/forecasting_utils.py

import hashlib
import numpy as np
import pandas as pd
from dataclasses import dataclass
from itertools import product
from typing import List, Optional, Sequence, Tuple, Union
from tqdm.auto import tqdm
import logging

from statsmodels.tsa.statespace.sarimax import SARIMAX
from statsmodels.tsa.stattools import adfuller

from helpers.temporal import future_periods
from .decomposition_utils import decompose, seasonal_strength
from .errors import NonConvergenceError

logger = logging.getLogger(__name__)

_CRITERIA = ("aic", "bic", "hqic")


@dataclass(frozen=True)
class ModelSpec:
    """
    Seasonal ARIMA specification.

    Attributes
    ----------
    order : Tuple[int, int, int]
        Non-seasonal (p, d, q)
    seasonal_order : Tuple[int, int, int]
        Seasonal (P, D, Q)
    period : int
        Seasonal period (12 for monthly data)
    trend_regressor : bool
        Include a linear time index as external regressor
    """

    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int] = (0, 0, 0)
    period: int = 12
    trend_regressor: bool = True

    def __post_init__(self):
        for name in ("order", "seasonal_order"):
            value = tuple(int(v) for v in getattr(self, name))
            if len(value) != 3 or any(v < 0 for v in value):
                raise ValueError(f"{name} must be three non-negative integers, got {value}")
            object.__setattr__(self, name, value)

    @property
    def total_differencing(self) -> int:
        return self.order[1] + self.seasonal_order[1]

    @property
    def sarimax_trend(self) -> str:
        """Deterministic term: constant without differencing, drift with one difference."""
        if self.total_differencing == 0:
            return "c"
        if self.total_differencing == 1 and not self.trend_regressor:
            return "t"
        return "n"

    @property
    def label(self) -> str:
        p, d, q = self.order
        P, D, Q = self.seasonal_order
        suffix = " + trend" if self.trend_regressor else ""
        return f"SARIMA({p},{d},{q})({P},{D},{Q})[{self.period}]{suffix}"


@dataclass
class FittedModel:
    """A seasonal ARIMA fit on one series."""

    spec: ModelSpec
    series: pd.Series
    results: object
    source: str = "manual"

    @property
    def name(self) -> str:
        return str(self.series.name)

    @property
    def coefficients(self) -> pd.Series:
        return pd.Series(self.results.params)

    @property
    def fitted_values(self) -> pd.Series:
        return pd.Series(np.asarray(self.results.fittedvalues), index=self.series.index,
                         name=f"{self.name}_fitted")

    @property
    def residuals(self) -> pd.Series:
        return pd.Series(np.asarray(self.results.resid), index=self.series.index,
                         name=f"{self.name}_resid")

    @property
    def aic(self) -> float:
        return float(self.results.aic)

    @property
    def bic(self) -> float:
        return float(self.results.bic)

    @property
    def hqic(self) -> float:
        return float(self.results.hqic)

    @property
    def label(self) -> str:
        return f"{self.name} {self.source} {self.spec.label}"


@dataclass
class Forecast:
    """Point forecasts with lower/upper bounds over consecutive future months."""

    mean: pd.Series
    lower: pd.Series
    upper: pd.Series
    alpha: float = 0.05
    label: str = ""

    def __post_init__(self):
        if not (self.mean.index.equals(self.lower.index) and self.mean.index.equals(self.upper.index)):
            raise ValueError("Forecast mean and bounds must share one index")

    @property
    def horizon(self) -> int:
        return len(self.mean)

    @property
    def start(self) -> pd.Period:
        return self.mean.index[0]

    @property
    def width(self) -> pd.Series:
        return (self.upper - self.lower).rename("width")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"mean": self.mean, "lower": self.lower, "upper": self.upper})


def trend_regressor(n: int, offset: int = 0, index=None) -> pd.DataFrame:
    """Linear time index t = offset+1 .. offset+n as a single-column regressor frame."""
    values = np.arange(offset + 1, offset + n + 1, dtype=float)
    return pd.DataFrame({"trend": values}, index=index)


def ensure_converged(results, label: str, maxiter: int) -> None:
    """Raise NonConvergenceError if the optimizer reported non-convergence."""
    retvals = getattr(results, "mle_retvals", None) or {}
    if not retvals.get("converged", True):
        raise NonConvergenceError(f"{label} did not converge within {maxiter} iterations")


def adf_test(series: Union[pd.Series, np.ndarray]) -> Tuple[float, float]:
    """
    Run the Augmented Dickey-Fuller (ADF) test for unit roots.

    Parameters
    ----------
    series : Union[pd.Series, np.ndarray]
        Input series. NaNs are dropped prior to testing.

    Returns
    -------
    Tuple[float, float]
        (test_statistic, p_value)

    Notes
    -----
    - ADF null hypothesis: the series has a unit root (non-stationary)
    - Lower p-values (< 0.05) suggest rejection of null (series is stationary)
    """
    res = adfuller(pd.Series(series).dropna(), regression="ct")
    return res[0], res[1]


def select_differencing(series: pd.Series, alpha: float = 0.05, max_d: int = 2) -> int:
    """
    Number of first differences needed before the ADF test rejects a unit root.
    """
    current = pd.Series(series).astype(float)
    for d in range(max_d + 1):
        _, pval = adf_test(current)
        logger.debug("ADF with d=%d: p=%.4f", d, pval)
        if pval < alpha:
            return d
        current = current.diff().dropna()
    return max_d


def select_seasonal_differencing(series: pd.Series, period: int = 12, threshold: float = 0.64) -> int:
    """One seasonal difference when seasonal strength exceeds `threshold`, else none."""
    strength = seasonal_strength(decompose(series, period=period))
    logger.debug("Seasonal strength of %s: %.3f", getattr(series, "name", "series"), strength)
    return 1 if strength > threshold else 0


def _build_sarimax(series: pd.Series, spec: ModelSpec) -> SARIMAX:
    exog = trend_regressor(len(series), index=series.index) if spec.trend_regressor else None
    P, D, Q = spec.seasonal_order
    return SARIMAX(
        series,
        exog,
        order=spec.order,
        seasonal_order=(P, D, Q, spec.period),
        trend=spec.sarimax_trend,
        simple_differencing=False,
    )


def fit_manual(series: pd.Series, spec: ModelSpec, maxiter: int = 200) -> FittedModel:
    """
    Fit an analyst-specified seasonal ARIMA with an explicit linear-time regressor.

    Parameters
    ----------
    series : pd.Series
        Monthly series with PeriodIndex
    spec : ModelSpec
        Orders and regressor choice
    maxiter : int, default=200
        Iteration budget of the likelihood optimizer

    Returns
    -------
    FittedModel

    Raises
    ------
    NonConvergenceError
        If the optimizer fails or does not converge within `maxiter`.
    """
    label = f"{series.name} {spec.label}"
    try:
        results = _build_sarimax(series, spec).fit(disp=False, maxiter=maxiter)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise NonConvergenceError(f"{label} failed to fit: {e}") from e
    ensure_converged(results, label, maxiter)
    logger.info("Fitted %s: AIC=%.2f", label, results.aic)
    return FittedModel(spec=spec, series=series, results=results, source="manual")


def fit_with_fallback(series: pd.Series, specs: Sequence[ModelSpec], maxiter: int = 200) -> FittedModel:
    """
    Try each spec in order and return the first one that converges.

    Raises
    ------
    NonConvergenceError
        The last failure, when no spec converges.
    """
    if not specs:
        raise ValueError("At least one ModelSpec is required")
    last_error: Optional[NonConvergenceError] = None
    for spec in specs:
        try:
            return fit_manual(series, spec, maxiter=maxiter)
        except NonConvergenceError as e:
            logger.warning("%s; trying next specification", e)
            last_error = e
    raise last_error


def search_sarima_orders(series: pd.Series,
                         order_list: List[Tuple[int, int, int, int]],
                         d: int,
                         D: int,
                         s: int = 12,
                         trend_regressor: bool = False,
                         criterion: str = "aic",
                         maxiter: int = 200) -> pd.DataFrame:
    """
    Grid-search seasonal ARIMA orders and rank by an information criterion.

    Parameters
    ----------
    series : pd.Series
        Monthly series
    order_list : List[Tuple]
        List of (p, q, P, Q) tuples. Differencing orders d, D and period s are fixed
    d, D, s : int
        Differencing orders and seasonal period
    trend_regressor : bool, default=False
        Include the linear time regressor in every candidate
    criterion : str, default="aic"
        One of 'aic', 'bic', 'hqic'
    maxiter : int, default=200
        Iteration budget per candidate

    Returns
    -------
    pd.DataFrame
        Columns ['(p,q,P,Q)', 'AIC', 'BIC', 'HQIC'] sorted ascending by the criterion

    Notes
    -----
    Candidates that fail to converge are skipped and logged at DEBUG level.
    """
    criterion = criterion.lower()
    if criterion not in _CRITERIA:
        raise ValueError(f"criterion must be one of {_CRITERIA}, got {criterion!r}")

    results: List[List[object]] = []
    for order in tqdm(order_list, desc=f"Order search {series.name}", leave=False):
        spec = ModelSpec(order=(order[0], d, order[1]), seasonal_order=(order[2], D, order[3]),
                         period=s, trend_regressor=trend_regressor)
        try:
            fitted = fit_manual(series, spec, maxiter=maxiter)
        except NonConvergenceError as e:
            logger.debug("Skipping %s: %s", spec.label, e)
            continue
        results.append([tuple(order), fitted.aic, fitted.bic, fitted.hqic])

    result_df = pd.DataFrame(results, columns=["(p,q,P,Q)", "AIC", "BIC", "HQIC"])
    result_df = result_df.sort_values(by=criterion.upper(), ascending=True).reset_index(drop=True)
    return result_df


def fit_auto(series: pd.Series,
             p_range: Sequence[int] = (0, 1, 2),
             q_range: Sequence[int] = (0, 1, 2),
             P_range: Sequence[int] = (0, 1),
             Q_range: Sequence[int] = (0, 1),
             d: Optional[int] = None,
             D: Optional[int] = None,
             period: int = 12,
             criterion: str = "aic",
             adf_alpha: float = 0.05,
             max_d: int = 2,
             seasonal_threshold: float = 0.64,
             maxiter: int = 200) -> FittedModel:
    """
    Automatically select and fit a seasonal ARIMA.

    Differencing orders are chosen first (seasonal strength for D, ADF for d
    on the seasonally differenced series) unless given; the (p, q, P, Q) grid
    is then searched with the information criterion and the best candidate is
    refit. A constant is included without differencing and a drift with one.

    Raises
    ------
    NonConvergenceError
        If no candidate in the grid converges.
    """
    if D is None:
        D = select_seasonal_differencing(series, period=period, threshold=seasonal_threshold)
    if d is None:
        base = series.diff(period).dropna() if D else series
        d = select_differencing(base, alpha=adf_alpha, max_d=max_d)
    logger.info("Auto order search for %s with d=%d, D=%d", series.name, d, D)

    order_list = list(product(p_range, q_range, P_range, Q_range))
    ranked = search_sarima_orders(series, order_list, d, D, period,
                                  trend_regressor=False, criterion=criterion, maxiter=maxiter)
    if ranked.empty:
        raise NonConvergenceError(f"Order search for {series.name}: no candidate converged")
    logger.info("Top models for %s by %s:\n%s", series.name, criterion.upper(), ranked.head().to_string())

    p, q, P, Q = ranked.iloc[0]["(p,q,P,Q)"]
    spec = ModelSpec(order=(p, d, q), seasonal_order=(P, D, Q), period=period, trend_regressor=False)
    fitted = fit_manual(series, spec, maxiter=maxiter)
    fitted.source = "auto"
    return fitted


def forecast(model: FittedModel, horizon: int, alpha: float = 0.05) -> Forecast:
    """
    Forecast `horizon` months beyond the end of the fitted series.

    Bounds are (1 - alpha) prediction intervals; their width grows with the
    forecast distance as the forecast error variance accumulates.
    """
    if horizon < 1:
        raise ValueError("horizon must be >= 1")
    index = future_periods(model.series.index, horizon)
    exog = None
    if model.spec.trend_regressor:
        exog = trend_regressor(horizon, offset=len(model.series)).to_numpy()

    fc = model.results.get_forecast(steps=horizon, exog=exog)
    ci = fc.conf_int(alpha=alpha)
    mean = pd.Series(np.asarray(fc.predicted_mean), index=index, name="mean")
    lower = pd.Series(np.asarray(ci.iloc[:, 0]), index=index, name="lower")
    upper = pd.Series(np.asarray(ci.iloc[:, 1]), index=index, name="upper")
    return Forecast(mean=mean, lower=lower, upper=upper, alpha=alpha, label=model.label)


def hash_forecast(seq: Union[List[float], np.ndarray, pd.Series]) -> str:
    """
    Generate a 16-character SHA-1 fingerprint of a forecast sequence.

    Used in the metrics table to spot identical outputs across runs.
    """
    arr = np.asarray(seq, dtype=np.float64)
    return hashlib.sha1(arr.tobytes()).hexdigest()[:16]
