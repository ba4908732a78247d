# export_forecaster_src/var_utils.py

"""
Bivariate vector autoregression: lag-order selection, estimation, impulse
responses with residual-bootstrap bands, pairwise Granger-causality F-tests
and joint multi-step forecasts.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging

from statsmodels.regression.linear_model import OLS
from statsmodels.tsa.api import VAR

from helpers.temporal import future_periods
from .errors import AlignmentError, SingularMatrixError
from .forecasting_utils import Forecast

logger = logging.getLogger(__name__)

CRITERIA = ("aic", "bic", "hqic", "fpe")


@dataclass
class LagOrderSelection:
    """Information criteria per lag and the lag each criterion selects."""

    table: pd.DataFrame
    selected: Dict[str, int]
    max_lag: int

    def order(self, criterion: str = "aic") -> int:
        key = criterion.lower()
        if key not in self.selected:
            raise ValueError(f"criterion must be one of {CRITERIA}, got {criterion!r}")
        return int(self.selected[key])


@dataclass
class VARModel:
    """A fitted VAR(p) over two aligned monthly series."""

    lag_order: int
    names: List[str]
    results: object
    data: pd.DataFrame

    @property
    def coefficients(self) -> pd.DataFrame:
        """Per-equation coefficients: rows are regressors, columns are equations."""
        return pd.DataFrame(np.asarray(self.results.params),
                            index=list(self.results.exog_names), columns=self.names)

    @property
    def coefficient_matrices(self) -> np.ndarray:
        """Lag coefficient matrices A_1..A_p, shape (p, k, k)."""
        return np.asarray(self.results.coefs)

    @property
    def residuals(self) -> pd.DataFrame:
        return pd.DataFrame(np.asarray(self.results.resid),
                            index=self.data.index[self.lag_order:], columns=self.names)

    @property
    def sigma_u(self) -> pd.DataFrame:
        return pd.DataFrame(np.asarray(self.results.sigma_u), index=self.names, columns=self.names)


@dataclass
class ImpulseResponse:
    """Responses to a one-time shock, keyed by (shock, response) series names."""

    horizon: int
    orthogonalized: bool
    alpha: float
    runs: int
    responses: Dict[Tuple[str, str], pd.DataFrame]

    def get(self, shock: str, response: str) -> pd.DataFrame:
        return self.responses[(shock, response)]


@dataclass
class GrangerResult:
    """F-test of `causal` Granger-causing `caused`."""

    caused: str
    causal: str
    order: int
    f_stat: float
    p_value: float
    df_num: int
    df_denom: int

    def rejects(self, alpha: float = 0.05) -> bool:
        """True when the null 'causal does not Granger-cause caused' is rejected."""
        return self.p_value < alpha

    @property
    def hypothesis(self) -> str:
        return f"{self.causal} does not Granger-cause {self.caused}"


@dataclass
class JointForecast:
    """Per-series forecasts from one VAR."""

    forecasts: Dict[str, Forecast]

    def __getitem__(self, name: str) -> Forecast:
        return self.forecasts[name]

    def to_frame(self) -> pd.DataFrame:
        return pd.concat({name: fc.to_frame() for name, fc in self.forecasts.items()}, axis=1)


def _joint_frame(series_a: pd.Series, series_b: pd.Series) -> pd.DataFrame:
    if not series_a.index.equals(series_b.index):
        raise AlignmentError(f"{series_a.name} and {series_b.name} do not share the same months")
    if series_a.name == series_b.name:
        raise ValueError("The two series must have distinct names")
    return pd.concat([series_a.astype(float), series_b.astype(float)], axis=1)


def _estimation_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Month-start DatetimeIndex copy of a PeriodIndex frame for statsmodels."""
    out = frame.copy()
    if isinstance(out.index, pd.PeriodIndex):
        out.index = pd.DatetimeIndex(out.index.to_timestamp(how="start"), freq="MS")
    return out


def _lag_design(values: np.ndarray, p: int) -> np.ndarray:
    """Rows [1, y_{t-1}, ..., y_{t-p}] for t = p..n-1."""
    n = values.shape[0]
    lagged = [values[p - i: n - i] for i in range(1, p + 1)]
    return np.column_stack([np.ones(n - p)] + lagged)


def select_lag_order(series_a: pd.Series, series_b: pd.Series, max_lag: int = 12) -> LagOrderSelection:
    """
    Information criteria for VAR(1..max_lag) on a common estimation sample.

    All four criteria (AIC, BIC, HQIC, FPE) are reported; the caller picks
    which selection to use.
    """
    if max_lag < 1:
        raise ValueError("max_lag must be >= 1")
    frame = _joint_frame(series_a, series_b)
    try:
        res = VAR(_estimation_frame(frame)).select_order(maxlags=max_lag, trend="c")
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"Lag order selection failed: {e}") from e

    table = pd.DataFrame({c: np.asarray(res.ics[c], dtype=float) for c in CRITERIA})
    table.index.name = "lag"
    selected = {c: int(res.selected_orders[c]) for c in CRITERIA}
    logger.info("VAR lag selection (max %d): %s", max_lag, selected)
    return LagOrderSelection(table=table, selected=selected, max_lag=max_lag)


def fit_var(series_a: pd.Series, series_b: pd.Series, p: int) -> VARModel:
    """
    Estimate a VAR(p) with constant by per-equation OLS.

    Raises
    ------
    AlignmentError
        If the two series do not share the same monthly index.
    SingularMatrixError
        If there are too few observations for p lags or the lagged design
        matrix is rank-deficient.
    """
    if p < 1:
        raise ValueError("Lag order p must be >= 1")
    frame = _joint_frame(series_a, series_b)
    k = frame.shape[1]
    n_params = 1 + k * p
    n_eff = len(frame) - p
    if n_eff <= n_params:
        raise SingularMatrixError(
            f"VAR({p}) needs more than {n_params + p} observations, got {len(frame)}"
        )

    Z = _lag_design(frame.to_numpy(), p)
    rank = np.linalg.matrix_rank(Z)
    if rank < Z.shape[1]:
        raise SingularMatrixError(f"VAR({p}) design matrix is rank-deficient ({rank} < {Z.shape[1]})")

    try:
        results = VAR(_estimation_frame(frame)).fit(p, trend="c")
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"VAR({p}) estimation failed: {e}") from e

    logger.info("Fitted VAR(%d) on %s (n=%d)", p, list(frame.columns), n_eff)
    return VARModel(lag_order=p, names=[str(c) for c in frame.columns], results=results, data=frame)


def _irf_array(results, horizon: int, orthogonalized: bool) -> np.ndarray:
    irf = results.irf(horizon)
    return np.asarray(irf.orth_irfs if orthogonalized else irf.irfs)


def _simulate_from_residuals(results, y: np.ndarray, resid: np.ndarray, rng) -> np.ndarray:
    """Rebuild a series recursively from the fitted coefficients and resampled residuals."""
    p = results.k_ar
    coefs = np.asarray(results.coefs)
    # first row of the parameter matrix is the constant
    intercept = np.asarray(results.params)[0]
    draws = resid[rng.integers(0, len(resid), size=len(resid))]

    ysim = np.empty_like(y)
    ysim[:p] = y[:p]
    for t in range(p, len(y)):
        value = intercept.copy()
        for i in range(p):
            value += coefs[i] @ ysim[t - 1 - i]
        ysim[t] = value + draws[t - p]
    return ysim


def impulse_response(model: VARModel,
                     horizon: int = 24,
                     runs: int = 100,
                     alpha: float = 0.05,
                     orthogonalized: bool = True,
                     seed: Optional[int] = None) -> ImpulseResponse:
    """
    Impulse responses with residual-bootstrap confidence bands.

    Every bootstrap replicate rebuilds both series from the fitted
    coefficients and resampled centred residuals, refits VAR(p) and records
    its responses. Bounds are the alpha/2 and 1 - alpha/2 percentiles.

    Returns
    -------
    ImpulseResponse
        For each (shock, response) pair a frame of length horizon + 1 with
        columns 'response', 'lower', 'upper'.
    """
    if horizon < 0:
        raise ValueError("horizon must be >= 0")
    if runs < 1:
        raise ValueError("runs must be >= 1")

    results = model.results
    point = _irf_array(results, horizon, orthogonalized)

    rng = np.random.default_rng(seed)
    y = np.asarray(results.endog, dtype=float)
    resid = np.asarray(results.resid, dtype=float)
    resid = resid - resid.mean(axis=0)

    draws = []
    failed = 0
    for _ in range(runs):
        ysim = _simulate_from_residuals(results, y, resid, rng)
        try:
            boot = VAR(ysim).fit(model.lag_order, trend="c")
            draws.append(_irf_array(boot, horizon, orthogonalized))
        except np.linalg.LinAlgError as e:
            failed += 1
            logger.debug("Bootstrap replicate failed: %s", e)
    if failed:
        logger.warning("%d of %d bootstrap replicates failed and were dropped", failed, runs)
    if not draws:
        raise SingularMatrixError("All impulse-response bootstrap replicates failed")

    stacked = np.stack(draws)
    lower = np.percentile(stacked, 100.0 * alpha / 2.0, axis=0)
    upper = np.percentile(stacked, 100.0 * (1.0 - alpha / 2.0), axis=0)

    steps = pd.RangeIndex(horizon + 1, name="step")
    responses: Dict[Tuple[str, str], pd.DataFrame] = {}
    for j, shock in enumerate(model.names):
        for i, response in enumerate(model.names):
            responses[(shock, response)] = pd.DataFrame({
                "response": point[:, i, j],
                "lower": lower[:, i, j],
                "upper": upper[:, i, j],
            }, index=steps)
    return ImpulseResponse(horizon=horizon, orthogonalized=orthogonalized, alpha=alpha,
                           runs=len(draws), responses=responses)


def _lags(series: pd.Series, order: int, prefix: str) -> pd.DataFrame:
    return pd.concat({f"{prefix}_L{i}": series.shift(i) for i in range(1, order + 1)}, axis=1)


def granger_test(caused: pd.Series, causal: pd.Series, order: int) -> GrangerResult:
    """
    Test whether lags of `causal` improve the prediction of `caused`.

    Compares the restricted regression (caused on a constant and its own
    `order` lags) with the unrestricted one (adding `order` lags of causal)
    through an F-test. The reverse direction is a separate call and its
    p-value is unrelated.

    Raises
    ------
    AlignmentError
        If the series do not share the same index.
    SingularMatrixError
        If there are too few observations for the requested order.
    """
    if order < 1:
        raise ValueError("order must be >= 1")
    if not caused.index.equals(causal.index):
        raise AlignmentError(f"{caused.name} and {causal.name} do not share the same months")
    if len(caused) - order <= 2 * order + 1:
        raise SingularMatrixError(f"Granger test of order {order} needs more than {3 * order + 1} observations")

    y = caused.astype(float).rename("y")
    own = _lags(y, order, "own")
    other = _lags(causal.astype(float), order, "other")
    data = pd.concat([y, own, other], axis=1).iloc[order:]
    data.insert(1, "const", 1.0)

    restricted = OLS(data["y"], data[["const"] + list(own.columns)]).fit()
    unrestricted = OLS(data["y"], data[["const"] + list(own.columns) + list(other.columns)]).fit()
    f_stat, p_value, df_diff = unrestricted.compare_f_test(restricted)

    result = GrangerResult(caused=str(caused.name), causal=str(causal.name), order=order,
                           f_stat=float(f_stat), p_value=float(p_value),
                           df_num=int(df_diff), df_denom=int(unrestricted.df_resid))
    logger.info("Granger (%s): F=%.3f, p=%.4f", result.hypothesis, result.f_stat, result.p_value)
    return result


def forecast_var(model: VARModel, horizon: int, alpha: float = 0.05) -> JointForecast:
    """
    Iterate the fitted VAR `horizon` steps ahead.

    Bounds come from the forecast MSE matrices implied by the residual
    covariance and widen with the horizon.
    """
    if horizon < 1:
        raise ValueError("horizon must be >= 1")
    results = model.results
    y_last = np.asarray(results.endog, dtype=float)[-model.lag_order:]
    mean, lower, upper = results.forecast_interval(y_last, steps=horizon, alpha=alpha)

    index = future_periods(model.data.index, horizon)
    forecasts: Dict[str, Forecast] = {}
    for i, name in enumerate(model.names):
        forecasts[name] = Forecast(
            mean=pd.Series(mean[:, i], index=index, name="mean"),
            lower=pd.Series(lower[:, i], index=index, name="lower"),
            upper=pd.Series(upper[:, i], index=index, name="upper"),
            alpha=alpha,
            label=f"{name} VAR({model.lag_order})",
        )
    return JointForecast(forecasts=forecasts)
