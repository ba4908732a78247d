import numpy as np
import pandas as pd
import pytest

from export_forecaster_src.deterministic_utils import (
    fit_cyclical_component, fit_linear_trend, fit_trend_seasonal, run_deterministic_stage,
    select_cyclical_order, trend_seasonal_design
)


def create_mock_exports(n=144, phi=(0.6, 0.2), seed=3, name="CA"):
    """Trend + month effects + AR(2) cycle; returns the series and the true month effects."""
    rng = np.random.default_rng(seed)
    idx = pd.period_range("1995-08", periods=n, freq="M")
    month_effect = np.linspace(-6.0, 6.0, 12)
    cycle = np.zeros(n)
    eps = rng.normal(0, 1.0, n)
    for t in range(n):
        cycle[t] = eps[t]
        if t >= 1:
            cycle[t] += phi[0] * cycle[t - 1]
        if t >= 2:
            cycle[t] += phi[1] * cycle[t - 2]
    years = idx.year + (idx.month - 1) / 12.0
    values = 50.0 + 3.0 * (years - 1995) + month_effect[idx.month - 1] + cycle
    return pd.Series(np.asarray(values, dtype=float), index=idx, name=name)


def test_trend_seasonal_design_uses_january_baseline():
    idx = pd.period_range("2020-01", periods=24, freq="M")
    X = trend_seasonal_design(idx)

    assert X.shape == (24, 13)
    assert list(X.columns[:2]) == ["const", "time"]
    assert "month_1" not in X.columns
    assert "month_12" in X.columns
    assert X.loc[pd.Period("2020-03", freq="M"), "month_3"] == 1.0
    assert X.loc[pd.Period("2020-01", freq="M")].iloc[2:].sum() == 0.0


def test_linear_trend_recovers_slope():
    idx = pd.period_range("2000-01", periods=60, freq="M")
    years = np.asarray(idx.year + (idx.month - 1) / 12.0, dtype=float)
    s = pd.Series(5.0 + 3.0 * years, index=idx, name="X")

    fit = fit_linear_trend(s)

    assert fit.coefficients["time"] == pytest.approx(3.0, rel=1e-8)
    assert fit.r_squared == pytest.approx(1.0)
    assert np.allclose(fit.fitted_values + fit.residuals, s)


def test_trend_seasonal_fits_better_than_trend():
    s = create_mock_exports()
    assert fit_trend_seasonal(s).r_squared > fit_linear_trend(s).r_squared


def test_select_cyclical_order_suggests_from_pacf_run():
    s = create_mock_exports()
    resid = fit_trend_seasonal(s).residuals
    sel = select_cyclical_order(resid, max_lag=24)

    assert sel.suggested_order >= 1
    assert sel.order == sel.suggested_order
    assert not sel.overridden
    assert 1 in sel.significant_lags
    assert len(sel.pacf) == 25
    assert sel.band == pytest.approx(2.0 / np.sqrt(len(resid)))


def test_select_cyclical_order_override_is_recorded():
    resid = fit_trend_seasonal(create_mock_exports()).residuals
    sel = select_cyclical_order(resid, override=5)

    assert sel.order == 5
    assert sel.overridden
    with pytest.raises(ValueError):
        select_cyclical_order(resid, override=-1)


def test_white_noise_suggests_no_cycle():
    rng = np.random.default_rng(11)
    idx = pd.period_range("2000-01", periods=200, freq="M")
    resid = pd.Series(rng.normal(size=200), index=idx)
    sel = select_cyclical_order(resid, max_lag=12, z=3.0)

    assert sel.suggested_order == 0
    assert fit_cyclical_component(resid, 0) is None


def test_run_deterministic_stage_fits_cycle():
    stage = run_deterministic_stage(create_mock_exports(), override=2)

    assert stage.selection.order == 2
    assert stage.cyclical is not None
    assert len(stage.cyclical.params) == 3  # ar.L1, ar.L2, sigma2
