import numpy as np
import pandas as pd
import pytest

from export_forecaster_src.decomposition_utils import (
    compute_acf, compute_pacf, decompose, seasonal_strength, significance_band,
    significant_lags, z_for_confidence
)


def create_seasonal_series(n=120, amplitude=10.0, noise=1.0, seed=7, name="CA"):
    """Linear trend + 12-month sine seasonality + Gaussian noise, monthly PeriodIndex."""
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    values = 100.0 + 0.5 * t + amplitude * np.sin(2 * np.pi * t / 12) + rng.normal(0, noise, n)
    idx = pd.period_range("1995-08", periods=n, freq="M")
    return pd.Series(values, index=idx, name=name)


def test_acf_length_and_lag_zero():
    s = create_seasonal_series()
    acf = compute_acf(s, 24)

    assert len(acf) == 25
    assert list(acf.index) == list(range(25))
    assert acf[0] == pytest.approx(1.0)


def test_acf_rejects_out_of_range_lag():
    s = create_seasonal_series(n=30)
    with pytest.raises(ValueError):
        compute_acf(s, 30)


def test_pacf_length_and_limit():
    s = create_seasonal_series()
    pacf = compute_pacf(s, 36)

    assert len(pacf) == 37
    assert pacf[0] == pytest.approx(1.0)
    with pytest.raises(ValueError):
        compute_pacf(s, 60)


def test_significance_band_and_lags():
    assert significance_band(100, 2.0) == pytest.approx(0.2)
    coeffs = pd.Series([1.0, 0.5, -0.25, 0.1], index=range(4))

    assert significant_lags(coeffs, 100, 2.0) == [1, 2]
    with pytest.raises(ValueError):
        significance_band(0)


def test_z_for_confidence():
    assert z_for_confidence(0.95) == pytest.approx(1.959964, rel=1e-5)


def test_decomposition_round_trip():
    s = create_seasonal_series()
    d = decompose(s, period=12)

    for part in (d.trend, d.seasonal, d.remainder):
        assert len(part) == len(s)
        assert part.index.equals(s.index)
        assert not part.isna().any()
    assert np.allclose(d.trend + d.seasonal + d.remainder, s)
    assert list(d.to_frame().columns) == ["observed", "trend", "seasonal", "remainder"]


def test_decomposition_needs_two_periods():
    with pytest.raises(ValueError):
        decompose(create_seasonal_series(n=20), period=12)


def test_seasonal_strength_separates_seasonal_and_noise():
    strong = seasonal_strength(decompose(create_seasonal_series(amplitude=20.0, noise=0.5)))
    weak = seasonal_strength(decompose(create_seasonal_series(amplitude=0.0, noise=1.0)))

    assert strong > 0.64
    assert weak < 0.64
    assert 0.0 <= weak <= 1.0
