import numpy as np
import pandas as pd
import pytest

from export_forecaster_src.errors import AlignmentError, SingularMatrixError
from export_forecaster_src.var_utils import (
    CRITERIA, fit_var, forecast_var, granger_test, impulse_response, select_lag_order
)


def create_mock_pair(n=200, seed=21):
    """CA follows its own AR(1); NY responds to last month's CA. Returns (CA, NY)."""
    rng = np.random.default_rng(seed)
    a = np.zeros(n)
    b = np.zeros(n)
    for t in range(1, n):
        a[t] = 0.5 * a[t - 1] + rng.normal()
        b[t] = 0.3 * b[t - 1] + 0.6 * a[t - 1] + rng.normal()
    idx = pd.period_range("1995-08", periods=n, freq="M")
    return pd.Series(a + 10.0, index=idx, name="CA"), pd.Series(b + 5.0, index=idx, name="NY")


def test_select_lag_order_reports_all_criteria():
    ca, ny = create_mock_pair()
    sel = select_lag_order(ca, ny, max_lag=6)

    assert list(sel.table.columns) == list(CRITERIA)
    assert len(sel.table) == 7
    for crit in CRITERIA:
        assert 0 <= sel.order(crit) <= 6
    assert sel.order("BIC") == sel.selected["bic"]
    with pytest.raises(ValueError):
        sel.order("mse")


def test_fit_var_shapes():
    ca, ny = create_mock_pair()
    model = fit_var(ca, ny, 2)

    assert model.names == ["CA", "NY"]
    assert model.coefficient_matrices.shape == (2, 2, 2)
    assert model.coefficients.shape == (5, 2)
    assert len(model.residuals) == len(ca) - 2
    assert model.residuals.index[0] == ca.index[2]
    assert model.sigma_u.shape == (2, 2)
    # NY equation picks up lagged CA
    assert model.coefficient_matrices[0][1, 0] == pytest.approx(0.6, abs=0.2)


def test_fit_var_insufficient_observations():
    ca, ny = create_mock_pair(n=12)
    with pytest.raises(SingularMatrixError):
        fit_var(ca, ny, 6)


def test_fit_var_collinear_series():
    ca, _ = create_mock_pair()
    twin = (2.0 * ca).rename("NY")
    with pytest.raises(SingularMatrixError, match="rank-deficient"):
        fit_var(ca, twin, 2)


def test_fit_var_misaligned_series():
    ca, ny = create_mock_pair()
    with pytest.raises(AlignmentError):
        fit_var(ca.iloc[1:], ny.iloc[:-1], 1)


def test_impulse_response_shape_and_bands():
    ca, ny = create_mock_pair()
    model = fit_var(ca, ny, 1)
    irf = impulse_response(model, horizon=8, runs=30, seed=1)

    assert set(irf.responses) == {("CA", "CA"), ("CA", "NY"), ("NY", "CA"), ("NY", "NY")}
    frame = irf.get("CA", "NY")
    assert len(frame) == 9
    assert list(frame.columns) == ["response", "lower", "upper"]
    assert (frame["lower"] <= frame["upper"]).all()
    assert irf.runs == 30
    # same seed, same bands
    again = impulse_response(model, horizon=8, runs=30, seed=1)
    pd.testing.assert_frame_equal(frame, again.get("CA", "NY"))


def test_impulse_response_rejects_bad_arguments():
    ca, ny = create_mock_pair()
    model = fit_var(ca, ny, 1)
    with pytest.raises(ValueError):
        impulse_response(model, horizon=-1)
    with pytest.raises(ValueError):
        impulse_response(model, runs=0)


def test_granger_directions_are_independent():
    ca, ny = create_mock_pair()
    ca_to_ny = granger_test(ny, ca, 2)
    ny_to_ca = granger_test(ca, ny, 2)

    assert ca_to_ny.rejects(0.05)
    assert ca_to_ny.p_value < ny_to_ca.p_value
    assert ca_to_ny.hypothesis == "CA does not Granger-cause NY"
    assert ca_to_ny.df_num == 2
    assert ca_to_ny.df_denom == len(ca) - 2 - 5


def test_granger_requires_enough_observations():
    ca, ny = create_mock_pair(n=20)
    with pytest.raises(SingularMatrixError):
        granger_test(ny, ca, 10)


def test_forecast_var_joint_forecast():
    ca, ny = create_mock_pair()
    model = fit_var(ca, ny, 2)
    joint = forecast_var(model, 12)

    for name in ("CA", "NY"):
        fc = joint[name]
        assert fc.horizon == 12
        assert fc.start == ca.index[-1] + 1
        assert np.all(np.diff(fc.width.to_numpy()) >= -1e-8)
    assert joint.to_frame().shape == (12, 6)
