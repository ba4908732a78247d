import types

import numpy as np
import pandas as pd
import pytest

from export_forecaster_src.errors import AlignmentError
from export_forecaster_src.forecasting_utils import FittedModel, ModelSpec
from export_forecaster_src.metrics_utils import (
    compute_diagnostic_stats, diagnostic_stats_for, mae, mape, mse, rmse
)


def test_basic_metrics():
    y = [100.0, 200.0, 400.0]
    yhat = [110.0, 190.0, 400.0]

    assert mape(y, yhat) == pytest.approx((10.0 + 5.0 + 0.0) / 3)
    assert mse(y, yhat) == pytest.approx(200.0 / 3)
    assert rmse(y, yhat) == pytest.approx(np.sqrt(200.0 / 3))
    assert mae(y, yhat) == pytest.approx(20.0 / 3)


def test_mape_excludes_zero_actuals():
    assert mape([0.0, 100.0], [5.0, 90.0]) == pytest.approx(10.0)
    assert np.isnan(mape([0.0, 0.0], [1.0, 2.0]))


def test_metrics_skip_non_finite_pairs():
    y = np.array([1.0, np.nan, 3.0])
    yhat = np.array([1.0, 2.0, np.inf])

    assert mae(y, yhat) == 0.0
    assert compute_diagnostic_stats(y, yhat).n == 1
    assert np.isnan(rmse([np.nan], [1.0]))


def test_compute_diagnostic_stats_fields():
    stats = compute_diagnostic_stats(pd.Series([2.0, 4.0]), pd.Series([1.0, 5.0]))

    assert stats.as_dict() == {
        "mape": pytest.approx(37.5),
        "rmse": pytest.approx(1.0),
        "mse": pytest.approx(1.0),
        "mae": pytest.approx(1.0),
        "n": 2,
    }


def test_diagnostic_stats_for_fitted_model():
    idx = pd.period_range("1995-08", periods=4, freq="M")
    series = pd.Series([100.0, 100.0, 200.0, 200.0], index=idx, name="CA")
    resid = np.array([5.0, -5.0, 10.0, 0.0])
    results = types.SimpleNamespace(fittedvalues=series.to_numpy() - resid, resid=resid)
    model = FittedModel(spec=ModelSpec(order=(2, 0, 0), seasonal_order=(0, 0, 1)), series=series,
                        results=results)

    stats = diagnostic_stats_for(model)

    assert stats.mape == pytest.approx((5.0 + 5.0 + 5.0 + 0.0) / 4)
    assert stats.mae == pytest.approx(5.0)
    assert stats.n == 4


def test_metrics_reject_length_mismatch():
    with pytest.raises(AlignmentError, match="Length mismatch"):
        compute_diagnostic_stats([1.0, 2.0, 3.0], [1.0, 2.0])
    with pytest.raises(AlignmentError):
        mape([100.0], [100.0, 200.0])
