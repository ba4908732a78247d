import numpy as np
import pandas as pd
import pytest

from export_forecaster_src.data_utils import (
    load_export_pair, load_export_series_csv, series_from_values
)
from export_forecaster_src.errors import DataFormatError


def write_series_csv(path, start="1995-08", n=36, date_col="date", value_col="value", seed=0):
    """Write a (date, value) CSV of n monthly observations starting at `start`."""
    rng = np.random.default_rng(seed)
    dates = pd.period_range(start, periods=n, freq="M").to_timestamp()
    values = 1000.0 + np.cumsum(rng.normal(0, 5, n))
    pd.DataFrame({date_col: dates.strftime("%Y-%m-%d"), value_col: values}).to_csv(path, index=False)
    return values


def test_load_series_has_monthly_period_index(tmp_path):
    path = tmp_path / "exports_CA.csv"
    values = write_series_csv(path)

    s = load_export_series_csv(path, name="CA")

    assert isinstance(s.index, pd.PeriodIndex)
    assert s.index.freqstr == "M"
    assert str(s.index[0]) == "1995-08"
    assert len(s) == 36
    assert s.name == "CA"
    assert np.allclose(s.to_numpy(), values)


def test_name_defaults_to_file_stem_and_date_column_by_name(tmp_path):
    path = tmp_path / "exports_NY.csv"
    df = pd.DataFrame({
        "NYEXPORTS": [1.0, 2.0, 3.0],
        "observation_date": ["2001-01-01", "2001-02-01", "2001-03-01"],
    })
    df.to_csv(path, index=False)

    s = load_export_series_csv(path)

    assert s.name == "exports_NY"
    assert str(s.index[0]) == "2001-01"
    assert s.tolist() == [1.0, 2.0, 3.0]


def test_start_anchors_positionally(tmp_path):
    path = tmp_path / "exports_CA.csv"
    write_series_csv(path, start="2000-01", n=12)

    s = load_export_series_csv(path, start="1995-08")

    assert str(s.index[0]) == "1995-08"
    assert str(s.index[-1]) == "1996-07"
    assert s.name == "exports_CA"
    assert s.dtype == float
    assert s.index.equals(series_from_values(s.to_numpy(), "1995-08", "exports_CA").index)


def test_missing_file_raises(tmp_path):
    with pytest.raises(DataFormatError, match="not found"):
        load_export_series_csv(tmp_path / "nope.csv")


def test_single_column_raises(tmp_path):
    path = tmp_path / "one.csv"
    pd.DataFrame({"value": [1.0, 2.0]}).to_csv(path, index=False)
    with pytest.raises(DataFormatError, match="two columns"):
        load_export_series_csv(path)


def test_non_numeric_value_raises(tmp_path):
    path = tmp_path / "bad.csv"
    pd.DataFrame({"date": ["2020-01-01", "2020-02-01"], "value": ["1.0", "n/a"]}).to_csv(path, index=False)
    with pytest.raises(DataFormatError, match="Non-numeric"):
        load_export_series_csv(path)


def test_gap_raises(tmp_path):
    path = tmp_path / "gap.csv"
    pd.DataFrame({"date": ["2020-01-01", "2020-02-01", "2020-05-01"],
                  "value": [1.0, 2.0, 3.0]}).to_csv(path, index=False)
    with pytest.raises(DataFormatError, match="contiguous"):
        load_export_series_csv(path)


def test_duplicate_month_raises(tmp_path):
    path = tmp_path / "dup.csv"
    pd.DataFrame({"date": ["2020-01-01", "2020-01-15", "2020-02-01"],
                  "value": [1.0, 2.0, 3.0]}).to_csv(path, index=False)
    with pytest.raises(DataFormatError, match="Duplicate"):
        load_export_series_csv(path)


def test_load_pair_shares_start_and_length(tmp_path):
    ca_path, ny_path = tmp_path / "ca.csv", tmp_path / "ny.csv"
    write_series_csv(ca_path, seed=1)
    write_series_csv(ny_path, seed=2)

    ca, ny = load_export_pair(ca_path, ny_path)

    assert (ca.name, ny.name) == ("CA", "NY")
    assert ca.index.equals(ny.index)


def test_load_pair_length_mismatch_raises(tmp_path):
    ca_path, ny_path = tmp_path / "ca.csv", tmp_path / "ny.csv"
    write_series_csv(ca_path, n=36)
    write_series_csv(ny_path, n=35)
    with pytest.raises(DataFormatError, match="lengths differ"):
        load_export_pair(ca_path, ny_path)


def test_load_pair_start_mismatch_raises(tmp_path):
    ca_path, ny_path = tmp_path / "ca.csv", tmp_path / "ny.csv"
    write_series_csv(ca_path, start="1995-08")
    write_series_csv(ny_path, start="1995-09")
    with pytest.raises(DataFormatError, match="start periods differ"):
        load_export_pair(ca_path, ny_path)


def test_series_from_values():
    s = series_from_values([1, 2, 3], "2023-07", "CA")
    assert str(s.index[-1]) == "2023-09"
    with pytest.raises(DataFormatError):
        series_from_values([1, None, 3], "2023-07", "CA")
