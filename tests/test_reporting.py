import csv

import numpy as np
import pandas as pd
import pytest

from export_forecaster_src.diagnostics_utils import (
    arch_lm_table, cusum_statistics, ljung_box_table, save_residual_diagnostics
)
from export_forecaster_src.file_utils import (
    METRICS_HEADER, append_eval_md, append_metrics_csv_row, md_table_from_df, resolve_path
)
from export_forecaster_src.plotting_utils import plot_correlogram, plot_series_pair


def create_residuals(n=120, seed=9):
    rng = np.random.default_rng(seed)
    return pd.Series(rng.normal(size=n), index=pd.period_range("1995-08", periods=n, freq="M"))


def test_ljung_box_table_covers_monthly_lags():
    table = ljung_box_table(create_residuals())

    assert list(table.index) == list(range(1, 25))
    assert {"lb_stat", "lb_pvalue"} <= set(table.columns)
    assert table.index.name == "lag"


def test_arch_lm_table_single_row():
    table = arch_lm_table(create_residuals(), nlags=12)
    assert table.shape == (1, 5)
    assert 0.0 <= table.loc[0, "lm_pvalue"] <= 1.0


def test_cusum_statistics():
    table = cusum_statistics(create_residuals())

    assert list(table.columns) == ["t", "cusum", "lower", "upper"]
    assert table["cusum"].iloc[-1] == pytest.approx(0.0, abs=1e-9)
    assert (table["upper"] > 0).all()
    assert np.allclose(table["lower"], -table["upper"])
    with pytest.raises(ValueError):
        cusum_statistics(np.ones(20))


def test_save_residual_diagnostics_writes_artifacts(tmp_path):
    tables = save_residual_diagnostics(create_residuals(), tmp_path, fname_prefix="CA_manual_Residuals")

    assert set(tables) == {"ljung_box", "arch_lm", "cusum"}
    for suffix in ("ACF_PACF.png", "LjungBox.csv", "ARCH_LM.csv", "CUSUM.csv", "CUSUM.png"):
        assert (tmp_path / f"CA_manual_Residuals_{suffix}").exists()


def test_save_residual_diagnostics_empty_input(tmp_path):
    assert save_residual_diagnostics(pd.Series([], dtype=float), tmp_path) == {}


def test_metrics_csv_header_written_once(tmp_path):
    path = tmp_path / "out" / "metrics.csv"
    append_metrics_csv_row(path, {"series": "CA", "MAPE": 4.8})
    append_metrics_csv_row(path, {"series": "NY", "MAPE": 8.0, "unknown": 1})

    with path.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == METRICS_HEADER
    assert len(rows) == 3
    assert rows[2][METRICS_HEADER.index("series")] == "NY"

    append_metrics_csv_row(None, {"series": "CA"})


def test_append_eval_md_sections(tmp_path):
    report = tmp_path / "analysis" / "report.md"
    append_eval_md(report, "CA diagnostics", "- observations: 338")
    append_eval_md(report, "NY diagnostics", "- observations: 338")

    text = report.read_text(encoding="utf-8")
    assert text.count("## ") == 2
    assert "_timestamp:" in text


def test_md_table_from_df():
    df = pd.DataFrame({"lag": [1, 2], "p": [0.5, 0.25]})
    out = md_table_from_df(df)

    assert out.splitlines()[0] == "| lag | p |"
    assert out.splitlines()[2] == "| 1 | 0.5000 |"
    assert md_table_from_df(pd.DataFrame()) == ""


def test_resolve_path(tmp_path):
    assert resolve_path("data/x.csv", tmp_path) == tmp_path / "data" / "x.csv"
    assert resolve_path(str(tmp_path / "abs.csv"), tmp_path / "other") == tmp_path / "abs.csv"


def test_plots_are_written(tmp_path):
    s = create_residuals()
    plot_series_pair(s.rename("CA"), (s * 2).rename("NY"), tmp_path / "pair.png")
    coeffs = pd.Series([1.0, 0.3, -0.1], index=range(3))
    plot_correlogram(coeffs, 0.18, tmp_path / "sub" / "acf.png")

    assert (tmp_path / "pair.png").exists()
    assert (tmp_path / "sub" / "acf.png").exists()
