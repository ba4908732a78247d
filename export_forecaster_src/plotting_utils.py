# export_forecaster_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, Optional
import logging

from .decomposition_utils import DecompositionResult
from .forecasting_utils import Forecast
from .var_utils import ImpulseResponse

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """Create directory if it doesn't exist, including all parent directories."""
    path.mkdir(parents=True, exist_ok=True)


def _dates(index):
    """Monthly PeriodIndex as timestamps for the time axis."""
    if isinstance(index, pd.PeriodIndex):
        return index.to_timestamp()
    return index


def _save(fig, out_path: Path) -> None:
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)
    logger.debug("Saved figure %s", out_path)


def plot_series_pair(series_a: pd.Series, series_b: pd.Series, out_path: Path,
                     ylabel: str = "Exports") -> None:
    """
    Render both monthly export series on one time axis.

    Parameters
    ----------
    series_a, series_b : pd.Series
        Monthly series with PeriodIndex
    out_path : Path
        File path to save the PNG (parents are created if missing)
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(_dates(series_a.index), series_a.values, color="tab:blue", linewidth=1, label=series_a.name)
    ax.plot(_dates(series_b.index), series_b.values, color="tab:red", linewidth=1, label=series_b.name)
    ax.set_xlabel("Date")
    ax.set_ylabel(ylabel)
    ax.legend()
    fig.autofmt_xdate()
    _save(fig, out_path)


def plot_correlogram(coeffs: pd.Series, band: float, out_path: Path, title: str = "ACF") -> None:
    """
    Stem plot of autocorrelation (or partial autocorrelation) coefficients
    with the +/- band drawn as dashed lines. Lag 0 is omitted when present.
    """
    ensure_dir(out_path.parent)
    values = coeffs.drop(0, errors="ignore")
    fig, ax = plt.subplots(figsize=(8, 3.5))
    ax.vlines(values.index, 0, values.values, color="black", linewidth=1)
    ax.plot(values.index, values.values, "o", color="black", markersize=3)
    ax.axhline(0.0, color="gray", linewidth=0.8)
    ax.axhline(band, color="tab:blue", linestyle="--", linewidth=1)
    ax.axhline(-band, color="tab:blue", linestyle="--", linewidth=1)
    ax.set_xlabel("Lag (months)")
    ax.set_title(title)
    _save(fig, out_path)


def plot_decomposition(decomp: DecompositionResult, out_path: Path, title: str = "Decomposition") -> None:
    """Four stacked panels: observed, trend, seasonal, remainder."""
    ensure_dir(out_path.parent)
    frame = decomp.to_frame()
    fig, axes = plt.subplots(nrows=4, ncols=1, sharex=True, figsize=(10, 8))
    x = _dates(frame.index)
    for ax, col in zip(axes, ["observed", "trend", "seasonal", "remainder"]):
        ax.plot(x, frame[col].values, color="black", linewidth=1)
        ax.set_ylabel(col)
        ax.spines["top"].set_alpha(0)
    axes[0].set_title(title)
    fig.autofmt_xdate()
    _save(fig, out_path)


def plot_fit(actual: pd.Series, fitted: pd.Series, out_path: Path, title: str = "Fit") -> None:
    """Overlay of fitted values on the actual series."""
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(_dates(actual.index), actual.values, color="black", linewidth=1.2, label="actual")
    ax.plot(_dates(fitted.index), fitted.values, color="tab:red", linestyle="--", linewidth=1, label="fitted")
    ax.set_title(title)
    ax.legend()
    fig.autofmt_xdate()
    _save(fig, out_path)


def plot_forecast(history: pd.Series, fc: Forecast, out_path: Path,
                  title: Optional[str] = None, tail: int = 60) -> None:
    """
    Last `tail` months of history followed by the point forecast and its
    (1 - alpha) band.
    """
    ensure_dir(out_path.parent)
    hist = history.iloc[-tail:] if tail else history
    x_fc = _dates(fc.mean.index)
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(_dates(hist.index), hist.values, color="black", linewidth=1.2, label="actual")
    ax.plot(x_fc, fc.mean.values, color="tab:red", linestyle="--", label="forecast")
    ax.fill_between(x_fc, fc.lower.values, fc.upper.values, color="tab:red", alpha=0.2,
                    label=f"{int(round((1 - fc.alpha) * 100))}% interval")
    ax.set_title(title or fc.label)
    ax.legend()
    fig.autofmt_xdate()
    _save(fig, out_path)


def plot_forecast_comparison(history: pd.Series, forecasts: Dict[str, Forecast], out_path: Path,
                             title: str = "Forecast Comparison", tail: int = 60) -> None:
    """Point forecasts of several methods after the same history."""
    ensure_dir(out_path.parent)
    hist = history.iloc[-tail:] if tail else history
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(_dates(hist.index), hist.values, color="black", linewidth=1.5, label="actual")
    colors = ["tab:red", "tab:blue", "tab:green", "tab:orange", "tab:purple"]
    for i, (method, fc) in enumerate(forecasts.items()):
        ax.plot(_dates(fc.mean.index), fc.mean.values, color=colors[i % len(colors)],
                linestyle="--", label=method)
    ax.set_title(title)
    ax.legend()
    fig.autofmt_xdate()
    _save(fig, out_path)


def plot_impulse_responses(irf: ImpulseResponse, out_path: Path) -> None:
    """
    Grid of impulse responses: row = shocked series, column = responding series,
    with the bootstrap band shaded.
    """
    ensure_dir(out_path.parent)
    names = list(dict.fromkeys(shock for shock, _ in irf.responses))
    k = len(names)
    fig, axes = plt.subplots(nrows=k, ncols=k, figsize=(4 * k, 3 * k), squeeze=False)
    for i, shock in enumerate(names):
        for j, response in enumerate(names):
            ax = axes[i][j]
            frame = irf.get(shock, response)
            ax.plot(frame.index, frame["response"].values, color="black", linewidth=1)
            ax.fill_between(frame.index, frame["lower"].values, frame["upper"].values,
                            color="tab:blue", alpha=0.2)
            ax.axhline(0.0, color="gray", linewidth=0.8)
            ax.set_title(f"{shock} -> {response}", fontsize=9)
            ax.tick_params(labelsize=7)
    kind = "Orthogonalized" if irf.orthogonalized else "Non-orthogonalized"
    fig.suptitle(f"{kind} impulse responses ({irf.runs} bootstrap runs)")
    _save(fig, out_path)


def plot_cusum(table: pd.DataFrame, out_path: Path, title: str = "CUSUM of residuals") -> None:
    """CUSUM path with its 5% significance bounds (columns cusum, lower, upper)."""
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(8, 3.5))
    x = np.arange(len(table))
    ax.plot(x, table["cusum"].values, color="black", linewidth=1, label="CUSUM")
    ax.plot(x, table["upper"].values, color="tab:red", linestyle="--", linewidth=1, label="5% bounds")
    ax.plot(x, table["lower"].values, color="tab:red", linestyle="--", linewidth=1)
    ax.set_xlabel("Observation")
    ax.set_title(title)
    ax.legend()
    _save(fig, out_path)
