# export_forecaster_src/diagnostics_utils.py

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Dict, Union
import logging

from statsmodels.graphics.tsaplots import plot_acf, plot_pacf
from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch

from .plotting_utils import ensure_dir, plot_cusum

logger = logging.getLogger(__name__)

# Two years of monthly lags
MAX_RESIDUAL_LAG = 24


def _clean(residuals: Union[pd.Series, np.ndarray]) -> pd.Series:
    return pd.Series(np.asarray(residuals, dtype=float)).dropna().reset_index(drop=True)


def ljung_box_table(residuals: Union[pd.Series, np.ndarray], max_lag: int = MAX_RESIDUAL_LAG) -> pd.DataFrame:
    """
    Ljung-Box portmanteau statistics for lags 1..max_lag.

    Returns
    -------
    pd.DataFrame
        Columns 'lb_stat', 'lb_pvalue' indexed by lag
    """
    resid = _clean(residuals)
    max_lag = int(min(max_lag, max(1, len(resid) - 1)))
    table = acorr_ljungbox(resid, lags=np.arange(1, max_lag + 1), return_df=True)
    table.index.name = "lag"
    return table


def arch_lm_table(residuals: Union[pd.Series, np.ndarray], nlags: int = 12) -> pd.DataFrame:
    """Engle's ARCH-LM test for conditional heteroskedasticity as a one-row frame."""
    resid = _clean(residuals)
    lm_stat, lm_pvalue, f_stat, f_pvalue = het_arch(resid, nlags=nlags)
    return pd.DataFrame({
        "nlags": [nlags],
        "lm_stat": [lm_stat],
        "lm_pvalue": [lm_pvalue],
        "f_stat": [f_stat],
        "f_pvalue": [f_pvalue],
    })


def cusum_statistics(residuals: Union[pd.Series, np.ndarray]) -> pd.DataFrame:
    """
    Cumulative sum of standardized residuals with 5% significance bounds.

    The bounds are +/- 0.948 * (sqrt(n) + 2 t / sqrt(n)), the usual
    straight-line bounds for a CUSUM path of length n.

    Raises
    ------
    ValueError
        If the residuals have (near) zero variance.
    """
    resid = _clean(residuals)
    sd = float(resid.std(ddof=1))
    if not np.isfinite(sd) or sd <= 1e-12:
        raise ValueError("Degenerate residual standard deviation for CUSUM")

    z = (resid - resid.mean()) / sd
    n = len(z)
    t = np.arange(1, n + 1)
    bound = 0.948 * (np.sqrt(n) + 2.0 * t / np.sqrt(n))
    return pd.DataFrame({"t": t, "cusum": np.cumsum(z.to_numpy()), "lower": -bound, "upper": bound})


def save_residual_diagnostics(residuals: Union[pd.Series, np.ndarray],
                              out_dir: Path,
                              fname_prefix: str = "Residuals") -> Dict[str, pd.DataFrame]:
    """
    Save residual ACF/PACF, Ljung-Box, ARCH-LM and CUSUM artifacts.

    Creates in `out_dir`:
    - {prefix}_ACF_PACF.png
    - {prefix}_LjungBox.csv
    - {prefix}_ARCH_LM.csv
    - {prefix}_CUSUM.csv and {prefix}_CUSUM.png

    Each artifact is independent; a failure is logged and the rest are still
    produced.

    Returns
    -------
    Dict[str, pd.DataFrame]
        The tables that were computed, keyed 'ljung_box', 'arch_lm', 'cusum'
    """
    ensure_dir(out_dir)
    resid = _clean(residuals)
    tables: Dict[str, pd.DataFrame] = {}

    if resid.empty:
        logger.warning("Residual diagnostics skipped for %s: empty residual series.", fname_prefix)
        return tables

    try:
        lags = int(min(MAX_RESIDUAL_LAG, len(resid) // 2 - 1))
        fig, axes = plt.subplots(2, 1, figsize=(8, 6))
        plot_acf(resid, ax=axes[0], lags=lags, zero=False)
        axes[0].set_title(f"{fname_prefix} residual ACF")
        plot_pacf(resid, ax=axes[1], lags=lags, zero=False, method="ldb")
        axes[1].set_title(f"{fname_prefix} residual PACF")
        fig.tight_layout()
        fig.savefig(out_dir / f"{fname_prefix}_ACF_PACF.png", dpi=300)
        plt.close(fig)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.warning("Residual ACF/PACF figure for %s skipped: %s", fname_prefix, e)

    try:
        tables["ljung_box"] = ljung_box_table(resid)
        tables["ljung_box"].to_csv(out_dir / f"{fname_prefix}_LjungBox.csv", index=True)
    except (ValueError, np.linalg.LinAlgError, OSError) as e:
        logger.warning("Ljung-Box table for %s skipped: %s", fname_prefix, e)

    try:
        tables["arch_lm"] = arch_lm_table(resid)
        tables["arch_lm"].to_csv(out_dir / f"{fname_prefix}_ARCH_LM.csv", index=False)
    except (ValueError, np.linalg.LinAlgError, OSError) as e:
        logger.warning("ARCH-LM table for %s skipped: %s", fname_prefix, e)

    try:
        tables["cusum"] = cusum_statistics(resid)
        tables["cusum"].to_csv(out_dir / f"{fname_prefix}_CUSUM.csv", index=False)
        plot_cusum(tables["cusum"], out_dir / f"{fname_prefix}_CUSUM.png",
                   title=f"{fname_prefix} CUSUM (standardized residuals)")
    except (ValueError, OSError) as e:
        logger.warning("CUSUM analysis for %s skipped: %s", fname_prefix, e)

    return tables
