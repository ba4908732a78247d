# export_forecaster_src/main.py

"""
Monthly export forecasting for California and New York (August 1995 onward).

Purpose
-------
- Load the two export series and check that they are contiguous and aligned
- Inspect each series: ACF/PACF with significance bands, additive decomposition
- Fit the deterministic components (trend, trend + month indicators) and pick
  the order of the cyclical AR component from the residual PACF
- Fit the analyst's seasonal ARIMA per series (with a configured fallback
  specification) and an automatically selected one, forecast both
- Combine the forecasts and score the combination in both evaluation modes
- Fit a bivariate VAR: lag selection, impulse responses with bootstrap bands,
  Granger-causality in both directions, joint forecast
- Write figures, residual diagnostics, a metrics CSV and a markdown report

Configuration-Driven Workflow
-----------------------------
Model orders, search ranges and output settings live in config/*.yaml.
CLI arguments override configuration values where applicable.
"""

import argparse
import logging
import warnings
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .config_utils import initialize_config, get_config_value
from .data_utils import load_export_pair
from .parsing_utils import parse_range_arg, parse_order_arg, validate_criterion, validate_log_level
from .decomposition_utils import (
    compute_acf, compute_pacf, decompose, seasonal_strength, significance_band,
    significant_lags, z_for_confidence
)
from .deterministic_utils import run_deterministic_stage
from .forecasting_utils import (
    ModelSpec, FittedModel, Forecast, adf_test, fit_auto, fit_with_fallback, forecast, hash_forecast
)
from .combination_utils import EvaluationMode, combine, evaluate_combination
from .var_utils import (
    CRITERIA, fit_var, forecast_var, granger_test, impulse_response, select_lag_order
)
from .metrics_utils import diagnostic_stats_for
from .plotting_utils import (
    plot_correlogram, plot_decomposition, plot_fit, plot_forecast, plot_forecast_comparison,
    plot_impulse_responses, plot_series_pair
)
from .diagnostics_utils import save_residual_diagnostics
from .file_utils import (
    METRICS_HEADER, append_eval_md, append_metrics_csv_row, ensure_dir, md_table_from_df, resolve_path
)

logger = logging.getLogger(__name__)


def _band_z() -> float:
    """Band multiplier: derived from diagnostics.band_confidence when set, else diagnostics.band_z."""
    confidence = get_config_value("diagnostics.band_confidence", None)
    if confidence is not None:
        return z_for_confidence(float(confidence))
    return float(get_config_value("diagnostics.band_z", 2.0))


def build_model_specs(name: str, args: Optional[argparse.Namespace] = None) -> List[ModelSpec]:
    """
    Analyst specification for a series followed by its fallback specification.

    The primary orders come from --{ca,ny}-order / --{ca,ny}-seasonal when
    given, otherwise from models.<NAME>.* in the configuration.
    """
    key = name.lower()
    period = int(get_config_value("models.period", 12))
    order = parse_order_arg(get_config_value(f"models.{name}.order", "1,0,0", args, f"{key}_order"), "order")
    seasonal = parse_order_arg(
        get_config_value(f"models.{name}.seasonal_order", "0,0,0", args, f"{key}_seasonal"), "seasonal order"
    )
    specs = [ModelSpec(order=order, seasonal_order=seasonal, period=period, trend_regressor=True)]

    fb_order = get_config_value(f"models.{name}.fallback_order", None)
    if fb_order is not None:
        fb_seasonal = get_config_value(f"models.{name}.fallback_seasonal_order", "0,0,0")
        fallback = ModelSpec(order=parse_order_arg(fb_order, "fallback order"),
                             seasonal_order=parse_order_arg(fb_seasonal, "fallback seasonal order"),
                             period=period, trend_regressor=True)
        if fallback != specs[0]:
            specs.append(fallback)
    return specs


def run_diagnostics_workflow(series: pd.Series, figures_dir: Path, report_md: Path) -> Dict[str, Any]:
    """
    ACF/PACF and decomposition of one series, with figures and a report section.
    """
    name = str(series.name)
    n = len(series)
    z = _band_z()
    max_lag = int(get_config_value("diagnostics.max_lag", 36))
    period = int(get_config_value("diagnostics.period", 12))
    max_lag = min(max_lag, n // 2 - 1)

    acf = compute_acf(series, max_lag)
    pacf = compute_pacf(series, max_lag)
    band = significance_band(n, z)
    decomp = decompose(series, period=period)
    strength = seasonal_strength(decomp)
    adf_stat, adf_pval = adf_test(series)

    plot_correlogram(acf, band, figures_dir / f"{name}_ACF.png", title=f"{name} ACF")
    plot_correlogram(pacf, band, figures_dir / f"{name}_PACF.png", title=f"{name} PACF")
    plot_decomposition(decomp, figures_dir / f"{name}_Decomposition.png", title=f"{name} additive decomposition")

    acf_sig = significant_lags(acf, n, z)
    pacf_sig = significant_lags(pacf, n, z)
    logger.info("%s: seasonal strength=%.3f, ADF p=%.4f", name, strength, adf_pval)

    body = "\n".join([
        f"- observations: {n} ({series.index[0]} to {series.index[-1]})",
        f"- significance band: +/-{band:.4f}",
        f"- significant ACF lags: {acf_sig}",
        f"- significant PACF lags: {pacf_sig}",
        f"- seasonal strength: {strength:.3f}",
        f"- ADF (constant + trend): statistic={adf_stat:.3f}, p-value={adf_pval:.4f}",
    ])
    append_eval_md(report_md, f"{name} diagnostics", body)
    return {"acf": acf, "pacf": pacf, "band": band, "decomposition": decomp, "seasonal_strength": strength}


def run_deterministic_workflow(series: pd.Series, figures_dir: Path, report_md: Path,
                               args: Optional[argparse.Namespace] = None):
    """Trend, trend + seasonal and cyclical AR stage for one series."""
    name = str(series.name)
    z = _band_z()
    stage = run_deterministic_stage(
        series,
        max_lag=int(get_config_value("deterministic.cyclical_max_lag", 24)),
        z=z,
        override=get_config_value("deterministic.cyclical_order", None, args, "cyclical_order"),
        maxiter=int(get_config_value("models.maxiter", 200)),
    )

    plot_fit(series, stage.trend.fitted_values, figures_dir / f"{name}_TrendFit.png",
             title=f"{name}: linear trend")
    plot_fit(series, stage.trend_seasonal.fitted_values, figures_dir / f"{name}_TrendSeasonalFit.png",
             title=f"{name}: trend + monthly indicators")
    plot_correlogram(stage.selection.pacf, stage.selection.band,
                     figures_dir / f"{name}_TrendSeasonal_Resid_PACF.png",
                     title=f"{name} PACF of trend + seasonal residuals")

    coef = stage.trend_seasonal.coefficients.rename("coef").to_frame()
    sel = stage.selection
    lines = [
        f"- trend R^2: {stage.trend.r_squared:.3f}",
        f"- trend + seasonal R^2: {stage.trend_seasonal.r_squared:.3f}",
        f"- residual PACF significant lags: {sel.significant_lags}",
        f"- cyclical AR order: {sel.order} (suggested {sel.suggested_order}"
        f"{', overridden' if sel.overridden else ''})",
    ]
    if stage.cyclical is not None:
        lines.append(f"- cyclical AR({sel.order}) AIC: {float(stage.cyclical.aic):.2f}")
    body = "\n".join(lines) + "\n\n" + md_table_from_df(coef, max_rows=20, index=True)
    append_eval_md(report_md, f"{name} deterministic components", body)
    return stage


def _record_model(model: FittedModel, fc: Forecast, figures_dir: Path,
                  metrics_csv: Optional[Path], report_md: Path) -> Dict[str, Any]:
    """Figures, residual diagnostics, metrics row and report section of one fitted model."""
    stats = diagnostic_stats_for(model)
    tag = f"{model.name}_{model.source}"

    plot_fit(model.series, model.fitted_values, figures_dir / f"{tag}_Fit.png", title=model.label)
    plot_forecast(model.series, fc, figures_dir / f"{tag}_Forecast.png")
    tables = save_residual_diagnostics(model.residuals, figures_dir, fname_prefix=f"{tag}_Residuals")

    row = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "series": model.name,
        "model": model.spec.label,
        "source": model.source,
        "order": str(model.spec.order),
        "seasonal_order": str(model.spec.seasonal_order),
        "n": stats.n,
        "MAPE": round(stats.mape, 6),
        "RMSE": round(stats.rmse, 6),
        "MSE": round(stats.mse, 6),
        "MAE": round(stats.mae, 6),
        "AIC": round(model.aic, 4),
        "BIC": round(model.bic, 4),
        "hash_forecast": hash_forecast(fc.mean.to_numpy()),
    }
    append_metrics_csv_row(metrics_csv, row, METRICS_HEADER)

    body = [
        f"- MAPE: {stats.mape:.3f}%  RMSE: {stats.rmse:.3f}  MAE: {stats.mae:.3f}",
        f"- AIC: {model.aic:.2f}  BIC: {model.bic:.2f}  HQIC: {model.hqic:.2f}",
        "",
        md_table_from_df(model.coefficients.rename("coef").to_frame(), max_rows=20, index=True),
    ]
    lb = tables.get("ljung_box")
    if lb is not None and not lb.empty:
        last = lb.iloc[-1]
        body.insert(2, f"- Ljung-Box at lag {lb.index[-1]}: Q={last['lb_stat']:.2f}, p={last['lb_pvalue']:.4f}")
    append_eval_md(report_md, model.label, "\n".join(body))
    return {"model": model, "forecast": fc, "stats": stats}


def run_sarima_workflow(series: pd.Series, figures_dir: Path, metrics_csv: Optional[Path], report_md: Path,
                        args: Optional[argparse.Namespace] = None) -> Dict[str, Dict[str, Any]]:
    """
    Manual (with fallback) and automatic seasonal ARIMA for one series.

    Returns
    -------
    Dict[str, Dict[str, Any]]
        Keyed 'manual' and, unless --skip-auto, 'auto'; each holds the
        FittedModel, its Forecast and DiagnosticStats
    """
    name = str(series.name)
    horizon = int(get_config_value("forecast.horizon", 12, args, "horizon"))
    alpha = float(get_config_value("forecast.alpha", 0.05))
    maxiter = int(get_config_value("models.maxiter", 200))
    out: Dict[str, Dict[str, Any]] = {}

    specs = build_model_specs(name, args)
    manual = fit_with_fallback(series, specs, maxiter=maxiter)
    if manual.spec != specs[0]:
        logger.warning("%s: analyst specification did not converge, using fallback %s", name, manual.spec.label)
    out["manual"] = _record_model(manual, forecast(manual, horizon, alpha), figures_dir, metrics_csv, report_md)

    if getattr(args, "skip_auto", False):
        logger.info("%s: automatic order search skipped", name)
        return out

    criterion = validate_criterion(str(get_config_value("auto.criterion", "aic")), ("aic", "bic", "hqic"))
    auto = fit_auto(
        series,
        p_range=parse_range_arg(None, "0-2", "auto.p_range", args, "p_range"),
        q_range=parse_range_arg(None, "0-2", "auto.q_range", args, "q_range"),
        P_range=parse_range_arg(None, "0-1", "auto.P_range", args, "P_range"),
        Q_range=parse_range_arg(None, "0-1", "auto.Q_range", args, "Q_range"),
        period=int(get_config_value("models.period", 12)),
        criterion=criterion,
        adf_alpha=float(get_config_value("auto.adf_alpha", 0.05)),
        max_d=int(get_config_value("auto.max_d", 2)),
        seasonal_threshold=float(get_config_value("auto.seasonal_strength_threshold", 0.64)),
        maxiter=maxiter,
    )
    out["auto"] = _record_model(auto, forecast(auto, horizon, alpha), figures_dir, metrics_csv, report_md)
    return out


def run_combination_workflow(results: Dict[str, Dict[str, Dict[str, Any]]], figures_dir: Path,
                             metrics_csv: Optional[Path], report_md: Path) -> Dict[str, Any]:
    """
    Per-series forecast combination plus evaluation of the fitted models in
    both modes: summed across series, and residual average within each series.
    """
    models = [entry["model"] for per_series in results.values() for entry in per_series.values()]
    summary: Dict[str, Any] = {"forecasts": {}, "residual_average": {}}

    lines = []
    for name, per_series in results.items():
        fcs = [entry["forecast"] for entry in per_series.values()]
        blended = combine(fcs, label=f"{name} combination")
        summary["forecasts"][name] = blended
        history = per_series["manual"]["model"].series
        methods = {entry["model"].source: entry["forecast"] for entry in per_series.values()}
        methods["combination"] = blended
        plot_forecast_comparison(history, methods,
                                 figures_dir / f"{name}_ForecastComparison.png",
                                 title=f"{name}: manual, automatic and combined forecasts")

        group = [entry["model"] for entry in per_series.values()]
        evaluation = evaluate_combination(group, EvaluationMode.RESIDUAL_AVERAGE)
        summary["residual_average"][name] = evaluation
        lines.append(f"- {name} residual average of {len(group)} models: MAPE={evaluation.stats.mape:.3f}%")

    summed = evaluate_combination(models, EvaluationMode.SUMMED_SERIES)
    summary["summed_series"] = summed
    plot_fit(summed.actual, summed.fitted, figures_dir / "Combined_SummedSeries_Fit.png",
             title=f"{summed.actual.name}: combined fitted values")
    lines.insert(0, f"- summed series ({summed.actual.name}) from {len(models)} models: "
                    f"MAPE={summed.stats.mape:.3f}%  RMSE={summed.stats.rmse:.3f}")

    append_metrics_csv_row(metrics_csv, {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "series": str(summed.actual.name),
        "model": EvaluationMode.SUMMED_SERIES.value,
        "source": "combination",
        "n": summed.stats.n,
        "MAPE": round(summed.stats.mape, 6),
        "RMSE": round(summed.stats.rmse, 6),
        "MSE": round(summed.stats.mse, 6),
        "MAE": round(summed.stats.mae, 6),
    }, METRICS_HEADER)

    frames = {name: fc.to_frame() for name, fc in summary["forecasts"].items()}
    body = "\n".join(lines) + "\n\n" + md_table_from_df(pd.concat(frames, axis=1), max_rows=24, index=True)
    append_eval_md(report_md, "Forecast combination", body)
    return summary


def run_var_workflow(series_a: pd.Series, series_b: pd.Series, figures_dir: Path, report_md: Path,
                     args: Optional[argparse.Namespace] = None) -> Dict[str, Any]:
    """Lag selection, VAR fit, impulse responses, Granger tests and joint forecast."""
    max_lag = int(get_config_value("var.max_lag", 12, args, "var_max_lag"))
    criterion = validate_criterion(str(get_config_value("var.criterion", "aic", args, "var_criterion")), CRITERIA)
    horizon = int(get_config_value("forecast.horizon", 12, args, "horizon"))
    alpha = float(get_config_value("forecast.alpha", 0.05))
    level = float(get_config_value("var.significance_level", 0.05))

    selection = select_lag_order(series_a, series_b, max_lag=max_lag)
    p = selection.order(criterion)
    if p < 1:
        logger.warning("%s selected lag 0; fitting VAR(1)", criterion.upper())
        p = 1
    model = fit_var(series_a, series_b, p)

    irf = impulse_response(
        model,
        horizon=int(get_config_value("var.irf_horizon", 24, args, "irf_horizon")),
        runs=int(get_config_value("var.irf_runs", 100, args, "irf_runs")),
        alpha=alpha,
        seed=get_config_value("var.irf_seed", None),
    )
    plot_impulse_responses(irf, figures_dir / "VAR_ImpulseResponses.png")

    granger_order = int(get_config_value("var.granger_order", p))
    tests = [granger_test(series_a, series_b, granger_order), granger_test(series_b, series_a, granger_order)]
    granger_df = pd.DataFrame([{
        "null hypothesis": g.hypothesis,
        "F": g.f_stat,
        "p-value": g.p_value,
        "df": f"({g.df_num}, {g.df_denom})",
        "reject": g.rejects(level),
    } for g in tests])

    joint = forecast_var(model, horizon, alpha)
    for name in model.names:
        plot_forecast(model.data[name], joint[name], figures_dir / f"{name}_VAR_Forecast.png")

    body = "\n".join([
        f"- selected lag by criterion: {selection.selected}",
        f"- fitted VAR({p}) using {criterion.upper()}",
        "",
        md_table_from_df(selection.table, max_rows=selection.max_lag + 1, index=True),
        "",
        md_table_from_df(granger_df),
    ])
    append_eval_md(report_md, "Bivariate VAR", body)
    return {"selection": selection, "model": model, "irf": irf, "granger": tests, "forecast": joint}


def run_report(args: argparse.Namespace, base_dir: Path) -> Dict[str, Any]:
    """
    Execute the full pipeline for the CA / NY export pair.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed CLI arguments (see setup_cli_parser)
    base_dir : Path
        Directory relative paths are resolved against

    Returns
    -------
    Dict[str, Any]
        Results of each stage keyed by stage name
    """
    ca_path = resolve_path(get_config_value("data.ca_csv", "data/exports_CA.csv", args, "ca_csv"), base_dir)
    ny_path = resolve_path(get_config_value("data.ny_csv", "data/exports_NY.csv", args, "ny_csv"), base_dir)
    figures_dir = resolve_path(args.figures_dir, base_dir)
    report_md = resolve_path(args.report_md, base_dir)
    metrics_csv = resolve_path(args.metrics_csv, base_dir) if args.metrics_csv else None
    start = get_config_value("data.start_period", None, args, "start")

    ensure_dir(figures_dir)
    ca, ny = load_export_pair(ca_path, ny_path, start=start)
    logger.info("Loaded %s and %s: %d months from %s", ca.name, ny.name, len(ca), ca.index[0])
    plot_series_pair(ca, ny, figures_dir / "Exports_CA_NY.png")

    summary: Dict[str, Any] = {"series": {ca.name: ca, ny.name: ny}, "diagnostics": {},
                               "deterministic": {}, "sarima": {}}
    for series in (ca, ny):
        summary["diagnostics"][series.name] = run_diagnostics_workflow(series, figures_dir, report_md)
        summary["deterministic"][series.name] = run_deterministic_workflow(series, figures_dir, report_md, args)
        summary["sarima"][series.name] = run_sarima_workflow(series, figures_dir, metrics_csv, report_md, args)

    summary["combination"] = run_combination_workflow(summary["sarima"], figures_dir, metrics_csv, report_md)
    summary["var"] = run_var_workflow(ca, ny, figures_dir, report_md, args)
    logger.info("Report written to %s", report_md)
    return summary


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Arguments left at None fall back to config/*.yaml, then to code defaults.
    """
    parser = argparse.ArgumentParser(
        description="Seasonal ARIMA and VAR forecasting of monthly CA and NY export values."
    )

    # Data and output arguments
    parser.add_argument("--ca-csv", type=str, default=None,
                        help="CSV (date, value) of California exports. Default: data.ca_csv in config.")
    parser.add_argument("--ny-csv", type=str, default=None,
                        help="CSV (date, value) of New York exports. Default: data.ny_csv in config.")
    parser.add_argument("--start", type=str, default=None,
                        help="First month (e.g. '1995-08'); rows are then anchored positionally from it.")
    parser.add_argument("--figures-dir", type=str, default="figures",
                        help="Directory to write figure files and diagnostic tables.")
    parser.add_argument("--metrics-csv", type=str, default=None,
                        help="If provided, append model metrics rows to this CSV.")
    parser.add_argument("--report-md", type=str, default="analysis/exports_report.md",
                        help="Markdown report the run appends to.")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging verbosity level.")

    # Model specification
    parser.add_argument("--horizon", type=int, default=None,
                        help="Forecast horizon in months. Uses config default if not specified.")
    parser.add_argument("--ca-order", type=str, default=None, help="(p,d,q) for CA, e.g. '2,0,0'.")
    parser.add_argument("--ca-seasonal", type=str, default=None, help="(P,D,Q) for CA, e.g. '0,0,1'.")
    parser.add_argument("--ny-order", type=str, default=None, help="(p,d,q) for NY, e.g. '3,0,0'.")
    parser.add_argument("--ny-seasonal", type=str, default=None, help="(P,D,Q) for NY, e.g. '1,0,1'.")
    parser.add_argument("--cyclical-order", type=int, default=None,
                        help="AR order of the cyclical component; overrides the PACF suggestion.")

    # Grid search controls
    parser.add_argument("--p-range", type=str, default=None,
                        help="Range or list for AR order p (e.g., '0-2' or '0,1,2'). Uses config default if not specified.")
    parser.add_argument("--q-range", type=str, default=None,
                        help="Range or list for MA order q. Uses config default if not specified.")
    parser.add_argument("--P-range", type=str, default=None,
                        help="Range or list for seasonal AR order P. Uses config default if not specified.")
    parser.add_argument("--Q-range", type=str, default=None,
                        help="Range or list for seasonal MA order Q. Uses config default if not specified.")
    parser.add_argument("--skip-auto", action="store_true", default=False,
                        help="Skip the automatic order search.")

    # VAR stage
    parser.add_argument("--var-max-lag", type=int, default=None, help="Largest VAR lag considered.")
    parser.add_argument("--var-criterion", type=str, default=None, choices=list(CRITERIA),
                        help="Information criterion that picks the VAR lag.")
    parser.add_argument("--irf-horizon", type=int, default=None, help="Impulse-response horizon in months.")
    parser.add_argument("--irf-runs", type=int, default=None, help="Bootstrap replicates for the IRF bands.")

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Outside DEBUG, statsmodels convergence and user warnings are silenced:
    non-convergence is detected from the optimizer's return values instead.
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Entry point: parse arguments, configure logging and run the report."""
    initialize_config()

    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    base_dir = Path.cwd()
    return run_report(args, base_dir)


if __name__ == "__main__":
    main()
