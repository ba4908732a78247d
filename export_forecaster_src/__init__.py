# export_forecaster_src/__init__.py

"""
Export Forecaster - monthly CA / NY export forecasting package

Key Components
--------------
- config_utils: Configuration management and CLI override support
- data_utils: Loading and validation of the monthly export series
- decomposition_utils: ACF/PACF, significance bands, additive decomposition
- deterministic_utils: Trend and seasonal regressions, cyclical AR order
- forecasting_utils: Seasonal ARIMA fitting (manual and automatic) and forecasts
- combination_utils: Forecast combination and its two evaluation modes
- var_utils: Bivariate VAR, impulse responses, Granger tests
- metrics_utils: MAPE, RMSE, MSE, MAE
- plotting_utils, diagnostics_utils, file_utils: Figures, residual tables, report output
- main: Command-line workflow

Usage
-----
    # Command-line usage
    python -m export_forecaster_src.main --ca-csv data/exports_CA.csv --ny-csv data/exports_NY.csv

    # Programmatic usage
    from export_forecaster_src import load_export_pair, fit_manual, ModelSpec
"""

__version__ = "1.0.0"
__author__ = "Export Forecaster Development Team"

from .errors import (
    ForecastingError, DataFormatError, NonConvergenceError, AlignmentError, SingularMatrixError
)
from .config_utils import initialize_config, get_config_value
from .data_utils import load_export_series_csv, load_export_pair
from .decomposition_utils import compute_acf, compute_pacf, decompose, seasonal_strength
from .deterministic_utils import run_deterministic_stage
from .forecasting_utils import ModelSpec, FittedModel, Forecast, fit_manual, fit_auto, forecast
from .combination_utils import EvaluationMode, combine, evaluate_combination
from .var_utils import select_lag_order, fit_var, impulse_response, granger_test, forecast_var
from .metrics_utils import compute_diagnostic_stats
from .main import main

__all__ = [
    # Errors
    "ForecastingError",
    "DataFormatError",
    "NonConvergenceError",
    "AlignmentError",
    "SingularMatrixError",
    # Core functionality
    "main",
    "initialize_config",
    "get_config_value",
    "load_export_series_csv",
    "load_export_pair",
    "compute_acf",
    "compute_pacf",
    "decompose",
    "seasonal_strength",
    "run_deterministic_stage",
    "ModelSpec",
    "FittedModel",
    "Forecast",
    "fit_manual",
    "fit_auto",
    "forecast",
    "EvaluationMode",
    "combine",
    "evaluate_combination",
    "select_lag_order",
    "fit_var",
    "impulse_response",
    "granger_test",
    "forecast_var",
    "compute_diagnostic_stats",
    # Version info
    "__version__",
    "__author__"
]
