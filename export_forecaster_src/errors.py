# export_forecaster_src/errors.py

"""
Error types raised by the forecasting pipeline.

None of these are handled inside the library: a report must not present a
result computed from a failed load or fit, so every error reaches the caller.
Falling back to a simpler model specification is a caller decision.
"""


class ForecastingError(Exception):
    """Base class for all pipeline errors."""


class DataFormatError(ForecastingError):
    """Malformed input or a series that is not contiguous monthly data."""


class NonConvergenceError(ForecastingError):
    """The SARIMAX/VAR optimizer did not converge within its iteration budget."""


class AlignmentError(ForecastingError):
    """Forecasts or series do not share horizon length, start period or index."""


class SingularMatrixError(ForecastingError):
    """VAR estimation with insufficient observations or collinear regressors."""
