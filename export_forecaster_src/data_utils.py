# export_forecaster_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Optional, Tuple, Union
import logging

from helpers.temporal import to_monthly_period_index, check_monthly_contiguity
from .errors import DataFormatError

logger = logging.getLogger(__name__)

_DATE_COLUMN_NAMES = ("date", "observation_date", "month", "period")


def _pick_columns(df: pd.DataFrame, value_column: Optional[str]) -> Tuple[str, str]:
    """Identify the (date, value) columns of a two-column export CSV."""
    if df.shape[1] < 2:
        raise DataFormatError(
            f"Expected a (date, value) table with at least two columns, found {df.shape[1]}."
        )

    lowered = {str(c).strip().lower(): c for c in df.columns}
    date_col = next((lowered[n] for n in _DATE_COLUMN_NAMES if n in lowered), df.columns[0])

    if value_column is not None:
        if value_column not in df.columns:
            raise DataFormatError(f"Value column '{value_column}' not found in {list(df.columns)}.")
        return date_col, value_column

    remaining = [c for c in df.columns if c != date_col]
    return date_col, remaining[0]


def load_export_series_csv(series_path: Path,
                           name: Optional[str] = None,
                           value_column: Optional[str] = None,
                           start: Optional[Union[str, pd.Period]] = None) -> pd.Series:
    """
    Load one monthly export series from a two-column (date, value) CSV.

    The returned series carries a monthly PeriodIndex. When `start` is given,
    observations are anchored positionally from that period at 12 per year and
    the date column is only used to check that the rows are monthly-spaced.

    Parameters
    ----------
    series_path : Path
        CSV file. The date column is `date`, `observation_date`, `month` or
        `period` (any case), else the first column; the
        value column is `value_column` or the first non-date column.
    name : str, optional
        Series name; defaults to the file stem.
    value_column : str, optional
        Explicit value column name.
    start : str or pd.Period, optional
        Calendar anchor, e.g. "1995-08".

    Returns
    -------
    pd.Series
        Float series with contiguous monthly PeriodIndex.

    Raises
    ------
    DataFormatError
        Missing file, wrong shape, unparseable or missing values, or row
        spacing inconsistent with a monthly frequency.
    """
    series_path = Path(series_path)
    if not series_path.is_file():
        raise DataFormatError(f"Series CSV not found: {series_path}")

    logger.info("Loading export series from: %s", series_path)
    try:
        df = pd.read_csv(series_path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise DataFormatError(f"Cannot parse {series_path}: {e}") from e
    date_col, val_col = _pick_columns(df, value_column)

    values = pd.to_numeric(df[val_col], errors="coerce")
    if values.isna().any():
        bad = df.index[values.isna()].tolist()[:5]
        raise DataFormatError(f"Non-numeric or missing values in '{val_col}' at rows {bad}.")
    if values.empty:
        raise DataFormatError(f"No rows found in {series_path}.")

    dates = pd.to_datetime(df[date_col], errors="coerce")
    if dates.isna().any():
        bad = df.index[dates.isna()].tolist()[:5]
        raise DataFormatError(f"Unparseable dates in '{date_col}' at rows {bad}.")

    try:
        periods = to_monthly_period_index(dates)
        check_monthly_contiguity(periods)
    except ValueError as e:
        raise DataFormatError(f"{series_path.name}: {e}") from e

    series_name = name if name is not None else series_path.stem
    if start is not None:
        anchor = pd.Period(start, freq="M")
        if anchor != periods[0]:
            logger.warning("%s: dates begin at %s but series is anchored at %s.",
                           series_path.name, periods[0], anchor)
        series = series_from_values(values, anchor, series_name)
    else:
        series = pd.Series(values.to_numpy(dtype=float), index=periods, name=series_name)
    logger.info("Loaded %s: %d months (%s to %s)", series_name, len(series),
                series.index[0], series.index[-1])
    return series


def load_export_pair(ca_path: Path,
                     ny_path: Path,
                     start: Optional[Union[str, pd.Period]] = None,
                     names: Tuple[str, str] = ("CA", "NY")) -> Tuple[pd.Series, pd.Series]:
    """
    Load the California and New York export series anchored at a shared start.

    Raises
    ------
    DataFormatError
        If either file is malformed, or the two series differ in length or
        start period.
    """
    ca = load_export_series_csv(ca_path, name=names[0], start=start)
    ny = load_export_series_csv(ny_path, name=names[1], start=start)

    if len(ca) != len(ny):
        raise DataFormatError(
            f"Series lengths differ: {names[0]}={len(ca)} months, {names[1]}={len(ny)} months."
        )
    if ca.index[0] != ny.index[0]:
        raise DataFormatError(
            f"Series start periods differ: {names[0]}={ca.index[0]}, {names[1]}={ny.index[0]}."
        )
    return ca, ny


def series_from_values(values, start: Union[str, pd.Period], name: str) -> pd.Series:
    """Build a monthly series from raw values anchored at `start`."""
    arr = pd.to_numeric(pd.Series(list(values)), errors="coerce")
    if arr.empty or arr.isna().any():
        raise DataFormatError(f"Series '{name}' contains missing or non-numeric values.")
    index = pd.period_range(start=pd.Period(start, freq="M"), periods=len(arr), freq="M")
    return pd.Series(arr.to_numpy(dtype=float), index=index, name=name)
