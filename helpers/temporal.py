# -*- coding: utf-8 -*-
"""
Temporal utilities for monthly calendar indexes.

Functions
---------
- to_monthly_period_index(index): Convert dates to a monthly PeriodIndex.
- check_monthly_contiguity(index): Reject duplicates, gaps and unordered months.
- future_periods(index, horizon): The `horizon` months following the last observation.
- calendar_time(index): Decimal-year time values (1995-08 -> 1995.5833...).
"""

from __future__ import annotations

import numpy as np
import pandas as pd


def to_monthly_period_index(index) -> pd.PeriodIndex:
    """
    Convert an index of dates to a monthly PeriodIndex.

    - PeriodIndex input is converted with asfreq("M").
    - DatetimeIndex (or anything parseable by pandas) is mapped to the month
      it falls in; day-of-month is discarded.
    """
    if isinstance(index, pd.PeriodIndex):
        return index.asfreq("M")
    try:
        dt = pd.DatetimeIndex(pd.to_datetime(index))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cannot interpret index as dates: {e}") from e
    return dt.to_period("M")


def check_monthly_contiguity(index: pd.PeriodIndex) -> None:
    """
    Validate that `index` is a strictly increasing run of consecutive months.

    Raises
    ------
    ValueError
        If the index is empty, has duplicates, is out of order or skips months.
    """
    if len(index) == 0:
        raise ValueError("Series is empty.")
    if index.has_duplicates:
        dupes = index[index.duplicated()].unique()
        raise ValueError(f"Duplicate months in series: {list(map(str, dupes[:5]))}")

    expected = pd.period_range(start=index[0], periods=len(index), freq="M")
    if not index.equals(expected):
        mismatch = int(np.argmax(np.asarray(index != expected)))
        raise ValueError(
            f"Series is not contiguous monthly data: expected {expected[mismatch]} "
            f"at position {mismatch}, found {index[mismatch]}"
        )


def future_periods(index: pd.PeriodIndex, horizon: int) -> pd.PeriodIndex:
    """Return the `horizon` monthly periods following the last period of `index`."""
    if horizon < 1:
        raise ValueError("horizon must be >= 1")
    return pd.period_range(start=index[-1] + 1, periods=horizon, freq="M")


def calendar_time(index: pd.PeriodIndex) -> np.ndarray:
    """Decimal-year time values for a monthly PeriodIndex (year + (month-1)/12)."""
    return np.asarray(index.year + (index.month - 1) / 12.0, dtype=float)
