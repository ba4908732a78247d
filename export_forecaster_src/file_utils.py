# export_forecaster_src/file_utils.py

import csv
import pandas as pd
from pathlib import Path
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# Column order of the per-run metrics table
METRICS_HEADER = [
    "timestamp", "series", "model", "source", "order", "seasonal_order",
    "n", "MAPE", "RMSE", "MSE", "MAE", "AIC", "BIC", "hash_forecast",
]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    No error is raised if the directory already exists.
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/exports_CA.csv", Path("/project"))
    PosixPath('/project/data/exports_CA.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def append_metrics_csv_row(csv_path: Optional[Path],
                           row: Dict[str, Any],
                           header: List[str] = METRICS_HEADER) -> None:
    """
    Append a single metrics row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to metrics CSV file (None to skip writing)
    row : Dict[str, Any]
        Metric values keyed by column name; missing columns are left empty
    header : List[str]
        Column names of the CSV

    Notes
    -----
    Keys of `row` that are not in `header` are dropped with a debug message.
    A write failure is logged and does not interrupt the run.
    """
    if csv_path is None:
        return

    extra = set(row) - set(header)
    if extra:
        logger.debug("Dropping metrics fields not in header: %s", sorted(extra))

    try:
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        exists = csv_path.exists() and csv_path.stat().st_size > 0

        with csv_path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
            if not exists:
                writer.writeheader()
            writer.writerow(row)

    except OSError as e:
        logger.error("Failed to append metrics to %s: %s", csv_path, e)


def append_eval_md(eval_md_path: Path, title: str, body: str) -> None:
    """
    Append a timestamped level-2 section to the markdown report.
    """
    try:
        ensure_dir(eval_md_path.parent)
        ts = datetime.now(timezone.utc).isoformat()
        with eval_md_path.open("a", encoding="utf-8") as f:
            f.write(f"\n\n## {title}  \n")
            f.write(f"_timestamp: {ts}_\n\n")
            f.write(body.strip() + "\n")
    except OSError as e:
        logger.error("Failed to append to report %s: %s", eval_md_path, e)


def md_table_from_df(df: pd.DataFrame,
                     max_rows: int = 10,
                     columns: Optional[List[str]] = None,
                     index: bool = False,
                     float_format: str = "{:.4f}") -> str:
    """
    Convert a DataFrame to a markdown table.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to convert
    max_rows : int, default=10
        Maximum number of rows to include
    columns : Optional[List[str]]
        Specific columns to include (None for all)
    index : bool, default=False
        Include the index as the first column
    float_format : str
        Format applied to float cells

    Returns
    -------
    str
        Markdown table string, empty when there is nothing to show
    """
    if columns is not None:
        keep = [c for c in columns if c in df.columns]
        if keep:
            df = df.loc[:, keep]

    df_disp = df.head(max_rows).copy()
    if index:
        df_disp = df_disp.reset_index()
    cols = list(df_disp.columns)
    if not cols:
        return ""

    def _fmt(value) -> str:
        if isinstance(value, float):
            return float_format.format(value)
        return str(value)

    header = "| " + " | ".join(str(c) for c in cols) + " |"
    separator = "| " + " | ".join("---" for _ in cols) + " |"
    rows = ["| " + " | ".join(_fmt(v) for v in row) + " |"
            for row in df_disp.itertuples(index=False, name=None)]
    return "\n".join([header, separator] + rows)
