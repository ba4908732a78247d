# export_forecaster_src/parsing_utils.py

import argparse
from typing import Optional, List, Tuple
import logging

logger = logging.getLogger(__name__)


def _parse_int_list(txt: str) -> List[int]:
    """'0-3' -> [0, 1, 2, 3]; '0,2,4' -> [0, 2, 4]. Raises ValueError on bad input."""
    txt = txt.strip()
    if "-" in txt and "," not in txt:
        a, b = txt.split("-", 1)
        lo, hi = int(a.strip()), int(b.strip())
        if hi < lo:
            raise ValueError(f"Empty range '{txt}'")
        return list(range(lo, hi + 1))
    return [int(x.strip()) for x in txt.split(",") if x.strip() != ""]


def parse_range_arg(s: Optional[str], default: str = "0-2", config_key: Optional[str] = None,
                    args: Optional[argparse.Namespace] = None,
                    cli_param: Optional[str] = None) -> List[int]:
    """
    Parse a CLI range argument like '0-2' or '0,1,2' into a list of integers.

    Parameters
    ----------
    s : str, optional
        CLI range argument string to parse
    default : str, default="0-2"
        Default range if no CLI arg or config value provided
    config_key : str, optional
        Configuration key path for fallback value
    args : argparse.Namespace, optional
        CLI arguments for precedence checking
    cli_param : str, optional
        Attribute of `args` holding the CLI value

    Returns
    -------
    List[int]
        Parsed range as sorted list of unique non-negative integers

    Raises
    ------
    ValueError
        If the value cannot be parsed or contains negative numbers

    Examples
    --------
    >>> parse_range_arg("0-2")
    [0, 1, 2]
    >>> parse_range_arg("0,2")
    [0, 2]
    """
    from .config_utils import get_config_value

    if config_key:
        range_value = get_config_value(config_key, default, args, cli_param)
        if isinstance(range_value, list):
            out = [int(x) for x in range_value]
        else:
            out = _parse_int_list(str(range_value) if range_value is not None else default)
    else:
        try:
            out = _parse_int_list(s or default)
        except ValueError as e:
            raise ValueError(f"Invalid range '{s}': {e}") from e

    if not out:
        raise ValueError(f"Range '{s or default}' is empty")
    if any(v < 0 for v in out):
        raise ValueError(f"Range values must be non-negative, got {out}")
    return sorted(set(out))


def parse_order_arg(s, name: str = "order") -> Tuple[int, int, int]:
    """
    Parse a model order such as '2,0,0' (or a 3-item list from config).

    Examples
    --------
    >>> parse_order_arg("3,0,0")
    (3, 0, 0)
    >>> parse_order_arg([1, 0, 1])
    (1, 0, 1)
    """
    if isinstance(s, (list, tuple)):
        parts = list(s)
    else:
        parts = [x.strip() for x in str(s).replace("(", "").replace(")", "").split(",") if x.strip()]
    try:
        values = tuple(int(x) for x in parts)
    except ValueError as e:
        raise ValueError(f"Invalid {name} '{s}': expected three integers like '2,0,0'") from e
    if len(values) != 3 or any(v < 0 for v in values):
        raise ValueError(f"Invalid {name} '{s}': expected three non-negative integers")
    return values


def validate_criterion(criterion: str, allowed: Tuple[str, ...]) -> str:
    """Lower-case an information criterion name and check it is supported."""
    value = criterion.lower()
    if value not in allowed:
        raise ValueError(f"Invalid criterion '{criterion}'. Must be one of: {list(allowed)}")
    return value


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
