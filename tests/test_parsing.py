import argparse

import pytest

from export_forecaster_src import config_utils
from export_forecaster_src.parsing_utils import (
    parse_order_arg, parse_range_arg, validate_criterion, validate_log_level
)


def test_parse_range_arg_formats():
    assert parse_range_arg("0-2") == [0, 1, 2]
    assert parse_range_arg("2,0,2") == [0, 2]
    assert parse_range_arg(None, default="1-1") == [1]


def test_parse_range_arg_rejects_bad_input():
    with pytest.raises(ValueError):
        parse_range_arg("a-b")
    with pytest.raises(ValueError):
        parse_range_arg("3-1")


def test_parse_range_arg_config_precedence(monkeypatch):
    monkeypatch.setattr(config_utils, "config_manager", None)
    args = argparse.Namespace(p_range="1,3")

    assert parse_range_arg(None, "0-2", "auto.p_range", args, "p_range") == [1, 3]
    assert parse_range_arg(None, "0-2", "auto.p_range", argparse.Namespace(p_range=None), "p_range") == [0, 1, 2]


def test_parse_order_arg():
    assert parse_order_arg("2,0,0") == (2, 0, 0)
    assert parse_order_arg("(1, 0, 1)") == (1, 0, 1)
    assert parse_order_arg([3, 0, 0]) == (3, 0, 0)
    with pytest.raises(ValueError):
        parse_order_arg("1,0")
    with pytest.raises(ValueError):
        parse_order_arg("1,x,0")
    with pytest.raises(ValueError):
        parse_order_arg("1,-1,0")


def test_validators():
    assert validate_log_level("debug") == "DEBUG"
    assert validate_criterion("AIC", ("aic", "bic")) == "aic"
    with pytest.raises(ValueError):
        validate_log_level("LOUD")
    with pytest.raises(ValueError):
        validate_criterion("mse", ("aic", "bic"))
