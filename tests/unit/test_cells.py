from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

import pandas as pd
import pytest

from rvtools_ingest.excel.cells import (
    boolean,
    date,
    integer,
    number,
    optional_number,
    optional_text,
    text,
)

"""Unit tests for the typed cell accessors.

Every accessor must resolve missing or malformed input to its default
instead of raising.
"""


class F(Enum):
    X = ("X",)


def row(value):
    return {F.X: value}


@pytest.mark.parametrize(
    "value,expected",
    [("  web01 ", "web01"), (12.0, "12"), (True, "true"), (None, ""), (float("nan"), "")],
)
def test_text(value, expected):
    assert text(row(value), F.X) == expected


def test_text_missing_field():
    assert text({}, F.X) == ""


def test_optional_text_empty_is_none():
    assert optional_text(row("   "), F.X) is None
    assert optional_text(row("value"), F.X) == "value"


@pytest.mark.parametrize(
    "value,expected",
    [(4096, 4096.0), ("1,024", 1024.0), ("abc", 0.0), (None, 0.0), (float("inf"), 0.0), (True, 1.0)],
)
def test_number(value, expected):
    assert number(row(value), F.X) == expected


def test_optional_number_zero_is_none():
    assert optional_number(row(0), F.X) is None
    assert optional_number(row("12.5"), F.X) == 12.5


def test_integer_truncates():
    assert integer(row(3.9), F.X) == 3
    assert integer(row("x"), F.X) == 0


@pytest.mark.parametrize(
    "value,expected",
    [
        (True, True),
        (False, False),
        (1, True),
        (0, False),
        ("TRUE", True),
        ("yes", True),
        ("1", True),
        ("no", False),
        ("enabled", False),
        (None, False),
    ],
)
def test_boolean(value, expected):
    assert boolean(row(value), F.X) is expected


def test_date_from_datetime_is_utc_aware():
    result = date(row(datetime(2024, 3, 1, 12, 0)), F.X)
    assert result == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def test_date_from_timestamp():
    result = date(row(pd.Timestamp("2024-03-01 08:30:00")), F.X)
    assert result is not None and result.tzinfo is not None
    assert result.hour == 8


def test_date_from_string():
    result = date(row("2024-01-15"), F.X)
    assert result == datetime(2024, 1, 15, tzinfo=UTC)


def test_date_from_excel_serial():
    # 45000 = 2023-03-15
    result = date(row(45000), F.X)
    assert result == datetime(2023, 3, 15, tzinfo=UTC)


@pytest.mark.parametrize("value", ["not a date", -5, None, True])
def test_date_invalid_is_none(value):
    assert date(row(value), F.X) is None
