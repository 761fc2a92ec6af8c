from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

import pandas as pd

from .columns import RawSheetRow

"""Typed cell accessors.

One accessor per semantic type. Each accessor owns its default and never
raises: a missing or malformed cell resolves to the default so that field-level
data problems stay inside the sheet parser.

    vm_name = text(row, Column.VM_NAME)
    cpus = integer(row, Column.CPUS)
"""

__all__ = [
    "CellAccessor",
    "TextCell",
    "OptionalTextCell",
    "NumberCell",
    "IntegerCell",
    "BooleanCell",
    "DateCell",
    "text",
    "optional_text",
    "number",
    "optional_number",
    "integer",
    "boolean",
    "date",
    "TRUTHY_STRINGS",
]

T = TypeVar("T")

TRUTHY_STRINGS = frozenset({"true", "yes", "1"})

# Excel 1900 date system (Lotus 1-2-3 leap year bug included)
_EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=UTC)
_EXCEL_SERIAL_MAX = 2958465  # 9999-12-31


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


class CellAccessor(Generic[T]):
    """Base accessor: look a field up in a raw row and convert it."""

    default: T

    def convert(self, value: Any) -> T:
        raise NotImplementedError

    def __call__(self, row: RawSheetRow, field: Enum) -> T:
        value = row.get(field)
        if _is_blank(value):
            return self.default
        return self.convert(value)


class TextCell(CellAccessor[str]):
    default = ""

    def convert(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (datetime, pd.Timestamp)):
            return value.isoformat()
        return str(value).strip()


class OptionalTextCell(CellAccessor["str | None"]):
    """Like :class:`TextCell` but absent/empty resolves to ``None``."""

    default = None

    def convert(self, value: Any) -> str | None:
        result = text.convert(value)
        return result or None


class NumberCell(CellAccessor[float]):
    default = 0.0

    def convert(self, value: Any) -> float:
        if isinstance(value, bool):
            return 1.0 if value else 0.0
        if isinstance(value, (int, float)):
            return float(value) if math.isfinite(value) else self.default
        cleaned = str(value).strip().replace(",", "").replace(" ", "")
        try:
            parsed = float(cleaned)
        except ValueError:
            return self.default
        return parsed if math.isfinite(parsed) else self.default


class OptionalNumberCell(CellAccessor["float | None"]):
    """Numeric cell where zero and absent both mean "not reported"."""

    default = None

    def convert(self, value: Any) -> float | None:
        parsed = number.convert(value)
        return parsed or None


class IntegerCell(CellAccessor[int]):
    default = 0

    def convert(self, value: Any) -> int:
        return int(number.convert(value))


class BooleanCell(CellAccessor[bool]):
    """Truthy: boolean ``True``, numeric 1, or one of :data:`TRUTHY_STRINGS`."""

    default = False

    def convert(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value == 1
        return str(value).strip().lower() in TRUTHY_STRINGS


class DateCell(CellAccessor["datetime | None"]):
    """Datetime, ISO-like string, or Excel serial number. Result is UTC-aware."""

    default = None

    def convert(self, value: Any) -> datetime | None:
        if isinstance(value, bool):
            return self.default
        if isinstance(value, (int, float)):
            if not 0 < value <= _EXCEL_SERIAL_MAX:
                return self.default
            return _EXCEL_EPOCH + timedelta(days=float(value))
        if isinstance(value, datetime):
            ts = pd.Timestamp(value)
        else:
            ts = pd.to_datetime(str(value).strip(), errors="coerce")
        if ts is pd.NaT or pd.isna(ts):
            return self.default
        if ts.tzinfo is None:
            ts = ts.tz_localize(UTC)
        else:
            ts = ts.tz_convert(UTC)
        return ts.to_pydatetime()


text = TextCell()
optional_text = OptionalTextCell()
number = NumberCell()
optional_number = OptionalNumberCell()
integer = IntegerCell()
boolean = BooleanCell()
date = DateCell()
