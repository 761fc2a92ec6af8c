from __future__ import annotations

import io
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

import pandas as pd

from ..errors import WorkbookReadError

"""Workbook reader.

RVTools writes the header on the first row and data from the second row on.
Sheets are read raw (``header=None``) so that column resolution stays with the
synonym tables instead of pandas' own header handling.
"""

__all__ = [
    "SheetHeaderError",
    "SheetData",
    "read_workbook",
    "normalize_sheet",
]

WorkbookSource = Path | str | bytes | IO[bytes]


class SheetHeaderError(Exception):
    """Raised when a sheet has no header row at all."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, Any]]  # 列名 -> 値


def _na_settings(keep_na_strings: list[str] | None) -> tuple[list[str] | None, bool]:
    # pandas._libs.parsers.STR_NA_VALUES holds the default NA spellings
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        custom_na = set(parsers.STR_NA_VALUES) - set(keep_na_strings)
        return list(custom_na), False
    return None, True


def read_workbook(
    source: WorkbookSource,
    target_sheets: Iterable[str] | None = None,
    keep_na_strings: list[str] | None = None,
) -> dict[str, pd.DataFrame]:
    """Read an RVTools workbook returning raw DataFrames keyed by sheet name.

    Parameters
    ----------
    source: path, raw bytes, or binary file object of the ``.xlsx``
    target_sheets: restrict to these sheet names (None = all sheets)
    keep_na_strings: strings pandas would turn into NaN but which must survive
        as text (e.g. a VM literally named ``NA``)

    Raises
    ------
    WorkbookReadError: the file is missing, not a workbook, or corrupt
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    na_values, keep_default_na = _na_settings(keep_na_strings)
    wanted = set(target_sheets) if target_sheets is not None else None
    try:
        xls = pd.ExcelFile(source, engine="openpyxl")
    except FileNotFoundError as e:
        raise WorkbookReadError(f"workbook not found: {e.filename}") from e
    except Exception as e:
        # openpyxl / zipfile raise a variety of types for corrupt input
        raise WorkbookReadError(f"unreadable workbook: {e}") from e

    dfs: dict[str, pd.DataFrame] = {}
    with xls:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            try:
                df = xls.parse(
                    name, header=None, keep_default_na=keep_default_na, na_values=na_values
                )
            except Exception as e:
                raise WorkbookReadError(f"sheet '{name}' unreadable: {e}") from e
            dfs[str(name)] = df
    return dfs


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> SheetData:
    """Turn a raw DataFrame into header + row dicts, for inspection output.

    Rows whose cells are all blank are skipped; blank cells become ``None``.
    """
    if df.shape[0] < 1:
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header row")
    columns = [str(c).strip() for c in df.iloc[0].tolist()]
    rows: list[dict[str, Any]] = []
    for _, raw in df.iloc[1:].iterrows():
        if raw.isna().all():
            continue
        row_dict: dict[str, Any] = {}
        for col, val in zip(columns, raw.tolist(), strict=False):
            if pd.isna(val):
                row_dict[col] = None
            elif isinstance(val, str):
                row_dict[col] = val.strip()
            else:
                row_dict[col] = val
        rows.append(row_dict)
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)
