from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from enum import Enum
from typing import Any

import pandas as pd

"""Column resolution for RVTools sheets.

Every sheet parser owns an ``Enum`` whose members are the canonical fields of
that sheet and whose values are the tuples of header spellings seen across
RVTools releases. Matching is exact and case-sensitive; the tuples therefore
enumerate the known case variants explicitly.

When a header row carries more than one spelling of the same field, the
spelling listed first in the tuple wins. Headers that match nothing are
ignored so newer exports with extra columns keep parsing.
"""

__all__ = [
    "RawSheetRow",
    "resolve_columns",
    "resolve_rows",
    "unmatched_headers",
]

logger = logging.getLogger(__name__)

RawSheetRow = dict[Enum, Any]


def _header_positions(header: Sequence[Any]) -> dict[str, int]:
    positions: dict[str, int] = {}
    for idx, raw in enumerate(header):
        if raw is None or (isinstance(raw, float) and pd.isna(raw)):
            continue
        text = str(raw).strip()
        # 同名ヘッダが複数ある場合は左端を採用
        positions.setdefault(text, idx)
    return positions


def resolve_columns(header: Sequence[Any], columns: type[Enum]) -> dict[int, Enum]:
    """Map column index -> canonical field for one header row.

    Parameters
    ----------
    header: header row cells in sheet order
    columns: the sheet's synonym enum

    Never raises. A field with no matching header is simply absent from the
    result and its cell accessor falls back to the accessor default.
    """
    positions = _header_positions(header)
    mapping: dict[int, Enum] = {}
    for field in columns:
        for spelling in field.value:
            idx = positions.get(spelling)
            if idx is None or idx in mapping:
                continue
            mapping[idx] = field
            break
    return mapping


def unmatched_headers(
    header: Sequence[Any], columns: type[Enum], ignored: Iterable[str] = ()
) -> list[str]:
    """Headers that neither resolve to a field nor appear in ``ignored``."""
    known: set[str] = set(ignored)
    for field in columns:
        known.update(field.value)
    return [name for name in _header_positions(header) if name and name not in known]


def resolve_rows(frame: pd.DataFrame, columns: type[Enum]) -> Iterator[RawSheetRow]:
    """Yield one ``RawSheetRow`` per non-blank data row of ``frame``.

    ``frame`` is the raw sheet as read with ``header=None``: row 0 is the header
    row, rows 1.. are data. Blank cells (NaN) are left out of the row mapping.
    """
    if frame.shape[0] < 1:
        return
    mapping = resolve_columns(frame.iloc[0].tolist(), columns)
    if not mapping:
        logger.debug("no known columns in header: %s", frame.iloc[0].tolist())
        return
    for _, raw in frame.iloc[1:].iterrows():
        if raw.isna().all():
            continue
        values = raw.tolist()
        row: RawSheetRow = {}
        for idx, field in mapping.items():
            if idx >= len(values):
                continue
            val = values[idx]
            if val is None or (not isinstance(val, str) and pd.isna(val)):
                continue
            row[field] = val
        yield row
