from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

import pandas as pd

from ..excel.cells import text
from ..excel.columns import RawSheetRow, resolve_rows, unmatched_headers

"""Abstract sheet parser.

A concrete parser declares the sheet it reads, its synonym enum, the column
holding the row's primary name, and ``build()`` turning one ``RawSheetRow`` into
a record. Rows whose primary name is empty after trimming are dropped here, so
every parser gets that filtering for free.
"""

__all__ = [
    "SheetParser",
    "Clock",
]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class SheetParser(ABC):
    """Base class for all RVTools sheet parsers."""

    sheet_name: ClassVar[str]
    # older RVTools releases prefixed tab names with "tab"
    sheet_aliases: ClassVar[tuple[str, ...]] = ()
    columns: ClassVar[type[Enum]]
    key: ClassVar[Enum]
    # headers known to be irrelevant; kept out of the unknown-header debug log
    ignored_headers: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, now: Clock | None = None) -> None:
        self._now = now or utc_now

    @property
    def sheet_names(self) -> tuple[str, ...]:
        return (self.sheet_name, *self.sheet_aliases)

    def parse(self, frame: pd.DataFrame) -> list[Any]:
        """Parse one raw worksheet (read with ``header=None``)."""
        if frame.shape[0] >= 1 and logger.isEnabledFor(logging.DEBUG):
            unknown = unmatched_headers(frame.iloc[0].tolist(), self.columns, self.ignored_headers)
            if unknown:
                logger.debug("%s: unrecognised headers %s", self.sheet_name, unknown)
        records: list[Any] = []
        for row in resolve_rows(frame, self.columns):
            if not text(row, self.key):
                continue
            records.append(self.build(row))
        return records

    @abstractmethod
    def build(self, row: RawSheetRow) -> Any:
        """Build one record from a resolved row whose key is non-empty."""
