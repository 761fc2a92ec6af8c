from __future__ import annotations

"""Exception hierarchy shared across the ingestion pipeline.

Field-level data problems never raise; they resolve to typed defaults inside the
cell accessors. Only structural problems (unreadable workbook, missing mandatory
sheet) abort an ingestion attempt.
"""

__all__ = [
    "IngestError",
    "WorkbookReadError",
    "WorkbookStructureError",
]


class IngestError(Exception):
    """Base class for fatal ingestion failures."""


class WorkbookReadError(IngestError):
    """Raised when the workbook file cannot be opened or parsed by pandas."""


class WorkbookStructureError(IngestError):
    """Raised when a mandatory sheet (vInfo / vDisk) is absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"workbook missing mandatory sheets: {', '.join(self.missing)}")
