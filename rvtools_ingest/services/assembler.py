from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..errors import IngestError, WorkbookStructureError
from ..excel.reader import WorkbookSource, read_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.dataset import DatasetMetadata, NormalizedDataset
from ..models.error_record import ErrorRecord
from ..models.inventory import SourceInfo, VirtualMachine
from ..parsers import MANDATORY_SHEETS, PARSER_TYPES, Clock, SheetParser
from .progress import ProgressTracker

"""Workbook assembly.

Runs every sheet parser over its sheet and assembles the ``NormalizedDataset``.

- vInfo and vDisk are mandatory; their absence raises ``WorkbookStructureError``
  before any parser runs.
- An optional sheet that is absent yields an empty tuple.
- An optional sheet whose parser fails unexpectedly is recorded in the error
  log and treated as absent; a mandatory one aborts the ingestion.

Nothing is returned on failure, so a caller holding a previous dataset keeps it
untouched.
"""

__all__ = [
    "IngestResult",
    "find_sheet",
    "assemble_dataset",
    "ingest_workbook",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    dataset: NormalizedDataset
    skipped_sheets: tuple[str, ...]
    failed_sheets: tuple[str, ...]
    elapsed_seconds: float

    @property
    def record_count(self) -> int:
        return sum(self.dataset.sheet_counts.values())


def find_sheet(sheets: Mapping[str, Any], parser: SheetParser) -> str | None:
    """Locate the parser's sheet: exact name/alias first, then case-insensitive."""
    for name in parser.sheet_names:
        if name in sheets:
            return name
    lowered = {str(k).strip().lower(): k for k in sheets}
    for name in parser.sheet_names:
        hit = lowered.get(name.lower())
        if hit is not None:
            return hit
    return None


def _dedupe_vms(vms: list[VirtualMachine]) -> tuple[VirtualMachine, ...]:
    by_name: dict[str, VirtualMachine] = {}
    for vm in vms:
        # 同名 VM は後勝ち
        by_name[vm.vm_name] = vm
    duplicates = len(vms) - len(by_name)
    if duplicates:
        logger.warning("vInfo: %d duplicate VM name(s); last row wins", duplicates)
    return tuple(by_name.values())


def _metadata(
    file_name: str, sources: tuple[SourceInfo, ...], vms: tuple[VirtualMachine, ...]
) -> DatasetMetadata:
    primary = sources[0] if sources else None
    collection_date: datetime | None = None
    if primary is not None and primary.server_time is not None:
        collection_date = primary.server_time
    else:
        # vSource が無い古いエクスポートは vInfo 作成日の最大値で代用
        created = [vm.creation_date for vm in vms if vm.creation_date is not None]
        collection_date = max(created) if created else None
    return DatasetMetadata(
        file_name=file_name,
        collection_date=collection_date,
        vcenter_version=primary.version if primary else None,
        server=primary.server if primary else None,
    )


def assemble_dataset(
    sheets: Mapping[str, pd.DataFrame],
    *,
    file_name: str = "",
    now: Clock | None = None,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = False,
) -> tuple[NormalizedDataset, list[str], list[str]]:
    """Parse raw sheets into a dataset.

    Returns:
        (dataset, skipped optional sheet names, failed optional sheet names)

    Raises:
        WorkbookStructureError: vInfo or vDisk is missing
        IngestError: a mandatory sheet could not be parsed
    """
    parsers = {attr: cls(now=now) for attr, cls in PARSER_TYPES.items()}
    missing = [
        p.sheet_name
        for p in parsers.values()
        if p.sheet_name in MANDATORY_SHEETS and find_sheet(sheets, p) is None
    ]
    if missing:
        raise WorkbookStructureError(missing)

    parsed: dict[str, tuple[Any, ...]] = {}
    counts: dict[str, int] = {}
    skipped: list[str] = []
    failed: list[str] = []
    with ProgressTracker(len(parsers), enabled=show_progress) as progress:
        for attr, parser in parsers.items():
            progress.start(parser.sheet_name)
            sheet = find_sheet(sheets, parser)
            if sheet is None:
                logger.debug("sheet %s not present", parser.sheet_name)
                skipped.append(parser.sheet_name)
                parsed[attr] = ()
                progress.finish(0)
                continue
            try:
                records = parser.parse(sheets[sheet])
            except Exception as e:
                if parser.sheet_name in MANDATORY_SHEETS:
                    raise IngestError(f"sheet '{sheet}' could not be parsed: {e}") from e
                logger.warning("sheet %s skipped: %s", sheet, e)
                if error_log is not None:
                    error_log.append(
                        ErrorRecord.create(file_name, sheet, -1, "SHEET_PARSE_FAILED", str(e))
                    )
                failed.append(parser.sheet_name)
                records = []
            parsed[attr] = tuple(records)
            counts[parser.sheet_name] = len(records)
            logger.debug("sheet %s: %d records", sheet, len(records))
            progress.finish(len(records))

    vms = _dedupe_vms(list(parsed["vms"]))
    parsed["vms"] = vms
    counts[parsers["vms"].sheet_name] = len(vms)
    dataset = NormalizedDataset(
        metadata=_metadata(file_name, parsed["sources"], vms),
        sheet_counts=counts,
        **parsed,
    )
    return dataset, skipped, failed


def ingest_workbook(
    source: WorkbookSource,
    *,
    file_name: str | None = None,
    keep_na_strings: list[str] | None = None,
    now: Clock | None = None,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = False,
) -> IngestResult:
    """Read and assemble one RVTools workbook.

    Raises:
        WorkbookReadError: the file could not be read
        WorkbookStructureError: a mandatory sheet is missing
    """
    started = datetime.now(UTC)
    if file_name is None:
        file_name = Path(source).name if isinstance(source, (str, Path)) else ""
    sheets = read_workbook(source, keep_na_strings=keep_na_strings)
    logger.debug("%s: %d sheets read", file_name, len(sheets))
    dataset, skipped, failed = assemble_dataset(
        sheets,
        file_name=file_name,
        now=now,
        error_log=error_log,
        show_progress=show_progress,
    )
    elapsed = (datetime.now(UTC) - started).total_seconds()
    logger.info(
        "%s: %d VMs, %d hosts, %d clusters parsed in %.2fs",
        file_name,
        len(dataset.vms),
        len(dataset.hosts),
        len(dataset.clusters),
        elapsed,
    )
    return IngestResult(
        dataset=dataset,
        skipped_sheets=tuple(skipped),
        failed_sheets=tuple(failed),
        elapsed_seconds=elapsed,
    )
