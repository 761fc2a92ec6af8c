from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import pytest

from rvtools_ingest.errors import IngestError, WorkbookStructureError
from rvtools_ingest.logging.error_log import ErrorLogBuffer
from rvtools_ingest.parsers import VHostParser, VInfoParser
from rvtools_ingest.services.assembler import assemble_dataset, find_sheet, ingest_workbook

"""Unit tests for workbook assembly."""


def frames(sheets: dict[str, list[list]]) -> dict[str, pd.DataFrame]:
    return {name: pd.DataFrame(rows) for name, rows in sheets.items()}


MINIMAL = {
    "vInfo": [["VM", "Powerstate", "Creation date"], ["a", "poweredOn", "2024-01-01"], ["b", "poweredOff", "2024-02-01"]],
    "vDisk": [["VM", "Capacity MiB"], ["a", 1024]],
}


def test_minimal_workbook():
    dataset, skipped, failed = assemble_dataset(frames(MINIMAL), file_name="m.xlsx")
    assert [vm.vm_name for vm in dataset.vms] == ["a", "b"]
    assert len(dataset.disks) == 1
    assert dataset.hosts == ()
    assert failed == []
    assert "vHost" in skipped and "vInfo" not in skipped
    assert dataset.sheet_counts == {"vInfo": 2, "vDisk": 1}
    # vSource 無し: 作成日の最大値
    assert dataset.metadata.collection_date == datetime(2024, 2, 1, tzinfo=UTC)
    assert dataset.metadata.server is None


def test_metadata_from_vsource(sample_sheets, fixed_now):
    dataset, _, _ = assemble_dataset(frames(sample_sheets), file_name="rvtools.xlsx", now=lambda: fixed_now)
    meta = dataset.metadata
    assert meta.file_name == "rvtools.xlsx"
    assert meta.server == "vcenter01.example.com"
    assert meta.vcenter_version == "8.0.2"
    assert meta.collection_date == datetime(2024, 5, 30, 8, 0, tzinfo=UTC)


@pytest.mark.parametrize("drop", ["vInfo", "vDisk"])
def test_missing_mandatory_sheet(drop):
    sheets = {k: v for k, v in MINIMAL.items() if k != drop}
    with pytest.raises(WorkbookStructureError) as e:
        assemble_dataset(frames(sheets))
    assert e.value.missing == [drop]


def test_missing_both_mandatory_sheets():
    with pytest.raises(WorkbookStructureError) as e:
        assemble_dataset(frames({"vHost": [["Host"], ["esx01"]]}))
    assert e.value.missing == ["vInfo", "vDisk"]


def test_sheet_names_are_matched_loosely():
    sheets = frames({"tabvInfo": MINIMAL["vInfo"], "VDISK": MINIMAL["vDisk"]})
    dataset, _, _ = assemble_dataset(sheets)
    assert len(dataset.vms) == 2
    assert len(dataset.disks) == 1


def test_find_sheet():
    parser = VInfoParser()
    assert find_sheet({"vInfo": 1}, parser) == "vInfo"
    assert find_sheet({" vinfo ": 1}, parser) == " vinfo "
    assert find_sheet({"vHost": 1}, parser) is None


def test_duplicate_vm_names_last_row_wins():
    sheets = dict(MINIMAL)
    sheets["vInfo"] = [["VM", "CPUs"], ["a", 1], ["a", 8]]
    dataset, _, _ = assemble_dataset(frames(sheets))
    assert len(dataset.vms) == 1
    assert dataset.vm("a").cpus == 8
    assert dataset.sheet_counts["vInfo"] == 1


def test_optional_sheet_failure_is_recorded(monkeypatch, sample_sheets):
    def boom(self, frame):
        raise RuntimeError("unexpected layout")

    monkeypatch.setattr(VHostParser, "parse", boom)
    log = ErrorLogBuffer()
    dataset, _, failed = assemble_dataset(frames(sample_sheets), file_name="f.xlsx", error_log=log)
    assert failed == ["vHost"]
    assert dataset.hosts == ()
    assert len(dataset.vms) == 4
    [record] = log.records
    assert (record.sheet, record.row, record.error_type) == ("vHost", -1, "SHEET_PARSE_FAILED")
    assert "unexpected layout" in record.message


def test_mandatory_sheet_failure_aborts(monkeypatch):
    def boom(self, frame):
        raise RuntimeError("bad")

    monkeypatch.setattr(VInfoParser, "parse", boom)
    with pytest.raises(IngestError):
        assemble_dataset(frames(MINIMAL))


def test_ingest_workbook(sample_workbook: Path, fixed_now):
    result = ingest_workbook(sample_workbook, now=lambda: fixed_now)
    ds = result.dataset
    assert ds.metadata.file_name == "rvtools.xlsx"
    assert len(ds.vms) == 4
    assert len(ds.non_template_vms) == 3
    assert len(ds.disks) == 5
    assert len(ds.hosts) == 2
    assert ds.snapshots[0].age_in_days == 91
    assert set(result.skipped_sheets) == {"vCPU", "vMemory", "vCD", "vDatastore", "vRP"}
    assert result.failed_sheets == ()
    assert result.record_count == 22
    assert result.elapsed_seconds >= 0
