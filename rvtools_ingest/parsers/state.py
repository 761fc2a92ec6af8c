from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from ..excel.cells import boolean, date, number, optional_text, text
from ..excel.columns import RawSheetRow
from ..models.inventory import Snapshot, ToolsInfo
from .base import SheetParser

"""Parsers for VM state sheets: vSnapshot, vTools."""

__all__ = [
    "VSnapshotColumn",
    "VSnapshotParser",
    "VToolsColumn",
    "VToolsParser",
    "snapshot_age_days",
]

_SECONDS_PER_DAY = 86400


def snapshot_age_days(taken_at: datetime | None, now: datetime) -> int:
    """Whole days between ``taken_at`` and ``now``, floored, never negative.

    A missing timestamp counts as "taken now" (age 0).
    """
    if taken_at is None:
        return 0
    elapsed = (now - taken_at).total_seconds() / _SECONDS_PER_DAY
    return max(0, math.floor(elapsed))


class VSnapshotColumn(Enum):
    VM_NAME = ("VM", "VM Name")
    POWER_STATE = ("Powerstate", "Power State")
    SNAPSHOT_NAME = ("Name", "Snapshot", "Snapshot Name")
    DESCRIPTION = ("Description",)
    TAKEN_AT = ("Date / time", "Date / Time", "Date", "Created", "Create Time")
    FILENAME = ("Filename", "File Name")
    SIZE_VMSN = ("Size MiB (vmsn)", "Size vmsn MB", "Size MB (vmsn)")
    SIZE_TOTAL = ("Size MiB (total)", "Size MB (total)", "Size MiB", "Size MB")
    QUIESCED = ("Quiesced",)
    STATE = ("State",)
    ANNOTATION = ("Annotation",)
    DATACENTER = ("Datacenter", "DataCenter")
    CLUSTER = ("Cluster",)
    HOST = ("Host",)
    FOLDER = ("Folder",)


class VSnapshotParser(SheetParser):
    sheet_name = "vSnapshot"
    sheet_aliases = ("tabvSnapshot",)
    columns = VSnapshotColumn
    key = VSnapshotColumn.VM_NAME

    def build(self, row: RawSheetRow) -> Snapshot:
        c = VSnapshotColumn
        taken_at = date(row, c.TAKEN_AT)
        return Snapshot(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            snapshot_name=text(row, c.SNAPSHOT_NAME),
            description=optional_text(row, c.DESCRIPTION),
            taken_at=taken_at,
            filename=text(row, c.FILENAME),
            size_vmsn_mib=number(row, c.SIZE_VMSN),
            size_total_mib=number(row, c.SIZE_TOTAL),
            quiesced=boolean(row, c.QUIESCED),
            state=text(row, c.STATE),
            annotation=optional_text(row, c.ANNOTATION),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            host=text(row, c.HOST),
            folder=text(row, c.FOLDER),
            age_in_days=snapshot_age_days(taken_at, self._now()),
        )


class VToolsColumn(Enum):
    VM_NAME = ("VM", "VM Name", "Name")
    POWER_STATE = ("Powerstate", "Power State")
    TEMPLATE = ("Template",)
    VM_VERSION = ("VM Version", "VM version")
    TOOLS_STATUS = ("Tools", "Tools Status", "VMware Tools Status", "Tools status")
    TOOLS_VERSION = ("Tools Version", "Version")
    REQUIRED_VERSION = ("Required Version",)
    UPGRADEABLE = ("Upgradeable",)
    UPGRADE_POLICY = ("Upgrade Policy", "Policy")
    SYNC_TIME = ("Sync time", "Sync Time")
    APP_STATUS = ("App status", "App Status")
    HEARTBEAT_STATUS = ("Heartbeat status", "Heartbeat Status")
    KERNEL_CRASH_STATE = ("Kernel Crash state", "Kernel Crash State")
    OPERATION_READY = ("Operation Ready",)
    DATACENTER = ("Datacenter", "DataCenter")
    CLUSTER = ("Cluster",)
    HOST = ("Host",)


class VToolsParser(SheetParser):
    sheet_name = "vTools"
    sheet_aliases = ("tabvTools",)
    columns = VToolsColumn
    key = VToolsColumn.VM_NAME

    def build(self, row: RawSheetRow) -> ToolsInfo:
        c = VToolsColumn
        return ToolsInfo(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            template=boolean(row, c.TEMPLATE),
            vm_version=text(row, c.VM_VERSION),
            tools_status=text(row, c.TOOLS_STATUS),
            tools_version=optional_text(row, c.TOOLS_VERSION),
            required_version=optional_text(row, c.REQUIRED_VERSION),
            upgradeable=boolean(row, c.UPGRADEABLE),
            upgrade_policy=text(row, c.UPGRADE_POLICY),
            sync_time=boolean(row, c.SYNC_TIME),
            operation_ready=boolean(row, c.OPERATION_READY),
            app_status=optional_text(row, c.APP_STATUS),
            heartbeat_status=optional_text(row, c.HEARTBEAT_STATUS),
            kernel_crash_state=optional_text(row, c.KERNEL_CRASH_STATE),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            host=text(row, c.HOST),
        )
