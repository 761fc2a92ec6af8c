from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from ..config.loader import Thresholds
from ..models.assessment import CheckResult, Severity
from ..models.dataset import NormalizedDataset
from ..models.inventory import VirtualMachine
from .os_compat import is_os_blocker

"""Pre-flight checks for the two migration targets.

``vsi``  : IBM Cloud VPC virtual server instances
``roks`` : OpenShift Virtualization (MTV)

Each check is a per-VM predicate. ``vm_findings`` evaluates all checks of a
mode for one VM (used by complexity scoring); ``run_preflight`` evaluates them
over a population and reports only checks with at least one affected VM.
"""

__all__ = [
    "BOOT_DISK_MIN_GIB",
    "BOOT_DISK_MAX_GIB",
    "MAX_DISKS_PER_VM",
    "LARGE_MEMORY_GIB",
    "LARGE_DISK_GIB",
    "PreflightCheck",
    "checks_for_mode",
    "vm_findings",
    "run_preflight",
    "count_by_severity",
]

BOOT_DISK_MIN_GIB = 10
BOOT_DISK_MAX_GIB = 250
MAX_DISKS_PER_VM = 12
LARGE_MEMORY_GIB = 512
LARGE_DISK_GIB = 2048

_RFC1123 = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
_PLACEHOLDER_HOSTNAMES = {"localhost", "localhost.localdomain", "localhost.local"}
_LEGACY_NIC_TYPES = ("e1000", "vlance", "flexible")


@dataclass(frozen=True)
class _VMContext:
    vm: VirtualMachine
    dataset: NormalizedDataset
    thresholds: Thresholds

    @property
    def disks(self):
        return self.dataset.disks_for(self.vm.vm_name)

    @property
    def tools_status(self) -> str:
        tools = self.dataset.tools_for(self.vm.vm_name)
        return tools.tools_status.lower() if tools else ""


@dataclass(frozen=True)
class PreflightCheck:
    check_id: str
    name: str
    severity: Severity
    description: str
    remediation: str
    predicate: Callable[[_VMContext], bool]


# -- predicates ---------------------------------------------------------------


def _boot_disk_gib(ctx: _VMContext) -> float | None:
    disks = ctx.disks
    if not disks:
        return None
    # ブートディスクは disk key 最小のもの
    return min(disks, key=lambda d: d.disk_key).capacity_gib


def _small_boot_disk(ctx: _VMContext) -> bool:
    size = _boot_disk_gib(ctx)
    return size is not None and size < BOOT_DISK_MIN_GIB


def _large_boot_disk(ctx: _VMContext) -> bool:
    size = _boot_disk_gib(ctx)
    return size is not None and size > BOOT_DISK_MAX_GIB


def _too_many_disks(ctx: _VMContext) -> bool:
    return len(ctx.disks) > MAX_DISKS_PER_VM


def _has_rdm(ctx: _VMContext) -> bool:
    return any(d.raw for d in ctx.disks)


def _has_shared_disk(ctx: _VMContext) -> bool:
    return any(d.is_shared for d in ctx.disks)


def _has_independent_disk(ctx: _VMContext) -> bool:
    return any(d.is_independent for d in ctx.disks)


def _has_large_disk(ctx: _VMContext) -> bool:
    return any(d.capacity_gib > LARGE_DISK_GIB for d in ctx.disks)


def _no_tools(ctx: _VMContext) -> bool:
    status = ctx.tools_status
    return not status or "notinstalled" in status


def _tools_not_running(ctx: _VMContext) -> bool:
    return ctx.tools_status in ("toolsnotrunning", "guesttoolsnotrunning")


def _old_snapshot(ctx: _VMContext) -> bool:
    limit = ctx.thresholds.snapshot_blocker_age_days
    return any(s.age_in_days > limit for s in ctx.dataset.snapshots_for(ctx.vm.vm_name))


def _large_memory(ctx: _VMContext) -> bool:
    return ctx.vm.memory_mib > LARGE_MEMORY_GIB * 1024


def _vsi_unsupported_os(ctx: _VMContext) -> bool:
    return is_os_blocker(ctx.vm.effective_guest_os, "vsi")


def _cd_connected(ctx: _VMContext) -> bool:
    return any(cd.connected for cd in ctx.dataset.cdroms_for(ctx.vm.vm_name))


def _old_hardware(ctx: _VMContext) -> bool:
    return ctx.vm.hardware_version_number < ctx.thresholds.hw_version_minimum


def _cbt_disabled(ctx: _VMContext) -> bool:
    return not ctx.vm.cbt_enabled


def _invalid_name(ctx: _VMContext) -> bool:
    name = ctx.vm.vm_name
    return not name or len(name) > 63 or _RFC1123.match(name.lower()) is None


def _cpu_hot_plug(ctx: _VMContext) -> bool:
    cpu = ctx.dataset.cpu_for(ctx.vm.vm_name)
    return bool(cpu and cpu.hot_add_enabled)


def _memory_hot_plug(ctx: _VMContext) -> bool:
    memory = ctx.dataset.memory_for(ctx.vm.vm_name)
    return bool(memory and memory.hot_add_enabled)


def _missing_hostname(ctx: _VMContext) -> bool:
    hostname = (ctx.vm.guest_hostname or "").strip().lower()
    return not hostname or hostname in _PLACEHOLDER_HOSTNAMES


def _legacy_nic(ctx: _VMContext) -> bool:
    return any(
        nic.adapter_type.lower().startswith(_LEGACY_NIC_TYPES)
        for nic in ctx.dataset.nics_for(ctx.vm.vm_name)
    )


# -- check tables -------------------------------------------------------------

B, W, I = Severity.BLOCKER, Severity.WARNING, Severity.INFO

_VSI_CHECKS: tuple[PreflightCheck, ...] = (
    PreflightCheck(
        "boot-disk-too-small",
        f"Boot Disk Below {BOOT_DISK_MIN_GIB}GB Minimum",
        B,
        f"VPC VSI boot volumes require at least {BOOT_DISK_MIN_GIB}GB.",
        f"Increase the boot disk to at least {BOOT_DISK_MIN_GIB}GB before migration.",
        _small_boot_disk,
    ),
    PreflightCheck(
        "boot-disk-too-large",
        f"Boot Disk Exceeds {BOOT_DISK_MAX_GIB}GB Limit",
        B,
        f"VPC VSI boot volumes are limited to {BOOT_DISK_MAX_GIB}GB.",
        "Move data to secondary disks so the boot volume fits the limit.",
        _large_boot_disk,
    ),
    PreflightCheck(
        "too-many-disks",
        f"Exceeds {MAX_DISKS_PER_VM} Disk Limit",
        B,
        f"VPC VSI supports at most {MAX_DISKS_PER_VM} disks per instance.",
        "Consolidate disks or move data volumes to file storage.",
        _too_many_disks,
    ),
    PreflightCheck(
        "no-rdm",
        "RDM Disks Detected",
        B,
        "Raw Device Mapping disks cannot be migrated; only VMDK disks are supported.",
        "Convert RDM disks to VMDK before migration.",
        _has_rdm,
    ),
    PreflightCheck(
        "no-shared-disks",
        "Shared Disks Detected",
        B,
        "VPC VSI does not support shared block volumes.",
        "Move shared storage to VPC file storage or an iSCSI target.",
        _has_shared_disk,
    ),
    PreflightCheck(
        "unsupported-os",
        "Unsupported Operating System",
        B,
        "No IBM stock image exists for these guest operating systems.",
        "Upgrade the OS or import and validate a custom image.",
        _vsi_unsupported_os,
    ),
    PreflightCheck(
        "tools-installed",
        "VMware Tools Not Installed",
        W,
        "VMware Tools are needed for a clean export and guest OS detection.",
        "Install VMware Tools before exporting the VM.",
        _no_tools,
    ),
    PreflightCheck(
        "large-memory-warning",
        f"Large Memory VMs (>{LARGE_MEMORY_GIB}GB)",
        W,
        "High-memory profiles may have limited regional availability.",
        "Verify a high-memory profile is available in the target region.",
        _large_memory,
    ),
    PreflightCheck(
        "large-disks",
        "Large Disks (>2TB)",
        W,
        "Disks larger than 2TB may need several block volumes or file storage.",
        "Plan a disk migration strategy for the large volumes.",
        _has_large_disk,
    ),
    PreflightCheck(
        "old-snapshots",
        "Old Snapshots",
        W,
        "Snapshots should be consolidated before export.",
        "Delete or consolidate old snapshots before VM export.",
        _old_snapshot,
    ),
)

_ROKS_CHECKS: tuple[PreflightCheck, ...] = (
    PreflightCheck(
        "tools-installed",
        "VMware Tools Installed",
        B,
        "MTV needs VMware Tools to read guest information.",
        "Install VMware Tools before migration.",
        _no_tools,
    ),
    PreflightCheck(
        "old-snapshots",
        "No Old Snapshots",
        B,
        "Old snapshots slow down or break warm migration.",
        "Consolidate or delete old snapshots.",
        _old_snapshot,
    ),
    PreflightCheck(
        "no-rdm",
        "No RDM Disks",
        B,
        "RDM disks cannot be transferred by MTV.",
        "Convert RDM disks to VMDK.",
        _has_rdm,
    ),
    PreflightCheck(
        "no-shared-disks",
        "No Shared Disks",
        B,
        "Shared or multi-writer disks are not supported by MTV.",
        "Remove disk sharing before migration.",
        _has_shared_disk,
    ),
    PreflightCheck(
        "independent-disk",
        "No Independent Disks",
        B,
        "Independent disks are excluded from snapshots and cannot be transferred.",
        "Switch the disk mode to dependent.",
        _has_independent_disk,
    ),
    PreflightCheck(
        "tools-running",
        "VMware Tools Running",
        W,
        "Tools are installed but not running.",
        "Start VMware Tools in the guest.",
        _tools_not_running,
    ),
    PreflightCheck(
        "cd-disconnected",
        "CD-ROM Disconnected",
        W,
        "Connected CD-ROM devices can block migration.",
        "Disconnect CD-ROM devices before migration.",
        _cd_connected,
    ),
    PreflightCheck(
        "hw-version",
        "Hardware Version",
        W,
        "Old virtual hardware versions lack features MTV relies on.",
        "Upgrade the VM hardware version.",
        _old_hardware,
    ),
    PreflightCheck(
        "network-adapter",
        "Legacy Network Adapter",
        I,
        "Legacy NIC types are replaced by virtio during migration.",
        "Review guest network configuration after migration.",
        _legacy_nic,
    ),
    PreflightCheck(
        "cbt-enabled",
        "Changed Block Tracking",
        W,
        "Warm migration is slower without CBT.",
        "Enable CBT on the VM.",
        _cbt_disabled,
    ),
    PreflightCheck(
        "vm-name-rfc1123",
        "VM Name RFC 1123",
        W,
        "VM names must be lowercase alphanumerics and hyphens, at most 63 characters.",
        "Rename the VM or set a target name in the migration plan.",
        _invalid_name,
    ),
    PreflightCheck(
        "cpu-hot-plug",
        "CPU Hot Plug",
        W,
        "CPU hot plug is disabled after migration.",
        "Size vCPUs for peak load before migration.",
        _cpu_hot_plug,
    ),
    PreflightCheck(
        "memory-hot-plug",
        "Memory Hot Plug",
        W,
        "Memory hot plug is disabled after migration.",
        "Size memory for peak load before migration.",
        _memory_hot_plug,
    ),
    PreflightCheck(
        "hostname-missing",
        "Guest Hostname",
        W,
        "The guest hostname is missing or a localhost placeholder.",
        "Configure a proper hostname before migration.",
        _missing_hostname,
    ),
)


def checks_for_mode(mode: str) -> tuple[PreflightCheck, ...]:
    if mode == "vsi":
        return _VSI_CHECKS
    if mode == "roks":
        return _ROKS_CHECKS
    raise ValueError(f"unknown migration mode: {mode!r}")


def vm_findings(
    vm: VirtualMachine,
    dataset: NormalizedDataset,
    mode: str,
    thresholds: Thresholds | None = None,
) -> tuple[PreflightCheck, ...]:
    """Every check of ``mode`` that ``vm`` fails."""
    ctx = _VMContext(vm, dataset, thresholds or Thresholds())
    return tuple(check for check in checks_for_mode(mode) if check.predicate(ctx))


def run_preflight(
    dataset: NormalizedDataset,
    mode: str,
    vms: Iterable[VirtualMachine] | None = None,
    thresholds: Thresholds | None = None,
) -> list[CheckResult]:
    """Evaluate all checks of ``mode``; defaults to non-template VMs."""
    population = list(dataset.non_template_vms if vms is None else vms)
    thresholds = thresholds or Thresholds()
    results: list[CheckResult] = []
    for check in checks_for_mode(mode):
        affected = tuple(
            vm.vm_name
            for vm in population
            if check.predicate(_VMContext(vm, dataset, thresholds))
        )
        if not affected:
            continue
        results.append(
            CheckResult(
                check_id=check.check_id,
                name=check.name,
                severity=check.severity,
                description=check.description,
                remediation=check.remediation,
                affected_vms=affected,
            )
        )
    return results


def count_by_severity(items: Sequence[CheckResult]) -> dict[str, int]:
    """Affected-VM counts summed per severity."""
    counts = {"blockers": 0, "warnings": 0, "info": 0}
    for item in items:
        if item.severity is Severity.BLOCKER:
            counts["blockers"] += item.affected_count
        elif item.severity is Severity.WARNING:
            counts["warnings"] += item.affected_count
        else:
            counts["info"] += item.affected_count
    return counts
