from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Derived, never-persisted assessment records (plus the override record).

``VMOverride`` is the one record here that leaves the process: it is what the
override store serializes into its JSON envelope.
"""

__all__ = [
    "VMOverride",
    "Severity",
    "CheckResult",
    "ComplexityScore",
    "ReadinessBand",
    "Wave",
]


@dataclass(frozen=True)
class VMOverride:
    vm_id: str
    vm_name: str
    excluded: bool | None = None
    force_included: bool | None = None
    workload_type: str | None = None
    notes: str | None = None
    modified_at: str = ""

    @property
    def is_empty(self) -> bool:
        return (
            not self.excluded
            and not self.force_included
            and not self.workload_type
            and not self.notes
        )

    def to_json(self) -> dict[str, object]:
        data: dict[str, object] = {"vmId": self.vm_id, "vmName": self.vm_name}
        if self.excluded is not None:
            data["excluded"] = self.excluded
        if self.force_included is not None:
            data["forceIncluded"] = self.force_included
        if self.workload_type is not None:
            data["workloadType"] = self.workload_type
        if self.notes is not None:
            data["notes"] = self.notes
        data["modifiedAt"] = self.modified_at
        return data

    @staticmethod
    def from_json(vm_id: str, data: dict[str, object]) -> VMOverride:
        return VMOverride(
            vm_id=str(data.get("vmId") or vm_id),
            vm_name=str(data["vmName"]),
            excluded=_opt_bool(data.get("excluded")),
            force_included=_opt_bool(data.get("forceIncluded")),
            workload_type=_opt_str(data.get("workloadType")),
            notes=_opt_str(data.get("notes")),
            modified_at=str(data.get("modifiedAt") or ""),
        )


def _opt_bool(value: object) -> bool | None:
    return None if value is None else bool(value)


def _opt_str(value: object) -> str | None:
    return None if value is None else str(value)


class Severity(str, Enum):
    BLOCKER = "blocker"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class CheckResult:
    """One pre-flight check evaluated over a VM population."""

    check_id: str
    name: str
    severity: Severity
    description: str
    remediation: str
    affected_vms: tuple[str, ...] = ()

    @property
    def affected_count(self) -> int:
        return len(self.affected_vms)


class ReadinessBand(str, Enum):
    READY = "ready"
    NEEDS_PREPARATION = "needs-preparation"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class ComplexityScore:
    vm_id: str
    vm_name: str
    score: int
    blockers: int = 0
    warnings: int = 0
    os_status: str = "unsupported"
    factors: tuple[str, ...] = field(default=())

    @property
    def complexity(self) -> int:
        """Inverse of ``score``: 0 is trivial, 100 is hardest."""
        return 100 - self.score


@dataclass(frozen=True)
class Wave:
    name: str
    description: str
    vm_ids: tuple[str, ...]
    vm_names: tuple[str, ...]
    vcpus: int
    memory_gib: float
    storage_gib: float
    has_blockers: bool
    complexity: float

    @property
    def vm_count(self) -> int:
        return len(self.vm_ids)
