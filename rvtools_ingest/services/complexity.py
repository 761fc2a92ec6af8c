from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..config.loader import Thresholds
from ..models.assessment import CheckResult, ComplexityScore, ReadinessBand, Severity
from ..models.dataset import NormalizedDataset
from ..models.inventory import VirtualMachine
from .identity import get_vm_identifier
from .os_compat import lookup_os
from .preflight import count_by_severity, run_preflight, vm_findings

"""Per-VM complexity score and aggregate migration readiness.

Per VM (higher is easier): start at 100, -25 per blocker, -10 per warning,
-20 for an unsupported guest OS, -5 for a partially supported one, floor 0.

Readiness over a population:
``round(100 - (blockers*50 + warnings*30 + unsupported_os*20) / vm_count)``
clamped to 0..100, where blockers/warnings are affected-VM counts summed over
all pre-flight checks.
"""

__all__ = [
    "BASELINE_SCORE",
    "BLOCKER_PENALTY",
    "WARNING_PENALTY",
    "UNSUPPORTED_OS_PENALTY",
    "PARTIAL_OS_PENALTY",
    "ReadinessAssessment",
    "score_vm",
    "score_vms",
    "readiness_score",
    "readiness_band",
    "assess_readiness",
]

BASELINE_SCORE = 100
BLOCKER_PENALTY = 25
WARNING_PENALTY = 10
UNSUPPORTED_OS_PENALTY = 20
PARTIAL_OS_PENALTY = 5

_OS_PENALTY = {"unsupported": UNSUPPORTED_OS_PENALTY, "partial": PARTIAL_OS_PENALTY}


def score_vm(
    vm: VirtualMachine,
    dataset: NormalizedDataset,
    mode: str,
    thresholds: Thresholds | None = None,
) -> ComplexityScore:
    findings = vm_findings(vm, dataset, mode, thresholds)
    blockers = [f for f in findings if f.severity is Severity.BLOCKER]
    warnings = [f for f in findings if f.severity is Severity.WARNING]
    os_status = lookup_os(vm.effective_guest_os, mode).normalized

    score = BASELINE_SCORE
    score -= BLOCKER_PENALTY * len(blockers)
    score -= WARNING_PENALTY * len(warnings)
    score -= _OS_PENALTY.get(os_status, 0)

    factors = [f.name for f in blockers] + [f.name for f in warnings]
    if os_status != "supported":
        factors.append(f"OS {os_status}")
    return ComplexityScore(
        vm_id=get_vm_identifier(vm),
        vm_name=vm.vm_name,
        score=max(0, score),
        blockers=len(blockers),
        warnings=len(warnings),
        os_status=os_status,
        factors=tuple(factors),
    )


def score_vms(
    vms: Iterable[VirtualMachine],
    dataset: NormalizedDataset,
    mode: str,
    thresholds: Thresholds | None = None,
) -> dict[str, ComplexityScore]:
    """vm_id -> score."""
    scores = (score_vm(vm, dataset, mode, thresholds) for vm in vms)
    return {s.vm_id: s for s in scores}


def readiness_score(vm_count: int, blockers: int, warnings: int, unsupported_os: int) -> int:
    if vm_count <= 0:
        return 100
    penalty = (blockers * 50 + warnings * 30 + unsupported_os * 20) / vm_count
    return max(0, min(100, round(100 - penalty)))


def readiness_band(score: int, thresholds: Thresholds | None = None) -> ReadinessBand:
    thresholds = thresholds or Thresholds()
    if score >= thresholds.readiness_ready:
        return ReadinessBand.READY
    if score >= thresholds.readiness_needs_preparation:
        return ReadinessBand.NEEDS_PREPARATION
    return ReadinessBand.BLOCKED


@dataclass(frozen=True)
class ReadinessAssessment:
    mode: str
    vm_count: int
    score: int
    band: ReadinessBand
    blockers: int
    warnings: int
    unsupported_os: int
    checks: tuple[CheckResult, ...]


def assess_readiness(
    dataset: NormalizedDataset,
    mode: str,
    vms: Iterable[VirtualMachine] | None = None,
    thresholds: Thresholds | None = None,
) -> ReadinessAssessment:
    population = list(dataset.non_template_vms if vms is None else vms)
    checks = run_preflight(dataset, mode, population, thresholds)
    counts = count_by_severity(checks)
    unsupported = sum(
        1 for vm in population if lookup_os(vm.effective_guest_os, mode).normalized == "unsupported"
    )
    score = readiness_score(len(population), counts["blockers"], counts["warnings"], unsupported)
    return ReadinessAssessment(
        mode=mode,
        vm_count=len(population),
        score=score,
        band=readiness_band(score, thresholds),
        blockers=counts["blockers"],
        warnings=counts["warnings"],
        unsupported_os=unsupported,
        checks=tuple(checks),
    )
