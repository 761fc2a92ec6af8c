from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ..config.loader import Thresholds
from ..models.assessment import ComplexityScore, Wave
from ..models.dataset import NormalizedDataset
from ..models.inventory import VirtualMachine
from .complexity import score_vm
from .identity import get_vm_identifier
from .metrics import SubnetLookup

"""Migration wave planning.

Two strategies:

- ``network``: one wave per network group (port group of the VM's first NIC,
  or its cluster with ``group_by="cluster"``), easiest group first.
- ``complexity``: five fixed tiers from Pilot to Remediation.

Every input VM lands in exactly one wave; empty waves are not emitted.
"""

__all__ = [
    "WAVE_MODES",
    "GROUP_BY_OPTIONS",
    "NO_NETWORK",
    "ComplexityTier",
    "COMPLEXITY_TIERS",
    "plan_waves",
]

logger = logging.getLogger(__name__)

WAVE_MODES = ("network", "complexity")
GROUP_BY_OPTIONS = ("portGroup", "cluster")
NO_NETWORK = "No Network"
NO_CLUSTER = "No Cluster"


@dataclass(frozen=True)
class ComplexityTier:
    name: str
    description: str
    min_score: int = 0
    allow_blockers: bool = False

    def accepts(self, score: ComplexityScore) -> bool:
        if score.blockers and not self.allow_blockers:
            return False
        return score.score >= self.min_score


# 上から順に判定し、最初に合致した tier に入れる
COMPLEXITY_TIERS: tuple[ComplexityTier, ...] = (
    ComplexityTier("Wave 1: Pilot", "Simple VMs for initial validation", min_score=90),
    ComplexityTier("Wave 2: Quick Wins", "Low complexity VMs", min_score=75),
    ComplexityTier("Wave 3: Standard", "Moderate complexity VMs", min_score=50),
    ComplexityTier("Wave 4: Complex", "High complexity VMs without blockers", min_score=0),
    ComplexityTier(
        "Wave 5: Remediation",
        "VMs with blockers that need remediation first",
        min_score=0,
        allow_blockers=True,
    ),
)


def _storage_gib(vm: VirtualMachine, dataset: NormalizedDataset) -> float:
    disks = dataset.disks_for(vm.vm_name)
    if disks:
        return sum(d.capacity_mib for d in disks) / 1024
    return vm.provisioned_mib / 1024


def _build_wave(
    name: str,
    description: str,
    members: list[tuple[VirtualMachine, ComplexityScore]],
    dataset: NormalizedDataset,
) -> Wave:
    scores = [s for _, s in members]
    return Wave(
        name=name,
        description=description,
        vm_ids=tuple(s.vm_id for s in scores),
        vm_names=tuple(vm.vm_name for vm, _ in members),
        vcpus=sum(vm.cpus for vm, _ in members),
        memory_gib=round(sum(vm.memory_mib for vm, _ in members) / 1024, 1),
        storage_gib=round(sum(_storage_gib(vm, dataset) for vm, _ in members), 1),
        has_blockers=any(s.blockers for s in scores),
        complexity=round(sum(s.complexity for s in scores) / len(scores), 1),
    )


def _network_key(vm: VirtualMachine, dataset: NormalizedDataset, group_by: str) -> str:
    if group_by == "cluster":
        return vm.cluster or NO_CLUSTER
    nics = dataset.nics_for(vm.vm_name)
    return (nics[0].network_name if nics else "") or NO_NETWORK


def _network_waves(
    members: list[tuple[VirtualMachine, ComplexityScore]],
    dataset: NormalizedDataset,
    group_by: str,
    subnets: SubnetLookup | None,
) -> list[Wave]:
    groups: dict[str, list[tuple[VirtualMachine, ComplexityScore]]] = defaultdict(list)
    for vm, score in members:
        groups[_network_key(vm, dataset, group_by)].append((vm, score))

    waves = []
    for key, group in groups.items():
        if group_by == "cluster":
            description = f"Cluster {key}"
        else:
            description = f"Port group {key}"
            subnet = subnets.get_subnet(key) if subnets is not None else None
            if subnet:
                description += f" ({subnet})"
        waves.append(_build_wave(key, description, group, dataset))
    waves.sort(key=lambda w: (w.complexity, w.name))
    return waves


def _complexity_waves(
    members: list[tuple[VirtualMachine, ComplexityScore]],
    dataset: NormalizedDataset,
) -> list[Wave]:
    buckets: dict[str, list[tuple[VirtualMachine, ComplexityScore]]] = defaultdict(list)
    for vm, score in members:
        tier = next(t for t in COMPLEXITY_TIERS if t.accepts(score))
        buckets[tier.name].append((vm, score))
    return [
        _build_wave(tier.name, tier.description, buckets[tier.name], dataset)
        for tier in COMPLEXITY_TIERS
        if buckets[tier.name]
    ]


def plan_waves(
    dataset: NormalizedDataset,
    vms: Iterable[VirtualMachine],
    scores: Mapping[str, ComplexityScore] | None = None,
    *,
    mode: str = "network",
    group_by: str = "portGroup",
    migration_mode: str = "vsi",
    subnets: SubnetLookup | None = None,
    thresholds: Thresholds | None = None,
) -> list[Wave]:
    """Split ``vms`` into migration waves.

    ``scores`` is keyed by VM identifier; VMs without a score are scored here
    with ``migration_mode``.
    """
    if mode not in WAVE_MODES:
        raise ValueError(f"unknown wave mode: {mode!r}")
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f"unknown wave grouping: {group_by!r}")
    scores = scores or {}
    members: list[tuple[VirtualMachine, ComplexityScore]] = []
    for vm in vms:
        score = scores.get(get_vm_identifier(vm))
        if score is None:
            score = score_vm(vm, dataset, migration_mode, thresholds)
        members.append((vm, score))
    if not members:
        return []

    if mode == "complexity":
        waves = _complexity_waves(members, dataset)
    else:
        waves = _network_waves(members, dataset, group_by, subnets)
    logger.debug("planned %d %s waves for %d VMs", len(waves), mode, len(members))
    return waves
