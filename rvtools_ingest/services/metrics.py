from __future__ import annotations

import ipaddress
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Protocol

from ..config.loader import Thresholds
from ..models.dataset import NormalizedDataset
from ..models.inventory import PowerState, VirtualMachine
from .exclusion import ExclusionReport, OverrideLookup
from .identity import get_vm_identifier

"""Dashboard metrics derived from a NormalizedDataset.

``compute_metrics`` is pure: same dataset, overrides and filter give the same
result. Headline totals cover every in-scope (non-template, not excluded) VM;
the ``filtered`` block additionally applies the power-state filter.

Satellite-sheet analyses (tools, snapshots, CD-ROMs, disks) only count rows
whose VM is in scope.
"""

__all__ = [
    "NO_CLUSTER",
    "ChartEntry",
    "ClusterStat",
    "ConfigAnalysis",
    "FilteredMetrics",
    "PortGroupSummary",
    "DashboardMetrics",
    "os_category",
    "workload_family",
    "tools_category",
    "firmware_category",
    "compute_metrics",
]

logger = logging.getLogger(__name__)

NO_CLUSTER = "No Cluster"
TOP_N = 10

_POWER_LABELS = (
    (PowerState.POWERED_ON, "Powered On"),
    (PowerState.POWERED_OFF, "Powered Off"),
    (PowerState.SUSPENDED, "Suspended"),
)

# (bucket, substrings) in match order
_OS_BUCKETS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Windows Server 2019", ("windows server 2019",)),
    ("Windows Server 2016", ("windows server 2016",)),
    ("Windows Server 2022", ("windows server 2022",)),
    ("Windows Server (Other)", ("windows server",)),
    ("Windows 10", ("windows 10",)),
    ("Windows 11", ("windows 11",)),
    ("Windows (Other)", ("windows",)),
    ("RHEL", ("rhel", "red hat")),
    ("CentOS", ("centos",)),
    ("Ubuntu", ("ubuntu",)),
    ("Debian", ("debian",)),
    ("SLES", ("sles", "suse")),
    ("Photon OS", ("photon",)),
    ("Linux (Other)", ("linux",)),
    ("FreeBSD", ("freebsd",)),
)

_LINUX_MARKERS = (
    "linux", "rhel", "red hat", "centos", "ubuntu", "debian",
    "sles", "suse", "photon", "rocky", "alma",
)


class SubnetLookup(Protocol):
    def get_subnet(self, port_group: str) -> str | None: ...


@dataclass(frozen=True)
class ChartEntry:
    label: str
    value: float


@dataclass(frozen=True)
class ClusterStat:
    name: str
    vm_count: int = 0
    host_cores: int = 0
    host_memory_mib: float = 0.0
    vm_cpus: int = 0
    vm_memory_mib: float = 0.0

    @property
    def cpu_overcommit(self) -> float | None:
        if self.host_cores <= 0:
            return None
        return round(self.vm_cpus / self.host_cores, 2)

    @property
    def memory_overcommit(self) -> float | None:
        if self.host_memory_mib <= 0:
            return None
        return round(self.vm_memory_mib / self.host_memory_mib, 2)


@dataclass(frozen=True)
class ConfigAnalysis:
    tools_not_installed: int = 0
    tools_current: int = 0
    outdated_hardware: int = 0
    snapshot_blockers: int = 0
    vms_with_snapshots: int = 0
    vms_with_cd_connected: int = 0
    vms_need_consolidation: int = 0

    @property
    def config_issues_count(self) -> int:
        # 同じ VM が複数の項目で数えられることがある (単純合計)
        return (
            self.tools_not_installed
            + self.snapshot_blockers
            + self.vms_with_cd_connected
            + self.outdated_hardware
        )


@dataclass(frozen=True)
class FilteredMetrics:
    power_filter: PowerState | None
    total_vms: int
    total_vcpus: int
    total_memory_mib: float
    total_provisioned_mib: float
    os_distribution: tuple[ChartEntry, ...]


@dataclass(frozen=True)
class PortGroupSummary:
    port_group: str
    vm_count: int
    prefixes: tuple[str, ...]
    subnet: str | None = None


@dataclass(frozen=True)
class DashboardMetrics:
    total_vms: int
    powered_on: int
    powered_off: int
    suspended: int
    templates: int
    excluded_vms: int
    total_vcpus: int
    total_memory_mib: float
    total_provisioned_mib: float
    total_in_use_mib: float
    total_disk_capacity_mib: float
    unique_clusters: int
    unique_datacenters: int
    clusters: tuple[ClusterStat, ...]
    vms_by_cluster: tuple[ChartEntry, ...]
    cpu_overcommit: tuple[ChartEntry, ...]
    memory_overcommit: tuple[ChartEntry, ...]
    power_state_chart: tuple[ChartEntry, ...]
    os_distribution: tuple[ChartEntry, ...]
    hardware_versions: tuple[ChartEntry, ...]
    firmware: tuple[ChartEntry, ...]
    tools_status: tuple[ChartEntry, ...]
    config: ConfigAnalysis
    filtered: FilteredMetrics
    workload_breakdown: dict[str, int] = field(default_factory=dict)
    network_summary: tuple[PortGroupSummary, ...] = ()

    @property
    def total_memory_gib(self) -> float:
        return self.total_memory_mib / 1024

    @property
    def total_provisioned_tib(self) -> float:
        return self.total_provisioned_mib / 1024 / 1024


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------


def os_category(guest_os: str) -> str:
    lowered = (guest_os or "").lower()
    for bucket, needles in _OS_BUCKETS:
        if any(n in lowered for n in needles):
            return bucket
    return "Unknown"


def workload_family(guest_os: str) -> str:
    lowered = (guest_os or "").lower()
    if "windows" in lowered:
        return "Windows"
    if any(m in lowered for m in _LINUX_MARKERS):
        return "Linux"
    return "Other"


def tools_category(status: str) -> str:
    lowered = (status or "").lower()
    if "ok" in lowered:
        return "Current"
    if "old" in lowered:
        return "Outdated"
    if "notrunning" in lowered:
        return "Not Running"
    if "notinstalled" in lowered:
        return "Not Installed"
    return "Unknown"


def firmware_category(firmware: str) -> str:
    return "UEFI" if "efi" in (firmware or "").lower() else "BIOS"


def _hardware_label(vm: VirtualMachine) -> str:
    number = vm.hardware_version_number
    return f"vmx-{number:02d}" if number else "Unknown"


def _ranked(counter: Counter[str], limit: int | None = None) -> tuple[ChartEntry, ...]:
    # 件数降順、同数はラベル順
    ordered = sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))
    if limit is not None:
        ordered = ordered[:limit]
    return tuple(ChartEntry(label, value) for label, value in ordered)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


def _cluster_stats(dataset: NormalizedDataset, vms: list[VirtualMachine]) -> tuple[ClusterStat, ...]:
    totals: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for host in dataset.hosts:
        entry = totals[host.cluster or NO_CLUSTER]
        entry["host_cores"] += host.total_cpu_cores
        entry["host_memory_mib"] += host.memory_mib
        entry["vm_cpus"] += host.vm_cpu_count
        entry["vm_memory_mib"] += host.vm_memory_mib
    for vm in vms:
        totals[vm.cluster or NO_CLUSTER]["vm_count"] += 1
    return tuple(
        ClusterStat(
            name=name,
            vm_count=int(t["vm_count"]),
            host_cores=int(t["host_cores"]),
            host_memory_mib=t["host_memory_mib"],
            vm_cpus=int(t["vm_cpus"]),
            vm_memory_mib=t["vm_memory_mib"],
        )
        for name, t in totals.items()
    )


def _overcommit(stats: tuple[ClusterStat, ...], attr: str) -> tuple[ChartEntry, ...]:
    entries = [
        ChartEntry(s.name, ratio)
        for s in stats
        if (ratio := getattr(s, attr)) is not None
    ]
    return tuple(sorted(entries, key=lambda e: (-e.value, e.label)))


def _config_analysis(
    dataset: NormalizedDataset, vms: list[VirtualMachine], thresholds: Thresholds
) -> ConfigAnalysis:
    names = {vm.vm_name for vm in vms}
    tools = [t for t in dataset.tools if t.vm_name in names]
    snapshots = [s for s in dataset.snapshots if s.vm_name in names]
    statuses = [t.tools_status.lower() for t in tools]
    return ConfigAnalysis(
        tools_not_installed=sum(1 for s in statuses if "notinstalled" in s),
        tools_current=sum(1 for s in statuses if "ok" in s),
        outdated_hardware=sum(
            1 for vm in vms if vm.hardware_version_number < thresholds.hw_version_minimum
        ),
        snapshot_blockers=sum(
            1 for s in snapshots if s.age_in_days > thresholds.snapshot_blocker_age_days
        ),
        vms_with_snapshots=len({s.vm_name for s in snapshots}),
        vms_with_cd_connected=len(
            {cd.vm_name for cd in dataset.cdroms if cd.connected and cd.vm_name in names}
        ),
        vms_need_consolidation=sum(1 for vm in vms if vm.consolidation_needed),
    )


def _ipv4_prefixes(raw: str | None) -> set[str]:
    prefixes: set[str] = set()
    for part in (raw or "").replace(";", ",").split(","):
        try:
            address = ipaddress.IPv4Address(part.strip())
        except ValueError:
            continue
        prefixes.add(str(ipaddress.IPv4Network(f"{address}/24", strict=False)))
    return prefixes


def _network_summary(
    dataset: NormalizedDataset, vms: list[VirtualMachine], subnets: SubnetLookup | None
) -> tuple[PortGroupSummary, ...]:
    names = {vm.vm_name for vm in vms}
    members: dict[str, set[str]] = defaultdict(set)
    prefixes: dict[str, set[str]] = defaultdict(set)
    for nic in dataset.networks:
        if nic.vm_name not in names or not nic.network_name:
            continue
        members[nic.network_name].add(nic.vm_name)
        prefixes[nic.network_name] |= _ipv4_prefixes(nic.ipv4_address)
    return tuple(
        PortGroupSummary(
            port_group=pg,
            vm_count=len(members[pg]),
            prefixes=tuple(sorted(prefixes[pg])),
            subnet=subnets.get_subnet(pg) if subnets is not None else None,
        )
        for pg in sorted(members)
    )


def _in_scope(
    vms: tuple[VirtualMachine, ...],
    overrides: OverrideLookup | None,
    exclusions: ExclusionReport | None,
) -> list[VirtualMachine]:
    if exclusions is not None:
        keep = exclusions.included_ids
        return [vm for vm in vms if get_vm_identifier(vm) in keep]
    if overrides is None:
        return list(vms)
    scoped = []
    for vm in vms:
        vm_id = get_vm_identifier(vm)
        if overrides.is_excluded(vm_id) and not overrides.is_force_included(vm_id):
            continue
        scoped.append(vm)
    return scoped


def compute_metrics(
    dataset: NormalizedDataset,
    overrides: OverrideLookup | None = None,
    power_filter: PowerState | None = None,
    thresholds: Thresholds | None = None,
    *,
    exclusions: ExclusionReport | None = None,
    subnets: SubnetLookup | None = None,
) -> DashboardMetrics:
    """Compute dashboard metrics.

    Args:
        overrides: user overrides; user-excluded VMs leave the scope
        power_filter: restricts the ``filtered`` block only
        exclusions: full exclusion report; when given it decides the scope
            (auto rules plus overrides) and ``overrides`` is ignored
        subnets: subnet overrides shown in the network summary
    """
    thresholds = thresholds or Thresholds()
    non_templates = dataset.non_template_vms
    vms = _in_scope(non_templates, overrides, exclusions)
    names = {vm.vm_name for vm in vms}

    power_counts = Counter(vm.power_state for vm in vms)
    stats = _cluster_stats(dataset, vms)
    vms_by_cluster = _ranked(Counter({s.name: s.vm_count for s in stats if s.vm_count > 0}), TOP_N)

    filtered_vms = [vm for vm in vms if power_filter is None or vm.power_state is power_filter]
    filtered = FilteredMetrics(
        power_filter=power_filter,
        total_vms=len(filtered_vms),
        total_vcpus=sum(vm.cpus for vm in filtered_vms),
        total_memory_mib=sum(vm.memory_mib for vm in filtered_vms),
        total_provisioned_mib=sum(vm.provisioned_mib for vm in filtered_vms),
        os_distribution=_ranked(
            Counter(os_category(vm.effective_guest_os) for vm in filtered_vms), TOP_N
        ),
    )

    hardware = Counter(_hardware_label(vm) for vm in vms)
    hardware_versions = tuple(
        ChartEntry(label, value)
        for label, value in sorted(
            hardware.items(),
            key=lambda kv: -int(kv[0][4:]) if kv[0].startswith("vmx-") else 1,
        )
    )
    tools = Counter(tools_category(t.tools_status) for t in dataset.tools if t.vm_name in names)

    metrics = DashboardMetrics(
        total_vms=len(vms),
        powered_on=power_counts[PowerState.POWERED_ON],
        powered_off=power_counts[PowerState.POWERED_OFF],
        suspended=power_counts[PowerState.SUSPENDED],
        templates=sum(1 for vm in dataset.vms if vm.template),
        excluded_vms=len(non_templates) - len(vms),
        total_vcpus=sum(vm.cpus for vm in vms),
        total_memory_mib=sum(vm.memory_mib for vm in vms),
        total_provisioned_mib=sum(vm.provisioned_mib for vm in vms),
        total_in_use_mib=sum(vm.in_use_mib for vm in vms),
        total_disk_capacity_mib=sum(d.capacity_mib for d in dataset.disks if d.vm_name in names),
        unique_clusters=len({vm.cluster for vm in vms if vm.cluster}),
        unique_datacenters=len({vm.datacenter for vm in vms if vm.datacenter}),
        clusters=stats,
        vms_by_cluster=vms_by_cluster,
        cpu_overcommit=_overcommit(stats, "cpu_overcommit"),
        memory_overcommit=_overcommit(stats, "memory_overcommit"),
        power_state_chart=tuple(
            ChartEntry(label, power_counts[state])
            for state, label in _POWER_LABELS
            if power_counts[state] > 0
        ),
        os_distribution=_ranked(Counter(os_category(vm.effective_guest_os) for vm in vms), TOP_N),
        hardware_versions=hardware_versions,
        firmware=_ranked(Counter(firmware_category(vm.firmware) for vm in vms)),
        tools_status=_ranked(tools),
        config=_config_analysis(dataset, vms, thresholds),
        filtered=filtered,
        workload_breakdown=dict(Counter(workload_family(vm.effective_guest_os) for vm in vms)),
        network_summary=_network_summary(dataset, vms, subnets),
    )
    logger.debug(
        "metrics: %d VMs in scope (%d excluded), %d clusters",
        metrics.total_vms,
        metrics.excluded_vms,
        len(stats),
    )
    return metrics
