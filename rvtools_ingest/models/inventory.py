from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

"""Normalized inventory records, one dataclass per RVTools sheet.

All records are frozen. Satellite records (disks, NICs, snapshots, ...) point
at their VM by name, with datacenter/cluster kept as disambiguators; nothing
enforces that the VM exists, so lookups must tolerate orphans.

Sizes are MiB unless the field name says otherwise.
"""

__all__ = [
    "PowerState",
    "VirtualMachine",
    "CpuConfig",
    "MemoryConfig",
    "VirtualDisk",
    "NetworkAdapter",
    "Snapshot",
    "ToolsInfo",
    "CdromDevice",
    "Host",
    "Cluster",
    "Datastore",
    "ResourcePool",
    "LicenseEntry",
    "SourceInfo",
]


class PowerState(str, Enum):
    POWERED_ON = "poweredOn"
    POWERED_OFF = "poweredOff"
    SUSPENDED = "suspended"

    @classmethod
    def parse(cls, raw: str) -> PowerState:
        """Case-insensitive; unknown values count as powered off."""
        key = raw.strip().lower().replace(" ", "")
        for member in cls:
            if member.value.lower() == key:
                return member
        return cls.POWERED_OFF


@dataclass(frozen=True)
class VirtualMachine:
    """One row of the vInfo sheet."""

    vm_name: str
    power_state: PowerState = PowerState.POWERED_OFF
    template: bool = False
    srm_placeholder: bool = False
    config_status: str = ""
    dns_name: str | None = None
    connection_state: str = ""
    guest_state: str = ""
    heartbeat: str = ""
    consolidation_needed: bool = False
    power_on_date: datetime | None = None
    creation_date: datetime | None = None
    cpus: int = 0
    memory_mib: float = 0.0
    nics: int = 0
    disks: int = 0
    provisioned_mib: float = 0.0
    in_use_mib: float = 0.0
    unshared_mib: float = 0.0
    resource_pool: str | None = None
    folder: str | None = None
    vapp: str | None = None
    ft_state: str | None = None
    cbt_enabled: bool = False
    hardware_version: str = ""
    guest_os: str = ""
    os_tools_config: str = ""
    guest_hostname: str | None = None
    guest_ip: str | None = None
    annotation: str | None = None
    datacenter: str = ""
    cluster: str = ""
    host: str = ""
    uuid: str | None = None
    instance_uuid: str | None = None
    firmware: str = ""
    latency_sensitivity: str | None = None

    @property
    def hardware_version_number(self) -> int:
        """``vmx-19`` / ``19`` -> 19; 0 when unparseable."""
        digits = "".join(ch for ch in self.hardware_version if ch.isdigit())
        return int(digits) if digits else 0

    @property
    def effective_guest_os(self) -> str:
        return self.guest_os or self.os_tools_config


@dataclass(frozen=True)
class CpuConfig:
    vm_name: str
    power_state: str = ""
    template: bool = False
    cpus: int = 0
    sockets: int = 0
    cores_per_socket: int = 0
    max_cpu: float = 0.0
    overall_level: str | None = None
    shares: float = 0.0
    reservation: float = 0.0
    entitlement: float | None = None
    drs_entitlement: float | None = None
    limit: float = 0.0
    hot_add_enabled: bool = False
    hot_remove_enabled: bool = False
    affinity_rule: str | None = None


@dataclass(frozen=True)
class MemoryConfig:
    vm_name: str
    power_state: str = ""
    template: bool = False
    memory_mib: float = 0.0
    overall_level: str | None = None
    shares: float = 0.0
    reservation: float = 0.0
    entitlement: float | None = None
    drs_entitlement: float | None = None
    limit: float = 0.0
    hot_add_enabled: bool = False
    active: float | None = None
    consumed: float | None = None
    ballooned: float | None = None
    swapped: float | None = None
    compressed: float | None = None


@dataclass(frozen=True)
class VirtualDisk:
    vm_name: str
    power_state: str = ""
    template: bool = False
    disk_label: str = ""
    disk_key: int = 0
    disk_uuid: str | None = None
    disk_path: str = ""
    capacity_mib: float = 0.0
    raw: bool = False
    disk_mode: str = ""
    sharing: str = ""
    thin: bool = False
    eagerly_scrub: bool = False
    split: bool = False
    write_through: bool = False
    controller_type: str = ""
    controller_key: int = 0
    unit_number: int = 0
    datacenter: str = ""
    cluster: str = ""
    host: str = ""

    @property
    def capacity_gib(self) -> float:
        return self.capacity_mib / 1024

    @property
    def is_shared(self) -> bool:
        # sharingNone / sharingMultiWriter
        mode = self.sharing.lower().replace(" ", "")
        return bool(mode) and mode not in ("sharingnone", "nosharing")

    @property
    def is_independent(self) -> bool:
        return "independent" in self.disk_mode.lower()


@dataclass(frozen=True)
class NetworkAdapter:
    vm_name: str
    power_state: str = ""
    template: bool = False
    nic_label: str = ""
    adapter_type: str = ""
    network_name: str = ""
    switch_name: str = ""
    connected: bool = False
    starts_connected: bool = False
    mac_address: str = ""
    mac_type: str = ""
    ipv4_address: str | None = None
    ipv6_address: str | None = None
    direct_path_io: bool = False
    datacenter: str = ""
    cluster: str = ""
    host: str = ""


@dataclass(frozen=True)
class Snapshot:
    vm_name: str
    power_state: str = ""
    snapshot_name: str = ""
    description: str | None = None
    taken_at: datetime | None = None
    filename: str = ""
    size_vmsn_mib: float = 0.0
    size_total_mib: float = 0.0
    quiesced: bool = False
    state: str = ""
    annotation: str | None = None
    datacenter: str = ""
    cluster: str = ""
    host: str = ""
    folder: str = ""
    age_in_days: int = 0


@dataclass(frozen=True)
class ToolsInfo:
    vm_name: str
    power_state: str = ""
    template: bool = False
    vm_version: str = ""
    tools_status: str = ""
    tools_version: str | None = None
    required_version: str | None = None
    upgradeable: bool = False
    upgrade_policy: str = ""
    sync_time: bool = False
    operation_ready: bool = False
    app_status: str | None = None
    heartbeat_status: str | None = None
    kernel_crash_state: str | None = None
    datacenter: str = ""
    cluster: str = ""
    host: str = ""


@dataclass(frozen=True)
class CdromDevice:
    vm_name: str
    power_state: str = ""
    template: bool = False
    device_node: str = ""
    connected: bool = False
    starts_connected: bool = False
    device_type: str = ""
    annotation: str | None = None
    datacenter: str = ""
    cluster: str = ""
    host: str = ""
    guest_os: str = ""
    os_from_tools: str = ""


@dataclass(frozen=True)
class Host:
    name: str
    config_status: str = ""
    overall_status: str = ""
    power_state: str = ""
    connection_state: str = ""
    maintenance_mode: bool = False
    datacenter: str = ""
    cluster: str = ""
    vendor: str = ""
    model: str = ""
    cpu_model: str = ""
    cpu_mhz: float = 0.0
    cpu_sockets: int = 0
    cores_per_socket: int = 0
    total_cpu_cores: int = 0
    hyperthreading: bool = False
    cpu_usage_mhz: float = 0.0
    memory_mib: float = 0.0
    memory_usage_mib: float = 0.0
    vm_count: int = 0
    vm_cpu_count: int = 0
    vm_memory_mib: float = 0.0
    esxi_version: str = ""
    esxi_build: str = ""
    uptime_seconds: float = 0.0


@dataclass(frozen=True)
class Cluster:
    name: str
    config_status: str = ""
    overall_status: str = ""
    vm_count: int = 0
    host_count: int = 0
    effective_host_count: int = 0
    total_cpu_mhz: float = 0.0
    cpu_cores: int = 0
    cpu_threads: int = 0
    effective_cpu_mhz: float = 0.0
    total_memory_mib: float = 0.0
    effective_memory_mib: float = 0.0
    ha_enabled: bool = False
    ha_failover_level: int = 0
    drs_enabled: bool = False
    drs_behavior: str = ""
    evc_mode: str | None = None
    datacenter: str = ""


@dataclass(frozen=True)
class Datastore:
    name: str
    config_status: str = ""
    address: str | None = None
    accessible: bool = False
    datastore_type: str = ""
    vm_count: int = 0
    capacity_mib: float = 0.0
    provisioned_mib: float = 0.0
    in_use_mib: float = 0.0
    free_mib: float = 0.0
    free_percent: float = 0.0
    sioc_enabled: bool = False
    host_count: int = 0
    hosts: tuple[str, ...] = ()
    cluster: str = ""
    datacenter: str = ""


@dataclass(frozen=True)
class ResourcePool:
    name: str
    config_status: str = ""
    cpu_reservation: float = 0.0
    cpu_limit: float = 0.0
    cpu_expandable: bool = False
    cpu_shares: float = 0.0
    memory_reservation: float = 0.0
    memory_limit: float = 0.0
    memory_expandable: bool = False
    memory_shares: float = 0.0
    vm_count: int = 0
    datacenter: str = ""
    cluster: str = ""
    parent: str | None = None
    path: str = ""


@dataclass(frozen=True)
class LicenseEntry:
    name: str
    license_key: str = ""
    total: float = 0.0
    used: float = 0.0
    expiration_date: datetime | None = None
    product_name: str = ""
    product_version: str = ""


@dataclass(frozen=True)
class SourceInfo:
    server: str
    ip_address: str | None = None
    version: str | None = None
    build: str | None = None
    os_type: str | None = None
    api_version: str | None = None
    instance_uuid: str | None = None
    full_name: str | None = None
    server_time: datetime | None = None
