from __future__ import annotations

from enum import Enum

from ..excel.cells import boolean, integer, number, optional_text, text
from ..excel.columns import RawSheetRow
from ..models.inventory import Cluster, Datastore, Host, ResourcePool
from .base import SheetParser

"""Parsers for infrastructure sheets: vHost, vCluster, vDatastore, vRP.

Counters on hosts and clusters (VM count, cores, memory) are the values vCenter
reported at export time; they are copied, never recomputed.
"""

__all__ = [
    "VHostColumn",
    "VHostParser",
    "VClusterColumn",
    "VClusterParser",
    "VDatastoreColumn",
    "VDatastoreParser",
    "VResourcePoolColumn",
    "VResourcePoolParser",
    "split_resource_pool_path",
]


class VHostColumn(Enum):
    NAME = ("Host", "Name", "Host Name", "Hostname")
    CONFIG_STATUS = ("Config status", "Config Status")
    OVERALL_STATUS = ("Overall Status", "Overall status", "OverallStatus")
    POWER_STATE = ("Power State", "Powerstate", "Power state")
    CONNECTION_STATE = ("Connection State", "Connection state")
    MAINTENANCE_MODE = ("in Maintenance Mode", "Maintenance Mode")
    DATACENTER = ("Datacenter", "DataCenter", "Data Center")
    CLUSTER = ("Cluster",)
    VENDOR = ("Vendor",)
    MODEL = ("Model",)
    CPU_MODEL = ("CPU Model", "CPU model")
    CPU_MHZ = ("Speed", "CPU Speed", "CPU MHz")
    CPU_SOCKETS = ("# CPU", "CPU Sockets", "Num CPU")
    CORES_PER_SOCKET = ("Cores per CPU", "Cores per Socket")
    TOTAL_CORES = ("# Cores", "Total Cores", "Num Cores")
    HYPERTHREADING = ("HT Active", "Hyperthreading", "HT Available")
    CPU_USAGE = ("CPU usage", "CPU Usage", "CPU usage %", "CPU Usage MHz")
    MEMORY = ("# Memory", "Memory", "Memory MB", "Memory MiB")
    MEMORY_USAGE = ("Memory usage", "Memory Usage", "Memory usage %")
    VM_COUNT = ("# VMs", "# VMs total", "VMs", "Num VMs")
    VM_CPU_COUNT = ("# vCPUs", "vCPUs")
    VM_MEMORY = ("vRAM", "VM Memory", "VM Memory MB")
    ESXI_VERSION = ("ESX Version", "ESXi Version", "Version")
    ESXI_BUILD = ("Build", "ESX Build")
    UPTIME = ("Uptime", "Uptime Seconds")


class VHostParser(SheetParser):
    sheet_name = "vHost"
    sheet_aliases = ("tabvHost",)
    columns = VHostColumn
    key = VHostColumn.NAME

    def build(self, row: RawSheetRow) -> Host:
        c = VHostColumn
        sockets = integer(row, c.CPU_SOCKETS)
        cores_per_socket = integer(row, c.CORES_PER_SOCKET)
        total_cores = integer(row, c.TOTAL_CORES) or sockets * cores_per_socket
        return Host(
            name=text(row, c.NAME),
            config_status=text(row, c.CONFIG_STATUS),
            overall_status=text(row, c.OVERALL_STATUS),
            power_state=text(row, c.POWER_STATE),
            connection_state=text(row, c.CONNECTION_STATE),
            maintenance_mode=boolean(row, c.MAINTENANCE_MODE),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            vendor=text(row, c.VENDOR),
            model=text(row, c.MODEL),
            cpu_model=text(row, c.CPU_MODEL),
            cpu_mhz=number(row, c.CPU_MHZ),
            cpu_sockets=sockets,
            cores_per_socket=cores_per_socket,
            total_cpu_cores=total_cores,
            hyperthreading=boolean(row, c.HYPERTHREADING),
            cpu_usage_mhz=number(row, c.CPU_USAGE),
            memory_mib=number(row, c.MEMORY),
            memory_usage_mib=number(row, c.MEMORY_USAGE),
            vm_count=integer(row, c.VM_COUNT),
            vm_cpu_count=integer(row, c.VM_CPU_COUNT),
            vm_memory_mib=number(row, c.VM_MEMORY),
            esxi_version=text(row, c.ESXI_VERSION),
            esxi_build=text(row, c.ESXI_BUILD),
            uptime_seconds=number(row, c.UPTIME),
        )


class VClusterColumn(Enum):
    NAME = ("Name", "Cluster", "Cluster Name", "Cluster name")
    CONFIG_STATUS = ("Config status", "Config Status", "ConfigStatus", "Status")
    OVERALL_STATUS = ("OverallStatus", "Overall Status", "Overall status")
    VM_COUNT = ("# VMs", "# VMs total", "VMs", "VM Count", "NumVMs", "Num VMs")
    HOST_COUNT = ("NumHosts", "# Hosts", "Hosts", "Host Count", "Num Hosts")
    EFFECTIVE_HOSTS = (
        "numEffectiveHosts", "# Effective Hosts", "Effective Hosts", "NumEffectiveHosts",
        "Num Effective Hosts",
    )
    TOTAL_CPU = ("TotalCpu", "Total CPU", "Total CPU MHz", "Total CPU (MHz)")
    CPU_CORES = ("NumCpuCores", "# CPU Cores", "CPU Cores", "Num CPU Cores", "# Cores")
    CPU_THREADS = ("NumCpuThreads", "# CPU Threads", "CPU Threads", "Num CPU Threads", "# Threads")
    EFFECTIVE_CPU = (
        "Effective Cpu", "Effective CPU", "Effective CPU MHz", "EffectiveCpu", "Effective CPU (MHz)",
    )
    TOTAL_MEMORY = (
        "TotalMemory", "Total Memory", "Total Memory MiB", "Total Memory MB", "Total Mem",
        "Total Memory (MB)",
    )
    EFFECTIVE_MEMORY = (
        "Effective Memory", "Effective Memory MiB", "Effective Memory MB", "EffectiveMemory",
        "Effective Mem", "Effective Memory (MB)",
    )
    HA_ENABLED = ("HA enabled", "HA Enabled", "HAEnabled", "HA")
    HA_FAILOVER_LEVEL = ("Failover Level", "HA Failover Level", "HA failover level", "HAFailoverLevel")
    DRS_ENABLED = ("DRS enabled", "DRS Enabled", "DRSEnabled", "DRS")
    DRS_BEHAVIOR = (
        "DRS default VM behavior", "DRS Behavior", "DRS behaviour", "DRS behavior", "DRSBehavior",
    )
    EVC_MODE = ("EVC Mode", "EVC mode", "EVC", "EVCMode")
    DATACENTER = ("Datacenter", "DataCenter", "Data Center", "DC")


class VClusterParser(SheetParser):
    sheet_name = "vCluster"
    sheet_aliases = ("tabvCluster",)
    columns = VClusterColumn
    key = VClusterColumn.NAME

    def build(self, row: RawSheetRow) -> Cluster:
        c = VClusterColumn
        return Cluster(
            name=text(row, c.NAME),
            config_status=text(row, c.CONFIG_STATUS),
            overall_status=text(row, c.OVERALL_STATUS),
            vm_count=integer(row, c.VM_COUNT),
            host_count=integer(row, c.HOST_COUNT),
            effective_host_count=integer(row, c.EFFECTIVE_HOSTS),
            total_cpu_mhz=number(row, c.TOTAL_CPU),
            cpu_cores=integer(row, c.CPU_CORES),
            cpu_threads=integer(row, c.CPU_THREADS),
            effective_cpu_mhz=number(row, c.EFFECTIVE_CPU),
            total_memory_mib=number(row, c.TOTAL_MEMORY),
            effective_memory_mib=number(row, c.EFFECTIVE_MEMORY),
            ha_enabled=boolean(row, c.HA_ENABLED),
            ha_failover_level=integer(row, c.HA_FAILOVER_LEVEL),
            drs_enabled=boolean(row, c.DRS_ENABLED),
            drs_behavior=text(row, c.DRS_BEHAVIOR),
            evc_mode=optional_text(row, c.EVC_MODE),
            datacenter=text(row, c.DATACENTER),
        )


class VDatastoreColumn(Enum):
    NAME = ("Name", "Datastore", "Datastore Name")
    CONFIG_STATUS = ("Config status", "Config Status")
    ADDRESS = ("Address", "URL")
    ACCESSIBLE = ("Accessible",)
    TYPE = ("Type", "Datastore Type")
    VM_COUNT = ("# VMs", "# VMs total", "VMs")
    CAPACITY = ("Capacity MiB", "Capacity MB", "Capacity")
    PROVISIONED = ("Provisioned MiB", "Provisioned MB")
    IN_USE = ("In Use MiB", "In Use MB")
    FREE = ("Free MiB", "Free MB")
    FREE_PERCENT = ("Free %", "Free Percent")
    SIOC_ENABLED = ("SIOC enabled", "SIOC Enabled")
    HOST_COUNT = ("# Hosts", "Host Count")
    HOSTS = ("Hosts",)
    CLUSTER = ("Cluster name", "Cluster Name", "Cluster")
    DATACENTER = ("Datacenter", "DataCenter")


class VDatastoreParser(SheetParser):
    sheet_name = "vDatastore"
    sheet_aliases = ("tabvDatastore",)
    columns = VDatastoreColumn
    key = VDatastoreColumn.NAME

    def build(self, row: RawSheetRow) -> Datastore:
        c = VDatastoreColumn
        hosts = tuple(h.strip() for h in text(row, c.HOSTS).split(",") if h.strip())
        return Datastore(
            name=text(row, c.NAME),
            config_status=text(row, c.CONFIG_STATUS),
            address=optional_text(row, c.ADDRESS),
            accessible=boolean(row, c.ACCESSIBLE),
            datastore_type=text(row, c.TYPE),
            vm_count=integer(row, c.VM_COUNT),
            capacity_mib=number(row, c.CAPACITY),
            provisioned_mib=number(row, c.PROVISIONED),
            in_use_mib=number(row, c.IN_USE),
            free_mib=number(row, c.FREE),
            free_percent=number(row, c.FREE_PERCENT),
            sioc_enabled=boolean(row, c.SIOC_ENABLED),
            host_count=integer(row, c.HOST_COUNT) or len(hosts),
            hosts=hosts,
            cluster=text(row, c.CLUSTER),
            datacenter=text(row, c.DATACENTER),
        )


def split_resource_pool_path(path: str) -> tuple[str, str]:
    """Derive (datacenter, cluster) from a resource pool path.

    Handles ``/DC/host/Cluster/Resources/...`` (classic vSphere inventory),
    ``/DC/Cluster/Resources/...`` and paths without a leading slash. Without a
    ``Resources`` segment the second segment is taken as the cluster.
    """
    parts = [p for p in path.split("/") if p]
    if not parts:
        return "", ""
    datacenter = parts[0]
    cluster = ""
    resources_idx = parts.index("Resources") if "Resources" in parts else -1
    if resources_idx > 0:
        host_idx = parts.index("host") if "host" in parts else -1
        if 0 <= host_idx < resources_idx:
            cluster = parts[host_idx + 1]
        elif resources_idx >= 2:
            cluster = parts[resources_idx - 1]
    elif resources_idx == -1 and len(parts) >= 2:
        cluster = parts[1]
    return datacenter, cluster


class VResourcePoolColumn(Enum):
    NAME = (
        "Resource Pool name", "Name", "Resource Pool", "Resource Pool Name", "ResourcePool", "RP",
        "RP Name",
    )
    CONFIG_STATUS = ("Config status", "Config Status", "ConfigStatus", "Status")
    CPU_RESERVATION = ("CPU reservation", "CPU Reservation", "CPU Reservation MHz", "CpuReservationMHz")
    CPU_LIMIT = ("CPU limit", "CPU Limit", "CPU Limit MHz", "CpuLimitMHz")
    CPU_EXPANDABLE = ("CPU expandableReservation", "CPU Expandable", "CpuExpandableReservation")
    CPU_SHARES = ("CPU shares", "CPU Shares", "NumCpuShares", "Num CPU Shares", "# CPU Shares")
    MEM_RESERVATION = (
        "Mem reservation", "Memory Reservation", "Mem Reservation", "Memory Reservation MB",
        "MemReservationMB", "Mem Reservation MB",
    )
    MEM_LIMIT = (
        "Mem limit", "Memory Limit", "Mem Limit", "Memory Limit MB", "MemLimitMB", "Mem Limit MB",
    )
    MEM_EXPANDABLE = (
        "Mem expandableReservation", "Memory Expandable", "MemExpandableReservation",
        "Mem Expandable Reservation",
    )
    MEM_SHARES = (
        "Mem shares", "Memory Shares", "Mem Shares", "NumMemShares", "Num Mem Shares", "# Mem Shares",
    )
    VM_COUNT = ("# VMs", "# VMs total", "VMs", "NumVMs", "Num VMs", "VM Count", "# VM")
    DATACENTER = ("Datacenter", "DataCenter", "Data Center")
    CLUSTER = ("Cluster",)
    PARENT = ("Parent", "Parent Pool", "Parent Resource Pool")
    PATH = ("Resource Pool path", "Path", "RP Path")


class VResourcePoolParser(SheetParser):
    sheet_name = "vRP"
    sheet_aliases = ("tabvRP",)
    columns = VResourcePoolColumn
    key = VResourcePoolColumn.NAME

    def build(self, row: RawSheetRow) -> ResourcePool:
        c = VResourcePoolColumn
        path = text(row, c.PATH)
        datacenter = text(row, c.DATACENTER)
        cluster = text(row, c.CLUSTER)
        if not datacenter or not cluster:
            path_dc, path_cluster = split_resource_pool_path(path)
            datacenter = datacenter or path_dc
            cluster = cluster or path_cluster
        return ResourcePool(
            name=text(row, c.NAME),
            config_status=text(row, c.CONFIG_STATUS),
            cpu_reservation=number(row, c.CPU_RESERVATION),
            cpu_limit=number(row, c.CPU_LIMIT),
            cpu_expandable=boolean(row, c.CPU_EXPANDABLE),
            cpu_shares=number(row, c.CPU_SHARES),
            memory_reservation=number(row, c.MEM_RESERVATION),
            memory_limit=number(row, c.MEM_LIMIT),
            memory_expandable=boolean(row, c.MEM_EXPANDABLE),
            memory_shares=number(row, c.MEM_SHARES),
            vm_count=integer(row, c.VM_COUNT),
            datacenter=datacenter,
            cluster=cluster,
            parent=optional_text(row, c.PARENT),
            path=path,
        )
