from __future__ import annotations

from enum import Enum

from ..excel.cells import boolean, date, integer, number, optional_number, optional_text, text
from ..excel.columns import RawSheetRow
from ..models.inventory import CpuConfig, MemoryConfig, PowerState, VirtualMachine
from .base import SheetParser

"""Parsers for the per-VM sheets: vInfo, vCPU, vMemory."""

__all__ = [
    "VInfoColumn",
    "VInfoParser",
    "VCpuColumn",
    "VCpuParser",
    "VMemoryColumn",
    "VMemoryParser",
]


class VInfoColumn(Enum):
    VM_NAME = ("VM", "VM Name", "VM name", "Name")
    POWER_STATE = ("Powerstate", "Power State", "Power state", "PowerState")
    TEMPLATE = ("Template",)
    SRM_PLACEHOLDER = ("SRM Placeholder",)
    CONFIG_STATUS = ("Config status", "Config Status")
    DNS_NAME = ("DNS Name", "DNS name", "Hostname")
    CONNECTION_STATE = ("Connection state", "Connection State")
    GUEST_STATE = ("Guest state", "Guest State")
    HEARTBEAT = ("Heartbeat",)
    CONSOLIDATION_NEEDED = ("Consolidation Needed", "Consolidation needed")
    POWER_ON_DATE = ("PowerOn", "Power On", "PowerOn Date")
    CREATION_DATE = ("Creation date", "Creation Date", "Created")
    CPUS = ("CPUs", "Num CPU", "vCPU", "# CPU")
    MEMORY = ("Memory", "Memory MB", "Memory MiB", "Memory Size MB")
    NICS = ("NICs", "# NICs", "Num NICs")
    DISKS = ("Disks", "# Disks", "Num Disks")
    PROVISIONED = ("Provisioned MiB", "Provisioned MB", "Provisioned Space MB")
    IN_USE = ("In Use MiB", "In Use MB", "Used Space MB")
    UNSHARED = ("Unshared MiB", "Unshared MB")
    RESOURCE_POOL = ("Resource pool", "Resource Pool")
    FOLDER = ("Folder",)
    VAPP = ("vApp",)
    FT_STATE = ("FT State", "FT state")
    CBT = ("CBT", "Changed Block Tracking")
    HW_VERSION = ("HW version", "HW Version", "Hardware Version", "VM Version")
    GUEST_OS = ("OS according to the configuration file", "Guest OS", "OS")
    OS_TOOLS = ("OS according to the VMware Tools",)
    GUEST_IP = ("Primary IP Address", "Guest IP", "IP Address")
    ANNOTATION = ("Annotation", "Notes")
    DATACENTER = ("Datacenter", "DataCenter", "Data Center")
    CLUSTER = ("Cluster",)
    HOST = ("Host",)
    UUID = ("VM UUID", "UUID", "BIOS UUID", "SMBIOS UUID")
    INSTANCE_UUID = ("VI SDK UUID", "Instance UUID")
    FIRMWARE = ("Firmware",)
    LATENCY_SENSITIVITY = ("Latency Sensitivity",)


class VInfoParser(SheetParser):
    sheet_name = "vInfo"
    sheet_aliases = ("tabvInfo",)
    columns = VInfoColumn
    key = VInfoColumn.VM_NAME

    def build(self, row: RawSheetRow) -> VirtualMachine:
        c = VInfoColumn
        dns_name = optional_text(row, c.DNS_NAME)
        return VirtualMachine(
            vm_name=text(row, c.VM_NAME),
            power_state=PowerState.parse(text(row, c.POWER_STATE)),
            template=boolean(row, c.TEMPLATE),
            srm_placeholder=boolean(row, c.SRM_PLACEHOLDER),
            config_status=text(row, c.CONFIG_STATUS),
            dns_name=dns_name,
            connection_state=text(row, c.CONNECTION_STATE),
            guest_state=text(row, c.GUEST_STATE),
            heartbeat=text(row, c.HEARTBEAT),
            consolidation_needed=boolean(row, c.CONSOLIDATION_NEEDED),
            power_on_date=date(row, c.POWER_ON_DATE),
            creation_date=date(row, c.CREATION_DATE),
            cpus=integer(row, c.CPUS),
            memory_mib=number(row, c.MEMORY),
            nics=integer(row, c.NICS),
            disks=integer(row, c.DISKS),
            provisioned_mib=number(row, c.PROVISIONED),
            in_use_mib=number(row, c.IN_USE),
            unshared_mib=number(row, c.UNSHARED),
            resource_pool=optional_text(row, c.RESOURCE_POOL),
            folder=optional_text(row, c.FOLDER),
            vapp=optional_text(row, c.VAPP),
            ft_state=optional_text(row, c.FT_STATE),
            cbt_enabled=boolean(row, c.CBT),
            hardware_version=text(row, c.HW_VERSION),
            guest_os=text(row, c.GUEST_OS),
            os_tools_config=text(row, c.OS_TOOLS),
            # RVTools has no dedicated hostname column; DNS name is the guest hostname
            guest_hostname=dns_name,
            guest_ip=optional_text(row, c.GUEST_IP),
            annotation=optional_text(row, c.ANNOTATION),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            host=text(row, c.HOST),
            uuid=optional_text(row, c.UUID),
            instance_uuid=optional_text(row, c.INSTANCE_UUID),
            firmware=text(row, c.FIRMWARE).lower(),
            latency_sensitivity=optional_text(row, c.LATENCY_SENSITIVITY),
        )


class VCpuColumn(Enum):
    VM_NAME = ("VM", "VM Name", "Name")
    POWER_STATE = ("Powerstate", "Power State")
    TEMPLATE = ("Template",)
    CPUS = ("CPUs", "Num CPU")
    SOCKETS = ("Sockets",)
    CORES_PER_SOCKET = ("Cores p/s", "Cores per Socket")
    MAX_CPU = ("Max", "Max CPU")
    OVERALL_LEVEL = ("Level", "Overall Level", "CPU Overall Level")
    SHARES = ("Shares", "CPU Shares")
    RESERVATION = ("Reservation", "CPU Reservation")
    ENTITLEMENT = ("Entitlement", "CPU Entitlement")
    DRS_ENTITLEMENT = ("DRS Entitlement",)
    LIMIT = ("Limit", "CPU Limit")
    HOT_ADD = ("Hot Add", "CPU Hot Add", "Hot Add Enabled")
    HOT_REMOVE = ("Hot Remove", "CPU Hot Remove")
    AFFINITY_RULE = ("Affinity Rule", "CPU Affinity")


class VCpuParser(SheetParser):
    sheet_name = "vCPU"
    sheet_aliases = ("tabvCPU",)
    columns = VCpuColumn
    key = VCpuColumn.VM_NAME

    def build(self, row: RawSheetRow) -> CpuConfig:
        c = VCpuColumn
        return CpuConfig(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            template=boolean(row, c.TEMPLATE),
            cpus=integer(row, c.CPUS),
            sockets=integer(row, c.SOCKETS),
            cores_per_socket=integer(row, c.CORES_PER_SOCKET),
            max_cpu=number(row, c.MAX_CPU),
            overall_level=optional_text(row, c.OVERALL_LEVEL),
            shares=number(row, c.SHARES),
            reservation=number(row, c.RESERVATION),
            entitlement=optional_number(row, c.ENTITLEMENT),
            drs_entitlement=optional_number(row, c.DRS_ENTITLEMENT),
            limit=number(row, c.LIMIT),
            hot_add_enabled=boolean(row, c.HOT_ADD),
            hot_remove_enabled=boolean(row, c.HOT_REMOVE),
            affinity_rule=optional_text(row, c.AFFINITY_RULE),
        )


class VMemoryColumn(Enum):
    VM_NAME = ("VM", "VM Name", "Name")
    POWER_STATE = ("Powerstate", "Power State")
    TEMPLATE = ("Template",)
    SIZE = ("Size MiB", "Size MB", "Memory", "Memory MB")
    OVERALL_LEVEL = ("Level", "Overall Level", "Memory Overall Level")
    SHARES = ("Shares", "Memory Shares")
    RESERVATION = ("Reservation", "Memory Reservation")
    ENTITLEMENT = ("Entitlement", "Memory Entitlement")
    DRS_ENTITLEMENT = ("DRS Entitlement",)
    LIMIT = ("Limit", "Memory Limit")
    HOT_ADD = ("Hot Add", "Memory Hot Add", "Hot Add Enabled")
    ACTIVE = ("Active", "Active MB")
    CONSUMED = ("Consumed", "Consumed MB")
    BALLOONED = ("Ballooned", "Ballooned MB")
    SWAPPED = ("Swapped", "Swapped MB")
    COMPRESSED = ("Compressed", "Compressed MB")


class VMemoryParser(SheetParser):
    sheet_name = "vMemory"
    sheet_aliases = ("tabvMemory",)
    columns = VMemoryColumn
    key = VMemoryColumn.VM_NAME

    def build(self, row: RawSheetRow) -> MemoryConfig:
        c = VMemoryColumn
        return MemoryConfig(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            template=boolean(row, c.TEMPLATE),
            memory_mib=number(row, c.SIZE),
            overall_level=optional_text(row, c.OVERALL_LEVEL),
            shares=number(row, c.SHARES),
            reservation=number(row, c.RESERVATION),
            entitlement=optional_number(row, c.ENTITLEMENT),
            drs_entitlement=optional_number(row, c.DRS_ENTITLEMENT),
            limit=number(row, c.LIMIT),
            hot_add_enabled=boolean(row, c.HOT_ADD),
            active=optional_number(row, c.ACTIVE),
            consumed=optional_number(row, c.CONSUMED),
            ballooned=optional_number(row, c.BALLOONED),
            swapped=optional_number(row, c.SWAPPED),
            compressed=optional_number(row, c.COMPRESSED),
        )
