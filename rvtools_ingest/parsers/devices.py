from __future__ import annotations

from enum import Enum

from ..excel.cells import boolean, integer, number, optional_text, text
from ..excel.columns import RawSheetRow
from ..models.inventory import CdromDevice, NetworkAdapter, VirtualDisk
from .base import SheetParser

"""Parsers for per-device sheets: vDisk, vNetwork, vCD."""

__all__ = [
    "VDiskColumn",
    "VDiskParser",
    "VNetworkColumn",
    "VNetworkParser",
    "VCdColumn",
    "VCdParser",
]


class VDiskColumn(Enum):
    VM_NAME = ("VM", "VM Name", "Name")
    POWER_STATE = ("Powerstate", "Power State")
    TEMPLATE = ("Template",)
    DISK_LABEL = ("Disk", "Label", "Disk Label")
    DISK_KEY = ("Disk Key", "Key")
    DISK_UUID = ("Disk UUID", "UUID")
    DISK_PATH = ("Disk Path", "Path")
    CAPACITY = ("Capacity MiB", "Capacity MB", "Capacity")
    RAW = ("Raw", "RDM")
    DISK_MODE = ("Disk Mode", "Mode")
    SHARING = ("Sharing mode", "Sharing Mode", "Sharing")
    THIN = ("Thin", "Thin provisioned", "Thin Provisioned")
    EAGERLY_SCRUB = ("Eagerly Scrub", "Eagerly scrub")
    SPLIT = ("Split",)
    WRITE_THROUGH = ("Write Through", "Write through")
    CONTROLLER = ("Controller", "Controller Type")
    CONTROLLER_KEY = ("Controller Key",)
    UNIT_NUMBER = ("Unit #", "Unit Number", "SCSI Unit #")
    DATACENTER = ("Datacenter", "DataCenter")
    CLUSTER = ("Cluster",)
    HOST = ("Host",)


class VDiskParser(SheetParser):
    sheet_name = "vDisk"
    sheet_aliases = ("tabvDisk",)
    columns = VDiskColumn
    key = VDiskColumn.VM_NAME

    def build(self, row: RawSheetRow) -> VirtualDisk:
        c = VDiskColumn
        return VirtualDisk(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            template=boolean(row, c.TEMPLATE),
            disk_label=text(row, c.DISK_LABEL),
            disk_key=integer(row, c.DISK_KEY),
            disk_uuid=optional_text(row, c.DISK_UUID),
            disk_path=text(row, c.DISK_PATH),
            capacity_mib=number(row, c.CAPACITY),
            raw=boolean(row, c.RAW),
            disk_mode=text(row, c.DISK_MODE),
            sharing=text(row, c.SHARING),
            thin=boolean(row, c.THIN),
            eagerly_scrub=boolean(row, c.EAGERLY_SCRUB),
            split=boolean(row, c.SPLIT),
            write_through=boolean(row, c.WRITE_THROUGH),
            controller_type=text(row, c.CONTROLLER),
            controller_key=integer(row, c.CONTROLLER_KEY),
            unit_number=integer(row, c.UNIT_NUMBER),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            host=text(row, c.HOST),
        )


class VNetworkColumn(Enum):
    VM_NAME = ("VM", "VM Name", "VM name", "Name")
    POWER_STATE = ("Powerstate", "Power State", "Power state", "PowerState")
    TEMPLATE = ("Template",)
    NIC_LABEL = (
        "NIC label", "NIC", "NIC Label", "Nic", "Adapter Label", "Network Adapter", "Network adapter",
    )
    ADAPTER_TYPE = (
        "Adapter", "Adapter Type", "Adapter type", "AdapterType", "NIC Type", "Nic Type",
        "Nic type", "Network Adapter Type",
    )
    # the generic network column; Port Group wins when both are filled
    NETWORK = ("Network", "Network Name", "Network name")
    PORT_GROUP = ("Port Group", "Portgroup", "Port group")
    SWITCH = ("Switch", "Switch Name", "Switch name", "vSwitch")
    CONNECTED = ("Connected", "Is Connected")
    STARTS_CONNECTED = ("Starts Connected", "Start Connected", "Start connected", "StartConnected")
    MAC_ADDRESS = ("Mac Address", "MAC Address", "MAC address", "MAC")
    MAC_TYPE = ("Type", "MAC Type", "MAC type")
    IPV4 = (
        "IPv4 Address", "IPv4 address", "IP Address", "IP address", "IP", "Primary IP Address",
    )
    IPV6 = ("IPv6 Address", "IPv6 address")
    DIRECT_PATH_IO = ("Direct Path IO", "DirectPath IO", "DirectPath I/O", "Directpath IO")
    DATACENTER = ("Datacenter", "DataCenter", "Data Center")
    CLUSTER = ("Cluster",)
    HOST = ("Host",)


class VNetworkParser(SheetParser):
    sheet_name = "vNetwork"
    sheet_aliases = ("tabvNetwork",)
    columns = VNetworkColumn
    key = VNetworkColumn.VM_NAME

    def build(self, row: RawSheetRow) -> NetworkAdapter:
        c = VNetworkColumn
        return NetworkAdapter(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            template=boolean(row, c.TEMPLATE),
            nic_label=text(row, c.NIC_LABEL),
            adapter_type=text(row, c.ADAPTER_TYPE),
            network_name=text(row, c.PORT_GROUP) or text(row, c.NETWORK),
            switch_name=text(row, c.SWITCH),
            connected=boolean(row, c.CONNECTED),
            starts_connected=boolean(row, c.STARTS_CONNECTED),
            mac_address=text(row, c.MAC_ADDRESS),
            mac_type=text(row, c.MAC_TYPE),
            ipv4_address=optional_text(row, c.IPV4),
            ipv6_address=optional_text(row, c.IPV6),
            direct_path_io=boolean(row, c.DIRECT_PATH_IO),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            host=text(row, c.HOST),
        )


class VCdColumn(Enum):
    VM_NAME = ("VM", "VM Name", "Name")
    POWER_STATE = ("Powerstate", "Power State")
    TEMPLATE = ("Template",)
    DEVICE_NODE = ("Device Node", "Device", "CD/DVD")
    CONNECTED = ("Connected",)
    STARTS_CONNECTED = ("Starts Connected", "Start Connected")
    DEVICE_TYPE = ("Device Type", "Type")
    ANNOTATION = ("Annotation",)
    DATACENTER = ("Datacenter", "DataCenter")
    CLUSTER = ("Cluster",)
    HOST = ("Host",)
    GUEST_OS = ("OS according to the configuration file", "Guest OS", "OS")
    OS_FROM_TOOLS = ("OS according to the VMware Tools", "OS from Tools")


class VCdParser(SheetParser):
    sheet_name = "vCD"
    sheet_aliases = ("tabvCD",)
    columns = VCdColumn
    key = VCdColumn.VM_NAME

    def build(self, row: RawSheetRow) -> CdromDevice:
        c = VCdColumn
        return CdromDevice(
            vm_name=text(row, c.VM_NAME),
            power_state=text(row, c.POWER_STATE),
            template=boolean(row, c.TEMPLATE),
            device_node=text(row, c.DEVICE_NODE),
            connected=boolean(row, c.CONNECTED),
            starts_connected=boolean(row, c.STARTS_CONNECTED),
            device_type=text(row, c.DEVICE_TYPE),
            annotation=optional_text(row, c.ANNOTATION),
            datacenter=text(row, c.DATACENTER),
            cluster=text(row, c.CLUSTER),
            host=text(row, c.HOST),
            guest_os=text(row, c.GUEST_OS),
            os_from_tools=text(row, c.OS_FROM_TOOLS),
        )
