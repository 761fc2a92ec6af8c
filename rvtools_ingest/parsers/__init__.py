"""Sheet parsers, one per RVTools tab.

``PARSER_TYPES`` maps the dataset attribute each parser fills to its class, in
the order the assembler runs them.
"""

from .base import Clock, SheetParser
from .devices import VCdParser, VDiskParser, VNetworkParser
from .infrastructure import (
    VClusterParser,
    VDatastoreParser,
    VHostParser,
    VResourcePoolParser,
    split_resource_pool_path,
)
from .inventory import VLicenseParser, VSourceParser, mask_license_key
from .state import VSnapshotParser, VToolsParser, snapshot_age_days
from .vm import VCpuParser, VInfoParser, VMemoryParser

PARSER_TYPES: dict[str, type[SheetParser]] = {
    "vms": VInfoParser,
    "cpus": VCpuParser,
    "memory": VMemoryParser,
    "disks": VDiskParser,
    "networks": VNetworkParser,
    "snapshots": VSnapshotParser,
    "tools": VToolsParser,
    "cdroms": VCdParser,
    "hosts": VHostParser,
    "clusters": VClusterParser,
    "datastores": VDatastoreParser,
    "resource_pools": VResourcePoolParser,
    "licenses": VLicenseParser,
    "sources": VSourceParser,
}

MANDATORY_SHEETS: tuple[str, ...] = (VInfoParser.sheet_name, VDiskParser.sheet_name)

__all__ = [
    "Clock",
    "MANDATORY_SHEETS",
    "PARSER_TYPES",
    "SheetParser",
    "VCdParser",
    "VClusterParser",
    "VCpuParser",
    "VDatastoreParser",
    "VDiskParser",
    "VHostParser",
    "VInfoParser",
    "VLicenseParser",
    "VMemoryParser",
    "VNetworkParser",
    "VResourcePoolParser",
    "VSnapshotParser",
    "VSourceParser",
    "VToolsParser",
    "mask_license_key",
    "snapshot_age_days",
    "split_resource_pool_path",
]
