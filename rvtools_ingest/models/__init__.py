"""Domain models for RVTools ingestion.

Inventory records mirror the RVTools sheets; assessment records are derived
from a dataset and never persisted (except ``VMOverride``).
"""

from .assessment import CheckResult, ComplexityScore, ReadinessBand, Severity, VMOverride, Wave
from .dataset import DatasetMetadata, NormalizedDataset
from .error_record import ErrorRecord
from .inventory import (
    CdromDevice,
    Cluster,
    CpuConfig,
    Datastore,
    Host,
    LicenseEntry,
    MemoryConfig,
    NetworkAdapter,
    PowerState,
    ResourcePool,
    Snapshot,
    SourceInfo,
    ToolsInfo,
    VirtualDisk,
    VirtualMachine,
)

__all__ = [
    # Inventory
    "CdromDevice",
    "Cluster",
    "CpuConfig",
    "Datastore",
    "Host",
    "LicenseEntry",
    "MemoryConfig",
    "NetworkAdapter",
    "PowerState",
    "ResourcePool",
    "Snapshot",
    "SourceInfo",
    "ToolsInfo",
    "VirtualDisk",
    "VirtualMachine",
    # Dataset
    "DatasetMetadata",
    "NormalizedDataset",
    # Assessment
    "CheckResult",
    "ComplexityScore",
    "ReadinessBand",
    "Severity",
    "VMOverride",
    "Wave",
    # Logging
    "ErrorRecord",
]
