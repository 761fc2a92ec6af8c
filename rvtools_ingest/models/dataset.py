from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property

from .inventory import (
    CdromDevice,
    Cluster,
    CpuConfig,
    Datastore,
    Host,
    LicenseEntry,
    MemoryConfig,
    NetworkAdapter,
    ResourcePool,
    Snapshot,
    SourceInfo,
    ToolsInfo,
    VirtualDisk,
    VirtualMachine,
)

"""NormalizedDataset: the immutable result of one workbook ingestion.

A dataset is built once per upload and replaced wholesale on the next one.
Lookup helpers index satellite records by VM name lazily; the indexes are
cached on the instance, which is safe because nothing is ever mutated.
"""

__all__ = [
    "DatasetMetadata",
    "NormalizedDataset",
]


@dataclass(frozen=True)
class DatasetMetadata:
    file_name: str
    collection_date: datetime | None = None
    vcenter_version: str | None = None
    server: str | None = None


def _index(records) -> dict[str, tuple]:
    grouped: dict[str, list] = defaultdict(list)
    for rec in records:
        grouped[rec.vm_name].append(rec)
    return {k: tuple(v) for k, v in grouped.items()}


@dataclass(frozen=True)
class NormalizedDataset:
    metadata: DatasetMetadata
    vms: tuple[VirtualMachine, ...] = ()
    cpus: tuple[CpuConfig, ...] = ()
    memory: tuple[MemoryConfig, ...] = ()
    disks: tuple[VirtualDisk, ...] = ()
    networks: tuple[NetworkAdapter, ...] = ()
    snapshots: tuple[Snapshot, ...] = ()
    tools: tuple[ToolsInfo, ...] = ()
    cdroms: tuple[CdromDevice, ...] = ()
    hosts: tuple[Host, ...] = ()
    clusters: tuple[Cluster, ...] = ()
    datastores: tuple[Datastore, ...] = ()
    resource_pools: tuple[ResourcePool, ...] = ()
    licenses: tuple[LicenseEntry, ...] = ()
    sources: tuple[SourceInfo, ...] = ()
    # sheet name -> records parsed, for summaries
    sheet_counts: dict[str, int] = field(default_factory=dict, compare=False, hash=False)

    @cached_property
    def _vms_by_name(self) -> dict[str, VirtualMachine]:
        return {vm.vm_name: vm for vm in self.vms}

    @cached_property
    def _disks_by_vm(self) -> dict[str, tuple[VirtualDisk, ...]]:
        return _index(self.disks)

    @cached_property
    def _snapshots_by_vm(self) -> dict[str, tuple[Snapshot, ...]]:
        return _index(self.snapshots)

    @cached_property
    def _tools_by_vm(self) -> dict[str, tuple[ToolsInfo, ...]]:
        return _index(self.tools)

    @cached_property
    def _nics_by_vm(self) -> dict[str, tuple[NetworkAdapter, ...]]:
        return _index(self.networks)

    @cached_property
    def _cdroms_by_vm(self) -> dict[str, tuple[CdromDevice, ...]]:
        return _index(self.cdroms)

    @cached_property
    def _cpu_by_vm(self) -> dict[str, tuple[CpuConfig, ...]]:
        return _index(self.cpus)

    @cached_property
    def _memory_by_vm(self) -> dict[str, tuple[MemoryConfig, ...]]:
        return _index(self.memory)

    def vm(self, name: str) -> VirtualMachine | None:
        return self._vms_by_name.get(name)

    def vms_by_name(self) -> dict[str, VirtualMachine]:
        return dict(self._vms_by_name)

    def disks_for(self, vm_name: str) -> tuple[VirtualDisk, ...]:
        return self._disks_by_vm.get(vm_name, ())

    def snapshots_for(self, vm_name: str) -> tuple[Snapshot, ...]:
        return self._snapshots_by_vm.get(vm_name, ())

    def tools_for(self, vm_name: str) -> ToolsInfo | None:
        found = self._tools_by_vm.get(vm_name, ())
        return found[0] if found else None

    def nics_for(self, vm_name: str) -> tuple[NetworkAdapter, ...]:
        return self._nics_by_vm.get(vm_name, ())

    def cdroms_for(self, vm_name: str) -> tuple[CdromDevice, ...]:
        return self._cdroms_by_vm.get(vm_name, ())

    def cpu_for(self, vm_name: str) -> CpuConfig | None:
        found = self._cpu_by_vm.get(vm_name, ())
        return found[0] if found else None

    def memory_for(self, vm_name: str) -> MemoryConfig | None:
        found = self._memory_by_vm.get(vm_name, ())
        return found[0] if found else None

    @property
    def non_template_vms(self) -> tuple[VirtualMachine, ...]:
        return tuple(vm for vm in self.vms if not vm.template)

    @property
    def primary_source(self) -> SourceInfo | None:
        return self.sources[0] if self.sources else None
