from __future__ import annotations

from dataclasses import dataclass

from ..models.dataset import NormalizedDataset
from ..models.inventory import VirtualMachine

"""Stable VM identity and environment fingerprint.

Inside the process a VM is identified by a tagged value: ``ByUuid`` when the
export carries a VM UUID, ``ByLocation`` (name + datacenter + cluster)
otherwise. The ``::``-joined string form exists only for persistence (override
envelopes); ``:`` and ``\\`` inside components are escaped so that a VM whose
name contains ``::`` still round-trips.

The environment fingerprint ties persisted overrides to the vCenter they were
made against. It is compared for equality only.
"""

__all__ = [
    "ByUuid",
    "ByLocation",
    "Identity",
    "ID_SEPARATOR",
    "vm_identity",
    "get_vm_identifier",
    "format_identity",
    "parse_vm_identifier",
    "get_environment_fingerprint",
    "get_short_fingerprint",
    "fingerprints_match",
    "EnvironmentMetadata",
    "get_environment_metadata",
]

ID_SEPARATOR = "::"


@dataclass(frozen=True)
class ByUuid:
    name: str
    uuid: str


@dataclass(frozen=True)
class ByLocation:
    name: str
    datacenter: str
    cluster: str


Identity = ByUuid | ByLocation


def vm_identity(vm: VirtualMachine) -> Identity:
    if vm.uuid:
        return ByUuid(name=vm.vm_name, uuid=vm.uuid)
    return ByLocation(name=vm.vm_name, datacenter=vm.datacenter, cluster=vm.cluster)


def _escape(part: str) -> str:
    return part.replace("\\", "\\\\").replace(":", "\\:")


def _split(text: str) -> list[str]:
    """Split on unescaped ``::`` and unescape each part."""
    parts: list[str] = []
    buf: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            buf.append(text[i + 1])
            i += 2
            continue
        if text.startswith(ID_SEPARATOR, i):
            parts.append("".join(buf))
            buf = []
            i += len(ID_SEPARATOR)
            continue
        buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return parts


def format_identity(identity: Identity) -> str:
    if isinstance(identity, ByUuid):
        fields = (identity.name, identity.uuid)
    else:
        fields = (identity.name, identity.datacenter, identity.cluster)
    return ID_SEPARATOR.join(_escape(f) for f in fields)


def get_vm_identifier(vm: VirtualMachine) -> str:
    """``name::uuid`` or ``name::datacenter::cluster``."""
    return format_identity(vm_identity(vm))


def parse_vm_identifier(identifier: str) -> Identity:
    """Inverse of :func:`get_vm_identifier`; the token count picks the variant."""
    parts = _split(identifier)
    if len(parts) == 2:
        return ByUuid(name=parts[0], uuid=parts[1])
    if len(parts) == 3:
        return ByLocation(name=parts[0], datacenter=parts[1], cluster=parts[2])
    return ByLocation(name=identifier, datacenter="", cluster="")


def get_environment_fingerprint(dataset: NormalizedDataset) -> str:
    source = dataset.primary_source
    server = source.server if source and source.server else "unknown"
    instance_uuid = source.instance_uuid if source and source.instance_uuid else ""
    clusters = ",".join(sorted(c.name for c in dataset.clusters))
    return f"{server}::{instance_uuid}::{clusters}"


def get_short_fingerprint(fingerprint: str) -> str:
    """8-character hex digest for display. Not cryptographic."""
    h = 0
    for ch in fingerprint:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return format(abs(h), "x").upper().zfill(8)[:8]


def fingerprints_match(stored: str | None, current: str | None) -> bool:
    return bool(stored) and bool(current) and stored == current


@dataclass(frozen=True)
class EnvironmentMetadata:
    server: str
    instance_uuid: str | None
    cluster_count: int
    vm_count: int
    fingerprint: str
    short_fingerprint: str


def get_environment_metadata(dataset: NormalizedDataset) -> EnvironmentMetadata:
    source = dataset.primary_source
    fingerprint = get_environment_fingerprint(dataset)
    return EnvironmentMetadata(
        server=source.server if source else "unknown",
        instance_uuid=source.instance_uuid if source else None,
        cluster_count=len(dataset.clusters),
        vm_count=len(dataset.non_template_vms),
        fingerprint=fingerprint,
        short_fingerprint=get_short_fingerprint(fingerprint),
    )
