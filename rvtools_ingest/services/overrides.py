from __future__ import annotations

import ipaddress
import json
import logging
import re
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from ..models.assessment import VMOverride
from .identity import fingerprints_match

"""User override stores (VM overrides, subnet overrides) and CIDR helpers.

The stores never touch a concrete storage backend directly: they read and
write a JSON envelope through a ``KeyValueStore``. ``MemoryStore`` serves tests
and one-shot CLI runs, ``JsonFileStore`` keeps overrides between CLI runs.

Envelope (VM overrides, version 1)::

    {"version": 1, "environmentFingerprint": "...",
     "overrides": {"<vm id>": {"vmId", "vmName", "excluded"?, "forceIncluded"?,
                               "workloadType"?, "notes"?, "modifiedAt"}},
     "createdAt": "...", "modifiedAt": "..."}
"""

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "VMOverrides",
    "SubnetOverrides",
    "VM_OVERRIDES_KEY",
    "SUBNET_OVERRIDES_KEY",
    "ENVELOPE_VERSION",
    "is_valid_cidr",
    "is_valid_cidr_list",
    "parse_cidr_list",
]

logger = logging.getLogger(__name__)

VM_OVERRIDES_KEY = "vcf-vm-overrides"
SUBNET_OVERRIDES_KEY = "vcf-subnet-overrides"
ENVELOPE_VERSION = 1

Clock = Callable[[], datetime]


def _iso(now: Clock) -> str:
    return now().isoformat().replace("+00:00", "Z")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """One JSON file per key inside ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# CIDR helpers
# ---------------------------------------------------------------------------

_CIDR_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})/(\d{1,2})$")


def is_valid_cidr(value: str | None) -> bool:
    """IPv4 ``a.b.c.d/n``: four octets 0-255, prefix 0-32. Host bits may be set."""
    if not value:
        return False
    m = _CIDR_RE.match(value.strip())
    if m is None:
        return False
    *octets, prefix = (int(g) for g in m.groups())
    if any(o > 255 for o in octets) or prefix > 32:
        return False
    try:
        ipaddress.IPv4Network(value.strip(), strict=False)
    except ValueError:
        return False
    return True


def is_valid_cidr_list(value: str | None) -> bool:
    """Comma-separated list; valid only if every entry is a valid CIDR."""
    if not value or not value.strip():
        return False
    return all(is_valid_cidr(part.strip()) for part in value.split(","))


def parse_cidr_list(value: str | None) -> list[str]:
    """Lenient extraction: the valid entries, trimmed, in order."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if is_valid_cidr(part.strip())]


# ---------------------------------------------------------------------------
# VM overrides
# ---------------------------------------------------------------------------


def _validate_envelope(data: Any) -> dict[str, VMOverride]:
    """Return parsed overrides or raise ``ValueError`` for any structural problem."""
    if not isinstance(data, dict):
        raise ValueError("envelope must be an object")
    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError("envelope.version must be an integer")
    if version > ENVELOPE_VERSION:
        raise ValueError(f"unsupported envelope version {version}")
    raw = data.get("overrides")
    if not isinstance(raw, dict):
        raise ValueError("envelope.overrides must be an object")
    parsed: dict[str, VMOverride] = {}
    for vm_id, entry in raw.items():
        if not isinstance(entry, dict) or not isinstance(entry.get("vmName"), str):
            raise ValueError(f"override {vm_id!r} lacks vmName")
        for key in ("excluded", "forceIncluded"):
            if entry.get(key) is not None and not isinstance(entry[key], bool):
                raise ValueError(f"override {vm_id!r}: {key} must be a boolean")
        parsed[vm_id] = VMOverride.from_json(vm_id, entry)
    return parsed


class VMOverrides:
    """Per-VM exclusion / workload type / notes, scoped to one environment.

    ``fingerprint`` is the environment fingerprint of the dataset currently
    loaded. When the stored envelope was made for another environment,
    ``environment_mismatch`` is true but the stored overrides are kept.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        fingerprint: str = "",
        now: Clock | None = None,
    ) -> None:
        self._store = store if store is not None else MemoryStore()
        self._now = now or (lambda: datetime.now(UTC))
        self.fingerprint = fingerprint
        self._overrides: dict[str, VMOverride] = {}
        self._stored_fingerprint: str = fingerprint
        self._created_at: str = _iso(self._now)
        self._load()

    # -- persistence --------------------------------------------------------

    def _load(self) -> None:
        raw = self._store.get(VM_OVERRIDES_KEY)
        if raw is None:
            return
        try:
            data = json.loads(raw)
            overrides = _validate_envelope(data)
        except ValueError as e:
            # JSONDecodeError is a ValueError
            logger.warning("stored VM overrides ignored: %s", e)
            return
        self._overrides = overrides
        self._stored_fingerprint = str(data.get("environmentFingerprint") or "")
        self._created_at = str(data.get("createdAt") or self._created_at)

    def _envelope(self) -> dict[str, Any]:
        return {
            "version": ENVELOPE_VERSION,
            "environmentFingerprint": self._stored_fingerprint or self.fingerprint,
            "overrides": {vm_id: o.to_json() for vm_id, o in self._overrides.items()},
            "createdAt": self._created_at,
            "modifiedAt": _iso(self._now),
        }

    def _save(self) -> None:
        if not self._overrides:
            self._store.delete(VM_OVERRIDES_KEY)
            return
        self._store.set(VM_OVERRIDES_KEY, json.dumps(self._envelope(), ensure_ascii=False))

    # -- queries --------------------------------------------------------------

    @property
    def overrides(self) -> dict[str, VMOverride]:
        return dict(self._overrides)

    @property
    def environment_mismatch(self) -> bool:
        if not self._overrides or not self.fingerprint or not self._stored_fingerprint:
            return False
        return not fingerprints_match(self._stored_fingerprint, self.fingerprint)

    @property
    def excluded_count(self) -> int:
        return sum(1 for o in self._overrides.values() if o.excluded)

    @property
    def override_count(self) -> int:
        return len(self._overrides)

    def has_override(self, vm_id: str) -> bool:
        return vm_id in self._overrides

    def get(self, vm_id: str) -> VMOverride | None:
        return self._overrides.get(vm_id)

    def is_excluded(self, vm_id: str) -> bool:
        o = self._overrides.get(vm_id)
        return bool(o and o.excluded)

    def is_force_included(self, vm_id: str) -> bool:
        o = self._overrides.get(vm_id)
        return bool(o and o.force_included)

    def get_workload_type(self, vm_id: str) -> str | None:
        o = self._overrides.get(vm_id)
        return o.workload_type if o else None

    def get_notes(self, vm_id: str) -> str | None:
        o = self._overrides.get(vm_id)
        return o.notes if o else None

    # -- mutations ------------------------------------------------------------

    def _update(self, vm_id: str, vm_name: str, **changes: Any) -> None:
        current = self._overrides.get(vm_id) or VMOverride(vm_id=vm_id, vm_name=vm_name)
        values = {
            "vm_id": vm_id,
            "vm_name": vm_name or current.vm_name,
            "excluded": current.excluded,
            "force_included": current.force_included,
            "workload_type": current.workload_type,
            "notes": current.notes,
        }
        values.update(changes)
        updated = VMOverride(modified_at=_iso(self._now), **values)
        if updated.is_empty:
            self._overrides.pop(vm_id, None)
        else:
            self._overrides[vm_id] = updated
        self._save()

    def set_excluded(self, vm_id: str, vm_name: str, excluded: bool) -> None:
        # exclude と force-include は排他
        changes: dict[str, Any] = {"excluded": excluded}
        if excluded:
            changes["force_included"] = None
        self._update(vm_id, vm_name, **changes)

    def set_force_included(self, vm_id: str, vm_name: str, included: bool) -> None:
        changes: dict[str, Any] = {"force_included": included}
        if included:
            changes["excluded"] = None
        self._update(vm_id, vm_name, **changes)

    def set_workload_type(self, vm_id: str, vm_name: str, workload_type: str | None) -> None:
        self._update(vm_id, vm_name, workload_type=(workload_type or "").strip() or None)

    def set_notes(self, vm_id: str, vm_name: str, notes: str | None) -> None:
        self._update(vm_id, vm_name, notes=(notes or "").strip() or None)

    def bulk_set_excluded(self, vms: Iterable[tuple[str, str]], excluded: bool) -> None:
        for vm_id, vm_name in vms:
            self.set_excluded(vm_id, vm_name, excluded)

    def remove_override(self, vm_id: str) -> None:
        if self._overrides.pop(vm_id, None) is not None:
            self._save()

    def clear_all(self) -> None:
        self._overrides.clear()
        self._stored_fingerprint = self.fingerprint
        self._store.delete(VM_OVERRIDES_KEY)

    def adopt_current_environment(self) -> None:
        """Re-stamp stored overrides with the current fingerprint."""
        self._stored_fingerprint = self.fingerprint
        self._save()

    # -- export / import ----------------------------------------------------

    def export_settings(self) -> str:
        envelope = self._envelope()
        envelope["exportedAt"] = _iso(self._now)
        return json.dumps(envelope, indent=2, ensure_ascii=False)

    def import_settings(self, text: str) -> bool:
        """Replace all overrides with the exported ones. All-or-nothing."""
        try:
            data = json.loads(text)
            overrides = _validate_envelope(data)
        except ValueError as e:
            logger.warning("override import rejected: %s", e)
            return False
        self._overrides = overrides
        self._stored_fingerprint = str(data.get("environmentFingerprint") or "")
        self._created_at = str(data.get("createdAt") or _iso(self._now))
        self._save()
        if self.environment_mismatch:
            logger.warning("imported overrides belong to a different environment")
        return True


# ---------------------------------------------------------------------------
# Subnet overrides
# ---------------------------------------------------------------------------


def _validate_subnet_envelope(data: Any) -> dict[str, dict[str, str]]:
    if not isinstance(data, dict):
        raise ValueError("envelope must be an object")
    raw = data.get("overrides")
    if not isinstance(raw, dict):
        raise ValueError("envelope.overrides must be an object")
    parsed: dict[str, dict[str, str]] = {}
    for port_group, entry in raw.items():
        if not isinstance(entry, dict) or not isinstance(entry.get("subnet"), str):
            raise ValueError(f"subnet override {port_group!r} lacks subnet")
        parsed[port_group] = {
            "portGroup": str(entry.get("portGroup") or port_group),
            "subnet": entry["subnet"],
            "modifiedAt": str(entry.get("modifiedAt") or ""),
        }
    return parsed


class SubnetOverrides:
    """Port group -> user-supplied subnet (CIDR or comma-separated CIDRs)."""

    def __init__(self, store: KeyValueStore | None = None, now: Clock | None = None) -> None:
        self._store = store if store is not None else MemoryStore()
        self._now = now or (lambda: datetime.now(UTC))
        self._overrides: dict[str, dict[str, str]] = {}
        self._created_at = _iso(self._now)
        raw = self._store.get(SUBNET_OVERRIDES_KEY)
        if raw is not None:
            try:
                data = json.loads(raw)
                self._overrides = _validate_subnet_envelope(data)
            except ValueError as e:
                logger.warning("stored subnet overrides ignored: %s", e)
            else:
                self._created_at = str(data.get("createdAt") or self._created_at)

    def _save(self) -> None:
        envelope = {
            "version": ENVELOPE_VERSION,
            "overrides": self._overrides,
            "createdAt": self._created_at,
            "modifiedAt": _iso(self._now),
        }
        self._store.set(SUBNET_OVERRIDES_KEY, json.dumps(envelope, ensure_ascii=False))

    @property
    def overrides(self) -> dict[str, str]:
        return {pg: entry["subnet"] for pg, entry in self._overrides.items()}

    @property
    def override_count(self) -> int:
        return len(self._overrides)

    def get_subnet(self, port_group: str) -> str | None:
        entry = self._overrides.get(port_group)
        return entry["subnet"] if entry else None

    def has_override(self, port_group: str) -> bool:
        return port_group in self._overrides

    def set_subnet(self, port_group: str, subnet: str | None) -> None:
        value = (subnet or "").strip()
        if not value:
            self.remove_override(port_group)
            return
        self._overrides[port_group] = {
            "portGroup": port_group,
            "subnet": value,
            "modifiedAt": _iso(self._now),
        }
        self._save()

    def remove_override(self, port_group: str) -> None:
        if self._overrides.pop(port_group, None) is not None:
            self._save()

    def clear_all(self) -> None:
        self._overrides.clear()
        self._store.delete(SUBNET_OVERRIDES_KEY)
