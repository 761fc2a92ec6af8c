from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

"""Guest OS compatibility lookup for the two migration targets.

The table is data (``data/os_compatibility.yml``). Matching is ordered,
lower-case substring; the first entry with a matching pattern wins.
"""

__all__ = [
    "MIGRATION_MODES",
    "OS_TABLE_PATH",
    "OSCompatibility",
    "load_os_table",
    "lookup_os",
    "normalized_status",
    "is_os_blocker",
    "count_by_os_status",
]

OS_TABLE_PATH = Path(__file__).parent.parent / "data" / "os_compatibility.yml"
MIGRATION_MODES = ("vsi", "roks")

# raw status -> supported / partial / unsupported
_NORMALIZED = {
    "supported": "supported",
    "byol": "partial",
    "fully-supported": "supported",
    "supported-with-caveats": "partial",
    "unsupported": "unsupported",
}


@dataclass(frozen=True)
class OSCompatibility:
    id: str
    display_name: str
    status: str
    normalized: str


@dataclass(frozen=True)
class _Entry:
    id: str
    display_name: str
    patterns: tuple[str, ...]
    statuses: dict[str, str]


def _entry(raw: dict[str, Any]) -> _Entry:
    return _Entry(
        id=str(raw["id"]),
        display_name=str(raw.get("display_name", raw["id"])),
        patterns=tuple(str(p).lower() for p in raw.get("patterns", ())),
        statuses={mode: str(raw[mode]) for mode in MIGRATION_MODES},
    )


@lru_cache(maxsize=4)
def load_os_table(path: Path = OS_TABLE_PATH) -> tuple[tuple[_Entry, ...], _Entry]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    entries = tuple(_entry(e) for e in data["entries"])
    return entries, _entry(data["default"])


def _check_mode(mode: str) -> None:
    if mode not in MIGRATION_MODES:
        raise ValueError(f"unknown migration mode: {mode!r}")


def lookup_os(guest_os: str, mode: str) -> OSCompatibility:
    _check_mode(mode)
    entries, default = load_os_table()
    needle = (guest_os or "").lower()
    hit = next((e for e in entries if any(p in needle for p in e.patterns)), default)
    status = hit.statuses[mode]
    return OSCompatibility(
        id=hit.id,
        display_name=hit.display_name,
        status=status,
        normalized=_NORMALIZED.get(status, "unsupported"),
    )


def normalized_status(guest_os: str, mode: str) -> str:
    return lookup_os(guest_os, mode).normalized


def is_os_blocker(guest_os: str, mode: str) -> bool:
    return lookup_os(guest_os, mode).status == "unsupported"


def count_by_os_status(guest_oses: Iterable[str], mode: str) -> dict[str, int]:
    """Raw (mode-specific) status -> VM count."""
    return dict(Counter(lookup_os(g, mode).status for g in guest_oses))
