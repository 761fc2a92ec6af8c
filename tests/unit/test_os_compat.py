from __future__ import annotations

import pytest

from rvtools_ingest.services.os_compat import (
    count_by_os_status,
    is_os_blocker,
    lookup_os,
    normalized_status,
)

"""Unit tests for guest OS compatibility lookup."""


@pytest.mark.parametrize(
    "guest_os,mode,status,normalized",
    [
        ("Microsoft Windows Server 2019 (64-bit)", "vsi", "supported", "supported"),
        ("Microsoft Windows Server 2019 (64-bit)", "roks", "fully-supported", "supported"),
        ("Microsoft Windows Server 2012 R2 (64-bit)", "roks", "supported-with-caveats", "partial"),
        ("Microsoft Windows Server 2008 R2 (64-bit)", "vsi", "unsupported", "unsupported"),
        ("Microsoft Windows 10 (64-bit)", "vsi", "byol", "partial"),
        ("Red Hat Enterprise Linux 8 (64-bit)", "vsi", "supported", "supported"),
        ("VMware Photon OS (64-bit)", "roks", "unsupported", "unsupported"),
        ("", "vsi", "unsupported", "unsupported"),
        ("Some Exotic OS", "roks", "unsupported", "unsupported"),
    ],
)
def test_lookup_os(guest_os, mode, status, normalized):
    result = lookup_os(guest_os, mode)
    assert result.status == status
    assert result.normalized == normalized
    assert normalized_status(guest_os, mode) == normalized


def test_specific_version_wins_over_family():
    assert lookup_os("Red Hat Enterprise Linux 9 (64-bit)", "vsi").id == "rhel-9"
    assert lookup_os("Red Hat Enterprise Linux 6 (64-bit)", "vsi").id != "rhel"


def test_unknown_os_uses_default_entry():
    assert lookup_os("Plan 9", "vsi").id == "unknown"


def test_is_os_blocker():
    assert is_os_blocker("Microsoft Windows Server 2003", "vsi")
    assert not is_os_blocker("Microsoft Windows 10 (64-bit)", "vsi")


def test_count_by_os_status():
    counts = count_by_os_status(
        ["Microsoft Windows Server 2019 (64-bit)", "Microsoft Windows 11 (64-bit)", "Plan 9"],
        "vsi",
    )
    assert counts == {"supported": 1, "byol": 1, "unsupported": 1}


def test_unknown_mode_raises():
    with pytest.raises(ValueError):
        lookup_os("Ubuntu Linux (64-bit)", "mainframe")
