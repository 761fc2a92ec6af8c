from __future__ import annotations

import pytest

from rvtools_ingest.models import PowerState
from rvtools_ingest.services.exclusion import classify_exclusions
from rvtools_ingest.services.identity import get_vm_identifier
from rvtools_ingest.services.metrics import (
    ChartEntry,
    compute_metrics,
    firmware_category,
    os_category,
    tools_category,
    workload_family,
)
from rvtools_ingest.services.overrides import MemoryStore, SubnetOverrides, VMOverrides

"""Unit tests for dashboard metrics."""


def labels(entries):
    return [e.label for e in entries]


def test_headline_totals(sample_dataset):
    m = compute_metrics(sample_dataset)
    assert m.total_vms == 3
    assert m.templates == 1
    assert m.excluded_vms == 0
    assert m.powered_on == 3
    assert m.powered_off == 0
    assert m.total_vcpus == 7
    assert m.total_memory_mib == 22528
    assert m.total_memory_gib == 22
    assert m.total_disk_capacity_mib == 51200 + 204800 + 8192
    assert m.unique_clusters == 2
    assert m.unique_datacenters == 1
    assert m.power_state_chart == (ChartEntry("Powered On", 3),)


def test_config_analysis(sample_dataset):
    config = compute_metrics(sample_dataset).config
    assert config.tools_not_installed == 1
    assert config.tools_current == 1
    assert config.outdated_hardware == 2
    assert config.snapshot_blockers == 1
    assert config.vms_with_snapshots == 1
    assert config.vms_with_cd_connected == 1
    assert config.config_issues_count == 5


def test_distributions(sample_dataset):
    m = compute_metrics(sample_dataset)
    assert labels(m.hardware_versions) == ["vmx-19", "vmx-13", "vmx-08"]
    assert labels(m.os_distribution) == ["RHEL", "Windows Server (Other)", "Windows Server 2019"]
    assert m.firmware == (ChartEntry("BIOS", 2), ChartEntry("UEFI", 1))
    assert labels(m.tools_status) == ["Current", "Not Installed", "Outdated"]
    assert m.workload_breakdown == {"Linux": 1, "Windows": 2}
    assert m.vms_by_cluster == (ChartEntry("ClusterA", 2), ChartEntry("ClusterB", 1))


def test_overcommit(sample_dataset):
    m = compute_metrics(sample_dataset)
    assert m.cpu_overcommit == (ChartEntry("ClusterA", 0.25), ChartEntry("ClusterB", 0.06))
    assert m.memory_overcommit == (ChartEntry("ClusterA", 0.09), ChartEntry("ClusterB", 0.02))


def test_network_summary_with_subnets(sample_dataset):
    subnets = SubnetOverrides(MemoryStore())
    subnets.set_subnet("DB-Net", "10.0.2.0/24")
    summary = compute_metrics(sample_dataset, subnets=subnets).network_summary
    assert [(p.port_group, p.vm_count, p.prefixes, p.subnet) for p in summary] == [
        ("DB-Net", 1, ("10.0.2.0/24",), "10.0.2.0/24"),
        ("VM Network", 2, ("10.0.1.0/24",), None),
    ]


def test_power_filter_only_affects_filtered_block(sample_dataset):
    m = compute_metrics(sample_dataset, power_filter=PowerState.POWERED_OFF)
    assert m.total_vms == 3
    assert m.filtered.total_vms == 0
    assert m.filtered.os_distribution == ()
    on = compute_metrics(sample_dataset, power_filter=PowerState.POWERED_ON)
    assert on.filtered.total_vcpus == 7


def test_user_exclusion_shrinks_scope(sample_dataset):
    overrides = VMOverrides(MemoryStore())
    db01 = sample_dataset.vm("db01")
    overrides.set_excluded(get_vm_identifier(db01), "db01", True)

    m = compute_metrics(sample_dataset, overrides)
    assert m.total_vms == 2
    assert m.excluded_vms == 1
    # satellite rows follow the scope
    assert m.config.snapshot_blockers == 0
    assert m.config.tools_current == 1


def test_exclusion_report_decides_scope(sample_dataset):
    overrides = VMOverrides(MemoryStore())
    overrides.set_excluded(get_vm_identifier(sample_dataset.vm("legacy01")), "legacy01", True)
    report = classify_exclusions(sample_dataset, overrides)
    m = compute_metrics(sample_dataset, exclusions=report)
    assert m.total_vms == 2
    assert m.config.tools_not_installed == 0
    assert m.config.vms_with_cd_connected == 0


def test_compute_metrics_is_pure(sample_dataset):
    assert compute_metrics(sample_dataset) == compute_metrics(sample_dataset)


@pytest.mark.parametrize(
    "guest_os,bucket,family",
    [
        ("Microsoft Windows Server 2022 (64-bit)", "Windows Server 2022", "Windows"),
        ("Microsoft Windows Server 2012 R2 (64-bit)", "Windows Server (Other)", "Windows"),
        ("Microsoft Windows 11 (64-bit)", "Windows 11", "Windows"),
        ("CentOS 7 (64-bit)", "CentOS", "Linux"),
        ("SUSE Linux Enterprise 15 (64-bit)", "SLES", "Linux"),
        ("Other 3.x or later Linux (64-bit)", "Linux (Other)", "Linux"),
        ("FreeBSD 13 (64-bit)", "FreeBSD", "Other"),
        ("", "Unknown", "Other"),
    ],
)
def test_os_buckets(guest_os, bucket, family):
    assert os_category(guest_os) == bucket
    assert workload_family(guest_os) == family


@pytest.mark.parametrize(
    "status,category",
    [
        ("toolsOk", "Current"),
        ("toolsOld", "Outdated"),
        ("toolsNotRunning", "Not Running"),
        ("toolsNotInstalled", "Not Installed"),
        ("", "Unknown"),
    ],
)
def test_tools_category(status, category):
    assert tools_category(status) == category


def test_firmware_category():
    assert firmware_category("efi") == "UEFI"
    assert firmware_category("bios") == "BIOS"
    assert firmware_category("") == "BIOS"
