# Shared pytest fixtures
from __future__ import annotations

import copy
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import pytest

from rvtools_ingest.config.loader import PROXY_URL_ENV
from rvtools_ingest.logging.init import reset_logging
from rvtools_ingest.models import (
    CdromDevice,
    Cluster,
    CpuConfig,
    DatasetMetadata,
    Host,
    NetworkAdapter,
    NormalizedDataset,
    PowerState,
    Snapshot,
    SourceInfo,
    ToolsInfo,
    VirtualDisk,
    VirtualMachine,
)

FIXED_NOW = datetime(2024, 6, 1, tzinfo=UTC)


def write_workbook(path: Path, sheets: dict[str, list[list]]) -> Path:
    """Write ``{sheet: [header, row, ...]}`` as an RVTools-like xlsx."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


# 3 VMs + 1 template; db01 has an old snapshot, legacy01 has no tools
SAMPLE_SHEETS: dict[str, list[list]] = {
    "vInfo": [
        ["VM", "Powerstate", "Template", "DNS Name", "CPUs", "Memory", "Provisioned MiB",
         "In Use MiB", "HW version", "OS according to the configuration file", "Datacenter",
         "Cluster", "Host", "VM UUID", "Firmware", "CBT"],
        ["web01", "poweredOn", False, "web01.example.com", 2, 4096, 51200, 20480, "vmx-19",
         "Red Hat Enterprise Linux 8 (64-bit)", "DC1", "ClusterA", "esx01", "uuid-web01", "efi", True],
        ["db01", "poweredOn", False, "db01", 4, 16384, 204800, 102400, "vmx-13",
         "Microsoft Windows Server 2019 (64-bit)", "DC1", "ClusterA", "esx01", "uuid-db01", "bios", False],
        ["legacy01", "poweredOn", False, "", 1, 2048, 8192, 4096, "vmx-08",
         "Microsoft Windows Server 2008 R2 (64-bit)", "DC1", "ClusterB", "esx02", "", "bios", False],
        ["tmpl-rhel9", "poweredOff", True, "", 2, 2048, 20480, 0, "vmx-19",
         "Red Hat Enterprise Linux 9 (64-bit)", "DC1", "ClusterA", "esx01", "uuid-tmpl", "efi", False],
    ],
    "vDisk": [
        ["VM", "Disk", "Disk Key", "Capacity MiB", "Raw", "Disk Mode", "Sharing mode"],
        ["web01", "Hard disk 1", 2000, 51200, False, "persistent", "sharingNone"],
        ["db01", "Hard disk 1", 2000, 102400, False, "persistent", "sharingNone"],
        ["db01", "Hard disk 2", 2001, 102400, False, "persistent", "sharingNone"],
        ["legacy01", "Hard disk 1", 2000, 8192, True, "persistent", "sharingNone"],
        ["tmpl-rhel9", "Hard disk 1", 2000, 20480, False, "persistent", "sharingNone"],
    ],
    "vNetwork": [
        ["VM", "NIC label", "Adapter", "Network", "Connected", "IPv4 Address"],
        ["web01", "Network adapter 1", "vmxnet3", "VM Network", True, "10.0.1.10"],
        ["db01", "Network adapter 1", "vmxnet3", "DB-Net", True, "10.0.2.20"],
        ["legacy01", "Network adapter 1", "E1000", "VM Network", True, "10.0.1.30"],
    ],
    "vSnapshot": [
        ["VM", "Name", "Date / time", "Size MiB (total)"],
        ["db01", "before-patch", datetime(2024, 3, 1, 12, 0), 2048],
    ],
    "vTools": [
        ["VM", "Tools", "Tools Version"],
        ["web01", "toolsOk", "12352"],
        ["db01", "toolsOld", "11333"],
        ["legacy01", "toolsNotInstalled", ""],
    ],
    "vHost": [
        ["Host", "Datacenter", "Cluster", "# CPU", "Cores per CPU", "# Cores", "# Memory", "# VMs",
         "# vCPUs", "vRAM"],
        ["esx01", "DC1", "ClusterA", 2, 16, 32, 262144, 3, 8, 22528],
        ["esx02", "DC1", "ClusterB", 1, 16, 16, 131072, 1, 1, 2048],
    ],
    "vCluster": [
        ["Name", "Datacenter", "NumHosts", "# VMs", "NumCpuCores", "TotalMemory", "HA enabled"],
        ["ClusterA", "DC1", 1, 3, 32, 262144, True],
        ["ClusterB", "DC1", 1, 1, 16, 131072, False],
    ],
    "vSource": [
        ["Server", "Version", "Build", "Instance UUID", "Server Time"],
        ["vcenter01.example.com", "8.0.2", "22617221", "inst-0001", datetime(2024, 5, 30, 8, 0)],
    ],
    "vLicense": [
        ["Name", "Key", "Total", "Used", "Product Name"],
        ["vSphere 8 Enterprise Plus", "AAAAA-BBBBB-CCCCC-DDDDD-EEEEE", 64, 48, "VMware vSphere"],
    ],
}


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _no_proxy_env(monkeypatch):
    # setenv (not delenv) so values loaded from a .env file are undone too
    monkeypatch.setenv(PROXY_URL_ENV, "")


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def sample_sheets() -> dict[str, list[list]]:
    return copy.deepcopy(SAMPLE_SHEETS)


@pytest.fixture()
def make_workbook(temp_workdir: Path):
    """Factory writing ``{sheet: rows}`` to ``data/<name>`` in the temp workdir."""

    def _make(name: str, sheets: dict[str, list[list]]) -> Path:
        return write_workbook(temp_workdir / "data" / name, sheets)

    return _make


@pytest.fixture()
def sample_workbook(temp_workdir: Path) -> Path:
    return write_workbook(temp_workdir / "data" / "rvtools.xlsx", SAMPLE_SHEETS)


@pytest.fixture()
def sample_dataset() -> NormalizedDataset:
    """In-memory equivalent of ``SAMPLE_SHEETS`` (snapshot age fixed at 92 days)."""
    vms = (
        VirtualMachine(
            vm_name="web01", power_state=PowerState.POWERED_ON, dns_name="web01.example.com",
            guest_hostname="web01.example.com", cpus=2, memory_mib=4096, provisioned_mib=51200,
            in_use_mib=20480, hardware_version="vmx-19",
            guest_os="Red Hat Enterprise Linux 8 (64-bit)", datacenter="DC1", cluster="ClusterA",
            host="esx01", uuid="uuid-web01", firmware="efi", cbt_enabled=True,
        ),
        VirtualMachine(
            vm_name="db01", power_state=PowerState.POWERED_ON, dns_name="db01",
            guest_hostname="db01", cpus=4, memory_mib=16384, provisioned_mib=204800,
            in_use_mib=102400, hardware_version="vmx-13",
            guest_os="Microsoft Windows Server 2019 (64-bit)", datacenter="DC1",
            cluster="ClusterA", host="esx01", uuid="uuid-db01", firmware="bios",
        ),
        VirtualMachine(
            vm_name="legacy01", power_state=PowerState.POWERED_ON, cpus=1, memory_mib=2048,
            provisioned_mib=8192, in_use_mib=4096, hardware_version="vmx-08",
            guest_os="Microsoft Windows Server 2008 R2 (64-bit)", datacenter="DC1",
            cluster="ClusterB", host="esx02", firmware="bios",
        ),
        VirtualMachine(
            vm_name="tmpl-rhel9", power_state=PowerState.POWERED_OFF, template=True, cpus=2,
            memory_mib=2048, provisioned_mib=20480, hardware_version="vmx-19",
            guest_os="Red Hat Enterprise Linux 9 (64-bit)", datacenter="DC1", cluster="ClusterA",
            host="esx01", uuid="uuid-tmpl", firmware="efi",
        ),
    )
    disks = (
        VirtualDisk("web01", disk_label="Hard disk 1", disk_key=2000, capacity_mib=51200,
                    disk_mode="persistent", sharing="sharingNone"),
        VirtualDisk("db01", disk_label="Hard disk 1", disk_key=2000, capacity_mib=102400,
                    disk_mode="persistent", sharing="sharingNone"),
        VirtualDisk("db01", disk_label="Hard disk 2", disk_key=2001, capacity_mib=102400,
                    disk_mode="persistent", sharing="sharingNone"),
        VirtualDisk("legacy01", disk_label="Hard disk 1", disk_key=2000, capacity_mib=8192,
                    raw=True, disk_mode="persistent", sharing="sharingNone"),
        VirtualDisk("tmpl-rhel9", disk_label="Hard disk 1", disk_key=2000, capacity_mib=20480,
                    disk_mode="persistent", sharing="sharingNone"),
    )
    networks = (
        NetworkAdapter("web01", nic_label="Network adapter 1", adapter_type="vmxnet3",
                       network_name="VM Network", connected=True, ipv4_address="10.0.1.10"),
        NetworkAdapter("db01", nic_label="Network adapter 1", adapter_type="vmxnet3",
                       network_name="DB-Net", connected=True, ipv4_address="10.0.2.20"),
        NetworkAdapter("legacy01", nic_label="Network adapter 1", adapter_type="E1000",
                       network_name="VM Network", connected=True, ipv4_address="10.0.1.30"),
    )
    return NormalizedDataset(
        metadata=DatasetMetadata(
            file_name="rvtools.xlsx",
            collection_date=datetime(2024, 5, 30, 8, 0, tzinfo=UTC),
            vcenter_version="8.0.2",
            server="vcenter01.example.com",
        ),
        vms=vms,
        cpus=(CpuConfig("db01", cpus=4, hot_add_enabled=True),),
        disks=disks,
        networks=networks,
        snapshots=(Snapshot("db01", snapshot_name="before-patch", size_total_mib=2048, age_in_days=92),),
        tools=(
            ToolsInfo("web01", tools_status="toolsOk"),
            ToolsInfo("db01", tools_status="toolsOld"),
            ToolsInfo("legacy01", tools_status="toolsNotInstalled"),
        ),
        cdroms=(CdromDevice("legacy01", device_node="CD/DVD drive 1", connected=True),),
        hosts=(
            Host("esx01", datacenter="DC1", cluster="ClusterA", total_cpu_cores=32,
                 memory_mib=262144, vm_cpu_count=8, vm_memory_mib=22528),
            Host("esx02", datacenter="DC1", cluster="ClusterB", total_cpu_cores=16,
                 memory_mib=131072, vm_cpu_count=1, vm_memory_mib=2048),
        ),
        clusters=(
            Cluster("ClusterA", datacenter="DC1", host_count=1, vm_count=3),
            Cluster("ClusterB", datacenter="DC1", host_count=1, vm_count=1),
        ),
        sources=(SourceInfo("vcenter01.example.com", version="8.0.2", instance_uuid="inst-0001"),),
        sheet_counts={"vInfo": 4, "vDisk": 5},
    )
