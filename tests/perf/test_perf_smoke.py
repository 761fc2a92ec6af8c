from __future__ import annotations

import time

import pandas as pd

from rvtools_ingest.services.assembler import assemble_dataset
from rvtools_ingest.services.complexity import assess_readiness, score_vms
from rvtools_ingest.services.exclusion import classify_exclusions
from rvtools_ingest.services.metrics import compute_metrics
from rvtools_ingest.services.waves import plan_waves

"""Performance smoke test: a mid-sized estate is assessed well within budget."""

VM_COUNT = 2_000
BUDGET_SEC = 30.0


def _sheets() -> dict[str, pd.DataFrame]:
    vinfo = [["VM", "Powerstate", "CPUs", "Memory", "HW version", "OS according to the configuration file",
              "Datacenter", "Cluster", "VM UUID"]]
    vdisk = [["VM", "Disk Key", "Capacity MiB"]]
    vnet = [["VM", "Network", "IPv4 Address"]]
    for i in range(VM_COUNT):
        name = f"vm{i:05d}"
        vinfo.append([name, "poweredOn" if i % 7 else "poweredOff", 2 + i % 4, 4096, f"vmx-{10 + i % 10}",
                      "Red Hat Enterprise Linux 8 (64-bit)" if i % 2 else "Microsoft Windows Server 2019 (64-bit)",
                      "DC1", f"Cluster{i % 8}", f"uuid-{i}"])
        vdisk.append([name, 2000, 40_960])
        vnet.append([name, f"PG-{i % 25}", f"10.{i % 25}.0.{i % 250 + 1}"])
    return {"vInfo": pd.DataFrame(vinfo), "vDisk": pd.DataFrame(vdisk), "vNetwork": pd.DataFrame(vnet)}


def test_assessment_throughput():
    sheets = _sheets()
    start = time.perf_counter()
    dataset, _, _ = assemble_dataset(sheets, file_name="perf.xlsx")
    exclusions = classify_exclusions(dataset)
    vms = list(dataset.non_template_vms)
    metrics = compute_metrics(dataset, exclusions=exclusions)
    scores = score_vms(vms, dataset, "vsi")
    readiness = assess_readiness(dataset, "vsi", vms)
    waves = plan_waves(dataset, vms, scores)
    elapsed = time.perf_counter() - start

    assert len(dataset.vms) == VM_COUNT
    assert 0 < metrics.total_vms <= VM_COUNT
    assert exclusions.breakdown["poweredOff"] == sum(1 for i in range(VM_COUNT) if i % 7 == 0)
    assert sum(w.vm_count for w in waves) == VM_COUNT
    assert 0 <= readiness.score <= 100
    assert elapsed < BUDGET_SEC, f"assessment too slow: {elapsed:.2f}s"
    throughput = VM_COUNT / elapsed
    assert throughput > 50
