from __future__ import annotations

import json
from pathlib import Path

import pytest

from rvtools_ingest.cli import EXIT_FATAL, EXIT_SUCCESS, main as cli_main
from rvtools_ingest.config.loader import PROXY_URL_ENV


def test_cli_success(sample_workbook: Path, capsys):
    code = cli_main([str(sample_workbook)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "INFO environment vcenter01.example.com" in out
    assert "INFO readiness (vsi):" in out
    assert "SUMMARY file=rvtools.xlsx vms=4 hosts=2 clusters=2 records=22" in out


def test_cli_missing_workbook(temp_workdir: Path, capsys):
    code = cli_main([str(temp_workdir / "data" / "nope.xlsx")])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR ingest: workbook not found" in out
    assert "SUMMARY" not in out


def test_cli_requires_workbook_argument(temp_workdir: Path):
    with pytest.raises(SystemExit) as e:
        cli_main([])
    assert e.value.code == 2


def test_cli_mode_and_waves_flags(sample_workbook: Path, capsys):
    code = cli_main([str(sample_workbook), "--mode", "roks", "--waves", "complexity"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "INFO readiness (roks):" in out
    assert "INFO wave Wave 1: Pilot:" in out


def test_cli_config_file(sample_workbook: Path, temp_workdir: Path, capsys):
    (temp_workdir / "config" / "rvtools.yml").write_text(
        "migration_mode: roks\nwaves:\n  group_by: cluster\n", encoding="utf-8"
    )
    code = cli_main([str(sample_workbook)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "INFO readiness (roks):" in out
    assert "INFO wave ClusterA:" in out


def test_cli_custom_exclusion_rules(sample_workbook: Path, temp_workdir: Path, capsys):
    rules = temp_workdir / "config" / "rules.yml"
    rules.write_text(
        "version: 1\nrules:\n  - id: legacy\n    kind: pattern\n    category: windowsInfrastructure\n"
        "    field: name\n    match: prefix\n    values: [legacy]\n",
        encoding="utf-8",
    )
    cfg = temp_workdir / "config" / "custom.yml"
    cfg.write_text(f"exclusion_rules: {rules}\n", encoding="utf-8")
    report = temp_workdir / "out" / "report.json"
    code = cli_main([str(sample_workbook), "--config", str(cfg), "--json", str(report)])
    capsys.readouterr()
    assert code == EXIT_SUCCESS
    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["exclusions"]["autoExcludedCount"] == 1
    assert data["exclusions"]["inScopeCount"] == 2
    # auto rules scope readiness and waves, not the headline count
    assert data["metrics"]["total_vms"] == 3
    assert sum(w["vm_count"] for w in data["waves"]) == 2


def test_cli_invalid_rules_file(sample_workbook: Path, temp_workdir: Path, capsys):
    cfg = temp_workdir / "config" / "custom.yml"
    cfg.write_text("exclusion_rules: ./config/missing-rules.yml\n", encoding="utf-8")
    code = cli_main([str(sample_workbook), "--config", str(cfg)])
    assert code == EXIT_FATAL
    assert "ERROR config: exclusion rules not found" in capsys.readouterr().out


def test_cli_env_file_sets_proxy(sample_workbook: Path, temp_workdir: Path, monkeypatch, capsys):
    (temp_workdir / ".env").write_text(f"{PROXY_URL_ENV}=http://proxy.test\n", encoding="utf-8")
    calls = []

    def fake_insights(self, data):
        calls.append((self.base_url, data["totalVMs"], data["migrationTarget"]))
        return {"executiveSummary": "ok"}

    monkeypatch.setattr("rvtools_ingest.cli.__main__.ProxyClient.insights", fake_insights)
    report = temp_workdir / "report.json"
    code = cli_main([str(sample_workbook), "--json", str(report)])
    capsys.readouterr()
    assert code == EXIT_SUCCESS
    assert calls == [("http://proxy.test", 3, "vsi")]
    assert json.loads(report.read_text(encoding="utf-8"))["aiInsights"] == {"executiveSummary": "ok"}


def test_cli_headline_counts_keep_powered_off_vms(sample_sheets, make_workbook, temp_workdir: Path, capsys):
    sample_sheets["vInfo"].append(
        ["batch01", "poweredOff", False, "", 2, 4096, 20480, 0, "vmx-19",
         "Red Hat Enterprise Linux 8 (64-bit)", "DC1", "ClusterA", "esx01", "uuid-batch01", "efi", True]
    )
    sample_sheets["vDisk"].append(["batch01", "Hard disk 1", 2000, 20480, False, "persistent", "sharingNone"])
    workbook = make_workbook("rvtools-off.xlsx", sample_sheets)
    report = temp_workdir / "report.json"

    code = cli_main([str(workbook), "--json", str(report)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "INFO in scope: 3 of 4 VMs (2 auto-excluded" in out

    data = json.loads(report.read_text(encoding="utf-8"))
    metrics = data["metrics"]
    assert metrics["total_vms"] == 4
    assert metrics["powered_off"] == 1
    assert metrics["excluded_vms"] == 0
    assert {"label": "Powered Off", "value": 1} in metrics["power_state_chart"]
    assert data["exclusions"]["breakdown"]["poweredOff"] == 2
    assert data["exclusions"]["inScopeCount"] == 3
    assert "batch01" not in {name for w in data["waves"] for name in w["vm_names"]}
