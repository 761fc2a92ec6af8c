from __future__ import annotations

from pathlib import Path

from rvtools_ingest.cli import main as cli_main


def test_cli_debug_mode(sample_workbook: Path, capsys):
    """--debug で DEBUG ラベルのログが出ることを確認。"""
    code = cli_main(["--debug", str(sample_workbook)])
    out = capsys.readouterr().out
    assert code == 0
    assert "DEBUG debug mode enabled" in out
    # library loggers propagate at DEBUG too
    assert "DEBUG sheet vInfo: 4 records" in out
    assert "DEBUG sheet vCPU not present" in out


def test_cli_without_debug_hides_debug_lines(sample_workbook: Path, capsys):
    cli_main([str(sample_workbook)])
    assert "DEBUG" not in capsys.readouterr().out
