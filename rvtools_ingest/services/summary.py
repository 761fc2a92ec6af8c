from __future__ import annotations

from .assembler import IngestResult

"""SUMMARY line rendering.

Format::

    SUMMARY file={name} vms={n} hosts={n} clusters={n} records={n}
    skipped_sheets={n} failed_sheets={n} elapsed_sec={s} readiness={score|-}
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """``0`` / ``2`` / ``0.004`` / ``1.25``: integers without a fraction, no exponent."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(result: IngestResult, readiness: int | None = None) -> str:
    dataset = result.dataset
    return (
        f"SUMMARY file={dataset.metadata.file_name or '-'} "
        f"vms={len(dataset.vms)} "
        f"hosts={len(dataset.hosts)} "
        f"clusters={len(dataset.clusters)} "
        f"records={result.record_count} "
        f"skipped_sheets={len(result.skipped_sheets)} "
        f"failed_sheets={len(result.failed_sheets)} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)} "
        f"readiness={'-' if readiness is None else readiness}"
    )
