"""Ingestion and assessment services built on top of the parsers."""

from .assembler import IngestResult, assemble_dataset, ingest_workbook
from .complexity import assess_readiness, readiness_band, readiness_score, score_vm, score_vms
from .exclusion import ExclusionReport, classify_exclusions, load_exclusion_rules
from .identity import (
    ByLocation,
    ByUuid,
    get_environment_fingerprint,
    get_environment_metadata,
    get_short_fingerprint,
    get_vm_identifier,
    parse_vm_identifier,
)
from .metrics import DashboardMetrics, compute_metrics
from .overrides import JsonFileStore, MemoryStore, SubnetOverrides, VMOverrides
from .preflight import count_by_severity, run_preflight
from .waves import plan_waves

__all__ = [
    "ByLocation",
    "ByUuid",
    "DashboardMetrics",
    "ExclusionReport",
    "IngestResult",
    "JsonFileStore",
    "MemoryStore",
    "SubnetOverrides",
    "VMOverrides",
    "assemble_dataset",
    "assess_readiness",
    "classify_exclusions",
    "compute_metrics",
    "count_by_severity",
    "get_environment_fingerprint",
    "get_environment_metadata",
    "get_short_fingerprint",
    "get_vm_identifier",
    "ingest_workbook",
    "load_exclusion_rules",
    "parse_vm_identifier",
    "plan_waves",
    "readiness_band",
    "readiness_score",
    "run_preflight",
    "score_vm",
    "score_vms",
]
