from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import AppConfig, ConfigError, load_config
from ..errors import IngestError
from ..excel.reader import SheetHeaderError, normalize_sheet, read_workbook
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..services.assembler import IngestResult, ingest_workbook
from ..services.complexity import assess_readiness, score_vms
from ..services.exclusion import classify_exclusions, load_exclusion_rules
from ..services.identity import get_environment_metadata, get_vm_identifier
from ..services.metrics import DashboardMetrics, compute_metrics
from ..services.overrides import JsonFileStore, KeyValueStore, MemoryStore, SubnetOverrides, VMOverrides
from ..services.proxy_client import ProxyClient, RetryPolicy, TTLCache
from ..services.summary import render_summary_line
from ..services.waves import WAVE_MODES, plan_waves

"""CLI entrypoint.

Flow:
- Load ``.env`` and the YAML config
- Ingest one RVTools workbook
- Apply overrides and auto-exclusion, compute metrics, readiness and waves
- Optionally fetch AI insights (only when a proxy URL is configured)
- Print a SUMMARY line, optionally write a JSON report

Exit codes: 0 success, 1 fatal (config / unreadable / missing sheet),
2 ingested but at least one optional sheet failed to parse.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def _load_env_file(path: Path) -> None:
    # .env は既存の環境変数より優先
    if path.exists():
        load_dotenv(dotenv_path=path, override=True)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="rvtools-ingest", description="RVTools export ingestion and migration assessment"
    )
    p.add_argument("workbook", type=Path, help="RVTools .xlsx export")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default config/rvtools.yml)")
    p.add_argument("--waves", choices=WAVE_MODES, default=None, help="Wave planning strategy")
    p.add_argument("--mode", choices=("vsi", "roks"), default=None, help="Migration target")
    p.add_argument("--json", type=Path, default=None, dest="json_out", help="Write a JSON report")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data", action="store_true", help="Print sheet headers & first rows then exit"
    )
    return p.parse_args(argv)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def _inspect_data(workbook: Path, cfg: AppConfig) -> int:
    logger = setup_logging()
    try:
        sheets = read_workbook(workbook, keep_na_strings=list(cfg.keep_na_strings))
    except IngestError as e:
        logger.error(f"read: {e}")
        return EXIT_FATAL
    print(f"FILE: {workbook.name}")
    for name, df in sheets.items():
        try:
            sd = normalize_sheet(df, name)
        except SheetHeaderError as e:
            print(f"  SHEET: {name} error={e}")
            continue
        print(f"  SHEET: {name} rows={len(sd.rows)} cols={sd.columns}")
        safe_rows = [
            {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in r.items()}
            for r in sd.rows[:3]
        ]
        print("    sample_rows=", safe_rows)
    return EXIT_SUCCESS


def _override_store(cfg: AppConfig) -> KeyValueStore:
    if cfg.overrides_path:
        return JsonFileStore(Path(cfg.overrides_path))
    return MemoryStore()


def _insights_input(metrics: DashboardMetrics, result: IngestResult, mode: str) -> dict[str, Any]:
    return {
        "totalVMs": metrics.total_vms,
        "totalVCPUs": metrics.total_vcpus,
        "totalMemoryGiB": round(metrics.total_memory_gib),
        "totalStorageTiB": round(metrics.total_provisioned_tib, 1),
        "clusterCount": metrics.unique_clusters,
        "hostCount": len(result.dataset.hosts),
        "workloadBreakdown": metrics.workload_breakdown,
        "networkSummary": [dataclasses.asdict(pg) for pg in metrics.network_summary],
        "migrationTarget": mode,
    }


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リストはそのまま使う (None のときのみ sys.argv を読む)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"))

    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.workbook, cfg)

    error_log = ErrorLogBuffer()
    try:
        result = ingest_workbook(
            args.workbook,
            keep_na_strings=list(cfg.keep_na_strings),
            error_log=error_log,
            show_progress=None,
        )
    except IngestError as e:
        logger.error(f"ingest: {e}")
        error_log.flush()
        return EXIT_FATAL
    dataset = result.dataset

    try:
        rules = (
            load_exclusion_rules(Path(cfg.exclusion_rules))
            if cfg.exclusion_rules
            else load_exclusion_rules()
        )
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    environment = get_environment_metadata(dataset)
    store = _override_store(cfg)
    overrides = VMOverrides(store, fingerprint=environment.fingerprint)
    subnets = SubnetOverrides(store)
    if overrides.environment_mismatch:
        logger.warning("stored overrides were made for a different environment")
    logger.info(
        f"environment {environment.server} [{environment.short_fingerprint}]: "
        f"{environment.vm_count} VMs, {environment.cluster_count} clusters"
    )

    exclusions = classify_exclusions(dataset, overrides, rules)
    included = exclusions.included_ids
    vms = [vm for vm in dataset.non_template_vms if get_vm_identifier(vm) in included]

    # headline counts drop only user exclusions; auto rules scope readiness and waves
    metrics = compute_metrics(dataset, overrides, thresholds=cfg.thresholds, subnets=subnets)
    mode = args.mode or cfg.migration_mode
    readiness = assess_readiness(dataset, mode, vms, cfg.thresholds)
    scores = score_vms(vms, dataset, mode, cfg.thresholds)
    waves = plan_waves(
        dataset,
        vms,
        scores,
        mode=args.waves or cfg.waves.mode,
        group_by=cfg.waves.group_by,
        migration_mode=mode,
        subnets=subnets,
        thresholds=cfg.thresholds,
    )

    logger.info(
        f"in scope: {len(vms)} of {metrics.total_vms} VMs ({exclusions.auto_excluded_count} auto-excluded, "
        f"{metrics.config.config_issues_count} config issues)"
    )
    logger.info(
        f"readiness ({mode}): {readiness.score} {readiness.band.value} "
        f"blockers={readiness.blockers} warnings={readiness.warnings}"
    )
    for wave in waves:
        logger.info(f"wave {wave.name}: {wave.vm_count} VMs, complexity {wave.complexity}")

    insights = None
    if cfg.proxy.base_url:
        client = ProxyClient(
            cfg.proxy.base_url,
            timeout=cfg.proxy.timeout_seconds,
            retry=RetryPolicy(max_retries=cfg.proxy.max_retries),
            cache=TTLCache(cfg.proxy.cache_ttl_seconds),
        )
        insights = client.insights(_insights_input(metrics, result, mode))

    if args.json_out is not None:
        report = {
            "metadata": dataclasses.asdict(dataset.metadata),
            "environment": dataclasses.asdict(environment),
            "sheetCounts": dataset.sheet_counts,
            "skippedSheets": list(result.skipped_sheets),
            "failedSheets": list(result.failed_sheets),
            "metrics": dataclasses.asdict(metrics),
            "configIssuesCount": metrics.config.config_issues_count,
            "exclusions": {
                "autoExcludedCount": exclusions.auto_excluded_count,
                "excludedCount": exclusions.excluded_count,
                "breakdown": exclusions.breakdown,
                "multiMatchCount": exclusions.multi_match_count,
                "inScopeCount": len(vms),
            },
            "readiness": {
                "mode": mode,
                "score": readiness.score,
                "band": readiness.band.value,
                "blockers": readiness.blockers,
                "warnings": readiness.warnings,
                "unsupportedOS": readiness.unsupported_os,
                "checks": [dataclasses.asdict(c) for c in readiness.checks],
            },
            "waves": [dict(dataclasses.asdict(w), vm_count=w.vm_count) for w in waves],
            "aiInsights": insights,
        }
        args.json_out.parent.mkdir(parents=True, exist_ok=True)
        args.json_out.write_text(
            json.dumps(report, indent=2, ensure_ascii=False, default=_json_default),
            encoding="utf-8",
        )
        logger.info(f"report written: {args.json_out}")

    log_path = error_log.flush()
    if log_path is not None:
        logger.warning(f"error log: {log_path}")

    # log_summary が "SUMMARY " を付けるので先頭を落とす
    log_summary(render_summary_line(result, readiness.score)[8:])

    if result.failed_sheets:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
