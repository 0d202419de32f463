#!/usr/bin/env python3
# =========================================
# File: monthly_uploader/etl/monthly_pipeline.py
# Purpose: Monthly discrepancy upload (one run = one batch of records)
# - Work out the IO IDs (explicit parameter or auto-detected from io_id)
# - Look up each IO ID's brand group in the BO database (one connection per run)
# - Deduplicate, encode CSV, upload to S3 (or dry run) per IO ID
# - Return a JSON-shaped execution report with totals and timings
# =========================================

import argparse
import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.config_loader import get_config, uploader_options
from monthly_uploader.cloud.s3_handler import UploadPlanner, build_s3_key, create_s3_client
from monthly_uploader.db.brand_groups import connection_query_fn, get_engine, resolve_brand_groups
from monthly_uploader.errors import UploaderConfigError
from monthly_uploader.etl.csv_encoder import encode, size_kb
from monthly_uploader.etl.deduplicator import dedup
from monthly_uploader.models import (
    UPLOAD_TYPE_TRANSLATED,
    BrandGroup,
    DiscoveredIdentifiers,
    ExplicitIdentifier,
    IdentifierMode,
    Record,
    UploadOutcome,
)
from monthly_uploader.params_validator import parse_year_month, validate_params

log = logging.getLogger(__name__)

EXECUTION_MODE = "monthly"
DRY_RUN_STATUS = "DRY_RUN_SKIPPED"
NO_IO_IDS_MESSAGE = (
    "No IO IDs found. For Translated, provide IO ID parameter. "
    "For Processed, ensure data contains io_id field."
)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2025-12-01T08:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def identifier_mode(params: Dict[str, Any]) -> IdentifierMode:
    """Translated uploads carry one IO ID; Processed uploads detect them from the records."""
    if params["upload_type"] == UPLOAD_TYPE_TRANSLATED:
        return ExplicitIdentifier(io_id=str(params.get("io_id") or ""))
    return DiscoveredIdentifiers()


def _resolve_options(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return uploader_options({"uploader": options or {}})


@contextmanager
def verbose_logging(enabled: bool):
    """Raise the package logger to DEBUG for one run, then restore it."""
    pkg_logger = logging.getLogger("monthly_uploader")
    previous = pkg_logger.level
    if enabled:
        pkg_logger.setLevel(logging.DEBUG)
    try:
        yield
    finally:
        pkg_logger.setLevel(previous)


def run_monthly_upload(
    records: List[Record],
    params: Dict[str, Any],
    options: Optional[Dict[str, Any]] = None,
    *,
    engine,
    s3_client=None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Run one monthly upload and return the execution report.

    Brand group lookup failures are collected in brand_group_errors and the run goes on.
    An S3 write failure raises S3UploadError and no report is returned.
    """
    start = time.perf_counter()

    # --- Parameters (all checks happen before any I/O) ---
    validate_params(params)
    opts = _resolve_options(options)
    upload_type = params["upload_type"]
    script_id = str(params["script_id"]).strip()
    dry_run = opts["dry_run"]
    year, month = parse_year_month(params.get("year_month_override"), now)

    mode = identifier_mode(params)
    io_ids = mode.identifiers(records)
    if not io_ids:
        raise UploaderConfigError(NO_IO_IDS_MESSAGE)

    planner = UploadPlanner(s3_client, opts["s3_bucket_name"], dry_run=dry_run)

    with verbose_logging(opts["verbose_logging"]):
        log.info(
            f"Monthly upload: type={upload_type} script={script_id} period={year}/{month} "
            f"io_ids={len(io_ids)} records={len(records)} dry_run={dry_run}"
        )

        # --- Brand group lookup: one connection for the whole batch ---
        mysql_start = time.perf_counter()
        with engine.connect() as conn:
            brand_groups, brand_group_errors = resolve_brand_groups(
                io_ids, opts["bo_database"], connection_query_fn(conn)
            )
        mysql_queries_ms = _elapsed_ms(mysql_start)
        for io_id, error in brand_group_errors.items():
            log.warning(f"Brand group not resolved for {io_id!r}: {error}")

        # --- Dedup + CSV + upload per IO ID ---
        totals = RunTotals()
        processing_start = time.perf_counter()
        for io_id in io_ids:
            outcome = _process_io_id(
                io_id, mode.select(records, io_id), brand_groups[io_id],
                upload_type, script_id, year, month, planner,
            )
            totals.add(outcome)
        deduplication_ms = max(_elapsed_ms(processing_start) - totals.s3_upload_total_ms, 0)

        report = _build_report(
            totals,
            upload_type=upload_type,
            script_id=script_id,
            year_month=f"{year}/{month}",
            dry_run=dry_run,
            brands_processed=len(io_ids),
            duration_ms=_elapsed_ms(start),
            mysql_queries_ms=mysql_queries_ms,
            deduplication_ms=deduplication_ms,
            brand_group_errors=brand_group_errors,
        )
        log.info(
            f"✅ Monthly upload finished: {len(io_ids)} brands, "
            f"{totals.rows_after_dedup}/{totals.rows_input} rows kept, "
            f"{len(brand_group_errors)} brand group errors"
        )
    return report


class RunTotals:
    """Running sums across all IO IDs of one run."""

    def __init__(self):
        self.uploads: List[UploadOutcome] = []
        self.rows_input = 0
        self.rows_after_dedup = 0
        self.duplicates_removed = 0
        self.size_kb = 0.0
        self.s3_upload_total_ms = 0

    def add(self, outcome: UploadOutcome) -> None:
        self.uploads.append(outcome)
        self.rows_input += outcome.rows_input
        self.rows_after_dedup += outcome.rows_after_dedup
        self.duplicates_removed += outcome.duplicates_removed
        self.size_kb += outcome.size_kb
        if outcome.upload_duration_ms is not None:
            self.s3_upload_total_ms += outcome.upload_duration_ms


def _process_io_id(
    io_id: str,
    brand_records: List[Record],
    brand_group: BrandGroup,
    upload_type: str,
    script_id: str,
    year: str,
    month: str,
    planner: UploadPlanner,
) -> UploadOutcome:
    result = dedup(brand_records)
    csv_text = encode(result.unique)
    csv_kb = size_kb(csv_text)
    key = build_s3_key(year, month, brand_group.id, io_id, script_id, upload_type)
    log.debug(
        f"{io_id}: {len(brand_records)} rows, {result.duplicates_removed} duplicates, "
        f"{csv_kb} KB → {key}"
    )

    outcome = UploadOutcome(
        type=upload_type,
        io_id=io_id,
        script_id=script_id,
        brand_group_id=brand_group.id,
        brand_group_name=brand_group.name,
        rows_input=len(brand_records),
        rows_after_dedup=len(result.unique),
        duplicates_removed=result.duplicates_removed,
        size_kb=csv_kb,
    )
    return planner.publish(outcome, key, csv_text)


def _build_report(
    totals: RunTotals,
    *,
    upload_type: str,
    script_id: str,
    year_month: str,
    dry_run: bool,
    brands_processed: int,
    duration_ms: int,
    mysql_queries_ms: int,
    deduplication_ms: int,
    brand_group_errors: Dict[str, str],
) -> Dict[str, Any]:
    execution: Dict[str, Any] = {
        "mode": EXECUTION_MODE,
        "upload_type": upload_type,
        "script_id": script_id,
        "timestamp": _utc_timestamp(),
        "duration_ms": duration_ms,
        "year_month": year_month,
    }
    summary: Dict[str, Any] = {
        "files_created": 0 if dry_run else sum(1 for u in totals.uploads if u.upload_success),
    }
    if dry_run:
        execution["dry_run"] = True
        summary["would_create_files"] = brands_processed
    summary.update(
        {
            "total_rows_input": totals.rows_input,
            "total_rows_after_dedup": totals.rows_after_dedup,
            "total_duplicates_removed": totals.duplicates_removed,
            "total_size_kb": round(totals.size_kb, 2),
            "brands_processed": brands_processed,
        }
    )
    if dry_run:
        summary["status"] = DRY_RUN_STATUS

    metrics: Dict[str, Any] = {
        "mysql_queries_ms": mysql_queries_ms,
        "deduplication_ms": deduplication_ms,
    }
    if totals.s3_upload_total_ms > 0:
        metrics["s3_upload_total_ms"] = totals.s3_upload_total_ms

    report: Dict[str, Any] = {
        "execution": execution,
        "summary": summary,
        "uploads": [u.to_dict() for u in totals.uploads],
        "metrics": metrics,
    }
    if brand_group_errors:
        report["brand_group_errors"] = dict(brand_group_errors)
    return report



# -----------------------
# CLI
# -----------------------
def load_records(path: str) -> List[Record]:
    """Read records from a JSON array file or a JSON-lines file."""
    if not os.path.exists(path):
        raise UploaderConfigError(f"Input file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    stripped = text.lstrip()
    try:
        if stripped.startswith("["):
            records = json.loads(text)
        else:
            records = [json.loads(line) for line in text.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise UploaderConfigError(f"Invalid JSON in {path}: {e}") from e

    if not all(isinstance(r, dict) for r in records):
        raise UploaderConfigError(f"Every record in {path} must be a JSON object")
    return records


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Upload monthly data to AWS S3 for discrepancy analysis"
    )
    parser.add_argument("--input", required=True, help="JSON array or JSON-lines file of records")
    parser.add_argument("--upload-type", required=True, choices=["Translated", "Processed"])
    parser.add_argument("--script-id", required=True, help="Scraper script ID, e.g. 3000")
    parser.add_argument("--io-id", default="", help="Brand identifier (required for Translated)")
    parser.add_argument("--year-month", default="", help="Override period, YYYY/MM (default: previous month)")
    parser.add_argument("--bucket", default=None, help="S3 bucket (default from config)")
    parser.add_argument("--bo-database", default=None, help="BO MySQL database (default from config)")
    parser.add_argument("--dry-run", action="store_true", default=None, help="Build CSVs but do not upload")
    parser.add_argument("--verbose", action="store_true", default=None, help="Debug logging")
    parser.add_argument("--env", default=None, help="Config environment (dev|prod), default $ENV or dev")
    parser.add_argument("--output", default=None, help="Write the report here instead of stdout")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    args = parse_args(argv)

    engine = None
    try:
        cfg = get_config(args.env)
        logging.getLogger().setLevel(cfg["log_level"])

        options = uploader_options(cfg)
        if args.bucket:
            options["s3_bucket_name"] = args.bucket
        if args.bo_database:
            options["bo_database"] = args.bo_database
        if args.dry_run is not None:
            options["dry_run"] = args.dry_run
        if args.verbose is not None:
            options["verbose_logging"] = args.verbose

        params = {
            "upload_type": args.upload_type,
            "script_id": args.script_id,
            "io_id": args.io_id,
            "year_month_override": args.year_month,
        }
        records = load_records(args.input)

        engine = get_engine(cfg, options["bo_database"])
        s3_client = None if options["dry_run"] else create_s3_client(cfg)
        report = run_monthly_upload(records, params, options, engine=engine, s3_client=s3_client)
    except Exception as e:
        log.exception(f"❌ Monthly upload failed: {e}")
        return 1
    finally:
        if engine is not None:
            engine.dispose()

    payload = json.dumps(report, indent=2, default=str)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(payload + "\n")
        log.info(f"Report written to {args.output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
