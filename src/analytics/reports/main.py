"""Run a Chinook report against a source snapshot.

Reports are read-only: they load the relations they need, compute a frame
and either print it or write it to OUTPUT_PATH (.csv or .parquet).

Environment variables:
    SOURCE_DIR: Read relations from this directory instead of the catalog
    SOURCE_NAMESPACE: Catalog namespace holding the relations (default: chinook)
    TABLE_BUCKET_ARN: S3 Tables bucket ARN (default: local SQL catalog)
    OUTPUT_PATH: Write the result here instead of printing it

Usage:
    # List available reports
    python -m src.analytics.reports.main --list

    # Print a report from CSV exports
    python -m src.analytics.reports.main composer_revenue_impact --source-dir data/chinook

    # Write a report to Parquet
    python -m src.analytics.reports.main monthly_volatility --output data/volatility.parquet
"""

import argparse
import os
import sys
import time
from pathlib import Path

import polars as pl

from src.pipelines.composer_enrichment.config import SOURCE_NAMESPACE
from src.pipelines.composer_enrichment.extract import (
    CatalogSource,
    DirectorySource,
    TableSource,
    get_catalog,
    load_snapshot,
)

from . import REPORTS, run_report

OUTPUT_FORMATS = (".csv", ".parquet")


def log(msg: str) -> None:
    print(msg)
    sys.stdout.flush()


def write_output(df: pl.DataFrame, output_path: str | Path) -> Path:
    """Write a report frame as CSV or Parquet depending on the file extension."""
    path = Path(output_path)
    suffix = path.suffix.lower()
    if suffix not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format: {suffix or path.name}. Use {OUTPUT_FORMATS}")

    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        df.write_csv(path)
    else:
        df.write_parquet(path)
    return path


def resolve_source(source_dir: str | None = None) -> TableSource:
    source_dir = source_dir or os.environ.get("SOURCE_DIR", "").strip()
    if source_dir:
        return DirectorySource(source_dir)
    return CatalogSource(get_catalog(), os.environ.get("SOURCE_NAMESPACE", SOURCE_NAMESPACE))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run a Chinook analytic report")
    parser.add_argument("report", nargs="?", help="Report name (see --list)")
    parser.add_argument("--list", action="store_true", help="List available reports and exit")
    parser.add_argument("--source-dir", help="Directory of <Relation>.csv/.parquet files")
    parser.add_argument("--output", help="Write to .csv or .parquet instead of printing")
    args = parser.parse_args(argv)

    if args.list:
        for name in sorted(REPORTS):
            log(name)
        return 0

    if not args.report:
        parser.error("a report name is required (or --list)")
    if args.report not in REPORTS:
        parser.error(f"unknown report '{args.report}' (see --list)")

    start_time = time.time()
    log(f"[report] === {args.report} ===")

    snapshot = load_snapshot(resolve_source(args.source_dir))
    result = run_report(args.report, snapshot)

    output_path = args.output or os.environ.get("OUTPUT_PATH")
    if output_path:
        path = write_output(result, output_path)
        log(f"[report] Wrote {len(result)} rows to {path}")
    else:
        with pl.Config(tbl_rows=50, tbl_cols=-1, fmt_str_lengths=60):
            log(str(result))

    log(f"[report] Done in {time.time() - start_time:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
