#!/usr/bin/env python3
"""
Seed the Chinook relations into the Iceberg catalog.

Reads <Relation>.parquet or <Relation>.csv files from a directory and writes
each relation to <namespace>.<Relation>, creating the table on first load and
overwriting it afterwards. Relations without a file are skipped.

Usage:
    python scripts/load_chinook.py data/chinook
    python scripts/load_chinook.py data/chinook --namespace chinook --dry-run
"""

import argparse
import os
import sys

import polars as pl
from pyiceberg.exceptions import NoSuchTableError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from src.pipelines.composer_enrichment.config import SOURCE_NAMESPACE, SOURCE_TABLES
from src.pipelines.composer_enrichment.extract import DirectorySource, get_catalog
from src.pipelines.composer_enrichment.load import ensure_namespace


def log(msg: str):
    print(msg)
    sys.stdout.flush()


def load_relation(catalog, namespace: str, name: str, df: pl.DataFrame) -> int:
    """Create or overwrite one relation table. Returns rows written."""
    table_id = f"{namespace}.{name}"
    arrow_table = df.to_arrow(compat_level=pl.CompatLevel.oldest())

    try:
        table = catalog.load_table(table_id)
        log(f"[seed] Overwriting {table_id}")
    except NoSuchTableError:
        log(f"[seed] Creating {table_id}")
        table = catalog.create_table(table_id, schema=arrow_table.schema)

    table.overwrite(arrow_table)
    return len(arrow_table)


def main():
    parser = argparse.ArgumentParser(description="Load Chinook CSV/Parquet exports into the catalog")
    parser.add_argument("directory", help="Directory with <Relation>.csv or .parquet files")
    parser.add_argument(
        "--namespace",
        default=os.environ.get("SOURCE_NAMESPACE", SOURCE_NAMESPACE),
        help="Target catalog namespace (default: chinook)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be loaded without writing",
    )
    args = parser.parse_args()

    directory = args.directory.rstrip("/")
    if not os.path.isdir(directory):
        log(f"Error: Directory not found: {directory}")
        sys.exit(1)

    source = DirectorySource(directory)
    frames = {}
    for name in SOURCE_TABLES:
        try:
            frames[name] = source.read(name)
        except FileNotFoundError:
            log(f"[seed] Skipping {name}: no file in {directory}")

    if not frames:
        log("Error: No Chinook relations found")
        sys.exit(1)

    if args.dry_run:
        log("\n[DRY RUN] Would load:")
        for name, df in frames.items():
            log(f"  {args.namespace}.{name}: {len(df):,} rows")
        return

    catalog = get_catalog()
    ensure_namespace(catalog, args.namespace)

    total = 0
    for name, df in frames.items():
        rows = load_relation(catalog, args.namespace, name, df)
        log(f"[seed] {args.namespace}.{name}: {rows:,} rows")
        total += rows

    log(f"\n[seed] Loaded {len(frames)} relations, {total:,} rows")


if __name__ == "__main__":
    main()
