"""
Main entry point for the composer enrichment pipeline.

Fills missing Track composers with the most frequent composer on the same
album and exposes the result either as a read-only view or as a full
replace of the staging table.

Flow:
1. Extract tracks from the source (Iceberg namespace or file directory)
2. GroupStats: count (album, composer) pairs with a known composer
3. MajorityResolver: most frequent composer per album (ties: name ascending)
4. Fill: original composer, else album majority, else null
5. Sink: view (no write) or staging (all-or-nothing replace)

Environment variables:
    SINK_MODE: 'view' or 'staging' (default: view)
    SOURCE_DIR: Read relations from this directory instead of the catalog
    SOURCE_NAMESPACE: Catalog namespace holding the relations (default: chinook)
    TABLE_BUCKET_ARN: S3 Tables bucket ARN (default: local SQL catalog)
    CATALOG_URI: Local catalog URI (default: sqlite:///data/catalog.db)
    WAREHOUSE_PATH: Local warehouse directory (default: data/warehouse)
    WRITE_BATCH_SIZE: Rows per staged batch (default: 5000)

Usage:
    # Preview against CSV exports
    SOURCE_DIR=data/chinook python -m src.pipelines.composer_enrichment.main

    # Replace the staging table
    SINK_MODE=staging python -m src.pipelines.composer_enrichment.main
"""

import faulthandler
import os
import sys
import time

from .config import SINK_MODES, SINK_STAGING, SINK_VIEW, SOURCE_NAMESPACE, WRITE_BATCH_SIZE
from .extract import CatalogSource, DirectorySource, TableSource, fetch_tracks, get_catalog
from .inference import enrich_tracks
from .load import EnrichedTrackView, replace_staging_table

# Enable faulthandler - prints traceback on segfault/SIGABRT/SIGFPE/SIGBUS
faulthandler.enable(file=sys.stderr, all_threads=True)


def log(msg: str) -> None:
    """Print and flush immediately to ensure logs appear before crashes."""
    print(msg)
    sys.stdout.flush()


def run(
    sink_mode: str | None = None,
    source: TableSource | None = None,
    catalog=None,
    batch_size: int | None = None,
) -> dict:
    """
    Run the composer enrichment pipeline.

    Args:
        sink_mode: 'view' or 'staging' (or set SINK_MODE env var)
        source: Data-access capability for the Chinook relations. Defaults to
                DirectorySource(SOURCE_DIR) when set, else the catalog namespace.
        catalog: PyIceberg catalog for catalog reads and the staging sink
                 (default: get_catalog() from env)
        batch_size: Rows per staged batch (or set WRITE_BATCH_SIZE env var)

    Returns:
        Stats dict with mode, rows and unresolved count. View runs
        also carry the enriched frame under 'enriched'; staging runs carry the
        committed snapshot ids.
    """
    start_time = time.time()

    sink_mode = (sink_mode or os.environ.get("SINK_MODE", SINK_VIEW)).lower()
    if sink_mode not in SINK_MODES:
        raise ValueError(f"Unknown SINK_MODE: {sink_mode}. Expected one of {SINK_MODES}")

    if batch_size is None:
        batch_size = int(os.environ.get("WRITE_BATCH_SIZE", WRITE_BATCH_SIZE))
    if batch_size < 1:
        raise ValueError(f"WRITE_BATCH_SIZE must be positive, got {batch_size}")

    if source is None:
        source_dir = os.environ.get("SOURCE_DIR", "").strip()
        if source_dir:
            source = DirectorySource(source_dir)
        else:
            catalog = catalog or get_catalog()
            namespace = os.environ.get("SOURCE_NAMESPACE", SOURCE_NAMESPACE)
            source = CatalogSource(catalog, namespace)

    log("[main] === COMPOSER ENRICHMENT ===")
    log(f"[main] sink_mode={sink_mode}, source={type(source).__name__}")

    if sink_mode == SINK_VIEW:
        enriched = EnrichedTrackView(source).read()
        stats = {"mode": SINK_VIEW, "enriched": enriched}
    else:
        tracks = fetch_tracks(source)
        enriched = enrich_tracks(tracks)
        catalog = catalog or get_catalog()
        result = replace_staging_table(enriched, catalog, batch_size=batch_size)
        stats = {"mode": SINK_STAGING, **result}

    unresolved = enriched["FinalComposer"].null_count()
    stats["rows"] = len(enriched)
    stats["unresolved"] = unresolved

    elapsed = time.time() - start_time
    log("[main] === COMPLETE ===")
    log(f"[main] Time: {elapsed:.1f}s")
    log(f"[main] Tracks: {len(enriched)}, unresolved composers: {unresolved}")

    if sink_mode == SINK_VIEW and len(enriched) > 0:
        log("[main] Sample:")
        for row in enriched.head(10).iter_rows(named=True):
            composer = row["FinalComposer"] or "(unresolved)"
            log(f"  {row['TrackId']:>6} | {str(row['Name'])[:40]:<40} | {composer[:40]}")

    return stats


if __name__ == "__main__":
    run()
