"""
Sink for enriched tracks.

Two modes over the same Fill output:
- View: EnrichedTrackView recomputes from the source on every read, never writes
- Staging: replace_staging_table swaps the full contents of the staging table

Staging writes are all-or-nothing. Every batch is staged inside a single
Iceberg transaction (overwrite for the first batch, append for the rest)
and only the transaction commit publishes a new snapshot. If anything
fails before the commit, readers keep seeing the previous snapshot.
Concurrent writers are serialized by Iceberg's optimistic commit check:
a writer whose base snapshot moved gets CommitFailedException.
"""

import sys
import traceback

import polars as pl
import pyarrow as pa
from pyiceberg.exceptions import NoSuchTableError
from pyiceberg.schema import Schema
from pyiceberg.types import DoubleType, LongType, NestedField, StringType

from .config import STAGING_TABLE, WRITE_BATCH_SIZE
from .extract import TableSource, fetch_tracks
from .inference import ENRICHED_COLUMNS, enrich_tracks

# Schema for Staging_Track_Cleaned
# TrackId is the identifier; one row per source track
STAGING_SCHEMA = Schema(
    NestedField(1, "TrackId", LongType(), required=True),
    NestedField(2, "Name", StringType(), required=False),
    NestedField(3, "FinalComposer", StringType(), required=False),
    NestedField(4, "AlbumId", LongType(), required=False),
    NestedField(5, "GenreId", LongType(), required=False),
    NestedField(6, "Milliseconds", LongType(), required=False),
    NestedField(7, "UnitPrice", DoubleType(), required=False),
    identifier_field_ids=[1],
)

# Arrow schema matching the Iceberg schema
STAGING_ARROW_SCHEMA = pa.schema(
    [
        pa.field("TrackId", pa.int64(), nullable=False),
        pa.field("Name", pa.string(), nullable=True),
        pa.field("FinalComposer", pa.string(), nullable=True),
        pa.field("AlbumId", pa.int64(), nullable=True),
        pa.field("GenreId", pa.int64(), nullable=True),
        pa.field("Milliseconds", pa.int64(), nullable=True),
        pa.field("UnitPrice", pa.float64(), nullable=True),
    ]
)


class SinkWriteFailure(RuntimeError):
    """Staging replace did not commit; the previous snapshot is intact."""


def log(msg: str) -> None:
    """Print and flush immediately."""
    print(msg)
    sys.stdout.flush()


def log_memory(label: str) -> None:
    """Log current memory usage with a label."""
    import psutil

    proc = psutil.Process()
    mem = proc.memory_info()
    rss_mb = mem.rss / 1024 / 1024
    log(f"[memory] {label}: {rss_mb:.1f} MB RSS")


class EnrichedTrackView:
    """Read-only enriched tracks, regenerated from the source on each read."""

    def __init__(self, source: TableSource):
        self.source = source

    def read(self) -> pl.DataFrame:
        return enrich_tracks(fetch_tracks(self.source))


def ensure_namespace(catalog, namespace: str) -> None:
    """Create namespace if it doesn't exist."""
    try:
        catalog.create_namespace(namespace)
        log(f"[load] Created namespace: {namespace}")
    except Exception as e:
        if "already exists" in str(e).lower():
            log(f"[load] Namespace exists: {namespace}")
        else:
            raise


def check_schema_compatible(table, expected_schema: Schema) -> None:
    """
    Check that the staging table has exactly the expected columns.

    A replace never evolves the schema in place: dropping and recreating
    the table would expose a missing table to readers, so a mismatch is
    reported for an operator to resolve.
    """
    current_field_names = {f.name for f in table.schema().fields}
    expected_field_names = {f.name for f in expected_schema.fields}

    missing = expected_field_names - current_field_names
    extra = current_field_names - expected_field_names

    if missing or extra:
        msg = "[schema] Schema mismatch detected!\n"
        if missing:
            msg += f"  Missing columns in table: {missing}\n"
        if extra:
            msg += f"  Extra columns in table: {extra}\n"
        msg += "  Drop or migrate the staging table before replacing it."
        log(msg)
        raise ValueError(msg)


def enriched_to_arrow(enriched: pl.DataFrame) -> pa.Table:
    """Convert enriched tracks to a PyArrow table with the staging schema."""
    return pa.Table.from_pylist(
        enriched.select(ENRICHED_COLUMNS).to_dicts(),
        schema=STAGING_ARROW_SCHEMA,
    )


def _stage_batch(txn, batch: pa.Table, first: bool) -> None:
    """Stage one batch in the open transaction (nothing is visible until commit)."""
    if first:
        txn.overwrite(batch)
    else:
        txn.append(batch)


def replace_staging_table(
    enriched: pl.DataFrame,
    catalog,
    table_id: str = STAGING_TABLE,
    batch_size: int = WRITE_BATCH_SIZE,
) -> dict:
    """
    Replace the staging table contents with the current enriched tracks.

    Creates namespace and table if they don't exist. All batches are staged
    in one transaction and committed as a single snapshot.

    Args:
        enriched: Fill output (one row per track)
        catalog: PyIceberg catalog
        table_id: Staging table identifier (default: chinook.staging_track_cleaned)
        batch_size: Rows per staged batch

    Returns:
        Dict with rows_written, snapshot_id and previous_snapshot_id

    Raises:
        SinkWriteFailure: If the replace did not commit
    """
    log(f"[load] Starting replace of {table_id} with {len(enriched)} rows")
    log(f"[load] batch_size={batch_size}")

    ensure_namespace(catalog, table_id.split(".")[0])

    arrow_table = enriched_to_arrow(enriched)
    row_count = len(arrow_table)
    log(f"[load] Arrow table memory: {arrow_table.nbytes / 1024 / 1024:.2f} MB")
    log_memory("post-arrow-convert")

    try:
        table = catalog.load_table(table_id)
        log(f"[load] Table exists: {table_id}")
    except NoSuchTableError:
        log(f"[load] Creating table: {table_id}")
        table = catalog.create_table(table_id, schema=STAGING_SCHEMA)

    check_schema_compatible(table, STAGING_SCHEMA)

    previous = table.current_snapshot()
    previous_id = previous.snapshot_id if previous else None
    log(f"[load] Previous snapshot: {previous_id}")

    num_batches = max(1, (row_count + batch_size - 1) // batch_size)
    log(f"[load] Will stage {num_batches} batches of up to {batch_size} rows")

    try:
        with table.transaction() as txn:
            for i in range(num_batches):
                start_idx = i * batch_size
                batch = arrow_table.slice(start_idx, batch_size)
                log(f"[load] Staging batch {i + 1}/{num_batches} ({len(batch)} rows)")
                _stage_batch(txn, batch, first=(i == 0))
    except Exception as e:
        log(f"[load] FATAL ERROR: {type(e).__name__}: {e}")
        log(f"[load] Traceback:\n{traceback.format_exc()}")
        log(f"[load] Nothing committed; {table_id} still at snapshot {previous_id}")
        raise SinkWriteFailure(f"Replace of {table_id} failed: {e}") from e

    snapshot = table.current_snapshot()
    snapshot_id = snapshot.snapshot_id if snapshot else None
    log(f"[load] Replace committed: {row_count} rows, snapshot {snapshot_id}")
    log_memory("complete")

    return {
        "rows_written": row_count,
        "snapshot_id": snapshot_id,
        "previous_snapshot_id": previous_id,
    }


def read_staging_table(catalog, table_id: str = STAGING_TABLE) -> pl.DataFrame:
    """Read the current staging snapshot, ordered by TrackId."""
    table = catalog.load_table(table_id)
    return pl.from_arrow(table.scan().to_arrow()).sort("TrackId")
