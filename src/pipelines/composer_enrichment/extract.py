"""Extract Chinook source relations for enrichment and reporting.

The pipeline never reaches for ambient global state: callers hand it a
read-only ``TableSource`` and every stage works from the frames that
source returns.

Sources:
- CatalogSource: Iceberg tables in a catalog namespace (S3 Tables or local SQL catalog)
- DirectorySource: a directory of ``<Relation>.parquet`` / ``<Relation>.csv`` files

All relations are read in full (no incremental feed) and conformed to the
dtypes below so CSV and Iceberg inputs join identically.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import polars as pl
from pyiceberg.catalog import load_catalog

from .config import (
    ALBUM_TABLE,
    ARTIST_TABLE,
    CUSTOMER_TABLE,
    DEFAULT_CATALOG_URI,
    DEFAULT_WAREHOUSE_PATH,
    EMPLOYEE_TABLE,
    GENRE_TABLE,
    INVOICE_LINE_TABLE,
    INVOICE_TABLE,
    SOURCE_NAMESPACE,
    SOURCE_TABLES,
    TRACK_TABLE,
)

# Expected dtypes for key and measure columns; other columns pass through
SOURCE_DTYPES = {
    TRACK_TABLE: {
        "TrackId": pl.Int64,
        "Name": pl.Utf8,
        "AlbumId": pl.Int64,
        "GenreId": pl.Int64,
        "Composer": pl.Utf8,
        "Milliseconds": pl.Int64,
        "UnitPrice": pl.Float64,
    },
    ALBUM_TABLE: {"AlbumId": pl.Int64, "Title": pl.Utf8, "ArtistId": pl.Int64},
    ARTIST_TABLE: {"ArtistId": pl.Int64, "Name": pl.Utf8},
    GENRE_TABLE: {"GenreId": pl.Int64, "Name": pl.Utf8},
    CUSTOMER_TABLE: {
        "CustomerId": pl.Int64,
        "Company": pl.Utf8,
        "City": pl.Utf8,
        "State": pl.Utf8,
        "Country": pl.Utf8,
        "Email": pl.Utf8,
        "SupportRepId": pl.Int64,
    },
    EMPLOYEE_TABLE: {"EmployeeId": pl.Int64, "Title": pl.Utf8},
    INVOICE_TABLE: {"InvoiceId": pl.Int64, "CustomerId": pl.Int64, "Total": pl.Float64},
    INVOICE_LINE_TABLE: {
        "InvoiceLineId": pl.Int64,
        "InvoiceId": pl.Int64,
        "TrackId": pl.Int64,
        "UnitPrice": pl.Float64,
        "Quantity": pl.Int64,
    },
}


def log(msg: str) -> None:
    """Print and flush immediately."""
    print(msg)
    sys.stdout.flush()


def get_catalog(
    table_bucket_arn: str | None = None,
    region: str | None = None,
    catalog_uri: str | None = None,
    warehouse_path: str | None = None,
):
    """
    Get a PyIceberg catalog.

    Uses the S3 Tables REST endpoint when a table bucket ARN is configured,
    otherwise a local SQL catalog (SQLite) with a filesystem warehouse.

    Args:
        table_bucket_arn: ARN of the S3 Table Bucket (or TABLE_BUCKET_ARN env var)
        region: AWS region (or AWS_DEFAULT_REGION env var, default us-east-1)
        catalog_uri: SQLAlchemy URI for the local catalog (or CATALOG_URI env var)
        warehouse_path: Local warehouse directory (or WAREHOUSE_PATH env var)
    """
    table_bucket_arn = table_bucket_arn or os.environ.get("TABLE_BUCKET_ARN")
    region = region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1")

    if table_bucket_arn:
        return load_catalog(
            "s3tables",
            type="rest",
            uri=f"https://s3tables.{region}.amazonaws.com/iceberg",
            warehouse=table_bucket_arn,
            **{
                "rest.sigv4-enabled": "true",
                "rest.signing-region": region,
                "rest.signing-name": "s3tables",
            },
        )

    catalog_uri = catalog_uri or os.environ.get("CATALOG_URI", DEFAULT_CATALOG_URI)
    warehouse = Path(warehouse_path or os.environ.get("WAREHOUSE_PATH", DEFAULT_WAREHOUSE_PATH))
    warehouse.mkdir(parents=True, exist_ok=True)

    if catalog_uri.startswith("sqlite:///"):
        Path(catalog_uri.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

    return load_catalog(
        "local",
        type="sql",
        uri=catalog_uri,
        warehouse=warehouse.resolve().as_uri(),
    )


def conform(name: str, df: pl.DataFrame) -> pl.DataFrame:
    """Cast known columns of a relation to their expected dtypes.

    InvoiceDate is parsed when it arrives as a string (CSV sources).
    """
    dtypes = SOURCE_DTYPES.get(name, {})
    casts = [pl.col(col).cast(dtype) for col, dtype in dtypes.items() if col in df.columns]

    if name == INVOICE_TABLE and df.schema.get("InvoiceDate") == pl.Utf8:
        casts.append(pl.col("InvoiceDate").str.to_datetime())

    return df.with_columns(casts) if casts else df


class TableSource(Protocol):
    """Read-only access to named source relations."""

    def read(self, name: str) -> pl.DataFrame: ...


class CatalogSource:
    """Reads relations from Iceberg tables in one catalog namespace."""

    def __init__(self, catalog, namespace: str = SOURCE_NAMESPACE):
        self.catalog = catalog
        self.namespace = namespace

    def read(self, name: str) -> pl.DataFrame:
        table = self.catalog.load_table(f"{self.namespace}.{name}")
        df = pl.from_arrow(table.scan().to_arrow())
        log(f"[extract] Read {len(df)} rows from {self.namespace}.{name}")
        return conform(name, df)


class DirectorySource:
    """Reads relations from ``<name>.parquet`` or ``<name>.csv`` files."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def read(self, name: str) -> pl.DataFrame:
        parquet_path = self.directory / f"{name}.parquet"
        csv_path = self.directory / f"{name}.csv"

        if parquet_path.exists():
            df = pl.read_parquet(parquet_path)
        elif csv_path.exists():
            df = pl.read_csv(csv_path, infer_schema_length=None)
        else:
            raise FileNotFoundError(f"No {name}.parquet or {name}.csv in {self.directory}")

        log(f"[extract] Read {len(df)} rows from {self.directory / name}")
        return conform(name, df)


@dataclass(frozen=True)
class Snapshot:
    """Immutable in-memory snapshot of the Chinook relations.

    Relations that were not loaded are empty frames; reports that need them
    fail on the missing columns rather than silently returning nothing.
    """

    tracks: pl.DataFrame = field(default_factory=pl.DataFrame)
    albums: pl.DataFrame = field(default_factory=pl.DataFrame)
    artists: pl.DataFrame = field(default_factory=pl.DataFrame)
    genres: pl.DataFrame = field(default_factory=pl.DataFrame)
    customers: pl.DataFrame = field(default_factory=pl.DataFrame)
    employees: pl.DataFrame = field(default_factory=pl.DataFrame)
    invoices: pl.DataFrame = field(default_factory=pl.DataFrame)
    invoice_lines: pl.DataFrame = field(default_factory=pl.DataFrame)


# Relation name -> Snapshot attribute
SNAPSHOT_FIELDS = {
    TRACK_TABLE: "tracks",
    ALBUM_TABLE: "albums",
    ARTIST_TABLE: "artists",
    GENRE_TABLE: "genres",
    CUSTOMER_TABLE: "customers",
    EMPLOYEE_TABLE: "employees",
    INVOICE_TABLE: "invoices",
    INVOICE_LINE_TABLE: "invoice_lines",
}


def fetch_tracks(source: TableSource) -> pl.DataFrame:
    """Fetch the Track relation.

    Returns DataFrame with columns: TrackId, Name, AlbumId, GenreId,
    Composer, Milliseconds, UnitPrice
    """
    return source.read(TRACK_TABLE)


def load_snapshot(source: TableSource, tables: tuple[str, ...] = SOURCE_TABLES) -> Snapshot:
    """Read the given relations from a source into a Snapshot."""
    unknown = [name for name in tables if name not in SNAPSHOT_FIELDS]
    if unknown:
        raise ValueError(f"Unknown relations: {unknown}. Available: {list(SNAPSHOT_FIELDS)}")

    frames = {SNAPSHOT_FIELDS[name]: source.read(name) for name in tables}
    log(f"[extract] Snapshot loaded: {', '.join(tables)}")
    return Snapshot(**frames)
