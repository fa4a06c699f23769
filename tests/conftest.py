"""
Pytest fixtures for the composer enrichment pipeline and Chinook reports.

Fixtures build a small Chinook snapshot in memory and a throwaway local
Iceberg catalog (SQLite + filesystem warehouse under tmp_path), so no
network or Docker is needed.

Usage:
    pytest tests/              # runs all tests
    pytest tests/ -k staging   # runs only staging sink tests
"""

import sys
from datetime import datetime
from pathlib import Path

import polars as pl
import pytest

# Add project root to path so tests can import from src
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.pipelines.composer_enrichment.extract import Snapshot, get_catalog  # noqa: E402

TRACK_SCHEMA = {
    "TrackId": pl.Int64,
    "Name": pl.Utf8,
    "AlbumId": pl.Int64,
    "GenreId": pl.Int64,
    "Composer": pl.Utf8,
    "Milliseconds": pl.Int64,
    "UnitPrice": pl.Float64,
}

CUSTOMER_SCHEMA = {
    "CustomerId": pl.Int64,
    "FirstName": pl.Utf8,
    "LastName": pl.Utf8,
    "Company": pl.Utf8,
    "City": pl.Utf8,
    "State": pl.Utf8,
    "Country": pl.Utf8,
    "Email": pl.Utf8,
    "SupportRepId": pl.Int64,
}

INVOICE_SCHEMA = {
    "InvoiceId": pl.Int64,
    "CustomerId": pl.Int64,
    "InvoiceDate": pl.Datetime("us"),
    "Total": pl.Float64,
}

INVOICE_LINE_SCHEMA = {
    "InvoiceLineId": pl.Int64,
    "InvoiceId": pl.Int64,
    "TrackId": pl.Int64,
    "UnitPrice": pl.Float64,
    "Quantity": pl.Int64,
}


def make_tracks(rows: list[tuple]) -> pl.DataFrame:
    """Build a Track frame from row tuples in TRACK_SCHEMA order."""
    return pl.DataFrame(rows, schema=TRACK_SCHEMA, orient="row")


def make_invoices(rows: list[tuple]) -> pl.DataFrame:
    return pl.DataFrame(rows, schema=INVOICE_SCHEMA, orient="row")


def make_invoice_lines(rows: list[tuple]) -> pl.DataFrame:
    return pl.DataFrame(rows, schema=INVOICE_LINE_SCHEMA, orient="row")


def make_customers(rows: list[tuple]) -> pl.DataFrame:
    return pl.DataFrame(rows, schema=CUSTOMER_SCHEMA, orient="row")


@pytest.fixture
def album_tracks() -> pl.DataFrame:
    """
    Tracks covering the majority-vote scenarios.

    Album 1: X x3, Y x1, one missing composer       -> X
    Album 2: Y x2, X x2 (tie), one missing composer -> X (name ascending)
    Album 3: blank composer only                    -> unresolved
    No album: one missing composer, one "Z"
    """
    return make_tracks(
        [
            (1, "A1 One", 1, 1, "X", 100_000, 0.99),
            (2, "A1 Two", 1, 1, "X", 200_000, 0.99),
            (3, "A1 Three", 1, 1, "X", 300_000, 0.99),
            (4, "A1 Four", 1, 1, "Y", 400_000, 0.99),
            (5, "A1 Five", 1, 1, None, 150_000, 0.99),
            (6, "A2 One", 2, 2, "Y", 250_000, 0.99),
            (7, "A2 Two", 2, 2, "Y", 250_000, 0.99),
            (8, "A2 Three", 2, 2, "X", 250_000, 0.99),
            (9, "A2 Four", 2, 2, "X", 250_000, 0.99),
            (10, "A2 Five", 2, 2, None, 250_000, 0.99),
            (11, "Loose Track", None, None, None, 250_000, 0.99),
            (12, "A3 One", 3, 2, "   ", 250_000, 0.99),
            (13, "Loose Composed", None, 1, "Z", 250_000, 0.99),
        ]
    )


@pytest.fixture
def chinook_snapshot(album_tracks) -> Snapshot:
    """
    Small Chinook snapshot for report tests.

    Album 3 points at an artist that does not exist. Invoice lines include
    one missing UnitPrice, one missing Quantity and one missing TrackId.
    """
    albums = pl.DataFrame(
        {
            "AlbumId": [1, 2, 3],
            "Title": ["First Album", "Second Album", "Third Album"],
            "ArtistId": [1, 2, 3],
        }
    )
    artists = pl.DataFrame({"ArtistId": [1, 2], "Name": ["Alpha", "Beta"]})
    genres = pl.DataFrame({"GenreId": [1, 2], "Name": ["Rock", "Classical"]})
    employees = pl.DataFrame(
        {
            "EmployeeId": [1, 2, 3],
            "FirstName": ["Andrew", "Jane", "Steve"],
            "LastName": ["Adams", "Peacock", "Johnson"],
            "Title": ["General Manager", "Sales Support Agent", "sales support agent"],
        }
    )
    customers = make_customers(
        [
            (1, "Luis", "Goncalves", "Embraer", "Sao Jose", "SP", "Brazil", "luis@embraer.com", 2),
            (2, "Leonie", "Kohler", None, "Stuttgart", None, "Germany", "leonie@gmail.com", 3),
            (3, "Frank", "Harris", "Google", "Mountain View", "CA", "USA", "fharris@google.com", 2),
            (4, "Ana", "Silva", None, None, None, "Portugal", None, None),
        ]
    )
    invoices = make_invoices(
        [
            (1, 1, datetime(2021, 1, 1, 10, 0), 2.97),  # Friday morning
            (2, 2, datetime(2021, 1, 2, 19, 0), 0.99),  # Saturday evening
            (3, 1, datetime(2021, 3, 15, 8, 0), 0.99),  # Monday morning
            (4, 3, datetime(2021, 2, 10, 23, 0), 0.99),  # Wednesday night
            (5, 4, datetime(2021, 3, 20, 14, 0), 0.99),  # Saturday afternoon
        ]
    )
    invoice_lines = make_invoice_lines(
        [
            (1, 1, 1, 0.99, 1),
            (2, 1, 6, 0.99, 2),
            (3, 2, 5, 0.99, 1),
            (4, 2, 12, None, 1),
            (5, 3, 2, 0.99, None),
            (6, 4, 11, 0.99, 1),
            (7, 5, None, 0.99, 1),
        ]
    )
    return Snapshot(
        tracks=album_tracks,
        albums=albums,
        artists=artists,
        genres=genres,
        customers=customers,
        employees=employees,
        invoices=invoices,
        invoice_lines=invoice_lines,
    )


@pytest.fixture
def local_catalog(tmp_path, monkeypatch):
    """PyIceberg SQL catalog backed by SQLite under tmp_path."""
    monkeypatch.delenv("TABLE_BUCKET_ARN", raising=False)
    return get_catalog(
        catalog_uri=f"sqlite:///{tmp_path / 'catalog.db'}",
        warehouse_path=str(tmp_path / "warehouse"),
    )


@pytest.fixture
def source_dir(tmp_path, chinook_snapshot) -> Path:
    """Directory of Chinook CSV exports (Track as Parquet) built from the snapshot."""
    directory = tmp_path / "chinook"
    directory.mkdir()
    chinook_snapshot.tracks.write_parquet(directory / "Track.parquet")
    chinook_snapshot.albums.write_csv(directory / "Album.csv")
    chinook_snapshot.artists.write_csv(directory / "Artist.csv")
    chinook_snapshot.genres.write_csv(directory / "Genre.csv")
    chinook_snapshot.customers.write_csv(directory / "Customer.csv")
    chinook_snapshot.employees.write_csv(directory / "Employee.csv")
    chinook_snapshot.invoices.write_csv(directory / "Invoice.csv")
    chinook_snapshot.invoice_lines.write_csv(directory / "InvoiceLine.csv")
    return directory
