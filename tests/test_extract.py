"""Tests for source extraction (directory and catalog sources, snapshots)."""

import polars as pl
import pytest

from src.pipelines.composer_enrichment.config import INVOICE_TABLE, TRACK_TABLE
from src.pipelines.composer_enrichment.extract import (
    CatalogSource,
    DirectorySource,
    Snapshot,
    conform,
    fetch_tracks,
    get_catalog,
    load_snapshot,
)


class TestConform:
    """Tests for conform function."""

    def test_casts_known_columns(self):
        """Key columns are cast to their expected dtypes."""
        df = pl.DataFrame(
            {"TrackId": [1, 2], "AlbumId": [1, None], "Composer": [None, None]},
            schema={"TrackId": pl.Int32, "AlbumId": pl.Int32, "Composer": pl.Null},
        )
        result = conform(TRACK_TABLE, df)
        assert result.schema["TrackId"] == pl.Int64
        assert result.schema["AlbumId"] == pl.Int64
        assert result.schema["Composer"] == pl.Utf8

    def test_parses_invoice_date_strings(self):
        """String InvoiceDate (CSV) becomes a datetime."""
        df = pl.DataFrame(
            {
                "InvoiceId": [1],
                "CustomerId": [1],
                "InvoiceDate": ["2021-01-01 10:00:00"],
                "Total": [1.98],
            }
        )
        result = conform(INVOICE_TABLE, df)
        assert result.schema["InvoiceDate"] == pl.Datetime("us")
        assert result["InvoiceDate"].dt.hour()[0] == 10

    def test_passes_through_unknown_relation(self):
        """Relations without dtype rules are returned unchanged."""
        df = pl.DataFrame({"a": [1]})
        assert conform("PlaylistTrack", df).equals(df)


class TestDirectorySource:
    """Tests for DirectorySource."""

    def test_reads_parquet(self, source_dir, album_tracks):
        """Track.parquet round-trips with its dtypes."""
        tracks = fetch_tracks(DirectorySource(source_dir))
        assert tracks.equals(album_tracks)

    def test_reads_csv(self, source_dir, chinook_snapshot):
        """CSV relations are conformed, including InvoiceDate."""
        invoices = DirectorySource(source_dir).read(INVOICE_TABLE)
        assert invoices.schema["InvoiceDate"] == pl.Datetime("us")
        expected = chinook_snapshot.invoices["InvoiceDate"].to_list()
        assert invoices["InvoiceDate"].to_list() == expected

    def test_prefers_parquet_over_csv(self, source_dir):
        """When both files exist the Parquet file wins."""
        pl.DataFrame({"TrackId": [999]}).write_csv(source_dir / "Track.csv")
        tracks = DirectorySource(source_dir).read(TRACK_TABLE)
        assert 999 not in tracks["TrackId"].to_list()

    def test_missing_relation_raises(self, tmp_path):
        """A relation without a file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Track"):
            DirectorySource(tmp_path).read(TRACK_TABLE)


class TestCatalogSource:
    """Tests for CatalogSource against a local SQL catalog."""

    def test_reads_table_from_namespace(self, local_catalog, album_tracks):
        """Rows written to <namespace>.Track come back conformed."""
        arrow_table = album_tracks.to_arrow(compat_level=pl.CompatLevel.oldest())
        local_catalog.create_namespace("chinook")
        table = local_catalog.create_table("chinook.Track", schema=arrow_table.schema)
        table.append(arrow_table)

        tracks = CatalogSource(local_catalog, "chinook").read(TRACK_TABLE)
        assert tracks.sort("TrackId").to_dicts() == album_tracks.to_dicts()
        assert tracks.schema["AlbumId"] == pl.Int64


class TestGetCatalog:
    """Tests for get_catalog function."""

    def test_local_catalog_creates_warehouse(self, tmp_path, monkeypatch):
        """Without a bucket ARN a local SQL catalog is used."""
        monkeypatch.delenv("TABLE_BUCKET_ARN", raising=False)
        warehouse = tmp_path / "wh"
        catalog = get_catalog(
            catalog_uri=f"sqlite:///{tmp_path / 'nested' / 'catalog.db'}",
            warehouse_path=str(warehouse),
        )
        assert warehouse.is_dir()
        assert (tmp_path / "nested").is_dir()
        assert catalog.list_namespaces() == []


class TestLoadSnapshot:
    """Tests for load_snapshot function."""

    def test_loads_all_relations(self, source_dir, chinook_snapshot):
        """Every relation lands on its Snapshot attribute."""
        snapshot = load_snapshot(DirectorySource(source_dir))
        assert isinstance(snapshot, Snapshot)
        assert len(snapshot.tracks) == len(chinook_snapshot.tracks)
        assert len(snapshot.invoice_lines) == len(chinook_snapshot.invoice_lines)
        assert snapshot.customers["SupportRepId"].null_count() == 1

    def test_loads_subset(self, source_dir):
        """Relations not requested stay empty."""
        snapshot = load_snapshot(DirectorySource(source_dir), tables=(TRACK_TABLE,))
        assert len(snapshot.tracks) == 13
        assert snapshot.invoices.is_empty()

    def test_unknown_relation_raises(self, source_dir):
        """Unknown relation names are rejected before reading."""
        with pytest.raises(ValueError, match="Unknown relations"):
            load_snapshot(DirectorySource(source_dir), tables=("Playlist",))
