"""Composer metadata audits.

Covers the composer side of data quality: which fixes the album majority
vote would suggest, where composers are missing, how much revenue sits on
tracks without one, and how consistent composers are within albums.
"""

from datetime import date

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot
from src.pipelines.composer_enrichment.inference import (
    group_composer_stats,
    known_composer,
    resolve_majority_composers,
    suggest_composer_fixes,
)

from .common import line_revenue, null_safe_sum, percentage

CLASSICAL_GENRE = "Classical"

HAS_COMPOSER = "Has Composer"
MISSING_COMPOSER = "Missing Composer"

# Track length buckets (milliseconds); Medium bounds are inclusive
SHORT_TRACK_MS = 120_000
LONG_TRACK_MS = 300_000


def composer_fix_candidates(snapshot: Snapshot) -> pl.DataFrame:
    """Tracks missing a composer and the album-majority composer suggested for them."""
    majority = resolve_majority_composers(group_composer_stats(snapshot.tracks))
    return suggest_composer_fixes(snapshot.tracks, majority)


def classical_missing_composer_by_artist(snapshot: Snapshot) -> pl.DataFrame:
    """Artists with Classical tracks lacking a composer, most affected first."""
    return (
        snapshot.tracks.filter(known_composer().is_null())
        .select("AlbumId", "GenreId")
        .join(snapshot.albums.select("AlbumId", "ArtistId"), on="AlbumId")
        .join(
            snapshot.artists.select("ArtistId", pl.col("Name").alias("ArtistName")),
            on="ArtistId",
        )
        .join(snapshot.genres.select("GenreId", pl.col("Name").alias("GenreName")), on="GenreId")
        .filter(pl.col("GenreName") == CLASSICAL_GENRE)
        .group_by("ArtistName")
        .agg(pl.len().alias("MissingComposerCount"))
        .sort(["MissingComposerCount", "ArtistName"], descending=[True, False])
    )


def composer_completeness_snapshot(
    snapshot: Snapshot, snapshot_date: date | None = None
) -> pl.DataFrame:
    """One-row completeness metric for daily/weekly monitoring."""
    return snapshot.tracks.select(
        pl.lit(snapshot_date or date.today()).alias("SnapshotDate"),
        pl.len().alias("TotalTracks"),
        known_composer().is_null().sum().alias("MissingComposer"),
        percentage(known_composer().is_null().sum(), pl.len()).alias("MissingPercentage"),
    )


def composer_revenue_impact(snapshot: Snapshot) -> pl.DataFrame:
    """Revenue split between tracks with and without a known composer.

    Lines whose track is null or missing count as Missing Composer, so the
    buckets cover all line revenue.
    """
    status = (
        pl.when(known_composer().is_null())
        .then(pl.lit(MISSING_COMPOSER))
        .otherwise(pl.lit(HAS_COMPOSER))
    )
    return (
        snapshot.invoice_lines.select("TrackId", "UnitPrice", "Quantity")
        .join(snapshot.tracks.select("TrackId", "Composer"), on="TrackId", how="left")
        .with_columns(status.alias("ComposerStatus"))
        .group_by("ComposerStatus")
        .agg(null_safe_sum(line_revenue()).alias("Revenue"))
        .sort("ComposerStatus")
    )


def album_composer_consistency(snapshot: Snapshot) -> pl.DataFrame:
    """Distinct composers per album; several composers may signal bad metadata."""
    distinct = pl.col("DistinctComposerCount")
    return (
        snapshot.tracks.filter(known_composer().is_not_null())
        .select("AlbumId", "Composer")
        .join(
            snapshot.albums.select("AlbumId", pl.col("Title").alias("AlbumTitle"), "ArtistId"),
            on="AlbumId",
        )
        .join(
            snapshot.artists.select("ArtistId", pl.col("Name").alias("ArtistName")),
            on="ArtistId",
        )
        .group_by(["AlbumId", "AlbumTitle", "ArtistName"])
        .agg(pl.col("Composer").n_unique().alias("DistinctComposerCount"))
        .with_columns(
            pl.when(distinct == 1)
            .then(pl.lit("Highly Consistent"))
            .when(distinct == 2)
            .then(pl.lit("Moderately Consistent"))
            .otherwise(pl.lit("Low Consistency"))
            .alias("ConsistencyLevel")
        )
        .sort(["DistinctComposerCount", "AlbumId"], descending=[True, False])
    )


def missing_composer_by_length(snapshot: Snapshot) -> pl.DataFrame:
    """Missing-composer rate per track length bucket."""
    ms = pl.col("Milliseconds")
    category = (
        pl.when(ms < SHORT_TRACK_MS)
        .then(pl.lit("Short"))
        .when(ms <= LONG_TRACK_MS)
        .then(pl.lit("Medium"))
        .otherwise(pl.lit("Long"))
    )
    missing = known_composer().is_null().sum()
    return (
        snapshot.tracks.with_columns(category.alias("LengthCategory"))
        .group_by("LengthCategory")
        .agg(
            pl.len().alias("TotalTracks"),
            missing.alias("MissingComposerCount"),
            percentage(missing, pl.len()).alias("MissingPercentage"),
        )
        .sort("LengthCategory")
    )
