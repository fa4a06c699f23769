"""Artist revenue attribution.

Revenue is attributed through InvoiceLine -> Track -> Album -> Artist.
Lines that cannot be followed all the way are not dropped silently:
artist_attribution_status and revenue_by_metadata_status report them in
their own buckets ("Missing Album", "Missing Artist", ...).
"""

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot

from .common import (
    INCOMPLETE_LINE_FIELDS,
    any_null,
    invoice_sales,
    line_revenue,
    null_safe_sum,
    percentage,
    track_attribution,
)

# Share of an artist's revenue that counts as "top of catalog"
CATALOG_TOP_SHARE_PCT = 80


def _artist_lines(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines with invoice date and full artist attribution."""
    return invoice_sales(snapshot).join(
        track_attribution(snapshot).drop("GenreId"), on="TrackId"
    )


def monthly_top_artists(snapshot: Snapshot) -> pl.DataFrame:
    """Top-earning artist per month (all artists tied at rank 1 are kept)."""
    return (
        _artist_lines(snapshot)
        .with_columns(pl.col("InvoiceDate").dt.strftime("%Y-%m").alias("RevenueMonth"))
        .group_by(["ArtistId", "ArtistName", "RevenueMonth"])
        .agg(null_safe_sum(pl.col("LineRevenue")).alias("MonthlyRevenue"))
        .with_columns(
            pl.col("MonthlyRevenue")
            .rank(method="min", descending=True)
            .over("RevenueMonth")
            .alias("MonthlyRank")
        )
        .filter(pl.col("MonthlyRank") == 1)
        .sort(["RevenueMonth", "ArtistName"])
    )


def genre_revenue_share(snapshot: Snapshot) -> pl.DataFrame:
    """Artist revenue as a share of its genre's total revenue."""
    lines = snapshot.invoice_lines.select("TrackId", "UnitPrice", "Quantity").join(
        snapshot.tracks.select("TrackId", "GenreId"), on="TrackId"
    )
    genre_totals = lines.group_by("GenreId").agg(
        null_safe_sum(line_revenue()).alias("TotalGenreRevenue")
    )
    artist_genre = (
        lines.join(track_attribution(snapshot).drop("GenreId"), on="TrackId")
        .join(snapshot.genres.select("GenreId", pl.col("Name").alias("GenreName")), on="GenreId")
        .group_by(["ArtistId", "ArtistName", "GenreId", "GenreName"])
        .agg(null_safe_sum(line_revenue()).alias("ArtistRevenue"))
    )
    return (
        artist_genre.join(genre_totals, on="GenreId")
        .with_columns(
            percentage(pl.col("ArtistRevenue"), pl.col("TotalGenreRevenue")).alias(
                "RevenueSharePercentage"
            )
        )
        .select(
            "ArtistName",
            "GenreName",
            "ArtistRevenue",
            "TotalGenreRevenue",
            "RevenueSharePercentage",
        )
        .sort(["RevenueSharePercentage", "ArtistName"], descending=[True, False], nulls_last=True)
    )


def artist_revenue_efficiency(snapshot: Snapshot) -> pl.DataFrame:
    """Revenue per distinct sold track, per artist."""
    return (
        snapshot.invoice_lines.select("TrackId", "UnitPrice", "Quantity")
        .join(track_attribution(snapshot), on="TrackId")
        .group_by(["ArtistId", "ArtistName"])
        .agg(
            pl.col("TrackId").n_unique().alias("TrackCount"),
            null_safe_sum(line_revenue()).alias("TotalRevenue"),
        )
        .filter(pl.col("TrackCount") >= 1)
        .with_columns(
            (pl.col("TotalRevenue") / pl.col("TrackCount")).round(2).alias("RevenuePerTrack")
        )
        .select("ArtistName", "TrackCount", "TotalRevenue", "RevenuePerTrack")
        .sort(["RevenuePerTrack", "ArtistName"], descending=[True, False], nulls_last=True)
    )


def artist_catalog_concentration(snapshot: Snapshot) -> pl.DataFrame:
    """Tracks that make up the top 80% of each artist's revenue.

    Tracks are accumulated from highest to lowest revenue (TrackId breaks
    ties) and kept while the cumulative share stays within the threshold.
    """
    return (
        snapshot.invoice_lines.select("TrackId", "UnitPrice", "Quantity")
        .join(track_attribution(snapshot), on="TrackId")
        .group_by(["ArtistId", "ArtistName", "TrackId", "TrackName"])
        .agg(null_safe_sum(line_revenue()).alias("TrackRevenue"))
        .sort(
            ["ArtistId", "TrackRevenue", "TrackId"],
            descending=[False, True, False],
            nulls_last=True,
        )
        .with_columns(
            pl.col("TrackRevenue").sum().over("ArtistId").alias("ArtistTotalRevenue"),
            pl.col("TrackRevenue").cum_sum().over("ArtistId").alias("CumulativeRevenue"),
        )
        .with_columns(
            percentage(pl.col("CumulativeRevenue"), pl.col("ArtistTotalRevenue")).alias(
                "CumulativePercentage"
            )
        )
        .filter(pl.col("CumulativePercentage") <= CATALOG_TOP_SHARE_PCT)
        .select(
            "ArtistName",
            "TrackName",
            "TrackRevenue",
            "ArtistTotalRevenue",
            "CumulativePercentage",
        )
        .sort(["ArtistName", "CumulativePercentage"])
    )


def artist_half_year_trend(snapshot: Snapshot) -> pl.DataFrame:
    """First-half vs second-half revenue per artist with a trend label."""
    h1, h2 = pl.col("Revenue_H1"), pl.col("Revenue_H2")

    def half_revenue(half: str) -> pl.Expr:
        return (
            pl.when(pl.col("HalfYear") == half)
            .then(pl.col("Revenue"))
            .otherwise(pl.lit(0.0))
            .max()
            .alias(f"Revenue_{half}")
        )

    return (
        _artist_lines(snapshot)
        .with_columns(
            pl.when(pl.col("InvoiceDate").dt.month() <= 6)
            .then(pl.lit("H1"))
            .otherwise(pl.lit("H2"))
            .alias("HalfYear")
        )
        .group_by(["ArtistId", "ArtistName", "HalfYear"])
        .agg(null_safe_sum(pl.col("LineRevenue")).alias("Revenue"))
        .group_by("ArtistName")
        .agg(half_revenue("H1"), half_revenue("H2"))
        .with_columns(
            pl.when(h2 > h1)
            .then(pl.lit("Increased"))
            .when(h2 < h1)
            .then(pl.lit("Decreased"))
            .otherwise(pl.lit("No Change"))
            .alias("Trend"),
            (h2 - h1).alias("_change"),
        )
        .sort(["_change", "ArtistName"], descending=[True, False], nulls_last=True)
        .drop("_change")
    )


def incomplete_invoice_lines(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines missing a track, price or quantity, with the first gap found."""
    return (
        snapshot.invoice_lines.join(
            snapshot.tracks.select("TrackId", pl.col("Name").alias("TrackName")),
            on="TrackId",
            how="left",
        )
        .filter(any_null(INCOMPLETE_LINE_FIELDS))
        .with_columns(
            pl.when(pl.col("TrackId").is_null())
            .then(pl.lit("Missing Track"))
            .when(pl.col("UnitPrice").is_null())
            .then(pl.lit("Missing Price"))
            .when(pl.col("Quantity").is_null())
            .then(pl.lit("Missing Quantity"))
            .otherwise(pl.lit("OK"))
            .alias("RevenueImpactType")
        )
        .select(
            "InvoiceLineId",
            "InvoiceId",
            "TrackId",
            "TrackName",
            "UnitPrice",
            "Quantity",
            "RevenueImpactType",
        )
        .sort("InvoiceLineId")
    )


def revenue_by_metadata_status(snapshot: Snapshot) -> pl.DataFrame:
    """Revenue from tracks missing genre and/or album ids.

    Lines with a null or dangling TrackId are reported as Missing Track.
    """
    genre_missing = pl.col("GenreId").is_null()
    album_missing = pl.col("AlbumId").is_null()
    tracks = snapshot.tracks.select("TrackId", "GenreId", "AlbumId", pl.lit(True).alias("Found"))
    return (
        snapshot.invoice_lines.select("TrackId", "UnitPrice", "Quantity")
        .join(tracks, on="TrackId", how="left")
        .with_columns(
            pl.when(pl.col("Found").is_null())
            .then(pl.lit("Missing Track"))
            .when(genre_missing & album_missing)
            .then(pl.lit("Missing Genre & Album"))
            .when(genre_missing)
            .then(pl.lit("Missing Genre"))
            .when(album_missing)
            .then(pl.lit("Missing Album"))
            .otherwise(pl.lit("Complete"))
            .alias("MetadataStatus")
        )
        .group_by("MetadataStatus")
        .agg(null_safe_sum(line_revenue()).alias("TotalRevenue"))
        .sort("MetadataStatus")
    )


def artist_attribution_status(snapshot: Snapshot) -> pl.DataFrame:
    """Revenue that cannot be attributed to an artist, by reason.

    Dangling references count as missing: a track whose AlbumId has no
    Album row is "Missing Album", an album whose ArtistId has no Artist row
    is "Missing Artist".
    """
    albums = snapshot.albums.select("AlbumId", "ArtistId", pl.lit(True).alias("_album_found"))
    artists = snapshot.artists.select("ArtistId", pl.lit(True).alias("_artist_found"))
    return (
        snapshot.invoice_lines.select("TrackId", "UnitPrice", "Quantity")
        .join(snapshot.tracks.select("TrackId", "AlbumId"), on="TrackId", how="left")
        .join(albums, on="AlbumId", how="left")
        .join(artists, on="ArtistId", how="left")
        .with_columns(
            pl.when(pl.col("_album_found").is_null())
            .then(pl.lit("Missing Album"))
            .when(pl.col("_artist_found").is_null())
            .then(pl.lit("Missing Artist"))
            .otherwise(pl.lit("Complete"))
            .alias("AttributionStatus")
        )
        .group_by("AttributionStatus")
        .agg(null_safe_sum(line_revenue()).alias("Revenue"))
        .sort(["Revenue", "AttributionStatus"], descending=[True, False], nulls_last=True)
    )
