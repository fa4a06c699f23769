"""Composer inference by album majority vote.

Flow (all pure, no side effects):
1. group_composer_stats: count tracks per (AlbumId, Composer) with a known composer
2. resolve_majority_composers: pick the most frequent composer per album
3. fill_composers: keep known composers, fill missing ones from the album majority

Tie-break Policy
================
Ranking by count alone leaves ties to engine row order. Here ties are
broken by composer name ascending, so an album with "X" x2 and "Y" x2
always resolves to "X" and repeated runs give identical output.

Album-less tracks are never resolvable: resolution keys exclusively on
AlbumId, so a track with no album and no composer keeps a null
FinalComposer.
"""

import polars as pl

from .config import TIE_BREAK_DESCENDING

ENRICHED_COLUMNS = [
    "TrackId",
    "Name",
    "FinalComposer",
    "AlbumId",
    "GenreId",
    "Milliseconds",
    "UnitPrice",
]


def known_composer() -> pl.Expr:
    """Composer when non-null and non-blank, else null."""
    composer = pl.col("Composer").cast(pl.Utf8)  # all-None columns arrive as Null dtype
    return (
        pl.when(composer.str.strip_chars().str.len_chars() > 0)
        .then(composer)
        .otherwise(None)
    )


def group_composer_stats(tracks: pl.DataFrame) -> pl.DataFrame:
    """Count tracks per (AlbumId, Composer) among tracks with a known composer.

    Tracks with a null AlbumId are grouped under a null AlbumId key.

    Returns DataFrame with columns: AlbumId, Composer, OccurrenceCount
    """
    return (
        tracks.select("AlbumId", known_composer().alias("Composer"))
        .drop_nulls("Composer")
        .group_by(["AlbumId", "Composer"])
        .agg(pl.len().cast(pl.Int64).alias("OccurrenceCount"))
        .sort(["AlbumId", "Composer"], nulls_last=True)
    )


def resolve_majority_composers(stats: pl.DataFrame) -> pl.DataFrame:
    """Pick the majority composer per album.

    Ranks by OccurrenceCount descending, then Composer by the configured
    tie-break order. The null album key is never resolved.

    Returns DataFrame with columns: AlbumId, InferredComposer
    """
    return (
        stats.drop_nulls("AlbumId")
        .sort(
            ["AlbumId", "OccurrenceCount", "Composer"],
            descending=[False, True, TIE_BREAK_DESCENDING],
        )
        .unique(subset="AlbumId", keep="first", maintain_order=True)
        .select("AlbumId", pl.col("Composer").alias("InferredComposer"))
    )


def fill_composers(tracks: pl.DataFrame, majority: pl.DataFrame) -> pl.DataFrame:
    """Produce one enriched row per track.

    FinalComposer is the original composer if known, else the album's
    majority composer if one exists, else null. Other fields are unchanged.
    Output is ordered by TrackId.
    """
    return (
        tracks.join(majority, on="AlbumId", how="left")
        .with_columns(
            pl.coalesce(known_composer(), pl.col("InferredComposer")).alias("FinalComposer")
        )
        .select(ENRICHED_COLUMNS)
        .sort("TrackId")
    )


def suggest_composer_fixes(tracks: pl.DataFrame, majority: pl.DataFrame) -> pl.DataFrame:
    """Preview the fixes a fill would apply.

    Returns DataFrame with columns: TrackId, TrackName, SuggestedComposer
    for tracks missing a composer whose album has a majority composer.
    """
    return (
        tracks.filter(known_composer().is_null())
        .join(majority, on="AlbumId", how="inner")
        .select(
            "TrackId",
            pl.col("Name").alias("TrackName"),
            pl.col("InferredComposer").alias("SuggestedComposer"),
        )
        .sort("TrackId")
    )


def enrich_tracks(tracks: pl.DataFrame) -> pl.DataFrame:
    """Run GroupStats -> MajorityResolver -> Fill over a Track frame."""
    stats = group_composer_stats(tracks)
    majority = resolve_majority_composers(stats)
    enriched = fill_composers(tracks, majority)

    missing = tracks.filter(known_composer().is_null()).height
    unresolved = enriched["FinalComposer"].null_count()
    inferred = missing - unresolved
    print(
        f"[inference] {len(majority)} albums resolved; "
        f"{inferred} composers inferred, {unresolved} unresolved of {len(enriched)} tracks"
    )

    return enriched
