"""Shared expressions for Chinook reports.

Null handling: line revenue is UnitPrice * Quantity and stays null when
either operand is null. Group sums go through null_safe_sum, which is null
when every input is null instead of collapsing to 0.
"""

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot

SALES_SUPPORT_AGENT = "sales support agent"

INCOMPLETE_LINE_FIELDS = ["TrackId", "UnitPrice", "Quantity"]


def line_revenue() -> pl.Expr:
    """UnitPrice * Quantity (null if either is null)."""
    return pl.col("UnitPrice") * pl.col("Quantity")


def null_safe_sum(expr: pl.Expr) -> pl.Expr:
    """Sum of non-null values; null when there are none."""
    return pl.when(expr.count() > 0).then(expr.sum()).otherwise(None)


def percentage(numerator: pl.Expr, denominator: pl.Expr, decimals: int = 2) -> pl.Expr:
    """100 * numerator / denominator, null when the denominator is 0."""
    return (
        pl.when(denominator != 0)
        .then((100.0 * numerator / denominator).round(decimals))
        .otherwise(None)
    )


def full_name(first: str = "FirstName", last: str = "LastName") -> pl.Expr:
    return pl.concat_str([pl.col(first), pl.col(last)], separator=" ")


def any_null(columns: list[str]) -> pl.Expr:
    return pl.any_horizontal([pl.col(c).is_null() for c in columns])


def sales_agents(snapshot: Snapshot) -> pl.DataFrame:
    """Employees titled 'Sales Support Agent' (case-insensitive).

    Returns DataFrame with columns: EmployeeId, EmployeeName
    """
    return snapshot.employees.filter(
        pl.col("Title").str.to_lowercase() == SALES_SUPPORT_AGENT
    ).select("EmployeeId", full_name().alias("EmployeeName"))


def invoice_sales(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines joined to their invoice, with LineRevenue."""
    lines = snapshot.invoice_lines.select(
        "InvoiceLineId", "InvoiceId", "TrackId", "UnitPrice", "Quantity"
    )
    return (
        snapshot.invoices.select("InvoiceId", "CustomerId", "InvoiceDate")
        .join(lines, on="InvoiceId")
        .with_columns(line_revenue().alias("LineRevenue"))
    )


def track_attribution(snapshot: Snapshot) -> pl.DataFrame:
    """Tracks with album and artist attributes (inner joins).

    Returns DataFrame with columns: TrackId, TrackName, AlbumId, GenreId,
    ArtistId, ArtistName
    """
    return (
        snapshot.tracks.select(
            "TrackId", pl.col("Name").alias("TrackName"), "AlbumId", "GenreId"
        )
        .join(snapshot.albums.select("AlbumId", "ArtistId"), on="AlbumId")
        .join(
            snapshot.artists.select("ArtistId", pl.col("Name").alias("ArtistName")),
            on="ArtistId",
        )
    )
