"""Sales support representative reports.

Every report is scoped to employees titled 'Sales Support Agent' and to the
customers assigned to them through Customer.SupportRepId.
"""

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot
from src.pipelines.composer_enrichment.inference import known_composer

from .common import line_revenue, null_safe_sum, percentage, sales_agents

# Customer spend segments (inclusive mid band)
HIGH_VALUE_MIN = 50
MID_VALUE_MIN = 20


def _customer_invoices(snapshot: Snapshot) -> pl.DataFrame:
    return snapshot.customers.select("CustomerId", "SupportRepId").join(
        snapshot.invoices.select("InvoiceId", "CustomerId", "InvoiceDate", "Total"),
        on="CustomerId",
    )


def _agent_sales_lines(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines sold to customers of each agent."""
    return (
        sales_agents(snapshot)
        .join(
            snapshot.customers.select("CustomerId", "SupportRepId"),
            left_on="EmployeeId",
            right_on="SupportRepId",
        )
        .join(snapshot.invoices.select("InvoiceId", "CustomerId"), on="CustomerId")
        .join(
            snapshot.invoice_lines.select("InvoiceId", "TrackId", "UnitPrice", "Quantity"),
            on="InvoiceId",
        )
    )


def rep_customer_segments(snapshot: Snapshot) -> pl.DataFrame:
    """Customers per agent in highValue (> 50), midValue (20-50) and lowValue segments."""
    spent = pl.col("TotalSpent")
    spending = (
        snapshot.customers.select("CustomerId", "SupportRepId")
        .join(snapshot.invoices.select("CustomerId", "Total"), on="CustomerId", how="left")
        .group_by(["CustomerId", "SupportRepId"])
        .agg(null_safe_sum(pl.col("Total")).alias("TotalSpent"))
        .with_columns(
            pl.when(spent > HIGH_VALUE_MIN)
            .then(pl.lit("highValue"))
            .when(spent >= MID_VALUE_MIN)
            .then(pl.lit("midValue"))
            .otherwise(pl.lit("lowValue"))
            .alias("CustomerSegment")
        )
    )

    segment = pl.col("CustomerSegment")
    return (
        spending.join(sales_agents(snapshot), left_on="SupportRepId", right_on="EmployeeId")
        .group_by("EmployeeName")
        .agg(
            (segment == "highValue").sum().alias("HighValueCount"),
            (segment == "midValue").sum().alias("MidValueCount"),
            (segment == "lowValue").sum().alias("LowValueCount"),
            pl.len().alias("TotalCustomers"),
        )
        .sort("EmployeeName")
    )


def monthly_support_load(snapshot: Snapshot) -> pl.DataFrame:
    """Invoices and revenue per agent per month."""
    return (
        sales_agents(snapshot)
        .join(
            snapshot.customers.select("CustomerId", "SupportRepId"),
            left_on="EmployeeId",
            right_on="SupportRepId",
            how="left",
        )
        .join(
            snapshot.invoices.select("InvoiceId", "CustomerId", "InvoiceDate", "Total"),
            on="CustomerId",
            how="left",
        )
        .with_columns(pl.col("InvoiceDate").dt.strftime("%Y-%m").alias("InvoiceMonth"))
        .group_by(["EmployeeName", "InvoiceMonth"])
        .agg(
            pl.col("InvoiceId").count().alias("InvoiceCount"),
            null_safe_sum(pl.col("Total")).alias("TotalRevenue"),
        )
        .sort(["EmployeeName", "InvoiceMonth"])
    )


def rep_customer_ltv(snapshot: Snapshot) -> pl.DataFrame:
    """Customer count, total revenue and average lifetime value per agent."""
    customer_ltv = (
        _customer_invoices(snapshot)
        .group_by(["SupportRepId", "CustomerId"])
        .agg(null_safe_sum(pl.col("Total")).alias("TotalRevenue"))
    )
    return (
        customer_ltv.join(sales_agents(snapshot), left_on="SupportRepId", right_on="EmployeeId")
        .group_by("EmployeeName")
        .agg(
            pl.len().alias("TotalCustomers"),
            null_safe_sum(pl.col("TotalRevenue")).alias("TotalRevenue"),
            pl.col("TotalRevenue").mean().alias("AvgCustomerLTV"),
        )
        .sort("EmployeeName")
    )


def rep_top_artists(snapshot: Snapshot) -> pl.DataFrame:
    """Artist revenue per agent, highest first within each agent."""
    return (
        _agent_sales_lines(snapshot)
        .join(snapshot.tracks.select("TrackId", "AlbumId"), on="TrackId")
        .join(snapshot.albums.select("AlbumId", "ArtistId"), on="AlbumId")
        .join(
            snapshot.artists.select("ArtistId", pl.col("Name").alias("ArtistName")),
            on="ArtistId",
        )
        .group_by(["EmployeeId", "EmployeeName", "ArtistName"])
        .agg(null_safe_sum(line_revenue()).alias("Revenue"))
        .sort(
            ["EmployeeName", "Revenue", "ArtistName"],
            descending=[False, True, False],
            nulls_last=True,
        )
        .select("EmployeeName", "ArtistName", "Revenue")
    )


def rep_repeat_customer_rate(snapshot: Snapshot) -> pl.DataFrame:
    """Share of each agent's customers with more than one invoice."""
    repeat = (pl.col("InvoiceCount") > 1).sum()
    return (
        _customer_invoices(snapshot)
        .group_by(["CustomerId", "SupportRepId"])
        .agg(pl.len().alias("InvoiceCount"))
        .join(sales_agents(snapshot), left_on="SupportRepId", right_on="EmployeeId")
        .group_by("EmployeeName")
        .agg(
            repeat.alias("RepeatCustomerCount"),
            pl.len().alias("TotalCustomers"),
            percentage(repeat, pl.len()).alias("RepeatCustomerRate"),
        )
        .sort("EmployeeName")
    )


def rep_top_genre(snapshot: Snapshot) -> pl.DataFrame:
    """Most purchased genre per agent (ties go to the genre name first alphabetically)."""
    return (
        _agent_sales_lines(snapshot)
        .join(snapshot.tracks.select("TrackId", "GenreId"), on="TrackId")
        .join(snapshot.genres.select("GenreId", pl.col("Name").alias("GenreName")), on="GenreId")
        .group_by(["EmployeeId", "EmployeeName", "GenreName"])
        .agg(pl.len().alias("GenrePurchaseCount"))
        .sort(["EmployeeId", "GenrePurchaseCount", "GenreName"], descending=[False, True, False])
        .unique(subset="EmployeeId", keep="first", maintain_order=True)
        .select(
            "EmployeeName",
            pl.col("GenreName").alias("TopGenreName"),
            "GenrePurchaseCount",
        )
    )


def support_null_audit(snapshot: Snapshot) -> pl.DataFrame:
    """One-row audit of nulls that skew workload and behaviour analyses."""
    customers, invoices = snapshot.customers, snapshot.invoices
    tracks, lines = snapshot.tracks, snapshot.invoice_lines

    unassigned = customers["SupportRepId"].null_count()
    missing_composer = tracks.filter(known_composer().is_null()).height
    missing_genre = tracks["GenreId"].null_count()
    broken_lines = lines.filter(
        pl.col("UnitPrice").is_null() | pl.col("Quantity").is_null()
    ).height

    def rate(count: int, total: int) -> float | None:
        return round(100.0 * count / total, 2) if total else None

    return pl.DataFrame(
        [
            {
                "UnassignedCustomerCount": unassigned,
                "UnassignedCustomerRate": rate(unassigned, len(customers)),
                "OrphanInvoiceCount": invoices["CustomerId"].null_count(),
                "MissingComposer": missing_composer,
                "MissingGenre": missing_genre,
                "TotalTracks": len(tracks),
                "PercentMissingComposer": rate(missing_composer, len(tracks)),
                "PercentMissingGenre": rate(missing_genre, len(tracks)),
                "BrokenInvoiceLines": broken_lines,
            }
        ]
    )
