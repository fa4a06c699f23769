"""Null diagnostics for customers and invoice data.

Key Concepts:
-------------
- **Affected line**: an invoice line with a null TrackId, UnitPrice or Quantity
- **Missing score**: (missing Company + missing State) / (2 * customers) per country
- **Predictable state**: State is null but City and Country are known, so it
  can be looked up rather than asked for

Nothing here coerces nulls to zero. The one estimate that does assume a
value (missing Quantity = 1) is confined to lost_revenue_estimate.
"""

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot

from .common import INCOMPLETE_LINE_FIELDS, any_null, full_name, line_revenue, null_safe_sum

# Country risk thresholds on the missing score
RISK_HIGH = 0.5
RISK_MEDIUM = 0.2


def customer_missing_values(snapshot: Snapshot) -> pl.DataFrame:
    """One-row summary of missing Company / State across customers."""
    total = pl.col("CustomerId").count()
    missing_company = pl.col("Company").is_null().sum()
    missing_state = pl.col("State").is_null().sum()
    predictable_state = (
        pl.col("City").is_not_null() & pl.col("Country").is_not_null() & pl.col("State").is_null()
    ).sum()

    return snapshot.customers.select(
        total.alias("TotalCustomerCount"),
        missing_company.alias("MissingCompanyNumber"),
        (missing_company / total).round(3).alias("MissingCompanyRatio"),
        missing_state.alias("UnknownStateNumber"),
        (missing_state / total).round(3).alias("UnknownStateRatio"),
        predictable_state.alias("PredictableStateNumber"),
        (predictable_state / total).round(3).alias("PredictableStateRatio"),
    )


def country_missing_risk(snapshot: Snapshot) -> pl.DataFrame:
    """Per-country missing score with a high/medium/low risk label."""
    score = pl.col("MissingScore")
    return (
        snapshot.customers.group_by("Country")
        .agg(
            pl.col("CustomerId").count().alias("TotalCustomer"),
            pl.col("Company").is_null().sum().alias("MissingCompanyNumber"),
            pl.col("State").is_null().sum().alias("MissingStateNumber"),
        )
        .with_columns(
            (
                (pl.col("MissingCompanyNumber") + pl.col("MissingStateNumber"))
                / (2 * pl.col("TotalCustomer"))
            )
            .round(2)
            .alias("MissingScore")
        )
        .with_columns(
            pl.when(score >= RISK_HIGH)
            .then(pl.lit("high"))
            .when(score >= RISK_MEDIUM)
            .then(pl.lit("medium"))
            .otherwise(pl.lit("low"))
            .alias("RiskLevel")
        )
        .sort(["MissingScore", "Country"], descending=[True, False])
    )


def state_fix_candidates(snapshot: Snapshot) -> pl.DataFrame:
    """Customers whose State could be filled from City and Country."""
    return (
        snapshot.customers.filter(
            pl.col("State").is_null()
            & pl.col("City").is_not_null()
            & pl.col("Country").is_not_null()
        )
        .select("CustomerId", "FirstName", "LastName", "Company", "City", "Country", "State")
        .sort("CustomerId")
    )


def lost_revenue_estimate(snapshot: Snapshot) -> pl.DataFrame:
    """Revenue at risk from invoice lines missing UnitPrice or Quantity."""
    incomplete = pl.col("UnitPrice").is_null() | pl.col("Quantity").is_null()
    # Estimate only: a missing Quantity counts as 1; a missing UnitPrice stays unknown
    estimate = pl.col("UnitPrice") * pl.col("Quantity").fill_null(1)

    return snapshot.invoice_lines.select(
        incomplete.sum().alias("AffectedRows"),
        null_safe_sum(pl.when(incomplete).then(pl.lit(0.0)).otherwise(line_revenue())).alias(
            "ValidRevenue"
        ),
        null_safe_sum(pl.when(incomplete).then(estimate).otherwise(pl.lit(0.0))).alias(
            "LostRevenueEstimate"
        ),
    )


def repeated_nulls_by_customer(snapshot: Snapshot) -> pl.DataFrame:
    """Customers tied to invoice lines with nulls, most affected first."""
    return (
        snapshot.customers.select("CustomerId", full_name().alias("CustomerName"))
        .join(snapshot.invoices.select("InvoiceId", "CustomerId"), on="CustomerId")
        .join(snapshot.invoice_lines, on="InvoiceId")
        .filter(any_null(INCOMPLETE_LINE_FIELDS))
        .group_by(["CustomerId", "CustomerName"])
        .agg(pl.len().alias("NullAffectedLines"))
        .sort(["NullAffectedLines", "CustomerId"], descending=[True, False])
    )


def null_or_zero_invoices(snapshot: Snapshot) -> pl.DataFrame:
    """Invoices whose line revenue totals to null or zero."""
    incomplete = pl.col("UnitPrice").is_null() | pl.col("Quantity").is_null()
    return (
        snapshot.invoices.select("InvoiceId", "InvoiceDate")
        .join(snapshot.invoice_lines, on="InvoiceId")
        .group_by(["InvoiceId", "InvoiceDate"])
        .agg(
            null_safe_sum(line_revenue()).alias("InvoiceTotal"),
            pl.len().alias("LineCount"),
            incomplete.sum().alias("NullLines"),
        )
        .filter(pl.col("InvoiceTotal").is_null() | (pl.col("InvoiceTotal") == 0))
        .sort(["InvoiceDate", "InvoiceId"], descending=[True, False])
    )


def invoice_line_null_counts(snapshot: Snapshot) -> pl.DataFrame:
    """Null count per critical invoice line field."""
    lines = snapshot.invoice_lines
    return pl.DataFrame(
        {
            "FieldName": INCOMPLETE_LINE_FIELDS,
            "NullCount": [lines[c].null_count() for c in INCOMPLETE_LINE_FIELDS],
        }
    )


def _null_rate(df: pl.DataFrame, columns: list[str]) -> float | None:
    if len(df) == 0:
        return None
    affected = df.filter(any_null(columns)).height
    return round(100.0 * affected / len(df), 2)


def null_density_by_table(snapshot: Snapshot) -> pl.DataFrame:
    """Share of rows with a null key field, per table."""
    rates = {
        "InvoiceLine": _null_rate(snapshot.invoice_lines, INCOMPLETE_LINE_FIELDS),
        "Track": _null_rate(snapshot.tracks, ["GenreId", "AlbumId"]),
        "Customer": _null_rate(snapshot.customers, ["Email", "Country"]),
    }
    return pl.DataFrame(
        {"TableName": list(rates.keys()), "NullRate": list(rates.values())},
        schema={"TableName": pl.Utf8, "NullRate": pl.Float64},
    )


def invoice_line_null_clusters(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines with at least one null critical field, most nulls first."""
    null_count = pl.sum_horizontal(
        [pl.col(c).is_null().cast(pl.Int64) for c in INCOMPLETE_LINE_FIELDS]
    )
    return (
        snapshot.invoice_lines.select("InvoiceLineId", null_count.alias("NullFieldCount"))
        .filter(pl.col("NullFieldCount") > 0)
        .sort(["NullFieldCount", "InvoiceLineId"], descending=[True, False])
    )


def null_trend_by_day(snapshot: Snapshot) -> pl.DataFrame:
    """Lines and affected lines per invoice day."""
    return (
        snapshot.invoices.select("InvoiceId", pl.col("InvoiceDate").dt.date().alias("InvoiceDay"))
        .join(snapshot.invoice_lines, on="InvoiceId")
        .group_by("InvoiceDay")
        .agg(
            pl.len().alias("TotalLines"),
            any_null(INCOMPLETE_LINE_FIELDS).sum().alias("NullLineCount"),
        )
        .sort("InvoiceDay")
    )


def fully_null_invoices(snapshot: Snapshot) -> pl.DataFrame:
    """Invoices where every line has a null critical field."""
    return (
        snapshot.invoices.select("InvoiceId")
        .join(snapshot.invoice_lines, on="InvoiceId")
        .group_by("InvoiceId")
        .agg(
            pl.len().alias("TotalLines"),
            any_null(INCOMPLETE_LINE_FIELDS).sum().alias("NullLines"),
        )
        .filter(pl.col("TotalLines") == pl.col("NullLines"))
        .sort("InvoiceId")
    )
