"""Sales time patterns.

Hour-of-day, weekday, monthly and weekly views of invoice line revenue,
plus customer purchase gaps. All reports work on InvoiceDate as stored
(no timezone conversion).

Week numbers follow the Sunday-start convention: week 1 is the week that
contains January 1st and each Sunday starts a new week.
"""

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot

from .common import invoice_sales, null_safe_sum, percentage

# Revenue drop threshold: flag months below 70% of the previous month
DROP_RATIO = 0.7

# Minimum gap between purchases to count as inactivity (days)
INACTIVITY_DAYS = 60

WEEKEND_DAYS = [6, 7]  # ISO weekday: Saturday, Sunday


def _revenue() -> pl.Expr:
    return null_safe_sum(pl.col("LineRevenue"))


def _monthly_revenue(snapshot: Snapshot) -> pl.DataFrame:
    return (
        invoice_sales(snapshot)
        .with_columns(pl.col("InvoiceDate").dt.strftime("%Y-%m").alias("RevenueMonth"))
        .group_by("RevenueMonth")
        .agg(_revenue().alias("Revenue"))
        .sort("RevenueMonth")
    )


def hourly_sales(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines and revenue per hour of day."""
    return (
        invoice_sales(snapshot)
        .with_columns(pl.col("InvoiceDate").dt.hour().alias("HourOfDay"))
        .group_by("HourOfDay")
        .agg(pl.len().alias("InvoiceCount"), _revenue().round(2).alias("Revenue"))
        .sort("HourOfDay")
    )


def weekday_sales(snapshot: Snapshot) -> pl.DataFrame:
    """Invoice lines and revenue per day of week, busiest first."""
    return (
        invoice_sales(snapshot)
        .with_columns(pl.col("InvoiceDate").dt.strftime("%A").alias("DayOfWeek"))
        .group_by("DayOfWeek")
        .agg(pl.len().alias("InvoiceCount"), _revenue().alias("TotalRevenue"))
        .sort(["InvoiceCount", "DayOfWeek"], descending=[True, False])
    )


def rolling_three_month_revenue(snapshot: Snapshot) -> pl.DataFrame:
    """Monthly revenue with a trailing three-month average."""
    revenue = pl.col("Revenue")
    return _monthly_revenue(snapshot).with_columns(
        pl.mean_horizontal(revenue, revenue.shift(1), revenue.shift(2)).alias("Rolling3MonthAvg")
    )


def revenue_drops(snapshot: Snapshot) -> pl.DataFrame:
    """Months whose revenue fell by more than 30% from the previous month."""
    revenue, previous = pl.col("Revenue"), pl.col("PrevMonthRevenue")
    return (
        _monthly_revenue(snapshot)
        .with_columns(revenue.shift(1).alias("PrevMonthRevenue"))
        .filter(previous.is_not_null() & (revenue < DROP_RATIO * previous))
        .with_columns(percentage(revenue - previous, previous).alias("RevenueChangePct"))
    )


def peak_hour_contribution(snapshot: Snapshot) -> pl.DataFrame:
    """Share of each day's revenue earned in its best hour."""
    hourly = pl.col("HourlyTotal")
    return (
        invoice_sales(snapshot)
        .with_columns(
            pl.col("InvoiceDate").dt.date().alias("InvoiceDay"),
            pl.col("InvoiceDate").dt.hour().alias("HourOfDay"),
        )
        .group_by(["InvoiceDay", "HourOfDay"])
        .agg(_revenue().alias("HourlyTotal"))
        .with_columns(
            hourly.sum().over("InvoiceDay").alias("DailyTotal"),
            hourly.rank(method="min", descending=True).over("InvoiceDay").alias("HourRank"),
        )
        .filter(pl.col("HourRank") == 1)
        .with_columns(percentage(hourly, pl.col("DailyTotal")).alias("PeakHourPercentage"))
        .select("InvoiceDay", "HourOfDay", "HourlyTotal", "DailyTotal", "PeakHourPercentage")
        .sort(["InvoiceDay", "HourOfDay"])
    )


def weekend_vs_weekday(snapshot: Snapshot) -> pl.DataFrame:
    """Distinct invoices and revenue on weekends vs weekdays."""
    return (
        invoice_sales(snapshot)
        .with_columns(
            pl.when(pl.col("InvoiceDate").dt.weekday().is_in(WEEKEND_DAYS))
            .then(pl.lit("Weekend"))
            .otherwise(pl.lit("Weekday"))
            .alias("DayType")
        )
        .group_by("DayType")
        .agg(
            pl.col("InvoiceId").n_unique().alias("InvoiceCount"),
            _revenue().round(2).alias("TotalRevenue"),
        )
        .sort("DayType")
    )


def customer_inactivity(snapshot: Snapshot) -> pl.DataFrame:
    """Gaps of 60+ days between a customer's consecutive invoices."""
    days_inactive = pl.col("DaysInactive")
    return (
        snapshot.invoices.select("CustomerId", "InvoiceDate")
        .sort(["CustomerId", "InvoiceDate"])
        .with_columns(pl.col("InvoiceDate").shift(1).over("CustomerId").alias("PrevInvoice"))
        .filter(pl.col("PrevInvoice").is_not_null())
        .with_columns(
            (pl.col("InvoiceDate").dt.date() - pl.col("PrevInvoice").dt.date())
            .dt.total_days()
            .alias("DaysInactive")
        )
        .filter(days_inactive >= INACTIVITY_DAYS)
        .sort(["DaysInactive", "CustomerId"], descending=[True, False])
    )


def time_window_revenue(snapshot: Snapshot) -> pl.DataFrame:
    """Revenue per time window: morning 6-11, afternoon 12-17, evening 18-22, night."""
    hour = pl.col("InvoiceDate").dt.hour()
    return (
        invoice_sales(snapshot)
        .with_columns(
            pl.when(hour.is_between(6, 11))
            .then(pl.lit("morning"))
            .when(hour.is_between(12, 17))
            .then(pl.lit("afternoon"))
            .when(hour.is_between(18, 22))
            .then(pl.lit("evening"))
            .otherwise(pl.lit("night"))
            .alias("TimeWindow")
        )
        .group_by("TimeWindow")
        .agg(pl.len().alias("InvoiceCount"), _revenue().round(2).alias("TotalRevenue"))
        .sort(["TotalRevenue", "TimeWindow"], descending=[True, False], nulls_last=True)
    )


def first_purchase_activity(snapshot: Snapshot) -> pl.DataFrame:
    """Purchases per customer and how long after the first one they continued."""
    return (
        snapshot.invoices.select("CustomerId", "InvoiceDate")
        .with_columns(pl.col("InvoiceDate").min().over("CustomerId").alias("FirstPurchaseDate"))
        .with_columns(
            (pl.col("InvoiceDate").dt.date() - pl.col("FirstPurchaseDate").dt.date())
            .dt.total_days()
            .alias("DaysSinceFirst")
        )
        .group_by(["CustomerId", "FirstPurchaseDate"])
        .agg(
            pl.len().alias("TotalPurchases"),
            pl.col("DaysSinceFirst").max().alias("MaxDaysAfterFirst"),
            pl.col("DaysSinceFirst").min().alias("MinDaysAfterFirst"),
        )
        .sort(["MaxDaysAfterFirst", "CustomerId"], descending=[True, False])
    )


def monthly_volatility(snapshot: Snapshot) -> pl.DataFrame:
    """Population standard deviation of daily revenue relative to its mean, per month."""
    daily_total = pl.col("DailyTotal")
    return (
        invoice_sales(snapshot)
        .with_columns(
            pl.col("InvoiceDate").dt.date().alias("InvoiceDay"),
            pl.col("InvoiceDate").dt.strftime("%Y-%m").alias("RevenueMonth"),
        )
        .group_by(["InvoiceDay", "RevenueMonth"])
        .agg(_revenue().alias("DailyTotal"))
        .group_by("RevenueMonth")
        .agg(
            pl.len().alias("ActiveDays"),
            daily_total.mean().round(2).alias("AvgDailyRevenue"),
            daily_total.std(ddof=0).round(2).alias("StdDevRevenue"),
        )
        .with_columns(
            percentage(pl.col("StdDevRevenue"), pl.col("AvgDailyRevenue")).alias(
                "VolatilityIndexPct"
            )
        )
        .sort(["VolatilityIndexPct", "RevenueMonth"], descending=[True, False], nulls_last=True)
    )


def cumulative_weekly_revenue(snapshot: Snapshot) -> pl.DataFrame:
    """Weekly revenue and its running total within each year."""
    invoice_date = pl.col("InvoiceDate")
    jan1_weekday = pl.date(invoice_date.dt.year(), 1, 1).dt.weekday() % 7  # Sunday = 0
    week_number = (invoice_date.dt.ordinal_day() - 1 + jan1_weekday) // 7 + 1

    return (
        invoice_sales(snapshot)
        .with_columns(
            invoice_date.dt.year().alias("SalesYear"),
            week_number.cast(pl.Int32).alias("WeekNumber"),
        )
        .group_by(["SalesYear", "WeekNumber"])
        .agg(_revenue().alias("WeeklyTotal"))
        .sort(["SalesYear", "WeekNumber"])
        .with_columns(pl.col("WeeklyTotal").cum_sum().over("SalesYear").alias("CumulativeRevenue"))
    )
