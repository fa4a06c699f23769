"""Tests for sales time pattern reports."""

from datetime import date, datetime

import pytest

from conftest import make_invoice_lines, make_invoices
from src.analytics.reports.sales_patterns import (
    cumulative_weekly_revenue,
    customer_inactivity,
    first_purchase_activity,
    hourly_sales,
    monthly_volatility,
    peak_hour_contribution,
    revenue_drops,
    rolling_three_month_revenue,
    time_window_revenue,
    weekday_sales,
    weekend_vs_weekday,
)
from src.pipelines.composer_enrichment.extract import Snapshot


class TestHourAndWeekday:
    """Tests for hour-of-day and weekday reports."""

    def test_hourly_sales(self, chinook_snapshot):
        """Lines per hour; the 08:00 line has unknown revenue."""
        result = hourly_sales(chinook_snapshot)
        assert result["HourOfDay"].to_list() == [8, 10, 14, 19, 23]
        assert result["InvoiceCount"].to_list() == [1, 2, 1, 2, 1]
        assert result["Revenue"][0] is None
        assert result["Revenue"][1] == pytest.approx(2.97)

    def test_weekday_sales(self, chinook_snapshot):
        """Busiest day first, ties by name."""
        result = weekday_sales(chinook_snapshot)
        assert result.select("DayOfWeek", "InvoiceCount").rows() == [
            ("Saturday", 3),
            ("Friday", 2),
            ("Monday", 1),
            ("Wednesday", 1),
        ]

    def test_weekend_vs_weekday(self, chinook_snapshot):
        """Distinct invoices per day type."""
        result = weekend_vs_weekday(chinook_snapshot)
        assert result.select("DayType", "InvoiceCount").rows() == [("Weekday", 3), ("Weekend", 2)]
        assert result["TotalRevenue"].to_list() == pytest.approx([3.96, 1.98])

    def test_time_window_revenue(self, chinook_snapshot):
        """08:00 and 10:00 are morning, 14:00 afternoon, 19:00 evening, 23:00 night."""
        result = time_window_revenue(chinook_snapshot)
        assert result.select("TimeWindow", "InvoiceCount").rows() == [
            ("morning", 3),
            ("afternoon", 1),
            ("evening", 2),
            ("night", 1),
        ]

    def test_peak_hour_contribution(self, chinook_snapshot):
        """Days with known revenue report their best hour."""
        result = peak_hour_contribution(chinook_snapshot)
        assert result.select("InvoiceDay", "HourOfDay", "PeakHourPercentage").rows() == [
            (date(2021, 1, 1), 10, 100.0),
            (date(2021, 1, 2), 19, 100.0),
            (date(2021, 2, 10), 23, 100.0),
            (date(2021, 3, 20), 14, 100.0),
        ]

    def test_peak_hour_share_of_day(self):
        """Best hour's share of a day with two selling hours."""
        invoices = make_invoices(
            [
                (1, 1, datetime(2021, 5, 3, 9, 0), 3.0),
                (2, 1, datetime(2021, 5, 3, 15, 0), 1.0),
            ]
        )
        lines = make_invoice_lines([(1, 1, 1, 1.0, 3), (2, 2, 1, 1.0, 1)])
        result = peak_hour_contribution(Snapshot(invoices=invoices, invoice_lines=lines))
        columns = ["HourOfDay", "HourlyTotal", "DailyTotal", "PeakHourPercentage"]
        assert result.select(columns).rows() == [(9, 3.0, 4.0, 75.0)]


class TestMonthlyRevenue:
    """Tests for month-level revenue reports."""

    def test_rolling_three_month_average(self, chinook_snapshot):
        """Trailing average over up to three months."""
        result = rolling_three_month_revenue(chinook_snapshot)
        assert result["RevenueMonth"].to_list() == ["2021-01", "2021-02", "2021-03"]
        assert result["Revenue"].to_list() == pytest.approx([3.96, 0.99, 0.99])
        assert result["Rolling3MonthAvg"].to_list() == pytest.approx([3.96, 2.475, 1.98])

    def test_revenue_drops(self, chinook_snapshot):
        """February fell 75% from January; March was flat."""
        result = revenue_drops(chinook_snapshot)
        assert result["RevenueMonth"].to_list() == ["2021-02"]
        assert result["RevenueChangePct"][0] == -75.0

    def test_monthly_volatility(self, chinook_snapshot):
        """January's two days (2.97, 0.99) give a 50% volatility index."""
        result = monthly_volatility(chinook_snapshot)
        january = result.row(0, named=True)

        assert january["RevenueMonth"] == "2021-01"
        assert january["ActiveDays"] == 2
        assert january["AvgDailyRevenue"] == 1.98
        assert january["StdDevRevenue"] == 0.99
        assert january["VolatilityIndexPct"] == 50.0
        assert result["RevenueMonth"].to_list() == ["2021-01", "2021-02", "2021-03"]


class TestCustomerActivity:
    """Tests for customer purchase gap reports."""

    def test_customer_inactivity(self, chinook_snapshot):
        """Customer 1 went 73 days between purchases."""
        result = customer_inactivity(chinook_snapshot)
        assert result.select("CustomerId", "DaysInactive").rows() == [(1, 73)]

    def test_short_gaps_ignored(self):
        """A 59-day gap is not inactivity."""
        invoices = make_invoices(
            [
                (1, 9, datetime(2021, 1, 1), 1.0),
                (2, 9, datetime(2021, 3, 1), 1.0),
            ]
        )
        assert customer_inactivity(Snapshot(invoices=invoices)).is_empty()

    def test_first_purchase_activity(self, chinook_snapshot):
        """Longest follow-up first."""
        result = first_purchase_activity(chinook_snapshot)
        assert result.select("CustomerId", "TotalPurchases", "MaxDaysAfterFirst").rows() == [
            (1, 2, 73),
            (2, 1, 0),
            (3, 1, 0),
            (4, 1, 0),
        ]


class TestCumulativeWeeklyRevenue:
    """Tests for cumulative_weekly_revenue report."""

    def test_sunday_starts_new_week(self, chinook_snapshot):
        """2021-01-01 (Fri) and 01-02 (Sat) share week 1."""
        result = cumulative_weekly_revenue(chinook_snapshot)
        assert result.select("SalesYear", "WeekNumber").rows() == [(2021, 1), (2021, 7), (2021, 12)]
        assert result["WeeklyTotal"].to_list() == pytest.approx([3.96, 0.99, 0.99])
        assert result["CumulativeRevenue"].to_list() == pytest.approx([3.96, 4.95, 5.94])

    def test_running_total_resets_each_year(self):
        """Cumulative revenue restarts in January."""
        invoices = make_invoices(
            [
                (1, 1, datetime(2020, 12, 30), 2.0),
                (2, 1, datetime(2021, 1, 5), 3.0),
            ]
        )
        lines = make_invoice_lines([(1, 1, 1, 2.0, 1), (2, 2, 1, 3.0, 1)])
        result = cumulative_weekly_revenue(Snapshot(invoices=invoices, invoice_lines=lines))
        assert result["CumulativeRevenue"].to_list() == [2.0, 3.0]
