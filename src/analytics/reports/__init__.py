"""Chinook analytic reports.

Every report is a pure function ``Snapshot -> pl.DataFrame``; REPORTS maps
the CLI name of each report to its function.
"""

from collections.abc import Callable

import polars as pl

from src.pipelines.composer_enrichment.extract import Snapshot

from . import artist_revenue, composer_audit, null_diagnostics, sales_patterns, support_reps

REPORTS: dict[str, Callable[[Snapshot], pl.DataFrame]] = {
    # Composer metadata
    "composer_fix_candidates": composer_audit.composer_fix_candidates,
    "classical_missing_composer_by_artist": composer_audit.classical_missing_composer_by_artist,
    "composer_completeness_snapshot": composer_audit.composer_completeness_snapshot,
    "composer_revenue_impact": composer_audit.composer_revenue_impact,
    "album_composer_consistency": composer_audit.album_composer_consistency,
    "missing_composer_by_length": composer_audit.missing_composer_by_length,
    # Null diagnostics
    "customer_missing_values": null_diagnostics.customer_missing_values,
    "country_missing_risk": null_diagnostics.country_missing_risk,
    "state_fix_candidates": null_diagnostics.state_fix_candidates,
    "lost_revenue_estimate": null_diagnostics.lost_revenue_estimate,
    "repeated_nulls_by_customer": null_diagnostics.repeated_nulls_by_customer,
    "null_or_zero_invoices": null_diagnostics.null_or_zero_invoices,
    "invoice_line_null_counts": null_diagnostics.invoice_line_null_counts,
    "null_density_by_table": null_diagnostics.null_density_by_table,
    "invoice_line_null_clusters": null_diagnostics.invoice_line_null_clusters,
    "null_trend_by_day": null_diagnostics.null_trend_by_day,
    "fully_null_invoices": null_diagnostics.fully_null_invoices,
    # Support reps
    "rep_customer_segments": support_reps.rep_customer_segments,
    "monthly_support_load": support_reps.monthly_support_load,
    "rep_customer_ltv": support_reps.rep_customer_ltv,
    "rep_top_artists": support_reps.rep_top_artists,
    "rep_repeat_customer_rate": support_reps.rep_repeat_customer_rate,
    "rep_top_genre": support_reps.rep_top_genre,
    "support_null_audit": support_reps.support_null_audit,
    # Artist revenue
    "monthly_top_artists": artist_revenue.monthly_top_artists,
    "genre_revenue_share": artist_revenue.genre_revenue_share,
    "artist_revenue_efficiency": artist_revenue.artist_revenue_efficiency,
    "artist_catalog_concentration": artist_revenue.artist_catalog_concentration,
    "artist_half_year_trend": artist_revenue.artist_half_year_trend,
    "incomplete_invoice_lines": artist_revenue.incomplete_invoice_lines,
    "revenue_by_metadata_status": artist_revenue.revenue_by_metadata_status,
    "artist_attribution_status": artist_revenue.artist_attribution_status,
    # Sales patterns
    "hourly_sales": sales_patterns.hourly_sales,
    "weekday_sales": sales_patterns.weekday_sales,
    "rolling_three_month_revenue": sales_patterns.rolling_three_month_revenue,
    "revenue_drops": sales_patterns.revenue_drops,
    "peak_hour_contribution": sales_patterns.peak_hour_contribution,
    "weekend_vs_weekday": sales_patterns.weekend_vs_weekday,
    "customer_inactivity": sales_patterns.customer_inactivity,
    "time_window_revenue": sales_patterns.time_window_revenue,
    "first_purchase_activity": sales_patterns.first_purchase_activity,
    "monthly_volatility": sales_patterns.monthly_volatility,
    "cumulative_weekly_revenue": sales_patterns.cumulative_weekly_revenue,
}


def run_report(name: str, snapshot: Snapshot) -> pl.DataFrame:
    """Run a registered report against a snapshot."""
    report = REPORTS.get(name)
    if report is None:
        raise ValueError(f"Unknown report: {name}. Available: {sorted(REPORTS)}")
    return report(snapshot)
