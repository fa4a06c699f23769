"""Analytics workloads for deriving insights from data.

Separate from ETL pipelines - focuses on:
- Read-only reports over the Chinook snapshot (composer audits, null diagnostics,
  support rep workload, artist revenue, sales time patterns)

Design principle: Analytics depends on pipelines (upstream data),
but pipelines should never depend on analytics (downstream insights).
"""
