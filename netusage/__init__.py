"""
netusage - network usage monitor.

Samples host network counters, stores per-interval deltas in SQLite,
and answers range, aggregate and daily rollup queries.
"""

__version__ = "0.1.0"
