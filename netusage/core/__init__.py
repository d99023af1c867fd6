"""
Core modules for netusage.

This package contains counter sampling, the sampling loop, query planning,
aggregation, retention and export.
"""
