"""Prometheus metrics for Updates Bot runs."""

from .metrics import UpdatesMetrics

__all__ = ["UpdatesMetrics"]
