"""
Monitoring Module for Binlog / Avro Reconciliation

Prometheus metrics for normalize and reconcile runs, written in the text
exposition format for the node exporter textfile collector.

Usage:
    from src.monitoring import ReconciliationMetrics

    metrics = ReconciliationMetrics()
    metrics.record_reconciliation_run(report, duration_seconds=12.5)
    metrics.write("/var/lib/node_exporter/reconcile.prom")
"""

from src.monitoring.metrics import ReconciliationMetrics

__all__ = [
    "ReconciliationMetrics",
]

__version__ = "1.0.0"
