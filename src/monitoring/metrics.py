"""
Prometheus Metrics for Binlog / Avro Reconciliation

Runs are short-lived batch jobs, so metrics live in a private registry and
are written to a file in the Prometheus text format (for the node exporter
textfile collector) rather than served over HTTP.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, write_to_textfile

from src.reconciliation.findings import FindingKind, ReconciliationReport

logger = logging.getLogger(__name__)


class ReconciliationMetrics:
    """Prometheus metrics for normalize and reconcile runs."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize reconciliation metrics.

        Args:
            registry: Registry to register into (a fresh one if not provided)
        """
        self.registry = registry or CollectorRegistry()

        # Run counter
        self.runs_total = Counter(
            'binlog_reconciliation_runs_total',
            'Total number of runs',
            ['command', 'status'],
            registry=self.registry
        )

        # Records read, by input
        self.records_processed_total = Counter(
            'binlog_reconciliation_records_processed_total',
            'Total records read during runs',
            ['source'],
            registry=self.registry
        )

        # Findings, by kind
        self.findings_total = Counter(
            'binlog_reconciliation_findings_total',
            'Total findings by kind',
            ['kind'],
            registry=self.registry
        )

        # Outcome counters of the latest run
        self.last_run_records = Gauge(
            'binlog_reconciliation_last_run_records',
            'Record counts of the latest reconciliation run',
            ['category'],
            registry=self.registry
        )

        self.last_run_consistent = Gauge(
            'binlog_reconciliation_last_run_consistent',
            'Whether the latest run was consistent (1) or found discrepancies (0)',
            registry=self.registry
        )

        self.indexed_events = Gauge(
            'binlog_reconciliation_indexed_events',
            'Number of binlog events held in the index',
            registry=self.registry
        )

        self.normalize_warnings_total = Counter(
            'binlog_reconciliation_normalize_warnings_total',
            'Total values kept verbatim because they failed to parse',
            registry=self.registry
        )

        self.run_duration_seconds = Histogram(
            'binlog_reconciliation_run_duration_seconds',
            'Duration of runs in seconds',
            ['command'],
            buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600, 1800],
            registry=self.registry
        )

        logger.debug("ReconciliationMetrics initialized")

    def record_reconciliation_run(
        self,
        report: ReconciliationReport,
        duration_seconds: float
    ) -> None:
        """
        Record a finished reconciliation run.

        Args:
            report: Report returned by the engine
            duration_seconds: Wall-clock duration of the run
        """
        counts = report.counts

        self.runs_total.labels(command='reconcile', status='success').inc()
        self.run_duration_seconds.labels(command='reconcile').observe(duration_seconds)

        self.records_processed_total.labels(source='avro').inc(counts.processed)
        self.records_processed_total.labels(source='binlog').inc(report.indexed_events)

        for kind in FindingKind:
            self.findings_total.labels(kind=kind.value).inc(len(report.findings_of(kind)))

        for category, value in counts.to_dict().items():
            self.last_run_records.labels(category=category).set(value)

        self.last_run_consistent.set(1 if report.is_consistent else 0)
        self.indexed_events.set(report.indexed_events)

        logger.debug(
            f"Recorded reconciliation metrics: duration={duration_seconds:.3f}s, "
            f"counts={counts.to_dict()}"
        )

    def record_normalize_run(
        self,
        events: int,
        warnings: int,
        duration_seconds: float
    ) -> None:
        """Record a finished normalize run."""
        self.runs_total.labels(command='normalize', status='success').inc()
        self.run_duration_seconds.labels(command='normalize').observe(duration_seconds)
        self.records_processed_total.labels(source='binlog_text').inc(events)
        self.normalize_warnings_total.inc(warnings)

    def record_failure(self, command: str) -> None:
        self.runs_total.labels(command=command, status='failure').inc()

    def write(self, path: str) -> None:
        """
        Write all metrics to a file in the Prometheus text format.

        Raises:
            OSError: If the file cannot be written
        """
        write_to_textfile(path, self.registry)
        logger.info(f"Wrote metrics to {path}")
