"""
Prometheus metrics collection.

Stateless services with in-memory metrics. Each app owns its own
CollectorRegistry so several apps (tests included) can coexist in one
process.
"""

import time
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

from .. import __version__

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for Logjam.

    Also serves as the observability channel for sink failures, which
    are never reported back to HTTP callers.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        # Service info
        self.service_info = Info(
            "logjam_service",
            "Logjam service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": __version__,
            "service": "logjam",
        })

        # Request metrics
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=self.registry,
        )

        # Ingestion metrics
        self.records_accepted_total = Counter(
            "records_accepted_total",
            "Total log records accepted for dispatch",
            ["endpoint"],
            registry=self.registry,
        )

        self.requests_rejected_total = Counter(
            "requests_rejected_total",
            "Total requests rejected before dispatch",
            ["reason"],
            registry=self.registry,
        )

        self.batch_size_records = Histogram(
            "ingestion_batch_size_records",
            "Number of records per multi-record request",
            buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
            registry=self.registry,
        )

        # Dispatcher metrics
        self.dispatch_queue_depth = Gauge(
            "dispatch_queue_depth",
            "Records waiting in the dispatch queue",
            registry=self.registry,
        )

        self.records_dropped_total = Counter(
            "records_dropped_total",
            "Total records dropped because the dispatch queue was full",
            registry=self.registry,
        )

        self.records_delivered_total = Counter(
            "records_delivered_total",
            "Total records delivered to a sink",
            ["sink"],
            registry=self.registry,
        )

        self.sink_failures_total = Counter(
            "sink_failures_total",
            "Total failed sink deliveries",
            ["sink", "error_type"],
            registry=self.registry,
        )

        self.sink_delivery_duration = Histogram(
            "sink_delivery_duration_seconds",
            "Sink delivery duration in seconds",
            ["sink"],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
            registry=self.registry,
        )

        # System metrics
        self.uptime_seconds = Gauge(
            "uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        # Track start time for uptime calculation
        self._start_time = time.time()

    def record_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_seconds: float
    ) -> None:
        """Record HTTP request metrics."""
        self.requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self.request_duration.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration_seconds)

    def record_accepted(self, endpoint: str, records_count: int, batch: bool = False) -> None:
        """Record records accepted for dispatch."""
        self.records_accepted_total.labels(endpoint=endpoint).inc(records_count)
        if batch:
            self.batch_size_records.observe(records_count)

    def record_rejection(self, reason: str) -> None:
        """Record a request rejected by auth, decoding or backpressure."""
        self.requests_rejected_total.labels(reason=reason).inc()

    def record_dropped(self, records_count: int = 1) -> None:
        self.records_dropped_total.inc(records_count)

    def update_queue_depth(self, depth: int) -> None:
        self.dispatch_queue_depth.set(depth)

    def record_delivery(self, sink: str, duration_seconds: float) -> None:
        """Record a successful sink delivery."""
        self.records_delivered_total.labels(sink=sink).inc()
        self.sink_delivery_duration.labels(sink=sink).observe(duration_seconds)

    def record_sink_failure(self, sink: str, error_type: str) -> None:
        """Record a failed sink delivery."""
        self.sink_failures_total.labels(sink=sink, error_type=error_type).inc()

    def update_system_metrics(self) -> None:
        """Update system-level metrics."""
        self.uptime_seconds.set(time.time() - self._start_time)
