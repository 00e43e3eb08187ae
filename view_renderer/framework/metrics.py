"""Prometheus metrics collection for the rendering pipeline."""

from typing import Optional

from prometheus_client import (
    Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)


class PipelineMetrics:
    """Centralized metrics collection for batch processing."""

    def __init__(self, service_name: str = "view_renderer", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name.replace("-", "_")
        self.registry = registry or CollectorRegistry()

        self.batches_total = Counter(
            f"{self.service_name}_batches_total",
            "Total number of change batches processed",
            ["kind", "status"],
            registry=self.registry
        )

        self.batch_duration = Histogram(
            f"{self.service_name}_batch_duration_seconds",
            "Batch processing duration in seconds",
            ["kind"],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry
        )

        self.branch_failures = Counter(
            f"{self.service_name}_branch_failures_total",
            "Total number of failed fan-out branches",
            ["kind", "error_code"],
            registry=self.registry
        )

        self.artifacts_stored = Counter(
            f"{self.service_name}_artifacts_stored_total",
            "Total number of rendered artifacts written to blob storage",
            registry=self.registry
        )

        self.artifacts_deleted = Counter(
            f"{self.service_name}_artifacts_deleted_total",
            "Total number of artifacts deleted from blob storage",
            registry=self.registry
        )

    def record_batch(self, kind: str, succeeded: bool, duration: float) -> None:
        """Record the outcome of a change batch."""
        status = "success" if succeeded else "failure"
        self.batches_total.labels(kind=kind, status=status).inc()
        self.batch_duration.labels(kind=kind).observe(duration)

    def record_branch_failure(self, kind: str, error_code: str) -> None:
        self.branch_failures.labels(kind=kind, error_code=error_code).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics."""
        return CONTENT_TYPE_LATEST
