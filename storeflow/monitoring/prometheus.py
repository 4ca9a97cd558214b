"""
Prometheus metrics for workflow executions.

Quick Start:
    >>> from storeflow.monitoring.prometheus import PrometheusMetrics, start_metrics_server
    >>> from storeflow.core.listeners import MetricsWorkflowListener
    >>>
    >>> start_metrics_server(port=8000)
    >>> listener = MetricsWorkflowListener(prometheus=PrometheusMetrics())

Exposed metrics (prefix configurable, default ``storeflow``):
    - <prefix>_execution_total{workflow_name, status}
    - <prefix>_execution_duration_seconds{workflow_name}
    - <prefix>_compensation_total{workflow_name, step_name, result}
    - <prefix>_active_count{workflow_name}
"""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client import start_http_server

from storeflow.core.logger import get_logger
from storeflow.types import WorkflowStatus

logger = get_logger(__name__)


class PrometheusMetrics:
    """
    Prometheus collector set for workflow executions.

    Args:
        prefix: Metric name prefix
        registry: Registry to register with (use a fresh CollectorRegistry in tests)
    """

    def __init__(self, prefix: str = "storeflow", registry: CollectorRegistry | None = None):
        self._prefix = prefix
        registry = registry or REGISTRY

        self._execution_total = Counter(
            f"{prefix}_execution_total",
            "Total workflow executions by terminal status",
            ["workflow_name", "status"],
            registry=registry,
        )
        self._execution_duration = Histogram(
            f"{prefix}_execution_duration_seconds",
            "Workflow execution duration in seconds",
            ["workflow_name"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry,
        )
        self._compensation_total = Counter(
            f"{prefix}_compensation_total",
            "Compensations attempted during unwind",
            ["workflow_name", "step_name", "result"],
            registry=registry,
        )
        self._active_count = Gauge(
            f"{prefix}_active_count",
            "Workflow executions currently running",
            ["workflow_name"],
            registry=registry,
        )

    def workflow_started(self, workflow_name: str) -> None:
        self._active_count.labels(workflow_name=workflow_name).inc()

    def workflow_finished(self, workflow_name: str) -> None:
        self._active_count.labels(workflow_name=workflow_name).dec()

    def record_execution(
        self, workflow_name: str, status: WorkflowStatus, duration: float
    ) -> None:
        self._execution_total.labels(workflow_name=workflow_name, status=status.value).inc()
        self._execution_duration.labels(workflow_name=workflow_name).observe(duration)

    def record_compensation(self, workflow_name: str, step_name: str, success: bool) -> None:
        self._compensation_total.labels(
            workflow_name=workflow_name,
            step_name=step_name,
            result="success" if success else "failure",
        ).inc()


def start_metrics_server(port: int = 8000, addr: str = "0.0.0.0") -> None:  # pragma: no cover
    """Start a Prometheus HTTP endpoint at http://<addr>:<port>/metrics."""
    start_http_server(port, addr)
    logger.info(f"Prometheus metrics server started on port {port}")
