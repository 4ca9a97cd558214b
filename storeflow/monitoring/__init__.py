"""
Observability for workflow executions: structured logs, metrics, tracing.
"""

from storeflow.monitoring.logging import (
    StructuredLoggingListener,
    WorkflowContextFilter,
    WorkflowJsonFormatter,
    WorkflowLogger,
)
from storeflow.monitoring.metrics import WorkflowMetrics
from storeflow.monitoring.prometheus import PrometheusMetrics, start_metrics_server
from storeflow.monitoring.tracing import WorkflowTracer

__all__ = [
    "PrometheusMetrics",
    "StructuredLoggingListener",
    "WorkflowContextFilter",
    "WorkflowJsonFormatter",
    "WorkflowLogger",
    "WorkflowMetrics",
    "WorkflowTracer",
    "start_metrics_server",
]
