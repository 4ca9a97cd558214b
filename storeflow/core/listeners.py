"""
Workflow lifecycle listeners.

Listeners observe an execution without taking part in it: an error raised by
a listener is logged and otherwise ignored.

Example:
    >>> from storeflow import Workflow
    >>> from storeflow.core.listeners import LoggingWorkflowListener, MetricsWorkflowListener
    >>>
    >>> workflow = Workflow(
    ...     "update-quote",
    ...     [update_quotes],
    ...     listeners=[LoggingWorkflowListener(), MetricsWorkflowListener()],
    ... )
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

from storeflow.core.logger import get_logger, resolve_level
from storeflow.types import WorkflowStatus

if TYPE_CHECKING:
    from storeflow.core.context import WorkflowContext
    from storeflow.monitoring.metrics import WorkflowMetrics
    from storeflow.monitoring.prometheus import PrometheusMetrics
    from storeflow.monitoring.tracing import WorkflowTracer
    from storeflow.types import WorkflowResult

logger = get_logger(__name__)


class WorkflowListener:
    """
    Base listener. Override the hooks you need; sync and async both work.
    """

    def on_workflow_start(self, workflow_name: str, context: WorkflowContext) -> Any:
        pass

    def on_step_enter(self, workflow_name: str, step_name: str, context: WorkflowContext) -> Any:
        pass

    def on_step_success(
        self, workflow_name: str, step_name: str, context: WorkflowContext, output: Any
    ) -> Any:
        pass

    def on_step_failure(
        self, workflow_name: str, step_name: str, context: WorkflowContext, error: Exception
    ) -> Any:
        pass

    def on_compensation_start(
        self, workflow_name: str, step_name: str, context: WorkflowContext
    ) -> Any:
        pass

    def on_compensation_complete(
        self, workflow_name: str, step_name: str, context: WorkflowContext
    ) -> Any:
        pass

    def on_compensation_failure(
        self, workflow_name: str, step_name: str, context: WorkflowContext, error: Exception
    ) -> Any:
        pass

    def on_workflow_complete(self, workflow_name: str, result: WorkflowResult) -> Any:
        pass

    def on_workflow_failed(self, workflow_name: str, result: WorkflowResult) -> Any:
        pass

    def on_workflow_end(self, workflow_name: str, context: WorkflowContext) -> Any:
        """Always called last, however the execution ended."""


async def notify_listeners(listeners: list[WorkflowListener], event_name: str, *args) -> None:
    """Notify all listeners of an event."""
    for listener in listeners:
        handler = getattr(listener, event_name, None)
        if handler is None:
            continue
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Listener {type(listener).__name__}.{event_name} error: {e}")


class LoggingWorkflowListener(WorkflowListener):
    """Logs every lifecycle event."""

    def __init__(self, logger: Any = None, level: str | int = logging.INFO):
        self.log = logger or get_logger("storeflow.workflow")
        self.level = resolve_level(level) or logging.INFO

    def _emit(self, message: str) -> None:
        if hasattr(self.log, "log"):
            self.log.log(self.level, message)
        else:
            self.log.info(message)

    def on_workflow_start(self, workflow_name, context):
        self._emit(f"Workflow '{workflow_name}' started [{context.execution_id}]")

    def on_step_enter(self, workflow_name, step_name, context):
        self.log.debug(f"Step '{step_name}' of '{workflow_name}' starting")

    def on_step_success(self, workflow_name, step_name, context, output):
        self._emit(f"Step '{step_name}' of '{workflow_name}' completed")

    def on_step_failure(self, workflow_name, step_name, context, error):
        self.log.error(f"Step '{step_name}' of '{workflow_name}' failed: {error}")

    def on_compensation_start(self, workflow_name, step_name, context):
        self._emit(f"Compensating step '{step_name}' of '{workflow_name}'")

    def on_compensation_complete(self, workflow_name, step_name, context):
        self._emit(f"Step '{step_name}' of '{workflow_name}' compensated")

    def on_compensation_failure(self, workflow_name, step_name, context, error):
        self.log.error(f"Compensation of '{step_name}' in '{workflow_name}' failed: {error}")

    def on_workflow_complete(self, workflow_name, result):
        self._emit(
            f"Workflow '{workflow_name}' succeeded in {result.execution_time:.3f}s "
            f"[{result.execution_id}]"
        )

    def on_workflow_failed(self, workflow_name, result):
        if result.is_dirty:
            self.log.error(
                f"Workflow '{workflow_name}' failed DIRTY [{result.execution_id}]: "
                f"{result.error}; manual reconciliation needed for: "
                f"{', '.join(result.unrecoverable_steps)}"
            )
        else:
            self.log.warning(
                f"Workflow '{workflow_name}' failed and was fully unwound "
                f"[{result.execution_id}]: {result.error}"
            )


class MetricsWorkflowListener(WorkflowListener):
    """
    Feeds execution outcomes into WorkflowMetrics and, optionally,
    PrometheusMetrics.
    """

    def __init__(
        self,
        metrics: WorkflowMetrics | None = None,
        prometheus: PrometheusMetrics | None = None,
    ):
        from storeflow.monitoring.metrics import WorkflowMetrics

        self.metrics = metrics or WorkflowMetrics()
        self.prometheus = prometheus

    def on_workflow_start(self, workflow_name, context):
        if self.prometheus:
            self.prometheus.workflow_started(workflow_name)

    def on_compensation_failure(self, workflow_name, step_name, context, error):
        self.metrics.record_compensation_failure(workflow_name, step_name)
        if self.prometheus:
            self.prometheus.record_compensation(workflow_name, step_name, success=False)

    def on_compensation_complete(self, workflow_name, step_name, context):
        if self.prometheus:
            self.prometheus.record_compensation(workflow_name, step_name, success=True)

    def on_workflow_complete(self, workflow_name, result):
        self._record(workflow_name, result)

    def on_workflow_failed(self, workflow_name, result):
        self._record(workflow_name, result)

    def on_workflow_end(self, workflow_name, context):
        if self.prometheus:
            self.prometheus.workflow_finished(workflow_name)

    def _record(self, workflow_name: str, result: WorkflowResult) -> None:
        self.metrics.record_execution(workflow_name, result.status, result.execution_time)
        if self.prometheus:
            self.prometheus.record_execution(
                workflow_name, result.status, result.execution_time
            )


class TracingWorkflowListener(WorkflowListener):
    """Opens an OpenTelemetry span per execution, step and compensation."""

    def __init__(self, tracer: WorkflowTracer | None = None):
        from storeflow.monitoring.tracing import WorkflowTracer

        self.tracer = tracer or WorkflowTracer()

    def on_workflow_start(self, workflow_name, context):
        self.tracer.start_workflow(context.execution_id, workflow_name, context.workflow_input)

    def on_step_enter(self, workflow_name, step_name, context):
        self.tracer.start_step(context.execution_id, step_name)

    def on_step_success(self, workflow_name, step_name, context, output):
        self.tracer.end_step(context.execution_id, step_name)

    def on_step_failure(self, workflow_name, step_name, context, error):
        self.tracer.end_step(context.execution_id, step_name, error)

    def on_compensation_start(self, workflow_name, step_name, context):
        self.tracer.start_step(context.execution_id, step_name, compensation=True)

    def on_compensation_complete(self, workflow_name, step_name, context):
        self.tracer.end_step(context.execution_id, step_name, compensation=True)

    def on_compensation_failure(self, workflow_name, step_name, context, error):
        self.tracer.end_step(context.execution_id, step_name, error, compensation=True)

    def on_workflow_complete(self, workflow_name, result):
        self.tracer.end_workflow(result.execution_id, WorkflowStatus.SUCCEEDED)

    def on_workflow_failed(self, workflow_name, result):
        self.tracer.end_workflow(result.execution_id, result.status, result.error)


def default_listeners(
    logging_enabled: bool = True, metrics_enabled: bool = False, tracing_enabled: bool = False
) -> list[WorkflowListener]:
    """Build the standard listener set."""
    listeners: list[WorkflowListener] = []
    if logging_enabled:
        listeners.append(LoggingWorkflowListener())
    if metrics_enabled:
        listeners.append(MetricsWorkflowListener())
    if tracing_enabled:
        listeners.append(TracingWorkflowListener())
    return listeners
