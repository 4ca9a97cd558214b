"""
Structured logging for workflow executions.

WorkflowJsonFormatter renders records as JSON with the execution id,
workflow name and step name of the execution that emitted them. The
execution fields travel in a ContextVar, so they follow each asyncio task
without being passed around.

Example:
    >>> handler = logging.StreamHandler()
    >>> handler.setFormatter(WorkflowJsonFormatter())
    >>> logging.getLogger("storeflow").addHandler(handler)
    >>>
    >>> workflow = Workflow("update-quote", steps, listeners=[StructuredLoggingListener()])
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from storeflow.core.listeners import WorkflowListener
from storeflow.types import WorkflowStatus

workflow_log_context: ContextVar[dict[str, Any]] = ContextVar("workflow_log_context", default={})


class WorkflowJsonFormatter(logging.Formatter):
    """JSON formatter adding the current execution's identifiers."""

    _EXTRA_FIELDS = (
        "execution_id",
        "workflow_name",
        "step_name",
        "status",
        "duration_ms",
        "error_type",
        "unrecoverable_steps",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        context = workflow_log_context.get()
        if context:
            entry.update(
                {
                    "execution_id": context.get("execution_id"),
                    "workflow_name": context.get("workflow_name"),
                    "step_name": context.get("step_name"),
                }
            )
        for name in self._EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class WorkflowContextFilter(logging.Filter):
    """Copies the current execution's identifiers onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = workflow_log_context.get()
        record.execution_id = context.get("execution_id", "unknown")
        record.workflow_name = context.get("workflow_name", "unknown")
        record.step_name = context.get("step_name") or ""
        return True


def set_log_context(
    execution_id: str, workflow_name: str, step_name: str | None = None
) -> None:
    workflow_log_context.set(
        {"execution_id": execution_id, "workflow_name": workflow_name, "step_name": step_name}
    )


def clear_log_context() -> None:
    workflow_log_context.set({})


class WorkflowLogger:
    """Logger with execution-aware helpers."""

    def __init__(self, name: str = "storeflow.execution"):
        self.logger = logging.getLogger(name)
        if not any(isinstance(f, WorkflowContextFilter) for f in self.logger.filters):
            self.logger.addFilter(WorkflowContextFilter())

    def workflow_started(self, execution_id: str, workflow_name: str) -> None:
        set_log_context(execution_id, workflow_name)
        self.logger.info(
            f"Workflow started: {workflow_name}",
            extra={"status": WorkflowStatus.RUNNING.value},
        )

    def workflow_finished(
        self,
        workflow_name: str,
        status: WorkflowStatus,
        duration_ms: float,
        unrecoverable_steps: list[str] | None = None,
    ) -> None:
        if status == WorkflowStatus.SUCCEEDED:
            level = logging.INFO
        elif status == WorkflowStatus.FAILED_CLEAN:
            level = logging.WARNING
        else:
            level = logging.CRITICAL
        self.logger.log(
            level,
            f"Workflow finished: {workflow_name} - Status: {status.value}",
            extra={
                "status": status.value,
                "duration_ms": duration_ms,
                "unrecoverable_steps": unrecoverable_steps or [],
            },
        )

    def step_started(self, execution_id: str, workflow_name: str, step_name: str) -> None:
        set_log_context(execution_id, workflow_name, step_name)
        self.logger.info(f"Step started: {step_name}")

    def step_completed(self, step_name: str) -> None:
        self.logger.info(f"Step completed: {step_name}")

    def step_failed(self, step_name: str, error: BaseException) -> None:
        self.logger.error(
            f"Step failed: {step_name} - {error!s}",
            extra={"error_type": type(error).__name__},
            exc_info=(type(error), error, error.__traceback__),
        )

    def compensation_started(self, step_name: str) -> None:
        self.logger.warning(f"Compensation started: {step_name}")

    def compensation_completed(self, step_name: str) -> None:
        self.logger.warning(f"Compensation completed: {step_name}")

    def compensation_failed(self, step_name: str, error: BaseException) -> None:
        self.logger.critical(
            f"Compensation FAILED: {step_name} - {error!s}",
            extra={"error_type": type(error).__name__},
        )


class StructuredLoggingListener(WorkflowListener):
    """Drives a WorkflowLogger from lifecycle events."""

    def __init__(self, workflow_logger: WorkflowLogger | None = None):
        self.wlog = workflow_logger or WorkflowLogger()

    def on_workflow_start(self, workflow_name, context):
        self.wlog.workflow_started(context.execution_id, workflow_name)

    def on_step_enter(self, workflow_name, step_name, context):
        self.wlog.step_started(context.execution_id, workflow_name, step_name)

    def on_step_success(self, workflow_name, step_name, context, output):
        self.wlog.step_completed(step_name)

    def on_step_failure(self, workflow_name, step_name, context, error):
        self.wlog.step_failed(step_name, error)

    def on_compensation_start(self, workflow_name, step_name, context):
        set_log_context(context.execution_id, workflow_name, step_name)
        self.wlog.compensation_started(step_name)

    def on_compensation_complete(self, workflow_name, step_name, context):
        self.wlog.compensation_completed(step_name)

    def on_compensation_failure(self, workflow_name, step_name, context, error):
        self.wlog.compensation_failed(step_name, error)

    def on_workflow_complete(self, workflow_name, result):
        self.wlog.workflow_finished(workflow_name, result.status, result.execution_time * 1000)
        clear_log_context()

    def on_workflow_failed(self, workflow_name, result):
        self.wlog.workflow_finished(
            workflow_name,
            result.status,
            result.execution_time * 1000,
            result.unrecoverable_steps,
        )
        clear_log_context()
