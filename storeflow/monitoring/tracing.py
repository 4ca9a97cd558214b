"""
OpenTelemetry tracing for workflow executions.

One span per execution, with child spans for every forward step and every
compensation. Without an SDK/exporter configured the OpenTelemetry API hands
out non-recording spans, so tracing costs next to nothing when unused.

Installation of an exporter (optional):
    pip install opentelemetry-sdk opentelemetry-exporter-otlp-proto-grpc
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from storeflow.types import WorkflowStatus


class WorkflowTracer:
    """
    Creates and finishes spans from lifecycle events.

    Args:
        service_name: Recorded as ``workflow.service`` on every execution span
        tracer_provider: Provider to use (default: the global one)
    """

    def __init__(self, service_name: str = "storeflow", tracer_provider: Any = None):
        self.service_name = service_name
        self.tracer = trace.get_tracer("storeflow", tracer_provider=tracer_provider)
        self._workflow_spans: dict[str, Span] = {}
        self._step_spans: dict[tuple[str, str, bool], Span] = {}

    def start_workflow(
        self,
        execution_id: str,
        workflow_name: str,
        workflow_input: Any = None,
        parent_context: dict[str, str] | None = None,
    ) -> Span:
        context = (
            TraceContextTextMapPropagator().extract(parent_context) if parent_context else None
        )
        span = self.tracer.start_span(
            f"workflow.execute.{workflow_name}", context=context, kind=trace.SpanKind.INTERNAL
        )
        span.set_attributes(
            {
                "workflow.execution_id": execution_id,
                "workflow.name": workflow_name,
                "workflow.service": self.service_name,
                "workflow.input_type": type(workflow_input).__name__,
            }
        )
        self._workflow_spans[execution_id] = span
        return span

    def start_step(self, execution_id: str, step_name: str, compensation: bool = False) -> Span:
        kind = "compensate" if compensation else "invoke"
        parent = self._workflow_spans.get(execution_id)
        context = trace.set_span_in_context(parent) if parent is not None else None
        span = self.tracer.start_span(f"workflow.step.{kind}.{step_name}", context=context)
        span.set_attributes(
            {
                "workflow.execution_id": execution_id,
                "workflow.step.name": step_name,
                "workflow.step.type": kind,
            }
        )
        self._step_spans[(execution_id, step_name, compensation)] = span
        return span

    def end_step(
        self,
        execution_id: str,
        step_name: str,
        error: BaseException | None = None,
        compensation: bool = False,
    ) -> None:
        span = self._step_spans.pop((execution_id, step_name, compensation), None)
        if span is None:
            return
        _finish(span, error)

    def end_workflow(
        self, execution_id: str, status: WorkflowStatus, error: BaseException | None = None
    ) -> None:
        span = self._workflow_spans.pop(execution_id, None)
        if span is None:
            return
        span.set_attribute("workflow.status", status.value)
        _finish(span, error if status != WorkflowStatus.SUCCEEDED else None, status)

    def get_trace_context(self, execution_id: str) -> dict[str, str]:
        """W3C trace headers for the execution span, for downstream propagation."""
        carrier: dict[str, str] = {}
        span = self._workflow_spans.get(execution_id)
        if span is not None:
            TraceContextTextMapPropagator().inject(
                carrier, context=trace.set_span_in_context(span)
            )
        return carrier

    @property
    def open_spans(self) -> int:
        return len(self._workflow_spans) + len(self._step_spans)


def _finish(
    span: Span, error: BaseException | None, status: WorkflowStatus | None = None
) -> None:
    if error is not None:
        span.set_status(Status(StatusCode.ERROR, str(error)))
        span.record_exception(error)
    elif status is not None and status != WorkflowStatus.SUCCEEDED:
        span.set_status(Status(StatusCode.ERROR, f"Workflow ended {status.value}"))
    else:
        span.set_status(Status(StatusCode.OK))
    span.end()
