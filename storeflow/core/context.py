"""
Per-execution workflow context.

A WorkflowContext is created fresh for every execution and owned by it alone.
It carries:

- the compensation records produced so far, in completion order
- the output of every completed step, keyed by step name
- the typed resource handles (data access ports) the steps may need
- the cancellation flag
- the execution status, moved only through legal transitions
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, TypeVar

from storeflow.core.exceptions import InvalidStatusTransitionError
from storeflow.types import ALLOWED_TRANSITIONS, StepStatus, WorkflowStatus

if TYPE_CHECKING:
    from storeflow.core.step import CompensationRecord

T = TypeVar("T")


class WorkflowContext:
    """
    Mutable state of one workflow execution.

    Example:
        >>> ctx = WorkflowContext("update-quote", resources=[quote_port])
        >>> port = ctx.resolve(RecordPort)
    """

    def __init__(
        self,
        workflow_name: str,
        execution_id: str | None = None,
        resources: Iterable[Any] | None = None,
        workflow_input: Any = None,
        metadata: dict[str, Any] | None = None,
    ):
        self.workflow_name = workflow_name
        self.execution_id = execution_id or str(uuid.uuid4())
        self.workflow_input = workflow_input
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.records: list[CompensationRecord] = []
        self.outputs: dict[str, Any] = {}
        self.step_status: dict[str, StepStatus] = {}
        self._resources: list[Any] = list(resources or [])
        self._status = WorkflowStatus.PENDING
        self._cancel_reason: str | None = None
        self._parent: WorkflowContext | None = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> WorkflowStatus:
        return self._status

    def transition(self, target: WorkflowStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self._status]:
            raise InvalidStatusTransitionError(self._status, target)
        self._status = target

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, reason: str | None = None) -> None:
        """Ask the workflow to stop before its next step and unwind."""
        if self._cancel_reason is None:
            self._cancel_reason = reason or "cancelled"

    @property
    def cancelled(self) -> bool:
        return self.cancel_reason is not None

    @property
    def cancel_reason(self) -> str | None:
        # Cancelling an enclosing workflow also stops its sub-workflows.
        if self._cancel_reason is None and self._parent is not None:
            return self._parent.cancel_reason
        return self._cancel_reason

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def record(self, record: CompensationRecord, output: Any) -> None:
        self.records.append(record)
        self.outputs[record.step_name] = output
        self.step_status[record.step_name] = StepStatus.COMPLETED

    @property
    def completed_steps(self) -> list[str]:
        return [r.step_name for r in self.records]

    def output_of(self, step_name: str, default: Any = None) -> Any:
        """Output of an earlier step, for input mappers and aggregates."""
        return self.outputs.get(step_name, default)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    @property
    def resources(self) -> list[Any]:
        return list(self._resources)

    def resolve(self, kind: type[T]) -> T:
        """
        Return the first resource that is an instance of ``kind``.

        Raises:
            LookupError: If no resource of that type was supplied
        """
        for resource in self._resources:
            if isinstance(resource, kind):
                return resource
        msg = f"No resource of type {kind.__name__} in context for '{self.workflow_name}'"
        raise LookupError(msg)

    def child(self, workflow_name: str, workflow_input: Any = None) -> WorkflowContext:
        """Fresh context for a sub-workflow sharing this context's resources."""
        child = WorkflowContext(
            workflow_name,
            execution_id=f"{self.execution_id}/{workflow_name}-{uuid.uuid4().hex[:8]}",
            resources=self._resources,
            workflow_input=workflow_input,
            metadata={**self.metadata, "parent_execution_id": self.execution_id},
        )
        child._parent = self
        return child

    def __repr__(self) -> str:
        return (
            f"WorkflowContext(workflow={self.workflow_name!r}, "
            f"execution_id={self.execution_id!r}, status={self._status.value}, "
            f"records={len(self.records)})"
        )
