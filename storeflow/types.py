"""
Status enums and result types shared by the workflow core.

A single execution moves through:

    PENDING -> RUNNING -> SUCCEEDED
                       -> UNWINDING -> FAILED_CLEAN
                                    -> FAILED_DIRTY

SUCCEEDED, FAILED_CLEAN and FAILED_DIRTY are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storeflow.core.exceptions import CompensationError


class WorkflowStatus(Enum):
    """Overall status of a workflow execution"""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    UNWINDING = "unwinding"

    FAILED_CLEAN = "failed_clean"
    """Every completed step was compensated. Safe to retry."""

    FAILED_DIRTY = "failed_dirty"
    """One or more compensations failed. Needs manual reconciliation."""

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {WorkflowStatus.SUCCEEDED, WorkflowStatus.FAILED_CLEAN, WorkflowStatus.FAILED_DIRTY}
)

ALLOWED_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({WorkflowStatus.RUNNING}),
    WorkflowStatus.RUNNING: frozenset({WorkflowStatus.SUCCEEDED, WorkflowStatus.UNWINDING}),
    WorkflowStatus.UNWINDING: frozenset(
        {WorkflowStatus.FAILED_CLEAN, WorkflowStatus.FAILED_DIRTY}
    ),
    WorkflowStatus.SUCCEEDED: frozenset(),
    WorkflowStatus.FAILED_CLEAN: frozenset(),
    WorkflowStatus.FAILED_DIRTY: frozenset(),
}


class StepStatus(Enum):
    """Status of an individual step within one execution"""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    COMPENSATING = "compensating"
    COMPENSATED = "compensated"
    COMPENSATION_FAILED = "compensation_failed"


class UnwindOutcome(Enum):
    """Outcome of an unwind pass"""

    CLEAN = "clean"
    DIRTY = "dirty"


@dataclass
class UnwindReport:
    """
    Result of one unwind pass.

    Attributes:
        compensated: Step names whose compensator ran successfully, in invocation order
        skipped: Step names whose compensation data said there was nothing to undo
        failures: Step name -> CompensationError for every compensator that failed
    """

    compensated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: dict[str, CompensationError] = field(default_factory=dict)

    @property
    def outcome(self) -> UnwindOutcome:
        return UnwindOutcome.DIRTY if self.failures else UnwindOutcome.CLEAN

    @property
    def is_clean(self) -> bool:
        return not self.failures

    @property
    def unrecoverable_steps(self) -> list[str]:
        """
        Names of the steps whose effects could not be undone.

        Failures inside a nested workflow are reported as
        ``"<outer step>/<inner step>"`` so operators can find the exact record.
        """
        names: list[str] = []
        for step_name, error in self.failures.items():
            nested = error.nested_unrecoverable_steps
            if nested:
                names.extend(f"{step_name}/{inner}" for inner in nested)
            else:
                names.append(step_name)
        return names

    def merge_nested(self, step_name: str, nested: UnwindReport) -> None:
        """Fold a failed sub-workflow's own unwind report into this one."""
        from storeflow.core.exceptions import CompensationError, UnwindIncompleteError

        if nested.is_clean:
            return
        self.failures[step_name] = CompensationError(step_name, UnwindIncompleteError(nested))


@dataclass
class WorkflowResult:
    """
    Result of a workflow execution.

    On success ``output`` holds the terminal value. On failure ``error`` holds
    the triggering error and ``unwind`` tells whether the rollback was complete.
    """

    workflow_name: str
    execution_id: str
    status: WorkflowStatus
    output: Any = None
    error: Exception | None = None
    unwind: UnwindReport | None = None
    completed_steps: list[str] = field(default_factory=list)
    total_steps: int = 0
    execution_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == WorkflowStatus.SUCCEEDED

    @property
    def is_clean(self) -> bool:
        return self.status == WorkflowStatus.FAILED_CLEAN

    @property
    def is_dirty(self) -> bool:
        return self.status == WorkflowStatus.FAILED_DIRTY

    @property
    def outcome(self) -> UnwindOutcome | None:
        """CLEAN or DIRTY for a failed execution, None on success."""
        if self.unwind is None:
            return None
        return self.unwind.outcome

    @property
    def compensated_steps(self) -> list[str]:
        return list(self.unwind.compensated) if self.unwind else []

    @property
    def unrecoverable_steps(self) -> list[str]:
        return self.unwind.unrecoverable_steps if self.unwind else []

    @property
    def failed_step(self) -> str | None:
        """Name of the step whose forward action triggered the unwind."""
        return getattr(self.error, "step_name", None)

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary. Compensation data is never included."""
        return {
            "workflow_name": self.workflow_name,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "outcome": self.outcome.value if self.outcome else None,
            "failed_step": self.failed_step,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
            "completed_steps": list(self.completed_steps),
            "compensated_steps": self.compensated_steps,
            "unrecoverable_steps": self.unrecoverable_steps,
            "total_steps": self.total_steps,
            "execution_time": self.execution_time,
        }
