"""
All workflow-related exceptions
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storeflow.core.step import StepResponse
    from storeflow.types import UnwindReport, WorkflowResult, WorkflowStatus


class WorkflowError(Exception):
    """Base workflow error"""


class StepExecutionError(WorkflowError):
    """
    A step's forward action failed.

    Always triggers an unwind of the steps completed before it.
    """

    def __init__(self, step_name: str, cause: BaseException):
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Step '{step_name}' failed: {type(cause).__name__}: {cause}")


class StepTimeoutError(WorkflowError):
    """
    A forward action succeeded, but only after its deadline.

    ``response`` holds what it returned. The step is still recorded so the
    unwind reverses it.
    """

    def __init__(self, step_name: str, timeout: float, response: StepResponse):
        self.step_name = step_name
        self.timeout = timeout
        self.response = response
        super().__init__(f"Step '{step_name}' timed out after {timeout}s")


class CompensationError(WorkflowError):
    """
    A compensating action failed during unwind.

    Collected in the unwind report, never raised onward.
    """

    def __init__(self, step_name: str, cause: BaseException):
        self.step_name = step_name
        self.cause = cause
        super().__init__(
            f"Compensation for step '{step_name}' failed: {type(cause).__name__}: {cause}"
        )

    @property
    def nested_unrecoverable_steps(self) -> list[str]:
        if isinstance(self.cause, UnwindIncompleteError):
            return self.cause.report.unrecoverable_steps
        return []


class ConfigurationError(WorkflowError):
    """Invalid workflow definition. Raised before any step runs."""


class WorkflowCancelledError(WorkflowError):
    """The execution was cancelled and unwound."""

    def __init__(self, reason: str | None = None):
        self.reason = reason or "cancelled"
        super().__init__(f"Workflow cancelled: {self.reason}")


class WorkflowFailedError(WorkflowError):
    """Raised by ``Workflow.run(raise_on_failure=True)`` and by sub-workflow steps."""

    def __init__(self, result: WorkflowResult):
        self.result = result
        detail = f"{result.error}" if result.error else result.status.value
        if result.is_dirty:
            detail += f" (unrecoverable: {', '.join(result.unrecoverable_steps)})"
        super().__init__(f"Workflow '{result.workflow_name}' failed: {detail}")


class UnwindIncompleteError(WorkflowError):
    """A nested unwind left one or more effects in place."""

    def __init__(self, report: UnwindReport):
        self.report = report
        super().__init__(
            f"Nested unwind incomplete: {', '.join(report.unrecoverable_steps)}"
        )


class InvalidStatusTransitionError(WorkflowError):
    """Raised when an execution is moved to a status it cannot reach."""

    def __init__(self, current: WorkflowStatus, target: WorkflowStatus):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current.value} -> {target.value}")
