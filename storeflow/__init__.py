"""
storeflow - compensating workflows for commerce backends.

Business operations (update a quote, check out a cart) are written as
workflows of steps. Each step performs a forward action and records what it
needs to undo it. If a later step fails, the completed steps are compensated
in reverse order, so the operation is all-or-nothing even though every call
underneath is independent and non-transactional.

Usage:
    >>> from storeflow import Workflow, create_step, StepResponse
    >>> from storeflow.ports import InMemoryRecordPort
    >>> from storeflow.steps import update_records_step
    >>>
    >>> quotes = InMemoryRecordPort("quote")
    >>> workflow = Workflow("reprice-quotes", [
    ...     update_records_step("update-quotes", quotes),
    ...     create_step("notify-customer", notify, None),
    ... ])
    >>> result = await workflow.run([{"id": "quo_1", "status": "pending_customer"}])
    >>> result.status
    <WorkflowStatus.SUCCEEDED: 'succeeded'>

A failed execution returns a result whose status says whether the rollback
was complete (FAILED_CLEAN, safe to retry) or not (FAILED_DIRTY, with
``result.unrecoverable_steps`` naming what needs manual reconciliation).
"""

from storeflow.core import (
    NO_COMPENSATION,
    Compensation,
    CompensationError,
    CompensationRecord,
    ConfigurationError,
    LoggingWorkflowListener,
    MetricsWorkflowListener,
    NestedUnwind,
    RecordSnapshot,
    StepDefinition,
    StepExecutionError,
    StepTimeoutError,
    StepExecutor,
    StepResponse,
    TracingWorkflowListener,
    UnwindController,
    UnwindIncompleteError,
    Workflow,
    WorkflowCancelledError,
    WorkflowConfig,
    WorkflowContext,
    WorkflowError,
    WorkflowFailedError,
    WorkflowListener,
    configure,
    create_step,
    get_config,
    step,
)
from storeflow.types import (
    StepStatus,
    UnwindOutcome,
    UnwindReport,
    WorkflowResult,
    WorkflowStatus,
)

__all__ = [
    # Steps
    "NO_COMPENSATION",
    "Compensation",
    "CompensationRecord",
    "NestedUnwind",
    "RecordSnapshot",
    "StepDefinition",
    "StepResponse",
    "create_step",
    "step",
    # Execution
    "StepExecutor",
    "UnwindController",
    "Workflow",
    "WorkflowContext",
    # Configuration
    "WorkflowConfig",
    "configure",
    "get_config",
    # Listeners
    "LoggingWorkflowListener",
    "MetricsWorkflowListener",
    "TracingWorkflowListener",
    "WorkflowListener",
    # Types and results
    "StepStatus",
    "UnwindOutcome",
    "UnwindReport",
    "WorkflowResult",
    "WorkflowStatus",
    # Exceptions
    "CompensationError",
    "ConfigurationError",
    "StepExecutionError",
    "StepTimeoutError",
    "UnwindIncompleteError",
    "WorkflowCancelledError",
    "WorkflowError",
    "WorkflowFailedError",
]
