"""
Core building blocks: steps, the step executor, workflows and the unwind controller.
"""

from storeflow.core.config import WorkflowConfig, configure, get_config, reset_config
from storeflow.core.context import WorkflowContext
from storeflow.core.exceptions import (
    CompensationError,
    ConfigurationError,
    InvalidStatusTransitionError,
    StepExecutionError,
    StepTimeoutError,
    UnwindIncompleteError,
    WorkflowCancelledError,
    WorkflowError,
    WorkflowFailedError,
)
from storeflow.core.executor import StepExecutor
from storeflow.core.listeners import (
    LoggingWorkflowListener,
    MetricsWorkflowListener,
    TracingWorkflowListener,
    WorkflowListener,
    default_listeners,
)
from storeflow.core.logger import NullLogger, get_logger, set_logger
from storeflow.core.orchestrator import UnwindController
from storeflow.core.step import (
    NO_COMPENSATION,
    Compensation,
    CompensationRecord,
    NestedUnwind,
    RecordSnapshot,
    StepDefinition,
    StepResponse,
    create_step,
    step,
)
from storeflow.core.workflow import Workflow

__all__ = [
    # Config
    "WorkflowConfig",
    "configure",
    "get_config",
    "reset_config",
    # Context
    "WorkflowContext",
    # Exceptions
    "CompensationError",
    "ConfigurationError",
    "InvalidStatusTransitionError",
    "StepExecutionError",
    "StepTimeoutError",
    "UnwindIncompleteError",
    "WorkflowCancelledError",
    "WorkflowError",
    "WorkflowFailedError",
    # Execution
    "StepExecutor",
    "UnwindController",
    "Workflow",
    # Listeners
    "LoggingWorkflowListener",
    "MetricsWorkflowListener",
    "TracingWorkflowListener",
    "WorkflowListener",
    "default_listeners",
    # Logger
    "NullLogger",
    "get_logger",
    "set_logger",
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
]
