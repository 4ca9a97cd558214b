"""
Workflow: an ordered, all-or-nothing composition of steps.

Steps run strictly one after another. Each step receives the previous step's
output (the first step receives the workflow input) unless it declares an
``input_mapper``. If a step fails, no further step is started and the
UnwindController compensates the completed steps in reverse order.

Quick Start:
    >>> from storeflow import Workflow, create_step, StepResponse
    >>>
    >>> workflow = Workflow("update-quote", [validate_status, update_quotes])
    >>> result = await workflow.run([{"id": "quo_1", "status": "pending_customer"}])
    >>> result.status
    <WorkflowStatus.SUCCEEDED: 'succeeded'>

Sub-workflows:
    >>> checkout = Workflow("checkout", [reserve_stock, update_quote.as_step(), charge])

A sub-workflow used as a step is its own all-or-nothing scope: it unwinds
itself when one of its steps fails, and it is unwound as a whole when a later
step of the enclosing workflow fails.

Cancellation and timeouts:
    Cancelling the task running ``run()`` (directly, or through
    ``asyncio.wait_for`` / ``asyncio.timeout``) lets the in-flight step
    finish, unwinds every completed step, records the outcome, and then
    re-raises the CancelledError. The execution itself runs in its own task,
    so a cancellation never interrupts the result builder or the unwind.
    A cancellation that arrives once the execution has succeeded has
    nothing left to unwind, and the result is returned.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from storeflow.core.context import WorkflowContext
from storeflow.core.exceptions import (
    ConfigurationError,
    StepExecutionError,
    UnwindIncompleteError,
    WorkflowCancelledError,
    WorkflowFailedError,
)
from storeflow.core.executor import StepExecutor, wait_through_cancellation
from storeflow.core.listeners import WorkflowListener, notify_listeners
from storeflow.core.logger import get_logger
from storeflow.core.orchestrator import UnwindController
from storeflow.core.step import NestedUnwind, StepDefinition, StepResponse, call_maybe_async
from storeflow.types import WorkflowResult, WorkflowStatus

if TYPE_CHECKING:
    from storeflow.core.config import WorkflowConfig

logger = get_logger(__name__)

ResultFn = Callable[[WorkflowContext], Any]


class Workflow:
    """
    Ordered list of steps executed with compensation on failure.

    Args:
        name: Workflow name (used in logs, metrics and execution records)
        steps: Initial steps; more can be added with add_step()
        listeners: Lifecycle listeners (default: the config's listeners)
        config: WorkflowConfig (default: the global config)
        require_compensation: Reject steps that have no compensator
        result: Builds the success value from the context (default: last step's output)
    """

    def __init__(
        self,
        name: str,
        steps: Iterable[StepDefinition] | None = None,
        *,
        listeners: list[WorkflowListener] | None = None,
        config: WorkflowConfig | None = None,
        require_compensation: bool | None = None,
        result: ResultFn | None = None,
    ):
        if config is None:
            from storeflow.core.config import get_config

            config = get_config()

        self.name = name
        self._steps: list[StepDefinition] = list(steps or [])
        self._config = config
        self._listeners = listeners if listeners is not None else config.listeners
        self._require_compensation = (
            config.require_compensation if require_compensation is None else require_compensation
        )
        self._result_fn = result
        self._executor = StepExecutor(
            self._listeners,
            default_timeout=config.default_timeout,
            default_max_retries=config.default_max_retries,
        )
        self._controller = UnwindController(self._listeners)

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    def add_step(self, step: StepDefinition) -> Workflow:
        """Append a step. Returns self for chaining."""
        self._steps.append(step)
        return self

    @property
    def steps(self) -> list[StepDefinition]:
        return list(self._steps)

    @property
    def config(self) -> WorkflowConfig:
        return self._config

    def get_step(self, name: str) -> StepDefinition | None:
        for step in self._steps:
            if step.name == name:
                return step
        return None

    def validate(self) -> None:
        """
        Check the definition before anything runs.

        Raises:
            ConfigurationError: Duplicate or empty step names, non-callable
                actions, or a missing compensator when compensation is required
        """
        seen: set[str] = set()
        for position, step in enumerate(self._steps, start=1):
            if not isinstance(step, StepDefinition):
                msg = f"Workflow '{self.name}': item {position} is not a step: {step!r}"
                raise ConfigurationError(msg)
            if not step.name:
                msg = f"Workflow '{self.name}': step {position} has no name"
                raise ConfigurationError(msg)
            if step.name in seen:
                msg = f"Workflow '{self.name}': duplicate step name '{step.name}'"
                raise ConfigurationError(msg)
            seen.add(step.name)

            if not callable(step.invoke):
                msg = f"Workflow '{self.name}': step '{step.name}' has no callable action"
                raise ConfigurationError(msg)
            if step.compensate is not None and not callable(step.compensate):
                msg = f"Workflow '{self.name}': compensator of '{step.name}' is not callable"
                raise ConfigurationError(msg)
            if step.input_mapper is not None and not callable(step.input_mapper):
                msg = f"Workflow '{self.name}': input mapper of '{step.name}' is not callable"
                raise ConfigurationError(msg)
            if self._require_compensation and step.compensate is None:
                msg = (
                    f"Workflow '{self.name}' requires compensation but step "
                    f"'{step.name}' has no compensator"
                )
                raise ConfigurationError(msg)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        workflow_input: Any = None,
        *,
        resources: Iterable[Any] | None = None,
        execution_id: str | None = None,
        context: WorkflowContext | None = None,
        raise_on_failure: bool = False,
    ) -> WorkflowResult:
        """
        Execute the workflow.

        Args:
            workflow_input: Input of the first step
            resources: Typed resource handles steps can resolve from the context
            execution_id: Identifier for logs and the execution store
            context: Pre-built context (for callers that want to cancel() it)
            raise_on_failure: Raise WorkflowFailedError instead of returning a failed result

        Returns:
            WorkflowResult with SUCCEEDED, FAILED_CLEAN or FAILED_DIRTY status

        Raises:
            ConfigurationError: Invalid definition; nothing was executed
            WorkflowFailedError: On failure when raise_on_failure is set
            asyncio.CancelledError: The running task was cancelled (after unwinding)
        """
        self.validate()

        if context is None:
            context = WorkflowContext(
                self.name,
                execution_id=execution_id,
                resources=resources,
                workflow_input=workflow_input,
            )
        else:
            context.workflow_input = workflow_input

        execution = asyncio.ensure_future(self._execute(workflow_input, context))
        interrupted = await wait_through_cancellation(
            execution, on_cancel=lambda: context.cancel("task cancelled")
        )
        result = execution.result()

        if interrupted:
            if not result.success:
                raise asyncio.CancelledError(str(result.error))
            # Cancelled after the last commit point: there is nothing left to unwind.
            logger.warning(
                f"Workflow '{self.name}' [{context.execution_id}] was cancelled after it "
                "succeeded; returning the result"
            )

        if not result.success and raise_on_failure:
            raise WorkflowFailedError(result)
        return result

    async def _execute(
        self, workflow_input: Any, context: WorkflowContext, keep_records: bool = False
    ) -> WorkflowResult:
        start = time.perf_counter()
        context.transition(WorkflowStatus.RUNNING)
        await self._persist(context.execution_id, WorkflowStatus.RUNNING)
        await notify_listeners(self._listeners, "on_workflow_start", self.name, context)

        try:
            output, error = await self._run_steps(workflow_input, context)
            if error is None:
                return await self._succeed(context, output, start, keep_records)
            return await self._fail(context, error, start)
        finally:
            await notify_listeners(self._listeners, "on_workflow_end", self.name, context)

    async def _run_steps(
        self, workflow_input: Any, context: WorkflowContext
    ) -> tuple[Any, Exception | None]:
        """Forward pass. Returns the output and the error that stopped it, if any."""
        output = workflow_input

        for step in self._steps:
            if context.cancelled:
                return output, WorkflowCancelledError(context.cancel_reason)
            try:
                output = await self._run_step(step, output, context)
            except StepExecutionError as e:
                return output, e
            except asyncio.CancelledError:
                context.cancel(f"step '{step.name}' was cancelled")
                return output, WorkflowCancelledError(context.cancel_reason)

        if self._result_fn is not None and not context.cancelled:
            try:
                output = await call_maybe_async(self._result_fn, context)
            except Exception as e:
                logger.error(f"Result builder of '{self.name}' failed: {e}")
                return output, e

        # A cancel requested during the last step or the result builder still unwinds.
        if context.cancelled:
            return output, WorkflowCancelledError(context.cancel_reason)
        return output, None

    async def _run_step(self, step: StepDefinition, previous: Any, context: WorkflowContext) -> Any:
        if step.input_mapper is None:
            step_input = previous
        else:
            try:
                step_input = await call_maybe_async(step.input_mapper, previous, context)
            except Exception as e:
                raise StepExecutionError(step.name, e) from e
        return await self._executor.run(step, step_input, context)

    async def _succeed(
        self, context: WorkflowContext, output: Any, start: float, keep_records: bool
    ) -> WorkflowResult:
        completed = context.completed_steps
        if not keep_records:
            context.records.clear()
        context.transition(WorkflowStatus.SUCCEEDED)

        result = WorkflowResult(
            workflow_name=self.name,
            execution_id=context.execution_id,
            status=WorkflowStatus.SUCCEEDED,
            output=output,
            completed_steps=completed,
            total_steps=len(self._steps),
            execution_time=time.perf_counter() - start,
        )
        await self._persist(context.execution_id, result.status, result)
        await notify_listeners(self._listeners, "on_workflow_complete", self.name, result)
        return result

    async def _fail(
        self, context: WorkflowContext, error: Exception, start: float
    ) -> WorkflowResult:
        completed = context.completed_steps
        context.transition(WorkflowStatus.UNWINDING)
        logger.info(
            f"Workflow '{self.name}' unwinding {len(completed)} step(s) after: {error}"
        )

        report = await self._controller.unwind(context.records, context)

        # A sub-workflow that failed has already unwound itself; carry its leftovers up.
        if isinstance(error, StepExecutionError) and isinstance(error.cause, WorkflowFailedError):
            nested = error.cause.result.unwind
            if nested is not None:
                report.merge_nested(error.step_name, nested)

        status = WorkflowStatus.FAILED_CLEAN if report.is_clean else WorkflowStatus.FAILED_DIRTY
        context.transition(status)

        result = WorkflowResult(
            workflow_name=self.name,
            execution_id=context.execution_id,
            status=status,
            error=error,
            unwind=report,
            completed_steps=completed,
            total_steps=len(self._steps),
            execution_time=time.perf_counter() - start,
        )
        await self._persist(context.execution_id, status, result)
        await notify_listeners(self._listeners, "on_workflow_failed", self.name, result)
        return result

    async def _persist(
        self, execution_id: str, status: WorkflowStatus, result: WorkflowResult | None = None
    ) -> None:
        store = self._config.store
        if store is None:
            return
        try:
            await store.save_execution(
                execution_id, self.name, status, result.to_dict() if result else None
            )
        except Exception as e:
            logger.warning(f"Failed to persist execution {execution_id} ({status.value}): {e}")

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def as_step(self, name: str | None = None, **options: Any) -> StepDefinition:
        """
        Wrap this workflow as a single step of an enclosing workflow.

        The step's compensation data holds the sub-workflow's own
        compensation records; compensating it unwinds them in reverse.
        """
        self.validate()
        step_name = name or self.name

        async def invoke(data: Any, context: WorkflowContext) -> StepResponse:
            child = context.child(self.name, data)
            result = await self._execute(data, child, keep_records=True)
            if not result.success:
                raise WorkflowFailedError(result)
            return StepResponse(result.output, NestedUnwind(self.name, list(child.records)))

        async def compensate(data: NestedUnwind, context: WorkflowContext) -> None:
            child = context.child(self.name)
            report = await self._controller.unwind(data.records, child)
            if not report.is_clean:
                raise UnwindIncompleteError(report)

        options.setdefault("description", f"Sub-workflow '{self.name}'")
        return StepDefinition(name=step_name, invoke=invoke, compensate=compensate, **options)

    def to_mermaid(self) -> str:
        """Flowchart of the steps, with dashed edges to their compensators."""
        lines = ["flowchart TD", f"    start([{self.name}])"]
        previous = "start"
        for index, step in enumerate(self._steps):
            node = f"s{index}"
            lines.append(f'    {node}["{step.name}"]')
            lines.append(f"    {previous} --> {node}")
            if step.compensate is not None:
                lines.append(f'    {node}_undo["undo {step.name}"]')
                lines.append(f"    {node} -.-> {node}_undo")
            previous = node
        lines.append("    done([done])")
        lines.append(f"    {previous} --> done")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Workflow(name={self.name!r}, steps={len(self._steps)})"
