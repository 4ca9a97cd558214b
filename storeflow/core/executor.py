"""
Step executor: runs one step and records its compensation data.

The executor calls the forward action and nothing else. Compensators are only
ever invoked by the UnwindController.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from storeflow.core.exceptions import StepExecutionError, StepTimeoutError
from storeflow.core.listeners import WorkflowListener, notify_listeners
from storeflow.core.logger import get_logger
from storeflow.core.step import CompensationRecord, StepResponse, call_maybe_async
from storeflow.types import StepStatus

if TYPE_CHECKING:
    from storeflow.core.context import WorkflowContext
    from storeflow.core.step import StepDefinition

logger = get_logger(__name__)


async def wait_through_cancellation(
    task: asyncio.Future, on_cancel: Callable[[], Any] | None = None
) -> bool:
    """
    Wait until ``task`` is done even if the current task gets cancelled.

    ``on_cancel`` is called on every cancellation request. Returns True if
    there was at least one.
    """
    interrupted = False
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            interrupted = True
            if on_cancel is not None:
                on_cancel()
    return interrupted


class StepExecutor:
    """
    Executes single steps on behalf of a Workflow.

    Args:
        listeners: Lifecycle listeners notified of step events
        default_timeout: Forward timeout for steps that declare none
        default_max_retries: Forward retries for steps that declare none
    """

    def __init__(
        self,
        listeners: list[WorkflowListener] | None = None,
        default_timeout: float | None = None,
        default_max_retries: int = 0,
    ):
        self.listeners = listeners or []
        self.default_timeout = default_timeout
        self.default_max_retries = default_max_retries

    async def run(self, step: StepDefinition, step_input: Any, context: WorkflowContext) -> Any:
        """
        Run ``step`` once (plus any configured retries).

        On success a CompensationRecord is appended to ``context`` and the
        step's output is returned.

        Raises:
            StepExecutionError: The forward action failed. Nothing was recorded,
                unless it succeeded after its timeout (StepTimeoutError cause):
                then its record is kept so the unwind reverses it.
        """
        workflow_name = context.workflow_name
        context.step_status[step.name] = StepStatus.RUNNING
        await notify_listeners(self.listeners, "on_step_enter", workflow_name, step.name, context)

        try:
            response = await self._invoke_with_retries(step, step_input, context)
        except Exception as e:
            if isinstance(e, StepTimeoutError):
                late = e.response
                context.record(
                    CompensationRecord(step.name, late.compensation_data, step), late.output
                )
            context.step_status[step.name] = StepStatus.FAILED
            await notify_listeners(
                self.listeners, "on_step_failure", workflow_name, step.name, context, e
            )
            raise StepExecutionError(step.name, e) from e

        context.record(
            CompensationRecord(step.name, response.compensation_data, step), response.output
        )
        await notify_listeners(
            self.listeners, "on_step_success", workflow_name, step.name, context, response.output
        )
        return response.output

    async def _invoke_with_retries(
        self, step: StepDefinition, step_input: Any, context: WorkflowContext
    ) -> StepResponse:
        retries = step.max_retries if step.max_retries is not None else self.default_max_retries
        attempts = 1 + max(retries, 0)

        for attempt in range(1, attempts + 1):
            try:
                return await self._invoke_once(step, step_input, context)
            except StepTimeoutError:
                # The late forward was applied; retrying would apply it twice.
                raise
            except Exception as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    f"Step '{step.name}' attempt {attempt}/{attempts} failed: {e}; retrying"
                )
        raise AssertionError("unreachable")  # pragma: no cover

    async def _invoke_once(
        self, step: StepDefinition, step_input: Any, context: WorkflowContext
    ) -> StepResponse:
        timeout = step.timeout_seconds if step.timeout_seconds is not None else self.default_timeout
        if timeout is None:
            return StepResponse.coerce(await call_maybe_async(step.invoke, step_input, context))

        forward = asyncio.ensure_future(call_maybe_async(step.invoke, step_input, context))
        done, _ = await asyncio.wait({forward}, timeout=timeout)
        if done:
            return StepResponse.coerce(forward.result())

        # Never abandon a forward action half-way: whatever it wrote must be tracked.
        logger.warning(f"Step '{step.name}' exceeded {timeout}s; waiting for it to finish")
        await wait_through_cancellation(forward)
        # A late failure raises its own error here.
        late = StepResponse.coerce(forward.result())
        raise StepTimeoutError(step.name, timeout, late)
