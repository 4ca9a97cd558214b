"""
Unwind controller.

When a workflow execution fails, the controller walks the compensation
records of the completed steps in strict reverse completion order and
invokes each step's compensator with the data that step recorded.

A failing compensator does not stop the pass: the failure is collected as a
CompensationError and the earlier records are still compensated. The caller
gets an UnwindReport telling which steps were undone and which were not.

Example:
    >>> controller = UnwindController()
    >>> report = await controller.unwind(context.records, context)
    >>> report.outcome
    <UnwindOutcome.CLEAN: 'clean'>
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from storeflow.core.exceptions import CompensationError
from storeflow.core.listeners import WorkflowListener, notify_listeners
from storeflow.core.logger import get_logger
from storeflow.core.step import call_maybe_async, is_nothing_to_undo
from storeflow.types import StepStatus, UnwindReport

if TYPE_CHECKING:
    from storeflow.core.context import WorkflowContext
    from storeflow.core.step import CompensationRecord

logger = get_logger(__name__)


class UnwindController:
    """Runs compensators for completed steps, last-completed first."""

    def __init__(self, listeners: list[WorkflowListener] | None = None):
        self.listeners = listeners or []

    async def unwind(
        self, records: list[CompensationRecord], context: WorkflowContext
    ) -> UnwindReport:
        """
        Consume ``records`` from the end and compensate each one.

        The list is emptied as it is consumed, so a record can never be
        compensated twice.
        """
        report = UnwindReport()

        while records:
            record = records.pop()
            step_name = record.step_name

            if record.step.compensate is None or is_nothing_to_undo(record.data):
                logger.debug(f"Nothing to undo for step '{step_name}'")
                report.skipped.append(step_name)
                context.step_status[step_name] = StepStatus.COMPENSATED
                continue

            context.step_status[step_name] = StepStatus.COMPENSATING
            await notify_listeners(
                self.listeners, "on_compensation_start", context.workflow_name, step_name, context
            )
            try:
                await self._compensate(record, context)
            except Exception as e:
                error = CompensationError(step_name, e)
                report.failures[step_name] = error
                context.step_status[step_name] = StepStatus.COMPENSATION_FAILED
                logger.error(f"{error}; continuing unwind of '{context.workflow_name}'")
                await notify_listeners(
                    self.listeners,
                    "on_compensation_failure",
                    context.workflow_name,
                    step_name,
                    context,
                    error,
                )
                continue

            report.compensated.append(step_name)
            context.step_status[step_name] = StepStatus.COMPENSATED
            await notify_listeners(
                self.listeners,
                "on_compensation_complete",
                context.workflow_name,
                step_name,
                context,
            )

        return report

    async def _compensate(self, record: CompensationRecord, context: WorkflowContext) -> None:
        step = record.step
        attempts = 1 + max(step.compensation_max_retries, 0)

        for attempt in range(1, attempts + 1):
            try:
                call = call_maybe_async(step.compensate, record.data, context)
                if step.compensation_timeout_seconds is None:
                    await call
                else:
                    await asyncio.wait_for(call, timeout=step.compensation_timeout_seconds)
                return
            except Exception as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    f"Compensation of '{step.name}' attempt {attempt}/{attempts} failed: {e}; "
                    "retrying"
                )
