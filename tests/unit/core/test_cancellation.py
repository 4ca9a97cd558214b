"""
Tests for cancellation and caller-imposed timeouts.

Cancellation is a controlled failure: the in-flight step finishes, every
completed step is compensated, and only then does the cancellation surface.
"""

import asyncio

import pytest

from storeflow import (
    StepResponse,
    StepTimeoutError,
    Workflow,
    WorkflowCancelledError,
    WorkflowConfig,
    WorkflowContext,
    WorkflowStatus,
    create_step,
)
from storeflow.storage.memory import InMemoryExecutionStore


def _blocking_step(name, calls, started, release):
    async def invoke(data, ctx):
        calls.append(f"invoke:{name}")
        started.set()
        await release.wait()
        calls.append(f"finished:{name}")
        return StepResponse(f"{name}-out", "undo")

    async def undo(data, ctx):
        calls.append(f"compensate:{name}")

    return create_step(name, invoke, undo)


class TestTaskCancellation:
    """Cancelling the task that runs the workflow"""

    @pytest.mark.asyncio
    async def test_in_flight_step_finishes_then_everything_unwinds(self, make_step, calls):
        """Test the running step completes and is compensated along with earlier steps"""
        started, release = asyncio.Event(), asyncio.Event()
        store = InMemoryExecutionStore()
        context = WorkflowContext("cancel-me", execution_id="exec-cancel")
        workflow = Workflow(
            "cancel-me",
            [make_step("a"), _blocking_step("b", calls, started, release), make_step("c")],
            config=WorkflowConfig(store=store),
        )

        task = asyncio.create_task(workflow.run(context=context))
        await started.wait()
        task.cancel()
        await asyncio.sleep(0)
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert calls == [
            "invoke:a",
            "invoke:b",
            "finished:b",
            "compensate:b",
            "compensate:a",
        ]
        assert context.status == WorkflowStatus.FAILED_CLEAN
        record = await store.load_execution("exec-cancel")
        assert record["status"] == "failed_clean"
        assert record["summary"]["error_type"] == "WorkflowCancelledError"

    @pytest.mark.asyncio
    async def test_timeout_is_treated_as_failure(self, make_step, calls):
        """Test asyncio.wait_for around run() unwinds before raising TimeoutError"""

        async def slow(data, ctx):
            calls.append("invoke:slow")
            await asyncio.sleep(0.1)
            return StepResponse("slow-out", "undo")

        async def undo_slow(data, ctx):
            calls.append("compensate:slow")

        context = WorkflowContext("deadline")
        workflow = Workflow(
            "deadline",
            [make_step("a"), create_step("slow", slow, undo_slow), make_step("never")],
        )

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(workflow.run(context=context), timeout=0.02)

        assert "invoke:never" not in calls
        assert calls[-2:] == ["compensate:slow", "compensate:a"]
        assert context.status == WorkflowStatus.FAILED_CLEAN


class TestContextCancellation:
    """Cancelling through WorkflowContext.cancel()"""

    @pytest.mark.asyncio
    async def test_cancel_stops_before_next_step(self, make_step, calls):
        """Test a cancel request during step 2 prevents step 3 and unwinds 2 then 1"""

        async def cancelling(data, ctx):
            calls.append("invoke:b")
            ctx.cancel("customer withdrew")
            return StepResponse("b-out", "undo")

        async def undo(data, ctx):
            calls.append("compensate:b")

        workflow = Workflow(
            "withdraw",
            [make_step("a"), create_step("b", cancelling, undo), make_step("c")],
        )

        result = await workflow.run()

        assert result.status == WorkflowStatus.FAILED_CLEAN
        assert isinstance(result.error, WorkflowCancelledError)
        assert result.error.reason == "customer withdrew"
        assert calls == ["invoke:a", "invoke:b", "compensate:b", "compensate:a"]

    @pytest.mark.asyncio
    async def test_cancel_before_start_runs_nothing(self, make_step, calls):
        """Test a pre-cancelled context fails clean without running any step"""
        context = WorkflowContext("pre")
        context.cancel()

        result = await Workflow("pre", [make_step("a")]).run(context=context)

        assert result.is_clean
        assert calls == []
        assert result.error.reason == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_during_last_step_still_unwinds(self, make_step, calls):
        """Test a cancel request in the final step fails the workflow"""

        async def last(data, ctx):
            ctx.cancel("late")
            return StepResponse("done", "undo")

        async def undo(data, ctx):
            calls.append("compensate:last")

        result = await Workflow(
            "late", [make_step("a"), create_step("last", last, undo)]
        ).run()

        assert not result.success
        assert calls[-2:] == ["compensate:last", "compensate:a"]

    def test_first_reason_wins(self):
        """Test repeated cancel() calls keep the original reason"""
        context = WorkflowContext("reason")
        context.cancel("first")
        context.cancel("second")

        assert context.cancel_reason == "first"


class SlowCommitStore(InMemoryExecutionStore):
    """Blocks while saving the SUCCEEDED record until released."""

    def __init__(self):
        super().__init__()
        self.committing = asyncio.Event()
        self.release = asyncio.Event()

    async def save_execution(self, execution_id, workflow_name, status, summary=None):
        if status == WorkflowStatus.SUCCEEDED:
            self.committing.set()
            await self.release.wait()
        await super().save_execution(execution_id, workflow_name, status, summary)


class TestCancellationOutsideSteps:
    """Cancellation landing between or after the steps"""

    @pytest.mark.asyncio
    async def test_timeout_during_result_builder_unwinds(self, make_step, calls):
        """Test a deadline hit while building the result still compensates every step"""

        async def summarize(ctx):
            calls.append("summarize")
            await asyncio.sleep(0.1)
            return "summary"

        context = WorkflowContext("aggregate")
        workflow = Workflow("aggregate", [make_step("a"), make_step("b")], result=summarize)

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(workflow.run(context=context), timeout=0.02)

        assert calls == ["invoke:a", "invoke:b", "summarize", "compensate:b", "compensate:a"]
        assert context.status == WorkflowStatus.FAILED_CLEAN

    @pytest.mark.asyncio
    async def test_cancel_after_success_keeps_the_result(self, make_step, calls):
        """Test a cancel during the final save neither unwinds nor loses the outcome"""
        store = SlowCommitStore()
        workflow = Workflow("commit", [make_step("a")], config=WorkflowConfig(store=store))

        task = asyncio.create_task(workflow.run(execution_id="exec-commit"))
        await store.committing.wait()
        task.cancel()
        await asyncio.sleep(0)
        store.release.set()

        result = await task

        assert result.success
        assert calls == ["invoke:a"]
        record = await store.load_execution("exec-commit")
        assert record["status"] == "succeeded"


class TestStepTimeouts:
    """Per-step deadlines never leave an untracked effect"""

    @pytest.mark.asyncio
    async def test_late_step_effect_is_unwound(self, quote_port, quote_records):
        """Test a step that writes, then overruns its deadline, is compensated"""

        async def accept(data, ctx):
            before = await quote_port.list(["quo_1"], select=["status"])
            await quote_port.update([{"id": "quo_1", "status": "accepted"}])
            await asyncio.sleep(0.05)
            return StepResponse("accepted", before)

        async def restore(before, ctx):
            await quote_port.update(before)

        workflow = Workflow(
            "deadline", [create_step("accept", accept, restore, timeout_seconds=0.01)]
        )

        result = await workflow.run()

        assert result.status == WorkflowStatus.FAILED_CLEAN
        assert isinstance(result.error.cause, StepTimeoutError)
        assert result.compensated_steps == ["accept"]
        assert await quote_port.get("quo_1") == quote_records[0]

    @pytest.mark.asyncio
    async def test_sub_workflow_timeout_keeps_inner_leftovers(self, make_step, calls):
        """Test a sub-workflow overrunning its deadline still reports its dirty unwind"""

        async def charge(data, ctx):
            calls.append("invoke:charge")
            await asyncio.sleep(0.03)
            raise RuntimeError("payment declined")

        inner = Workflow(
            "payment", [make_step("hold", fail_compensation=True), create_step("charge", charge)]
        )
        outer = Workflow("checkout", [make_step("a"), inner.as_step("pay", timeout_seconds=0.01)])

        result = await outer.run()

        assert result.status == WorkflowStatus.FAILED_DIRTY
        assert result.unrecoverable_steps == ["pay/hold"]
        assert "compensate:a" in calls
