"""
Tests for the in-memory execution store
"""

from datetime import UTC, datetime, timedelta

import pytest

from storeflow.storage import ExecutionNotFoundError, InMemoryExecutionStore
from storeflow.types import WorkflowStatus


class TestInMemoryExecutionStore:
    @pytest.mark.asyncio
    async def test_save_and_load(self):
        store = InMemoryExecutionStore()

        await store.save_execution("e1", "update-quote", WorkflowStatus.RUNNING)
        first = await store.load_execution("e1")
        await store.save_execution(
            "e1", "update-quote", WorkflowStatus.SUCCEEDED, {"completed_steps": ["a"]}
        )
        second = await store.load_execution("e1")

        assert first["status"] == "running"
        assert second["status"] == "succeeded"
        assert second["summary"] == {"completed_steps": ["a"]}
        assert second["created_at"] == first["created_at"]
        assert second["updated_at"] >= first["updated_at"]
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_retention_evicts_oldest_finished_only(self):
        store = InMemoryExecutionStore(max_finished=2)

        await store.save_execution("dirty", "w", WorkflowStatus.FAILED_DIRTY)
        await store.save_execution("running", "w", WorkflowStatus.RUNNING)
        for execution_id, status in (
            ("ok-1", WorkflowStatus.SUCCEEDED),
            ("ok-2", WorkflowStatus.SUCCEEDED),
            ("clean-3", WorkflowStatus.FAILED_CLEAN),
        ):
            await store.save_execution(execution_id, "w", WorkflowStatus.RUNNING)
            await store.save_execution(execution_id, "w", status)

        assert await store.load_execution("ok-1") is None
        assert await store.load_execution("ok-2") is not None
        assert await store.load_execution("clean-3") is not None
        assert await store.load_execution("dirty") is not None
        assert await store.load_execution("running") is not None
        assert len(store) == 4

    def test_negative_retention_rejected(self):
        with pytest.raises(ValueError, match="max_finished"):
            InMemoryExecutionStore(max_finished=-1)

    @pytest.mark.asyncio
    async def test_missing_execution(self):
        store = InMemoryExecutionStore()

        assert await store.load_execution("nope") is None
        with pytest.raises(ExecutionNotFoundError):
            await store.get_execution("nope")
        assert await store.delete_execution("nope") is False

    @pytest.mark.asyncio
    async def test_loaded_records_are_copies(self):
        store = InMemoryExecutionStore()
        await store.save_execution("e1", "w", WorkflowStatus.SUCCEEDED, {"steps": ["a"]})

        record = await store.load_execution("e1")
        record["summary"]["steps"].append("b")

        assert (await store.load_execution("e1"))["summary"] == {"steps": ["a"]}

    @pytest.mark.asyncio
    async def test_list_dirty_executions(self):
        store = InMemoryExecutionStore()
        await store.save_execution("e1", "update-quote", WorkflowStatus.FAILED_DIRTY)
        await store.save_execution("e2", "update-quote", WorkflowStatus.FAILED_CLEAN)
        await store.save_execution("e3", "checkout", WorkflowStatus.FAILED_DIRTY)

        dirty = await store.list_executions(status=WorkflowStatus.FAILED_DIRTY)
        quotes = await store.list_executions(workflow_name="quote")

        assert {r["execution_id"] for r in dirty} == {"e1", "e3"}
        assert {r["execution_id"] for r in quotes} == {"e1", "e2"}
        assert len(await store.list_executions(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_cleanup_keeps_dirty_by_default(self):
        store = InMemoryExecutionStore()
        await store.save_execution("ok", "w", WorkflowStatus.SUCCEEDED)
        await store.save_execution("clean", "w", WorkflowStatus.FAILED_CLEAN)
        await store.save_execution("dirty", "w", WorkflowStatus.FAILED_DIRTY)

        deleted = await store.cleanup(datetime.now(UTC) + timedelta(seconds=1))

        assert deleted == 2
        assert await store.load_execution("dirty") is not None

    @pytest.mark.asyncio
    async def test_statistics(self):
        store = InMemoryExecutionStore()
        await store.save_execution("a", "w", WorkflowStatus.SUCCEEDED)
        await store.save_execution("b", "w", WorkflowStatus.SUCCEEDED)
        await store.save_execution("c", "w", WorkflowStatus.FAILED_DIRTY)

        stats = await store.get_statistics()

        assert stats == {"total": 3, "by_status": {"succeeded": 2, "failed_dirty": 1}}

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with InMemoryExecutionStore() as store:
            await store.save_execution("a", "w", WorkflowStatus.RUNNING)
            assert await store.delete_execution("a") is True
