"""
In-memory execution store.

Fast and dependency-free; records are lost when the process exits. Only the
most recent SUCCEEDED and FAILED_CLEAN executions are kept (``max_finished``);
running executions and FAILED_DIRTY ones awaiting remediation are never
evicted.
"""

import asyncio
import copy
from datetime import UTC, datetime
from typing import Any

from storeflow.storage.base import ExecutionNotFoundError, ExecutionStore
from storeflow.types import WorkflowStatus

_DEFAULT_CLEANUP = (WorkflowStatus.SUCCEEDED, WorkflowStatus.FAILED_CLEAN)


class InMemoryExecutionStore(ExecutionStore):
    """
    Keeps execution records in a dict guarded by an asyncio.Lock.

    Args:
        max_finished: How many SUCCEEDED/FAILED_CLEAN records to retain,
            oldest evicted first. None keeps everything.
    """

    def __init__(self, max_finished: int | None = 1000):
        if max_finished is not None and max_finished < 0:
            msg = "max_finished must be >= 0 or None"
            raise ValueError(msg)
        self.max_finished = max_finished
        self._executions: dict[str, dict[str, Any]] = {}
        # Finished executions in completion order, oldest first
        self._finished: dict[str, None] = {}
        self._lock = asyncio.Lock()

    async def save_execution(
        self,
        execution_id: str,
        workflow_name: str,
        status: WorkflowStatus,
        summary: dict[str, Any] | None = None,
    ) -> None:
        now = datetime.now(UTC)
        async with self._lock:
            existing = self._executions.get(execution_id)
            self._executions[execution_id] = {
                "execution_id": execution_id,
                "workflow_name": workflow_name,
                "status": status.value,
                "summary": copy.deepcopy(summary) if summary else {},
                "created_at": existing["created_at"] if existing else now,
                "updated_at": now,
            }
            self._finished.pop(execution_id, None)
            if status in _DEFAULT_CLEANUP:
                self._finished[execution_id] = None
                self._evict()

    def _evict(self) -> None:
        if self.max_finished is None:
            return
        while len(self._finished) > self.max_finished:
            oldest = next(iter(self._finished))
            del self._finished[oldest]
            self._executions.pop(oldest, None)

    async def load_execution(self, execution_id: str) -> dict[str, Any] | None:
        async with self._lock:
            record = self._executions.get(execution_id)
            return copy.deepcopy(record) if record else None

    async def get_execution(self, execution_id: str) -> dict[str, Any]:
        """Like load_execution, but raises ExecutionNotFoundError."""
        record = await self.load_execution(execution_id)
        if record is None:
            msg = f"Execution not found: {execution_id}"
            raise ExecutionNotFoundError(msg)
        return record

    async def delete_execution(self, execution_id: str) -> bool:
        async with self._lock:
            self._finished.pop(execution_id, None)
            return self._executions.pop(execution_id, None) is not None

    async def list_executions(
        self,
        status: WorkflowStatus | None = None,
        workflow_name: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        async with self._lock:
            matches = [
                copy.deepcopy(record)
                for record in self._executions.values()
                if (status is None or record["status"] == status.value)
                and (workflow_name is None or workflow_name in record["workflow_name"])
            ]
        matches.sort(key=lambda r: r["updated_at"], reverse=True)
        return matches[offset : offset + limit]

    async def cleanup(
        self, older_than: datetime, statuses: list[WorkflowStatus] | None = None
    ) -> int:
        eligible = {s.value for s in (statuses or _DEFAULT_CLEANUP)}
        async with self._lock:
            stale = [
                execution_id
                for execution_id, record in self._executions.items()
                if record["status"] in eligible and record["updated_at"] < older_than
            ]
            for execution_id in stale:
                del self._executions[execution_id]
                self._finished.pop(execution_id, None)
        return len(stale)

    def __len__(self) -> int:
        return len(self._executions)
