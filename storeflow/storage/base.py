"""
Execution store interface.

A store keeps the outcome summary of each workflow execution: its status,
the steps that completed, were compensated, or could not be undone, and the
triggering error. Compensation data is never stored; it only lives in memory
for the duration of an execution.

Its main use is operator remediation: ``list_executions(WorkflowStatus.FAILED_DIRTY)``
returns every execution whose rollback left effects behind.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from storeflow.types import WorkflowStatus


class ExecutionStore(ABC):
    """Abstract base class for execution outcome persistence"""

    @abstractmethod
    async def save_execution(
        self,
        execution_id: str,
        workflow_name: str,
        status: WorkflowStatus,
        summary: dict[str, Any] | None = None,
    ) -> None:
        """
        Insert or update the record of an execution.

        Args:
            execution_id: Unique execution identifier
            workflow_name: Name of the workflow
            status: Current status
            summary: WorkflowResult.to_dict() for terminal statuses
        """

    @abstractmethod
    async def load_execution(self, execution_id: str) -> dict[str, Any] | None:
        """Return the stored record, or None if unknown."""

    @abstractmethod
    async def delete_execution(self, execution_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""

    @abstractmethod
    async def list_executions(
        self,
        status: WorkflowStatus | None = None,
        workflow_name: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """List records, newest first, optionally filtered."""

    @abstractmethod
    async def cleanup(
        self, older_than: datetime, statuses: list[WorkflowStatus] | None = None
    ) -> int:
        """
        Delete terminal records last updated before ``older_than``.

        Args:
            older_than: Cut-off timestamp (timezone-aware)
            statuses: Statuses eligible for deletion (default: SUCCEEDED, FAILED_CLEAN)

        Returns:
            Number of records deleted
        """

    async def get_statistics(self) -> dict[str, Any]:
        """Counts by status."""
        records = await self.list_executions(limit=2**31)
        by_status: dict[str, int] = {}
        for record in records:
            by_status[record["status"]] = by_status.get(record["status"], 0) + 1
        return {"total": len(records), "by_status": by_status}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


class ExecutionStoreError(Exception):
    """Base exception for store errors"""


class ExecutionNotFoundError(ExecutionStoreError):
    """Execution record not found"""
