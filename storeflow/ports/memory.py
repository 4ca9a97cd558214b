"""
In-memory data access port.

Reference implementation used by tests and local development. Records are
plain dicts keyed by ``id``; every read and write works on deep copies, and a
single asyncio.Lock serializes access so concurrent executions see each
update batch applied as a whole.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Iterable, Sequence
from typing import Any

from storeflow.core.logger import get_logger
from storeflow.ports.base import Record, RecordNotFoundError, RecordPort
from storeflow.ports.utils import merge_record, project_record

logger = get_logger(__name__)


class InMemoryRecordPort(RecordPort):
    """
    Dict-backed RecordPort.

    Example:
        >>> quotes = InMemoryRecordPort("quote")
        >>> await quotes.seed([{"id": "quo_1", "status": "pending_merchant"}])
        >>> await quotes.update([{"id": "quo_1", "status": "pending_customer"}])
    """

    def __init__(self, resource: str = "record", records: Iterable[Record] | None = None):
        self.resource = resource
        self._records: dict[Any, Record] = {}
        self._lock = asyncio.Lock()
        self.write_count = 0
        for record in records or []:
            self._records[record["id"]] = copy.deepcopy(record)

    async def seed(self, records: Iterable[Record]) -> None:
        """Insert or replace whole records."""
        async with self._lock:
            for record in records:
                self._records[record["id"]] = copy.deepcopy(record)

    async def list(
        self,
        ids: Iterable[Any],
        *,
        select: Sequence[str] | None = None,
        relations: Sequence[str] | None = None,
    ) -> list[Record]:
        async with self._lock:
            return [
                project_record(self._records[record_id], select, relations)
                for record_id in ids
                if record_id in self._records
            ]

    async def update(
        self,
        data: Sequence[Record],
        *,
        return_previous: bool = False,
        replace_relations: bool = False,
    ) -> list[Record]:
        async with self._lock:
            missing = [item.get("id") for item in data if item.get("id") not in self._records]
            if missing:
                raise RecordNotFoundError(self.resource, missing)

            previous = [copy.deepcopy(self._records[item["id"]]) for item in data]
            for item in data:
                merge_record(self._records[item["id"]], item, replace_relations)
            self.write_count += len(data)
            logger.debug(f"Updated {len(data)} {self.resource} record(s)")

            if return_previous:
                return previous
            return [copy.deepcopy(self._records[item["id"]]) for item in data]

    async def get(self, record_id: Any) -> Record | None:
        async with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def count(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"InMemoryRecordPort(resource={self.resource!r}, records={len(self._records)})"
