"""
Data access port interface.

A port is the only way steps read and write persisted entities. It is
injected into a step when the step is built (``update_records_step(name,
port)``), so the step's compensation data always matches the port it will be
restored through.

Ports are shared by concurrent executions and must be safe under concurrent
use; each update call is applied per record atomically at least.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

Record = dict[str, Any]


class _Unset:
    """Update value meaning "remove this field"."""

    _instance: _Unset | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Unset:
        return self

    def __deepcopy__(self, memo: dict) -> _Unset:
        return self

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class RecordPort(ABC):
    """
    Snapshot-and-update capability over one named resource.

    Attributes:
        resource: Name of the resource (``"quote"``, ``"cart"``)
    """

    resource: str = "record"

    @abstractmethod
    async def list(
        self,
        ids: Iterable[Any],
        *,
        select: Sequence[str] | None = None,
        relations: Sequence[str] | None = None,
    ) -> list[Record]:
        """
        Fetch records by identifier.

        Args:
            ids: Identifiers to fetch; unknown ids are skipped
            select: Field paths to include (``"status"``, ``"items.quantity"``);
                ``id`` is always included. None returns whole records.
            relations: Relations to include in full when ``select`` names
                none of their fields

        Returns:
            Copies of the records, in the order of ``ids``
        """

    @abstractmethod
    async def update(
        self,
        data: Sequence[Record],
        *,
        return_previous: bool = False,
        replace_relations: bool = False,
    ) -> list[Record]:
        """
        Bulk update by identifier.

        Every item carries an ``id`` plus the fields to change. Relation
        fields may hold a nested record (merged) or a list of nested records
        keyed by their own ``id`` (merged item by item). A field set to
        ``UNSET`` is removed.

        Args:
            data: Update payloads
            return_previous: Return the records as they were before the update
            replace_relations: Lists of nested records state the full
                membership: items missing from the payload are dropped and
                the payload's order is kept. Used to restore a before-image.

        Returns:
            Updated records, or the previous state when ``return_previous`` is set

        Raises:
            RecordNotFoundError: An id does not exist
        """

    async def snapshot(
        self,
        ids: Iterable[Any],
        select: Sequence[str] | None = None,
        relations: Sequence[str] | None = None,
    ) -> list[Record]:
        """Before-image of ``ids`` limited to the selection. Same as list()."""
        return await self.list(ids, select=select, relations=relations)


class PortError(Exception):
    """Base exception for data access port errors"""


class RecordNotFoundError(PortError):
    """One or more identifiers do not exist in the resource"""

    def __init__(self, resource: str, ids: Sequence[Any]):
        self.resource = resource
        self.ids = list(ids)
        super().__init__(f"{resource} not found: {', '.join(map(str, self.ids))}")
