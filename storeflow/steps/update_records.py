"""
Generic "update records, remember how they were" step.

The forward action reads the before-image of exactly the fields the payload
touches, applies the bulk update, and returns the before-image as a
RecordSnapshot. The compensator writes the before-image back.

The update is treated as one batch: if the port raises part-way through, the
step restores the whole batch itself before failing, so a failed forward
never leaves a partial update behind for the unwind to miss.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from storeflow.core.context import WorkflowContext
from storeflow.core.logger import get_logger
from storeflow.core.step import RecordSnapshot, StepDefinition, StepResponse, create_step
from storeflow.ports.base import PortError, Record, RecordNotFoundError, RecordPort
from storeflow.ports.utils import (
    convert_item_response_to_update_request,
    get_selects_and_relations_from_object_array,
)

logger = get_logger(__name__)


class BatchRestoreError(PortError):
    """A failed bulk update could not be rolled back by the step itself."""

    def __init__(self, resource: str, ids: Sequence[Any], update_error: Exception):
        self.resource = resource
        self.ids = list(ids)
        self.update_error = update_error
        super().__init__(
            f"Update of {resource} {', '.join(map(str, self.ids))} failed ({update_error}) "
            "and the batch could not be restored"
        )


async def restore_snapshot(port: RecordPort, snapshot: RecordSnapshot) -> None:
    """
    Write a before-image back through ``port``. Empty snapshots write nothing.

    Relation lists get back their original membership, and fields the records
    did not have before are removed.
    """
    if snapshot.is_empty():
        return
    payload = [
        convert_item_response_to_update_request(record, snapshot.selects, snapshot.relations)
        for record in snapshot.before
    ]
    await port.update(payload, replace_relations=True)


def update_records_step(name: str, port: RecordPort, **options: Any) -> StepDefinition:
    """
    Build a bulk-update step bound to ``port``.

    Input: a list of update payloads, each with an ``id``.
    Output: the updated records.

    Args:
        name: Step name
        port: Port of the resource being updated
        **options: Extra StepDefinition options (timeouts, retries)
    """

    async def invoke(data: Sequence[Record], context: WorkflowContext) -> StepResponse:
        if not data:
            return StepResponse([], RecordSnapshot(port.resource))

        selects, relations = get_selects_and_relations_from_object_array(data)
        ids = [item["id"] for item in data]
        before = await port.list(ids, select=selects, relations=relations)
        snapshot = RecordSnapshot(port.resource, before, selects, relations)

        try:
            updated = await port.update(list(data))
        except RecordNotFoundError:
            raise
        except Exception as e:
            logger.warning(f"Update of {port.resource} failed in step '{name}', restoring batch")
            try:
                await restore_snapshot(port, snapshot)
            except Exception as restore_error:
                raise BatchRestoreError(port.resource, ids, e) from restore_error
            raise

        return StepResponse(updated, snapshot)

    async def compensate(snapshot: RecordSnapshot | None, context: WorkflowContext) -> None:
        if not snapshot or snapshot.is_empty():
            return
        await restore_snapshot(port, snapshot)
        logger.debug(f"Restored {len(snapshot.before)} {snapshot.resource} record(s)")

    options.setdefault("description", f"Update {port.resource} records")
    return create_step(name, invoke, compensate, **options)
