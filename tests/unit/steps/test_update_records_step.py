"""
Tests for the capture-before-state bulk update step
"""

import pytest

from storeflow import RecordSnapshot, Workflow, WorkflowContext, WorkflowStatus, create_step
from storeflow.ports import InMemoryRecordPort, RecordNotFoundError
from storeflow.steps import BatchRestoreError, restore_snapshot, update_records_step


class FlakyPort(InMemoryRecordPort):
    """Applies the first item of a batch, then loses the connection."""

    def __init__(self, *args, fail_updates=0, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_updates = fail_updates

    async def update(self, data, **options):
        if self.fail_updates:
            self.fail_updates -= 1
            await super().update(list(data)[:1], **options)
            raise ConnectionError("connection reset mid-batch")
        return await super().update(data, **options)


def _five_records():
    return [
        {
            "id": f"rec_{i}",
            "status": "draft",
            "total": 10 * i,
            "currency": "usd",
            "note": f"note {i}",
            "region": "eu",
        }
        for i in range(1, 6)
    ]


def _failing_step():
    async def fail(data, ctx):
        raise RuntimeError("downstream failure")

    return create_step("fail", fail)


class TestUpdateRecordsStep:
    @pytest.mark.asyncio
    async def test_forward_returns_updated_records_and_snapshot(self, quote_port):
        step = update_records_step("update-quotes", quote_port)

        response = await step.invoke(
            [{"id": "quo_1", "status": "pending_customer"}], WorkflowContext("w")
        )

        assert response.output[0]["status"] == "pending_customer"
        snapshot = response.compensation_data
        assert isinstance(snapshot, RecordSnapshot)
        assert snapshot.resource == "quote"
        assert snapshot.before == [{"id": "quo_1", "status": "pending_merchant"}]
        assert snapshot.selects == ["id", "status"]

    @pytest.mark.asyncio
    async def test_round_trip_restore(self, quote_port, quote_records):
        """Test forward then compensate restores the observable state"""
        step = update_records_step("update-quotes", quote_port)
        context = WorkflowContext("w")

        response = await step.invoke(
            [
                {
                    "id": "quo_1",
                    "status": "accepted",
                    "items": [{"id": "it_1", "quantity": 9}],
                },
                {"id": "quo_2", "total": 0},
            ],
            context,
        )
        await step.compensate(response.compensation_data, context)

        assert await quote_port.get("quo_1") == quote_records[0]
        assert await quote_port.get("quo_2") == quote_records[1]

    @pytest.mark.asyncio
    async def test_appended_relation_item_is_removed_on_unwind(self, quote_port, quote_records):
        """Test an item the update added to a relation list is gone after compensation"""
        workflow = Workflow(
            "add-item", [update_records_step("update-quotes", quote_port), _failing_step()]
        )

        result = await workflow.run(
            [
                {
                    "id": "quo_2",
                    "items": [{"id": "it_9", "quantity": 4}, {"id": "it_3", "quantity": 6}],
                }
            ]
        )

        assert result.is_clean
        assert await quote_port.get("quo_2") == quote_records[1]

    @pytest.mark.asyncio
    async def test_field_absent_before_is_removed_on_unwind(self, quote_port, quote_records):
        """Test a field the update introduced does not survive as None"""
        workflow = Workflow(
            "annotate", [update_records_step("update-quotes", quote_port), _failing_step()]
        )

        result = await workflow.run(
            [{"id": "quo_1", "note": "call back", "items": [{"id": "it_1", "gift_wrap": True}]}]
        )

        assert result.is_clean
        restored = await quote_port.get("quo_1")
        assert restored == quote_records[0]
        assert "note" not in restored

    @pytest.mark.asyncio
    async def test_five_records_restored_after_partial_field_update(self):
        """Test all five records return to their before-image when three of five fields changed"""
        originals = _five_records()
        port = InMemoryRecordPort("record", originals)
        update = update_records_step("update-records", port)
        workflow = Workflow("bulk", [update, _failing_step()])

        payload = [
            {"id": r["id"], "status": "final", "total": 0, "currency": "eur"} for r in originals
        ]
        result = await workflow.run(payload)

        assert result.status == WorkflowStatus.FAILED_CLEAN
        assert result.compensated_steps == ["update-records"]
        for original in originals:
            assert await port.get(original["id"]) == original

    @pytest.mark.asyncio
    async def test_empty_input_writes_nothing(self, quote_port):
        """Test an empty payload records an empty snapshot and the compensator writes nothing"""
        step = update_records_step("update-quotes", quote_port)
        context = WorkflowContext("w")

        response = await step.invoke([], context)
        await step.compensate(response.compensation_data, context)

        assert response.output == []
        assert response.compensation_data.is_empty()
        assert quote_port.write_count == 0

    @pytest.mark.asyncio
    async def test_empty_snapshot_in_workflow_is_skipped(self, quote_port):
        """Test an unwind over an empty snapshot leaves the port untouched"""
        workflow = Workflow(
            "noop", [update_records_step("update-quotes", quote_port), _failing_step()]
        )

        result = await workflow.run([])

        assert result.is_clean
        assert result.unwind.skipped == ["update-quotes"]
        assert quote_port.write_count == 0

    @pytest.mark.asyncio
    async def test_unknown_id_fails_without_writes(self, quote_port):
        step = update_records_step("update-quotes", quote_port)

        with pytest.raises(RecordNotFoundError):
            await step.invoke(
                [{"id": "quo_1", "status": "accepted"}, {"id": "quo_9", "status": "accepted"}],
                WorkflowContext("w"),
            )

        assert quote_port.write_count == 0

    @pytest.mark.asyncio
    async def test_partial_batch_is_restored_by_the_step(self, quote_records):
        """Test a port failure part-way through leaves no partial update behind"""
        port = FlakyPort("quote", quote_records, fail_updates=1)
        workflow = Workflow("flaky", [update_records_step("update-quotes", port)])

        result = await workflow.run(
            [{"id": "quo_1", "status": "accepted"}, {"id": "quo_2", "status": "accepted"}]
        )

        assert result.is_clean
        assert isinstance(result.error.cause, ConnectionError)
        assert await port.get("quo_1") == quote_records[0]
        assert await port.get("quo_2") == quote_records[1]

    @pytest.mark.asyncio
    async def test_failed_batch_restore_is_reported(self, quote_records):
        port = FlakyPort("quote", quote_records, fail_updates=2)
        step = update_records_step("update-quotes", port)

        with pytest.raises(BatchRestoreError) as exc_info:
            await step.invoke([{"id": "quo_1", "status": "accepted"}], WorkflowContext("w"))

        assert exc_info.value.ids == ["quo_1"]
        assert isinstance(exc_info.value.update_error, ConnectionError)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_restore_snapshot_uses_selection_only(self, quote_port):
        snapshot = RecordSnapshot("quote", [{"id": "quo_1", "status": "accepted"}], ["status"])

        await restore_snapshot(quote_port, snapshot)

        restored = await quote_port.get("quo_1")
        assert restored["status"] == "accepted"
        assert restored["total"] == 100

    def test_default_description(self, quote_port):
        assert update_records_step("u", quote_port).description == "Update quote records"
