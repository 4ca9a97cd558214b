"""
Tests for quote transition workflows
"""

import pytest

from storeflow import StepExecutionError, Workflow, WorkflowStatus, create_step
from storeflow.ports import RecordNotFoundError
from storeflow.quote import (
    InvalidQuoteStatusError,
    QuoteStatus,
    customer_accept_quote_workflow,
    customer_reject_quote_workflow,
    merchant_reject_quote_workflow,
    merchant_send_quote_workflow,
    update_quotes_step,
    validate_quote_status_step,
)


class TestQuoteTransitions:
    @pytest.mark.asyncio
    async def test_merchant_send_moves_to_pending_customer(self, quote_port):
        result = await merchant_send_quote_workflow(quote_port).run("quo_1")

        assert result.success
        assert result.output[0]["status"] == QuoteStatus.PENDING_CUSTOMER.value
        assert (await quote_port.get("quo_1"))["status"] == "pending_customer"
        assert result.completed_steps == ["validate-quote-status", "update-quotes"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("factory", "quote_id", "expected"),
        [
            (merchant_reject_quote_workflow, "quo_1", "merchant_rejected"),
            (merchant_reject_quote_workflow, "quo_2", "merchant_rejected"),
            (customer_accept_quote_workflow, "quo_2", "accepted"),
            (customer_reject_quote_workflow, "quo_2", "customer_rejected"),
        ],
    )
    async def test_allowed_transitions(self, quote_port, factory, quote_id, expected):
        result = await factory(quote_port).run(quote_id)

        assert result.success
        assert (await quote_port.get(quote_id))["status"] == expected

    @pytest.mark.asyncio
    async def test_wrong_status_fails_clean_without_writes(self, quote_port):
        result = await customer_accept_quote_workflow(quote_port).run("quo_1")

        assert result.status == WorkflowStatus.FAILED_CLEAN
        assert isinstance(result.error, StepExecutionError)
        assert result.failed_step == "validate-quote-status"
        assert isinstance(result.error.cause, InvalidQuoteStatusError)
        assert result.error.cause.allowed == ["pending_customer"]
        assert quote_port.write_count == 0

    @pytest.mark.asyncio
    async def test_unknown_quote(self, quote_port):
        result = await merchant_send_quote_workflow(quote_port).run("quo_404")

        assert isinstance(result.error.cause, RecordNotFoundError)
        assert quote_port.write_count == 0

    @pytest.mark.asyncio
    async def test_enclosing_failure_restores_quote(self, quote_port, quote_records):
        """Test a quote update inside a larger workflow is undone when a later step fails"""

        async def notify_customer(data, ctx):
            raise ConnectionError("mail server unavailable")

        checkout = Workflow(
            "send-and-notify",
            [
                merchant_send_quote_workflow(quote_port).as_step("send-quote"),
                create_step("notify-customer", notify_customer),
            ],
        )

        result = await checkout.run("quo_1")

        assert result.is_clean
        assert result.compensated_steps == ["send-quote"]
        assert await quote_port.get("quo_1") == quote_records[0]


class TestQuoteSteps:
    def test_update_quotes_step_name(self, quote_port):
        step = update_quotes_step(quote_port)

        assert step.name == "update-quotes"
        assert step.has_compensation

    def test_validate_step_has_no_compensator(self, quote_port):
        step = validate_quote_status_step(quote_port, [QuoteStatus.ACCEPTED])

        assert not step.has_compensation

    def test_invalid_status_message(self):
        error = InvalidQuoteStatusError("quo_1", "accepted", [QuoteStatus.PENDING_CUSTOMER])

        assert "quo_1" in str(error)
        assert "pending_customer" in str(error)
