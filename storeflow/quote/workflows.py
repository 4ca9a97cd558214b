"""
Quote workflows.

Every quote transition is the same two-step workflow:

1. ``validate-quote-status``: read-only check that the quote is in a state
   the transition may start from (nothing to compensate)
2. ``update-quotes``: bulk update capturing the before-image, restored if a
   later step (or an enclosing workflow) fails

Example:
    >>> quotes = InMemoryRecordPort("quote")
    >>> workflow = merchant_send_quote_workflow(quotes)
    >>> result = await workflow.run("quo_123")
    >>> result.output[0]["status"]
    'pending_customer'
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

from storeflow.core.context import WorkflowContext
from storeflow.core.step import NO_COMPENSATION, StepDefinition, StepResponse, create_step
from storeflow.core.workflow import Workflow
from storeflow.ports.base import RecordNotFoundError, RecordPort
from storeflow.steps.update_records import update_records_step

if TYPE_CHECKING:
    from storeflow.core.config import WorkflowConfig


class QuoteStatus(str, Enum):
    PENDING_MERCHANT = "pending_merchant"
    PENDING_CUSTOMER = "pending_customer"
    ACCEPTED = "accepted"
    CUSTOMER_REJECTED = "customer_rejected"
    MERCHANT_REJECTED = "merchant_rejected"


class InvalidQuoteStatusError(Exception):
    """The quote is not in a status the requested transition can start from."""

    def __init__(self, quote_id: str, status: str | None, allowed: Iterable[QuoteStatus]):
        self.quote_id = quote_id
        self.status = status
        self.allowed = [s.value for s in allowed]
        super().__init__(
            f"Quote {quote_id} has status '{status}', expected one of: {', '.join(self.allowed)}"
        )


def update_quotes_step(port: RecordPort, **options: Any) -> StepDefinition:
    """The ``update-quotes`` step bound to the quote port."""
    return update_records_step("update-quotes", port, **options)


def validate_quote_status_step(
    port: RecordPort, allowed: Iterable[QuoteStatus], name: str = "validate-quote-status"
) -> StepDefinition:
    """Check the quote's status. Input and output: the quote id."""
    allowed = tuple(allowed)

    async def invoke(quote_id: str, context: WorkflowContext) -> StepResponse:
        found = await port.list([quote_id], select=["id", "status"])
        if not found:
            raise RecordNotFoundError(port.resource, [quote_id])
        status = found[0].get("status")
        if status not in {s.value for s in allowed}:
            raise InvalidQuoteStatusError(quote_id, status, allowed)
        return StepResponse(quote_id, NO_COMPENSATION)

    return create_step(name, invoke, description="Check the quote can make this transition")


def _quote_transition_workflow(
    name: str,
    port: RecordPort,
    allowed: Iterable[QuoteStatus],
    target: QuoteStatus,
    config: WorkflowConfig | None = None,
) -> Workflow:
    update = update_quotes_step(
        port, input_mapper=lambda quote_id, ctx: [{"id": quote_id, "status": target.value}]
    )
    return Workflow(name, [validate_quote_status_step(port, allowed), update], config=config)


def merchant_send_quote_workflow(
    port: RecordPort, config: WorkflowConfig | None = None
) -> Workflow:
    return _quote_transition_workflow(
        "merchant-send-quote",
        port,
        [QuoteStatus.PENDING_MERCHANT],
        QuoteStatus.PENDING_CUSTOMER,
        config,
    )


def merchant_reject_quote_workflow(
    port: RecordPort, config: WorkflowConfig | None = None
) -> Workflow:
    return _quote_transition_workflow(
        "merchant-reject-quote",
        port,
        [QuoteStatus.PENDING_MERCHANT, QuoteStatus.PENDING_CUSTOMER],
        QuoteStatus.MERCHANT_REJECTED,
        config,
    )


def customer_accept_quote_workflow(
    port: RecordPort, config: WorkflowConfig | None = None
) -> Workflow:
    return _quote_transition_workflow(
        "customer-accept-quote",
        port,
        [QuoteStatus.PENDING_CUSTOMER],
        QuoteStatus.ACCEPTED,
        config,
    )


def customer_reject_quote_workflow(
    port: RecordPort, config: WorkflowConfig | None = None
) -> Workflow:
    return _quote_transition_workflow(
        "customer-reject-quote",
        port,
        [QuoteStatus.PENDING_CUSTOMER],
        QuoteStatus.CUSTOMER_REJECTED,
        config,
    )
