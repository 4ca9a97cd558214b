"""
Quote module: statuses, steps and transition workflows.
"""

from storeflow.quote.workflows import (
    InvalidQuoteStatusError,
    QuoteStatus,
    customer_accept_quote_workflow,
    customer_reject_quote_workflow,
    merchant_reject_quote_workflow,
    merchant_send_quote_workflow,
    update_quotes_step,
    validate_quote_status_step,
)

__all__ = [
    "InvalidQuoteStatusError",
    "QuoteStatus",
    "customer_accept_quote_workflow",
    "customer_reject_quote_workflow",
    "merchant_reject_quote_workflow",
    "merchant_send_quote_workflow",
    "update_quotes_step",
    "validate_quote_status_step",
]
