"""
Pytest configuration and shared fixtures for storeflow tests
"""

import pytest

from storeflow.core.config import reset_config
from storeflow.core.logger import set_logger
from storeflow.core.step import StepResponse, create_step
from storeflow.ports.memory import InMemoryRecordPort

# ============================================
# AUTO-USE FIXTURES
# ============================================


@pytest.fixture(autouse=True)
def clean_global_state():
    """Every test starts from the default config and standard logging."""
    reset_config()
    set_logger(None)
    yield
    reset_config()
    set_logger(None)


# ============================================
# STEP FACTORIES
# ============================================


@pytest.fixture
def calls():
    """Journal of forward and compensation calls, in the order they happened."""
    return []


@pytest.fixture
def make_step(calls):
    """
    Build a step that journals its calls.

    ``invoke:<name>`` is appended when the forward action runs and
    ``compensate:<name>`` when the compensator runs.
    """

    def factory(
        name,
        *,
        fail=False,
        fail_compensation=False,
        output=None,
        compensation_data="undo",
        compensate=True,
        **options,
    ):
        async def invoke(data, ctx):
            calls.append(f"invoke:{name}")
            if fail:
                raise RuntimeError(f"{name} exploded")
            return StepResponse(output if output is not None else f"{name}-out", compensation_data)

        async def undo(data, ctx):
            calls.append(f"compensate:{name}")
            if fail_compensation:
                raise RuntimeError(f"cannot undo {name}")

        return create_step(name, invoke, undo if compensate else None, **options)

    return factory


# ============================================
# PORTS
# ============================================


@pytest.fixture
def quote_records():
    return [
        {
            "id": "quo_1",
            "status": "pending_merchant",
            "total": 100,
            "currency": "usd",
            "items": [
                {"id": "it_1", "quantity": 2, "unit_price": 30},
                {"id": "it_2", "quantity": 1, "unit_price": 40},
            ],
        },
        {
            "id": "quo_2",
            "status": "pending_customer",
            "total": 55,
            "currency": "eur",
            "items": [{"id": "it_3", "quantity": 5, "unit_price": 11}],
        },
    ]


@pytest.fixture
def quote_port(quote_records):
    return InMemoryRecordPort("quote", quote_records)
