"""
Step definitions: a forward action paired with an optional compensator.

Two ways to declare a step:

    >>> async def reserve(data, ctx):
    ...     before = await inventory.list(data["ids"])
    ...     await inventory.update(data["changes"])
    ...     return StepResponse(data["ids"], before)
    >>>
    >>> async def release(before, ctx):
    ...     await inventory.update(before)
    >>>
    >>> reserve_step = create_step("reserve-inventory", reserve, release)

or with the decorator form:

    >>> @step("reserve-inventory")
    ... async def reserve_step(data, ctx):
    ...     ...
    >>>
    >>> @reserve_step.compensator
    ... async def release(before, ctx):
    ...     ...

Forward actions and compensators may be sync or async. A forward action
returns either a StepResponse or a plain value (no compensation data).
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from storeflow.core.context import WorkflowContext

InvokeFn = Callable[[Any, "WorkflowContext"], Any]
CompensateFn = Callable[[Any, "WorkflowContext"], Any]
InputMapper = Callable[[Any, "WorkflowContext"], Any]


class _NoCompensation:
    """Marker for "this forward action left nothing to undo"."""

    _instance: _NoCompensation | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_COMPENSATION"


NO_COMPENSATION = _NoCompensation()


# ============================================
# Compensation data variants
# ============================================


@dataclass(frozen=True)
class Compensation:
    """
    Base for tagged compensation payloads.

    ``kind`` identifies the payload shape; the compensator of the step that
    produced the record is the only consumer.
    """

    kind: ClassVar[str] = "custom"

    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True)
class RecordSnapshot(Compensation):
    """
    Before-image of records touched by a bulk update.

    Attributes:
        resource: Name of the resource the records belong to
        before: Records as they were before the update, limited to the selection
        selects: Field paths covered by the update (``"status"``, ``"items.quantity"``)
        relations: Relations covered by the update (``"items"``)
    """

    kind: ClassVar[str] = "record_snapshot"

    resource: str
    before: list[dict[str, Any]] = field(default_factory=list)
    selects: list[str] = field(default_factory=list)
    relations: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.before

    @property
    def ids(self) -> list[Any]:
        return [record["id"] for record in self.before]


@dataclass(frozen=True)
class NestedUnwind(Compensation):
    """Compensation records of a sub-workflow run as a single step."""

    kind: ClassVar[str] = "nested_unwind"

    workflow_name: str
    records: list[CompensationRecord] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.records


def is_nothing_to_undo(data: Any) -> bool:
    """True for None, NO_COMPENSATION and empty Compensation payloads."""
    if data is None or data is NO_COMPENSATION:
        return True
    if isinstance(data, Compensation):
        return data.is_empty()
    return False


# ============================================
# Step response and records
# ============================================


class StepResponse:
    """
    Output of a forward action plus the data its compensator will receive.

    Example:
        >>> return StepResponse(updated_quotes, RecordSnapshot("quote", before, selects, []))
    """

    __slots__ = ("output", "compensation_data")

    def __init__(self, output: Any = None, compensation_data: Any = NO_COMPENSATION):
        self.output = output
        self.compensation_data = compensation_data

    @classmethod
    def coerce(cls, value: Any) -> StepResponse:
        if isinstance(value, StepResponse):
            return value
        return cls(value)

    def __repr__(self) -> str:
        return f"StepResponse(output={self.output!r}, compensation_data={self.compensation_data!r})"


@dataclass
class CompensationRecord:
    """
    Created after a forward action completes successfully.

    Lives only as long as its execution. Consumed at most once, in reverse
    completion order, when the execution fails.
    """

    step_name: str
    data: Any
    step: StepDefinition = field(repr=False)

    @property
    def kind(self) -> str | None:
        return self.data.kind if isinstance(self.data, Compensation) else None


# ============================================
# Step definition
# ============================================


@dataclass
class StepDefinition:
    """
    Complete definition of a workflow step with its compensation.

    Attributes:
        name: Unique name within a workflow
        invoke: Forward action ``(input, context) -> StepResponse | value``
        compensate: Compensator ``(compensation_data, context) -> None``
        input_mapper: Builds this step's input from the previous output and the context
        timeout_seconds: Forward timeout, None for no timeout
        max_retries: Extra forward attempts after a failure, None for the config default
        compensation_timeout_seconds: Compensator timeout, None for no timeout
        compensation_max_retries: Extra compensator attempts after a failure
        description: Free text for diagrams and the CLI
    """

    name: str
    invoke: InvokeFn
    compensate: CompensateFn | None = None
    input_mapper: InputMapper | None = None
    timeout_seconds: float | None = None
    max_retries: int | None = None
    compensation_timeout_seconds: float | None = None
    compensation_max_retries: int = 0
    description: str | None = None

    @property
    def has_compensation(self) -> bool:
        return self.compensate is not None

    def compensator(self, fn: CompensateFn) -> CompensateFn:
        """Decorator attaching ``fn`` as this step's compensator."""
        self.compensate = fn
        return fn

    def __call__(self, *args, **kwargs):
        return self.invoke(*args, **kwargs)


def create_step(
    name: str,
    invoke: InvokeFn,
    compensate: CompensateFn | None = None,
    **options: Any,
) -> StepDefinition:
    """
    Build a StepDefinition.

    Args:
        name: Step name, unique within any workflow that uses it
        invoke: Forward action
        compensate: Optional compensator
        **options: Any other StepDefinition field

    Returns:
        The step definition
    """
    return StepDefinition(name=name, invoke=invoke, compensate=compensate, **options)


def step(name: str, **options: Any) -> Callable[[InvokeFn], StepDefinition]:
    """Decorator form of create_step."""

    def decorator(func: InvokeFn) -> StepDefinition:
        definition = create_step(name, func, **options)
        if definition.description is None and func.__doc__:
            definition.description = inspect.cleandoc(func.__doc__).splitlines()[0]
        return definition

    return decorator


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    """Call ``fn`` and await the result if it is awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
