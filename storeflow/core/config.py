"""
WorkflowConfig - unified configuration for the workflow core.

Wires together the execution store and the observability listeners, and
holds the execution defaults applied to steps that declare none.

Example:
    >>> from storeflow import WorkflowConfig, configure
    >>>
    >>> configure(WorkflowConfig(metrics=True, default_timeout=30.0))
    >>>
    >>> # Or straight from STOREFLOW_* environment variables / .env
    >>> configure(WorkflowConfig.from_env())

A Workflow uses the global config unless it is given one explicitly. The
config is read, never mutated, while executions run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from storeflow.core.env import EnvManager
from storeflow.core.logger import get_logger, set_level

if TYPE_CHECKING:
    from storeflow.core.listeners import WorkflowListener
    from storeflow.storage.base import ExecutionStore

logger = get_logger(__name__)


@dataclass
class WorkflowConfig:
    """
    Configuration for workflow executions.

    Attributes:
        store: Where terminal execution outcomes are recorded (default: in-memory)
        logging: Enable lifecycle logging (True/False or a listener instance)
        metrics: Enable metrics collection (True/False or a listener instance)
        tracing: Enable OpenTelemetry tracing (True/False or a listener instance)
        default_timeout: Forward timeout for steps that declare none (None = no timeout)
        default_max_retries: Forward retries for steps that declare none
        require_compensation: Reject workflows containing steps without a compensator
        log_level: Level for the 'storeflow' logger namespace, applied on configure()
    """

    store: ExecutionStore | None = None

    logging: bool | WorkflowListener = True
    metrics: bool | WorkflowListener = False
    tracing: bool | WorkflowListener = False

    default_timeout: float | None = None
    default_max_retries: int = 0
    require_compensation: bool = False
    log_level: str | None = None

    _listeners: list[WorkflowListener] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if self.default_max_retries < 0:
            msg = "default_max_retries must be >= 0"
            raise ValueError(msg)
        if self.default_timeout is not None and self.default_timeout <= 0:
            msg = "default_timeout must be positive or None"
            raise ValueError(msg)

        if self.store is None:
            from storeflow.storage.memory import InMemoryExecutionStore

            self.store = InMemoryExecutionStore()
            logger.debug("Using default InMemoryExecutionStore")

        self._listeners = self._build_listeners()

    def _build_listeners(self) -> list[WorkflowListener]:
        from storeflow.core.listeners import (
            LoggingWorkflowListener,
            MetricsWorkflowListener,
            TracingWorkflowListener,
        )

        listeners: list[WorkflowListener] = []
        for setting, factory in (
            (self.logging, LoggingWorkflowListener),
            (self.metrics, MetricsWorkflowListener),
            (self.tracing, TracingWorkflowListener),
        ):
            if setting is True:
                listeners.append(factory())
            elif setting:
                listeners.append(setting)
        return listeners

    @property
    def listeners(self) -> list[WorkflowListener]:
        return list(self._listeners)

    def with_store(self, store: ExecutionStore) -> WorkflowConfig:
        return replace(self, store=store)

    def with_listeners(self, **settings: Any) -> WorkflowConfig:
        """Copy with new logging/metrics/tracing settings."""
        return replace(self, **settings)

    @classmethod
    def from_env(cls, project_root: Path | str | None = None) -> WorkflowConfig:
        """Build a config from STOREFLOW_* variables (and a .env file if present)."""
        env = EnvManager(project_root)
        logger.debug(f"Reading storeflow settings: {sorted(env.settings())}")
        return cls(
            logging=env.get_bool("LOGGING", True),
            metrics=env.get_bool("METRICS", False),
            tracing=env.get_bool("TRACING", False),
            default_timeout=env.get_float("STEP_TIMEOUT"),
            default_max_retries=env.get_int("STEP_MAX_RETRIES", 0),
            require_compensation=env.get_bool("REQUIRE_COMPENSATION", False),
            log_level=env.get("LOG_LEVEL"),
        )

    def apply_log_level(self) -> None:
        if not self.log_level:
            return
        if not set_level(self.log_level):
            logger.warning(f"Ignoring unknown log level: {self.log_level}")


_global_config: WorkflowConfig | None = None


def configure(config: WorkflowConfig) -> None:
    """Set the global configuration used by workflows created without one."""
    global _global_config
    _global_config = config
    config.apply_log_level()
    logger.info(f"storeflow configured: {config!r}")


def get_config() -> WorkflowConfig:
    """Return the global configuration, creating the default one on first use."""
    global _global_config
    if _global_config is None:
        _global_config = WorkflowConfig()
    return _global_config


def reset_config() -> None:
    """Drop the global configuration (mainly for tests)."""
    global _global_config
    _global_config = None
