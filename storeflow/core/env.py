"""
STOREFLOW_* environment variables, optionally loaded from a ``.env`` file.

    STOREFLOW_LOG_LEVEL=INFO
    STOREFLOW_LOGGING=true
    STOREFLOW_METRICS=false
    STOREFLOW_TRACING=false
    STOREFLOW_STEP_TIMEOUT=30
    STOREFLOW_STEP_MAX_RETRIES=0
    STOREFLOW_REQUIRE_COMPENSATION=false

Variables already present in the process environment win over the file.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from dotenv import load_dotenv

PREFIX = "STOREFLOW_"

_TRUTHY = frozenset({"true", "1", "yes", "on"})
_FALSY = frozenset({"false", "0", "no", "off"})

N = TypeVar("N", int, float)


def parse_bool(raw: str | None) -> bool | None:
    """'yes' -> True, 'off' -> False, anything else -> None."""
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return None


class EnvManager:
    """
    Typed access to STOREFLOW_* variables.

    Example:
        >>> env = EnvManager("/srv/shop")
        >>> env.get_float("STEP_TIMEOUT")
        30.0
    """

    def __init__(self, project_root: Path | str | None = None, auto_load: bool = True):
        self.project_root = Path(project_root) if project_root else Path.cwd()
        self._loaded_from: Path | None = None
        if auto_load:
            self.load()

    @property
    def loaded(self) -> bool:
        return self._loaded_from is not None

    def load(self, env_file: str | Path | None = None, override: bool = False) -> bool:
        """Read ``env_file`` (default ``<project_root>/.env``). False if there is none."""
        path = Path(env_file) if env_file else self.project_root / ".env"
        if not path.is_file():
            return False
        load_dotenv(path, override=override)
        self._loaded_from = path
        return True

    @staticmethod
    def name(key: str) -> str:
        return key if key.startswith(PREFIX) else PREFIX + key

    def get(self, key: str, default: str | None = None, required: bool = False) -> str | None:
        """
        Raw value of ``STOREFLOW_<key>``.

        Raises:
            ValueError: ``required`` is set and the variable is missing
        """
        name = self.name(key)
        value = os.environ.get(name)
        if value is not None:
            return value
        if required:
            msg = f"Required environment variable not set: {name}"
            raise ValueError(msg)
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        parsed = parse_bool(self.get(key))
        return default if parsed is None else parsed

    def get_int(self, key: str, default: int = 0) -> int:
        return self._number(key, int, default)

    def get_float(self, key: str, default: float | None = None) -> float | None:
        return self._number(key, float, default)

    def _number(self, key: str, kind: Callable[[str], N], default: N | None) -> N | None:
        raw = self.get(key)
        if raw is None or not raw.strip():
            return default
        try:
            return kind(raw)
        except ValueError:
            return default

    def settings(self) -> dict[str, str]:
        """Every STOREFLOW_* variable currently set, prefix stripped."""
        return {
            name.removeprefix(PREFIX): value
            for name, value in os.environ.items()
            if name.startswith(PREFIX)
        }
