"""
Execution outcome storage.
"""

from storeflow.storage.base import ExecutionNotFoundError, ExecutionStore, ExecutionStoreError
from storeflow.storage.memory import InMemoryExecutionStore

__all__ = [
    "ExecutionNotFoundError",
    "ExecutionStore",
    "ExecutionStoreError",
    "InMemoryExecutionStore",
]
