"""
Reusable steps built on data access ports.
"""

from storeflow.steps.update_records import (
    BatchRestoreError,
    restore_snapshot,
    update_records_step,
)

__all__ = ["BatchRestoreError", "restore_snapshot", "update_records_step"]
