"""
Data access ports: the typed capabilities steps use to read and write records.
"""

from storeflow.ports.base import UNSET, PortError, Record, RecordNotFoundError, RecordPort
from storeflow.ports.memory import InMemoryRecordPort
from storeflow.ports.utils import (
    convert_item_response_to_update_request,
    get_selects_and_relations_from_object_array,
    merge_record,
    project_record,
)

__all__ = [
    "InMemoryRecordPort",
    "PortError",
    "Record",
    "RecordNotFoundError",
    "RecordPort",
    "UNSET",
    "convert_item_response_to_update_request",
    "get_selects_and_relations_from_object_array",
    "merge_record",
    "project_record",
]
