"""
Selection helpers for the capture-before-state compensation pattern.

An update payload determines which fields a step touches. Those fields (and
only those) are read before the update, and the before-image is turned back
into an update payload when the step is compensated:

    >>> data = [{"id": "quo_1", "status": "accepted", "items": [{"id": "it_1", "quantity": 3}]}]
    >>> selects, relations = get_selects_and_relations_from_object_array(data)
    >>> selects
    ['id', 'status', 'items.id', 'items.quantity']
    >>> relations
    ['items']
    >>> before = await port.list(["quo_1"], select=selects, relations=relations)
    >>> restore = [convert_item_response_to_update_request(r, selects, relations) for r in before]

Paths are dot-separated; a relation is any field whose value is a nested
record or a list of nested records.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from typing import Any

from storeflow.ports.base import UNSET, Record


def _is_record_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(v, dict) for v in value)


def _append_unique(target: list[str], value: str) -> None:
    if value not in target:
        target.append(value)


def get_selects_and_relations_from_object_array(
    data: Iterable[Record], prefix: str = ""
) -> tuple[list[str], list[str]]:
    """
    Field paths and relation paths covered by a list of update payloads.

    Returns:
        (selects, relations), each deduplicated in first-seen order
    """
    selects: list[str] = []
    relations: list[str] = []

    for item in data:
        for key, value in item.items():
            path = f"{prefix}{key}"
            if isinstance(value, dict):
                nested = [value]
            elif _is_record_list(value):
                nested = value
            else:
                _append_unique(selects, path)
                continue

            _append_unique(relations, path)
            sub_selects, sub_relations = get_selects_and_relations_from_object_array(
                nested, prefix=f"{path}."
            )
            for sub in sub_selects:
                _append_unique(selects, sub)
            for sub in sub_relations:
                _append_unique(relations, sub)

    return selects, relations


def split_paths(paths: Sequence[str] | None) -> tuple[list[str], dict[str, list[str]]]:
    """Split ``["a", "b.c", "b.d"]`` into ``(["a"], {"b": ["c", "d"]})``."""
    fields: list[str] = []
    nested: dict[str, list[str]] = {}
    for path in paths or []:
        head, _, rest = path.partition(".")
        if rest:
            nested.setdefault(head, []).append(rest)
        else:
            _append_unique(fields, head)
    return fields, nested


def _nested_relations(relations: Sequence[str] | None) -> tuple[list[str], dict[str, list[str]]]:
    heads, nested = split_paths(relations)
    for head in nested:
        _append_unique(heads, head)
    return heads, nested


def project_record(
    record: Record,
    select: Sequence[str] | None = None,
    relations: Sequence[str] | None = None,
) -> Record:
    """
    Copy of ``record`` limited to the selection.

    ``id`` is always kept. A selected field the record lacks is left out of
    the projection, so the before-image tells "absent" apart from "None".
    """
    if select is None:
        return copy.deepcopy(record)

    fields, nested_selects = split_paths(select)
    relation_heads, nested_relations = _nested_relations(relations)
    for head in nested_selects:
        _append_unique(relation_heads, head)

    projected: Record = {}
    if "id" in record:
        projected["id"] = record["id"]

    for name in fields:
        if name in relation_heads:
            continue
        if name in record:
            projected[name] = copy.deepcopy(record[name])

    for head in relation_heads:
        if head not in record:
            continue
        sub_select = nested_selects.get(head)
        sub_relations = nested_relations.get(head)
        value = record[head]
        if isinstance(value, list):
            projected[head] = [
                project_record(v, sub_select, sub_relations) if isinstance(v, dict) else v
                for v in value
            ]
        elif isinstance(value, dict):
            projected[head] = project_record(value, sub_select, sub_relations)
        else:
            projected[head] = copy.deepcopy(value)

    return projected


def convert_item_response_to_update_request(
    item: Record, selects: Sequence[str], relations: Sequence[str]
) -> Record:
    """
    Turn a fetched before-image back into an update payload.

    Only the selected fields are carried over; nested records keep their
    ``id`` so the port can match them item by item. A selected field or
    relation the before-image lacks becomes ``UNSET``, so writing the request
    removes what a later update added.
    """
    fields, nested_selects = split_paths(selects)
    relation_heads, nested_relations = _nested_relations(relations)

    request: Record = {"id": item["id"]} if "id" in item else {}

    for name in fields:
        if name in relation_heads or name == "id":
            continue
        request[name] = copy.deepcopy(item[name]) if name in item else UNSET

    for head in relation_heads:
        if head not in item:
            request[head] = UNSET
            continue
        sub_selects = nested_selects.get(head, [])
        sub_relations = nested_relations.get(head, [])
        value = item[head]
        if isinstance(value, list):
            request[head] = [
                convert_item_response_to_update_request(v, sub_selects, sub_relations)
                if isinstance(v, dict)
                else v
                for v in value
            ]
        elif isinstance(value, dict):
            request[head] = convert_item_response_to_update_request(
                value, sub_selects, sub_relations
            )
        else:
            request[head] = copy.deepcopy(value)

    return request


def _without_unset(value: Any) -> Any:
    """Deep copy of ``value`` with UNSET fields dropped."""
    if isinstance(value, dict):
        return {k: _without_unset(v) for k, v in value.items() if v is not UNSET}
    if isinstance(value, list):
        return [_without_unset(v) for v in value]
    return copy.deepcopy(value)


def merge_record(target: Record, changes: Record, replace_relations: bool = False) -> None:
    """
    Apply ``changes`` to ``target`` in place.

    Nested records are merged and ``UNSET`` removes a field. Lists of records
    are matched by ``id``: by default unmatched items are appended; with
    ``replace_relations`` the list becomes exactly the items of ``changes``,
    in that order. Everything else is replaced.
    """
    for key, value in changes.items():
        if key == "id":
            continue
        if value is UNSET:
            target.pop(key, None)
            continue
        current = target.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merge_record(current, value, replace_relations)
        elif isinstance(value, list) and isinstance(current, list) and _is_record_list(value):
            by_id = {c.get("id"): c for c in current if isinstance(c, dict) and "id" in c}
            members: list[Any] = []
            for change in value:
                existing = by_id.get(change.get("id")) if "id" in change else None
                if existing is None:
                    existing = _without_unset(change)
                    if not replace_relations:
                        current.append(existing)
                else:
                    merge_record(existing, change, replace_relations)
                members.append(existing)
            if replace_relations:
                target[key] = members
        else:
            target[key] = _without_unset(value)
