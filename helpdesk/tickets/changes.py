"""Decide whether a field edit is worth an audit entry.

Edit forms round-trip every field, so plain value diffing would log noise:
an assignee list re-submitted in another order, or a field going from
``None`` to ``""``. The rules below run in order and the first match wins.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterable, Mapping, Sequence

# Display-only mirrors of other fields, and collections with their own write path.
DEFAULT_IGNORED_FIELDS = frozenset(
    {
        "assigned_agent",
        "assigned_agent_names",
        "sub_category",
        "work_log",
        "resolved_at",
        "closed_at",
    }
)


_MISSING = object()


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_structured(value: Any) -> bool:
    if isinstance(value, Mapping):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}


def _lookup(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def sequence_key(item: Any) -> Any:
    """Comparable identity of one element of a sequence-valued field."""

    if _is_structured(item):
        email = _lookup(item, "email")
        name = _lookup(item, "name")
        if email or name:
            return email or name
        item_id = _lookup(item, "id")
        if item_id is not None:
            return item_id
        return repr(item)
    return item


def _sorted_keys(items: Iterable[Any]) -> list[Any]:
    return sorted((sequence_key(item) for item in items), key=repr)


class ChangeDetector:
    """Field-aware definition of a meaningful change."""

    def __init__(self, ignored_fields: Iterable[str] = DEFAULT_IGNORED_FIELDS) -> None:
        self._ignored_fields = frozenset(ignored_fields)

    @property
    def ignored_fields(self) -> frozenset[str]:
        return self._ignored_fields

    def is_meaningful_change(self, field_name: str, old_value: Any, new_value: Any) -> bool:
        if field_name in self._ignored_fields:
            return False
        if old_value is new_value or old_value == new_value:
            return False
        if _is_blank(old_value) and _is_blank(new_value):
            return False
        if self._both_empty_sequences(old_value, new_value):
            return False
        if _is_sequence(old_value) and _is_sequence(new_value):
            return self._sequences_differ(old_value, new_value)
        if _is_structured(old_value) and _is_structured(new_value):
            return self._objects_differ(_as_mapping(old_value), _as_mapping(new_value))
        return True

    @staticmethod
    def _both_empty_sequences(old_value: Any, new_value: Any) -> bool:
        # A missing list and an empty list are the same thing to a form.
        def empty(value: Any) -> bool:
            return value is None or (_is_sequence(value) and len(value) == 0)

        either_sequence = _is_sequence(old_value) or _is_sequence(new_value)
        return either_sequence and empty(old_value) and empty(new_value)

    @staticmethod
    def _sequences_differ(old_value: Sequence[Any], new_value: Sequence[Any]) -> bool:
        if len(old_value) != len(new_value):
            return True
        return _sorted_keys(old_value) != _sorted_keys(new_value)

    @staticmethod
    def _objects_differ(old_value: Mapping[str, Any], new_value: Mapping[str, Any]) -> bool:
        keys = old_value.keys() | new_value.keys()
        return any(old_value.get(key, _MISSING) != new_value.get(key, _MISSING) for key in keys)
