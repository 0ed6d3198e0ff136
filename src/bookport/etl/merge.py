"""Field-level merge of an existing record with an incoming one.

Precedence rules:
- Identity fields (id, created_at) always keep the existing value.
- Monotonic fields (current_page) take the larger value.
- Set-like lists (tags, categories, owned_book_ids, notes) are unioned,
  existing order first.
- Mappings (external_ids) are unioned key by key, incoming winning.
- Every other field: incoming wins when it is present, i.e. set on the
  incoming record and not None, an empty string or an empty list. 0 and
  False are present values when set; a field left at its default is not.

The inputs are never modified; a new record of the existing record's type
is returned.
"""

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel

IDENTITY_FIELDS = frozenset({"id", "created_at"})
MONOTONIC_FIELDS = frozenset({"current_page"})
UNION_FIELDS = frozenset({"tags", "categories", "owned_book_ids", "notes"})

RecordT = TypeVar("RecordT", bound=BaseModel)


def is_absent(value: Any) -> bool:
    """None, "" and empty collections count as absent."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def _union(existing: list, incoming: list) -> list:
    merged = list(existing)
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


def merge_fields(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two field mappings by the precedence rules."""
    merged = dict(existing)

    for name, value in incoming.items():
        if name not in existing:
            merged[name] = value
            continue

        current = existing[name]
        if name in IDENTITY_FIELDS and not is_absent(current):
            continue
        if name in MONOTONIC_FIELDS:
            candidates = [v for v in (current, value) if v is not None]
            merged[name] = max(candidates) if candidates else None
        elif name in UNION_FIELDS and isinstance(current, list) and isinstance(value, list):
            merged[name] = _union(current, value)
        elif isinstance(current, dict) and isinstance(value, dict):
            merged[name] = {**current, **value}
        elif not is_absent(value):
            merged[name] = value

    return merged


def merge(existing: RecordT, incoming: BaseModel) -> RecordT:
    """Merge two records known to describe the same entity.

    Args:
        existing: Record already in the store
        incoming: Record from the import

    Returns:
        New record of existing's type
    """
    merged = merge_fields(
        existing.model_dump(include=set(type(existing).model_fields)),
        incoming.model_dump(include=set(type(incoming).model_fields), exclude_unset=True),
    )
    return type(existing).model_validate(merged)
