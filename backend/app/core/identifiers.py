from collections.abc import Mapping
from typing import Any, Optional
from uuid import UUID

from app.core.errors import InvalidReference


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _extract_id(value: Any) -> Any:
    if isinstance(value, Mapping):
        if "_id" in value:
            return value["_id"]
        return value.get("id")
    if not isinstance(value, (str, UUID)) and hasattr(value, "id"):
        return value.id
    return value


def normalize_id(value: Any, field_name: str) -> Optional[UUID]:
    """Convert an external reference into a store identifier.

    Accepts a raw id, an object or mapping carrying one, or an empty value
    (returns None). Anything that is not a well formed UUID raises
    InvalidReference.
    """
    if _is_empty(value):
        return None
    value = _extract_id(value)
    if _is_empty(value):
        raise InvalidReference(f"Invalid identifier provided for {field_name}")
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise InvalidReference(f"Invalid identifier provided for {field_name}")
    try:
        return UUID(value.strip())
    except ValueError as exc:
        raise InvalidReference(f"Invalid identifier provided for {field_name}") from exc


def normalize_id_array(values: Any, field_name: str) -> list[UUID]:
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        raise InvalidReference(f"{field_name} must be an array of identifiers")

    result: list[UUID] = []
    seen: set[str] = set()
    for value in values:
        normalized = normalize_id(value, field_name)
        if normalized is None:
            continue
        key = str(normalized)
        if key in seen:
            continue
        seen.add(key)
        result.append(normalized)
    return result
