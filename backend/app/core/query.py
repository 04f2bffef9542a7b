import json
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Uuid, inspect
from sqlalchemy.orm import Query

from app.core.errors import BadRequest
from app.core.identifiers import normalize_id
from app.core.parsing import coerce_datetime, parse_boolean

UNQUERYABLE_FIELDS = {"pendingTasks"}
SORT_DIRECTIONS = {
    1: "asc",
    -1: "desc",
    "asc": "asc",
    "ascending": "asc",
    "desc": "desc",
    "descending": "desc",
}


@dataclass
class QueryOptions:
    where: dict
    sort: Optional[dict] = None
    select: Optional[dict] = None
    skip: int = 0
    limit: Optional[int] = None
    count_only: bool = False


def _parse_json_object(value: Optional[str], field: str) -> Optional[dict]:
    if value is None:
        return None
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError as exc:
        raise BadRequest(f'Invalid JSON in query parameter "{field}"') from exc
    if not isinstance(decoded, dict):
        raise BadRequest(f'Query parameter "{field}" must be a JSON object')
    return decoded


def _to_non_negative_int(value: Optional[str], field: str) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        raise BadRequest(f'Query parameter "{field}" must be a non-negative integer')
    return int(text)


def parse_query_options(
    where: Optional[str] = None,
    sort: Optional[str] = None,
    select: Optional[str] = None,
    skip: Optional[str] = None,
    limit: Optional[str] = None,
    count: Optional[str] = None,
    default_limit: Optional[int] = None,
) -> QueryOptions:
    options = QueryOptions(
        where=_parse_json_object(where, "where") or {},
        sort=_parse_json_object(sort, "sort"),
        select=_parse_json_object(select, "select"),
        skip=_to_non_negative_int(skip, "skip") or 0,
        limit=_to_non_negative_int(limit, "limit"),
        count_only=isinstance(count, str) and count.strip().lower() == "true",
    )
    if options.limit is None:
        options.limit = default_limit
    if options.count_only:
        options.limit = None
        options.select = None
        options.sort = None
    return options


def model_fields(model) -> dict:
    """Map persisted field names (``_id`` for the key) to mapped attributes."""
    fields = {}
    for attr in inspect(model).column_attrs:
        name = attr.columns[0].name
        fields["_id" if name == "id" else name] = getattr(model, attr.key)
    return fields


def _resolve_field(model, field: str):
    if field in UNQUERYABLE_FIELDS:
        raise BadRequest(f'Field "{field}" cannot be used in queries')
    column = model_fields(model).get(field)
    if column is None:
        raise BadRequest(f'Unknown field "{field}"')
    return column


def _coerce_value(column, field: str, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise BadRequest(f'Invalid value for "{field}"')
    column_type = column.property.columns[0].type
    if isinstance(column_type, Uuid):
        return normalize_id(value, field)
    if isinstance(column_type, DateTime):
        parsed = coerce_datetime(value)
        if parsed is None:
            raise BadRequest(f'Invalid date value for "{field}"')
        return parsed
    if isinstance(column_type, Boolean):
        try:
            return parse_boolean(value, field)
        except ValueError as exc:
            raise BadRequest(str(exc)) from exc
    return value


def _condition(column, field: str, operator: str, operand: Any):
    if operator in ("$in", "$nin"):
        if not isinstance(operand, list):
            raise BadRequest(f'Operator "{operator}" on "{field}" requires an array')
        values = [_coerce_value(column, field, item) for item in operand]
        return column.in_(values) if operator == "$in" else column.not_in(values)

    value = _coerce_value(column, field, operand)
    if operator == "$eq":
        return column.is_(None) if value is None else column == value
    if operator == "$ne":
        return column.is_not(None) if value is None else column != value
    if operator == "$gt":
        return column > value
    if operator == "$gte":
        return column >= value
    if operator == "$lt":
        return column < value
    if operator == "$lte":
        return column <= value
    raise BadRequest(f'Unsupported operator "{operator}"')


def apply_filters(query: Query, model, where: Optional[dict]) -> Query:
    for field, condition in (where or {}).items():
        column = _resolve_field(model, field)
        if isinstance(condition, dict) and condition and all(str(key).startswith("$") for key in condition):
            for operator, operand in condition.items():
                query = query.filter(_condition(column, field, operator, operand))
        else:
            query = query.filter(_condition(column, field, "$eq", condition))
    return query


def apply_sort(query: Query, model, sort: Optional[dict]) -> Query:
    for field, direction in (sort or {}).items():
        column = _resolve_field(model, field)
        key = direction.lower() if isinstance(direction, str) else direction
        if isinstance(key, bool) or not isinstance(key, (int, str)) or key not in SORT_DIRECTIONS:
            raise BadRequest(f'Invalid sort direction for "{field}"')
        query = query.order_by(column.asc() if SORT_DIRECTIONS[key] == "asc" else column.desc())
    return query


def apply_paging(query: Query, options: QueryOptions) -> Query:
    if options.skip:
        query = query.offset(options.skip)
    # limit=0 means no limit
    if options.limit:
        query = query.limit(options.limit)
    return query


def project(document: dict, select: Optional[dict]) -> dict:
    """Apply a ``{field: 1|0}`` projection to a serialized record."""
    if not select:
        return document
    for value in select.values():
        if value not in (0, 1):
            raise BadRequest('Query parameter "select" values must be 0 or 1')

    included = {field for field, value in select.items() if value == 1}
    excluded = {field for field, value in select.items() if value == 0}
    if included and excluded - {"_id"}:
        raise BadRequest('Query parameter "select" cannot mix inclusion and exclusion')

    if included:
        keep = included | ({"_id"} - excluded)
        return {key: value for key, value in document.items() if key in keep}
    return {key: value for key, value in document.items() if key not in excluded}
