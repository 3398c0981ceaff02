"""List query builder — pagination, sort and filter expressions to SQL.

Turns a ``(PageInfo, default Sort, [Filter], field map)`` specification
into a count statement and a row statement with bound parameters. Every
field name coming from a caller is checked against the entity's field map,
so only mapped column names ever reach the SQL text.

Architecture::

    PageInfo(limit, offset, sort)     Filter(field, modifier, value[])
              │                                   │
              └───────────┬───────────────────────┘
                          ▼
             build_list_query(columns, table, page, default_sort,
                              filters, field_map, count)
                          │
              ┌───────────┴────────────┐
              ▼                        ▼
     SELECT COUNT(*) ...       SELECT cols ... ORDER BY ... LIMIT/OFFSET

Modifiers:
    ``equals``, ``not``, ``contains``, ``starts``, ``ends``, ``in``,
    ``notin``, ``min``, ``max``.

Tags:
    listing, pagination, filters, query-builder
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from certdispatch.core.errors import ValidationError

DEFAULT_LIMIT = 10
MAX_LIMIT = 1000


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class FieldKind(str, Enum):
    """How filter values for a field are coerced before binding."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Maps a public filter/sort field to a column."""

    column: str
    kind: FieldKind = FieldKind.STRING


@dataclass(frozen=True, slots=True)
class Sort:
    field: str
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True, slots=True)
class Filter:
    field: str
    modifier: str
    value: tuple[str, ...] = ()


@dataclass(slots=True)
class PageInfo:
    """Pagination params used by list operations."""

    limit: int = DEFAULT_LIMIT
    offset: int = 0
    sort: list[Sort] = field(default_factory=list)


_BOOL_VALUES = {"true": 1, "1": 1, "yes": 1, "false": 0, "0": 0, "no": 0}


def _coerce(value: str, spec: FieldSpec, field_name: str) -> Any:
    if spec.kind is FieldKind.BOOLEAN:
        try:
            return _BOOL_VALUES[value.strip().lower()]
        except KeyError:
            raise ValidationError(f"Invalid boolean for {field_name}: {value!r}") from None
    if spec.kind is FieldKind.INTEGER:
        try:
            return int(value)
        except ValueError:
            raise ValidationError(f"Invalid integer for {field_name}: {value!r}") from None
    return value


def _filter_clause(flt: Filter, spec: FieldSpec) -> tuple[str, list[Any]]:
    if not flt.value:
        raise ValidationError(f"Filter on {flt.field} has no value")

    col = spec.column
    values = [_coerce(v, spec, flt.field) for v in flt.value]
    first = values[0]

    match flt.modifier:
        case "equals":
            return f"{col} = ?", [first]
        case "not":
            return f"{col} != ?", [first]
        case "contains":
            return f"{col} LIKE ?", [f"%{first}%"]
        case "starts":
            return f"{col} LIKE ?", [f"{first}%"]
        case "ends":
            return f"{col} LIKE ?", [f"%{first}"]
        case "in":
            return f"{col} IN ({', '.join('?' for _ in values)})", values
        case "notin":
            return f"{col} NOT IN ({', '.join('?' for _ in values)})", values
        case "min":
            return f"{col} >= ?", [first]
        case "max":
            return f"{col} <= ?", [first]
    raise ValidationError(f"Unknown filter modifier: {flt.modifier!r}")


def _order_by(
    sorts: Sequence[Sort],
    default_sort: Sort,
    field_map: Mapping[str, FieldSpec],
) -> str:
    parts = []
    for sort in sorts or [default_sort]:
        spec = field_map.get(sort.field)
        if spec is None:
            raise ValidationError(f"Cannot sort by unknown field: {sort.field!r}")
        parts.append(f"{spec.column} {SortDirection(sort.direction).value}")
    return ", ".join(parts)


def build_list_query(
    columns: Sequence[str],
    table: str,
    page: PageInfo,
    default_sort: Sort,
    filters: Sequence[Filter],
    field_map: Mapping[str, FieldSpec],
    count: bool = False,
) -> tuple[str, tuple[Any, ...]]:
    """Build the count or row statement for a filtered, paginated listing.

    Soft-deleted rows are always excluded.

    Returns:
        ``(sql, params)`` ready for :meth:`BaseRepository.query`.

    Raises:
        ValidationError: unknown field, unknown modifier, bad value, or an
            out-of-range limit/offset.
    """
    where = ["is_deleted = 0"]
    params: list[Any] = []
    for flt in filters:
        spec = field_map.get(flt.field)
        if spec is None:
            raise ValidationError(f"Cannot filter by unknown field: {flt.field!r}")
        clause, clause_params = _filter_clause(flt, spec)
        where.append(clause)
        params.extend(clause_params)

    where_sql = " AND ".join(where)

    if count:
        return f"SELECT COUNT(*) AS total FROM {table} WHERE {where_sql}", tuple(params)

    if page.limit < 1 or page.limit > MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")
    if page.offset < 0:
        raise ValidationError("offset must not be negative")

    sql = (
        f"SELECT {', '.join(columns)} FROM {table} WHERE {where_sql} "
        f"ORDER BY {_order_by(page.sort, default_sort, field_map)} "
        f"LIMIT ? OFFSET ?"
    )
    return sql, (*params, page.limit, page.offset)


def parse_sort(text: str) -> Sort:
    """Parse ``"name"`` or ``"name.desc"`` into a :class:`Sort`."""
    name, _, direction = text.partition(".")
    try:
        return Sort(field=name, direction=SortDirection((direction or "asc").upper()))
    except ValueError:
        raise ValidationError(f"Invalid sort direction in {text!r}") from None


def parse_filter(text: str) -> Filter:
    """Parse ``"field:modifier:v1,v2"`` into a :class:`Filter`.

    ``"field:value"`` is shorthand for the ``equals`` modifier.
    """
    parts = text.split(":", 2)
    if len(parts) == 2:
        name, raw = parts
        modifier = "equals"
    elif len(parts) == 3:
        name, modifier, raw = parts
    else:
        raise ValidationError(f"Invalid filter expression: {text!r}")
    return Filter(field=name, modifier=modifier, value=tuple(v for v in raw.split(",") if v != ""))


__all__ = [
    "DEFAULT_LIMIT",
    "FieldKind",
    "FieldSpec",
    "Filter",
    "PageInfo",
    "Sort",
    "SortDirection",
    "build_list_query",
    "parse_filter",
    "parse_sort",
]
