from __future__ import annotations
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union
import datetime as dt

from .models import (
    FilterCondition,
    FilterGroup,
    InvalidFilterError,
    LogicalOperator,
    Operator,
    StructuredFilter,
)

FieldMapping = Union[Mapping[str, str], Callable[[str], str], None]

# -----------------------------------------------------------------------------
# Value rendering
# -----------------------------------------------------------------------------

def _format_datetime(value: dt.datetime) -> str:
    """
    ISO-8601 in UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z.
    Naive datetimes are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    value = value.astimezone(dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"

def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dt.datetime):
        return _format_datetime(value)
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)

def _escape_value(value: Any) -> str:
    """
    Escape quote characters so the value can sit inside single quotes.
    """
    return _stringify(value).replace("'", "\\'").replace('"', '\\"')

def _resolve_field(name: str, field_mapping: FieldMapping) -> str:
    if field_mapping is None:
        return name
    if callable(field_mapping):
        return field_mapping(name)
    return field_mapping.get(name) or name

def _condition_to_string(c: FilterCondition, field_mapping: FieldMapping) -> str:
    c.validate()
    col = _resolve_field(c.field, field_mapping)
    if c.is_array:
        vals = ", ".join(f"'{_escape_value(v)}'" for v in c.value)
        return f"{col} {c.operator.value} ({vals})"
    return f"{col} {c.operator.value} '{_escape_value(c.value)}'"

def _combine(parts: List[str], logical: LogicalOperator) -> str:
    return f" {logical.value} ".join(parts)

def _group_to_string(g: FilterGroup, field_mapping: FieldMapping) -> str:
    parts = [_condition_to_string(c, field_mapping) for c in g.conditions]
    parts += [s for s in (_group_to_string(n, field_mapping) for n in g.groups) if s]
    if not parts:
        return ""
    return "(" + _combine(parts, g.logic) + ")"

# -----------------------------------------------------------------------------
# Fluent builder
# -----------------------------------------------------------------------------

class FilterBuilder:
    """
    Accumulates conditions and nested groups, then builds an immutable
    StructuredFilter. The accumulator is private to the builder; build()
    copies it out.
    """

    def __init__(self):
        self._conditions: List[FilterCondition] = []
        self._groups: List[FilterGroup] = []
        self._logic: LogicalOperator = LogicalOperator.AND

    def where(self, field: str, operator: Union[Operator, str], value: Any) -> "FilterBuilder":
        self._conditions.append(FilterCondition(field, Operator(operator), value))
        return self

    def equals(self, field: str, value: Any) -> "FilterBuilder":
        return self.where(field, Operator.EQ, value)

    def not_equals(self, field: str, value: Any) -> "FilterBuilder":
        return self.where(field, Operator.NE, value)

    def greater_than(self, field: str, value: Any) -> "FilterBuilder":
        return self.where(field, Operator.GT, value)

    def greater_than_or_equal(self, field: str, value: Any) -> "FilterBuilder":
        return self.where(field, Operator.GTE, value)

    def less_than(self, field: str, value: Any) -> "FilterBuilder":
        return self.where(field, Operator.LT, value)

    def less_than_or_equal(self, field: str, value: Any) -> "FilterBuilder":
        return self.where(field, Operator.LTE, value)

    def contains(self, field: str, value: str) -> "FilterBuilder":
        return self.where(field, Operator.LK, value)

    def not_contains(self, field: str, value: str) -> "FilterBuilder":
        return self.where(field, Operator.NLK, value)

    def in_(self, field: str, values: Union[Iterable[Any], Any]) -> "FilterBuilder":
        return self.where(field, Operator.ANY_EQ, _as_values(values))

    def not_in(self, field: str, values: Union[Iterable[Any], Any]) -> "FilterBuilder":
        return self.where(field, Operator.ANY_NE, _as_values(values))

    def set_logic(self, logic: Union[LogicalOperator, str]) -> "FilterBuilder":
        self._logic = LogicalOperator.parse(logic)
        return self

    def group(self, fn: Callable[["FilterBuilder"], Optional["FilterBuilder"]]) -> "FilterBuilder":
        """
        Run fn on a fresh builder and append the result as one group, keeping
        the child's own nested groups. Empty groups are dropped.
        """
        child = FilterBuilder()
        result = fn(child)
        built = (result if isinstance(result, FilterBuilder) else child).build()
        group = FilterGroup(
            conditions=built.conditions or (),
            groups=built.groups or (),
            logic=built.logic,
        )
        if not group.is_empty:
            self._groups.append(group)
        return self

    def build(self) -> StructuredFilter:
        return StructuredFilter(
            conditions=tuple(self._conditions) or None,
            groups=tuple(self._groups) or None,
            logic=self._logic,
        )

    # ---- serialization -------------------------------------------------------

    @staticmethod
    def to_filter_string(filter: StructuredFilter, field_mapping: FieldMapping = None) -> str:
        """
        Depth-first rendering to the store's filter syntax, e.g.
        "user = 'u1' AND (status = 'active' OR status = 'paused')".

        Raises InvalidFilterError for an array value on a scalar operator.
        """
        parts: List[str] = []
        for c in filter.conditions or ():
            parts.append(_condition_to_string(c, field_mapping))
        for g in filter.groups or ():
            rendered = _group_to_string(g, field_mapping)
            if rendered:
                parts.append(rendered)
        return _combine(parts, filter.logic)

    # ---- helpers ------------------------------------------------------------

    @staticmethod
    def create() -> "FilterBuilder":
        return FilterBuilder()

    @staticmethod
    def for_user(user_id: str) -> "FilterBuilder":
        return FilterBuilder.create().equals("user", user_id)

    @staticmethod
    def date_range(field: str, start: dt.datetime, end: dt.datetime) -> "FilterBuilder":
        return (
            FilterBuilder.create()
            .greater_than_or_equal(field, _format_datetime(_as_datetime(start)))
            .less_than_or_equal(field, _format_datetime(_as_datetime(end)))
        )

    @staticmethod
    def with_status(status: Union[str, Sequence[str]]) -> "FilterBuilder":
        builder = FilterBuilder.create()
        if isinstance(status, str):
            return builder.equals("status", status)
        return builder.in_("status", status)


def _as_values(values: Any) -> Any:
    """A bare string (or any other scalar) is one value, not a sequence of them."""
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return [values]
    if isinstance(values, (list, tuple, set, frozenset)):
        return values
    return list(values)


def _as_datetime(value: Union[dt.date, dt.datetime]) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    return dt.datetime(value.year, value.month, value.day)


def to_filter_string(filter: StructuredFilter, field_mapping: FieldMapping = None) -> str:
    return FilterBuilder.to_filter_string(filter, field_mapping)


# -----------------------------------------------------------------------------
# Public exports
# -----------------------------------------------------------------------------
__all__ = [
    "FilterBuilder",
    "FieldMapping",
    "InvalidFilterError",
    "to_filter_string",
]
