from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union
import datetime as dt
import json

import jsonschema

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Operator(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    LK = "~"
    NLK = "!~"
    # any-of variants, value must be an array
    ANY_EQ = "?="
    ANY_NE = "?!="
    ANY_GT = "?>"
    ANY_GTE = "?>="
    ANY_LT = "?<"
    ANY_LTE = "?<="
    ANY_LK = "?~"
    ANY_NLK = "?!~"

    @property
    def is_any(self) -> bool:
        return self.value.startswith("?")


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, raw: Union[str, "LogicalOperator", None]) -> "LogicalOperator":
        if isinstance(raw, cls):
            return raw
        if raw is None:
            return cls.AND
        return cls(str(raw).strip().upper())


Scalar = Union[str, int, float, bool, None, dt.date, dt.datetime]
Value = Union[Scalar, Tuple[Scalar, ...]]


class InvalidFilterError(ValueError):
    """Raised when a condition pairs an array value with a scalar operator."""

    def __init__(self, field_name: str, operator: Operator):
        self.field = field_name
        self.operator = operator
        super().__init__(
            f"Invalid filter: array values cannot be used with operator "
            f"'{operator.value}' on field '{field_name}'. Use an any-of operator "
            f"such as '?=' or '?!=' instead."
        )


def _freeze_value(value: Any) -> Value:
    if isinstance(value, (set, frozenset)):
        # unordered input; sort by type then value so rendering is stable
        return tuple(sorted(value, key=lambda v: (type(v).__name__, v)))
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return value


# ---------------------------------------------------------------------------
# Core filter models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterCondition:
    """
    Basic component of a filter: a field, an operator, and a value.
    """
    field: str
    operator: Operator = Operator.EQ
    value: Value = None

    def __post_init__(self):
        object.__setattr__(self, "operator", Operator(self.operator))
        object.__setattr__(self, "value", _freeze_value(self.value))

    @property
    def is_array(self) -> bool:
        return isinstance(self.value, tuple)

    def validate(self) -> None:
        if self.is_array and not self.operator.is_any:
            raise InvalidFilterError(self.field, self.operator)

    # camelCase JSON helpers
    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator.value,
            "value": list(self.value) if self.is_array else self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterCondition":
        return cls(
            field=data["field"],
            operator=Operator(data.get("operator", Operator.EQ.value)),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class FilterGroup:
    """
    Ragged hierarchy of conditions combined with one logical operator.
    """
    conditions: Tuple[FilterCondition, ...] = ()
    groups: Tuple["FilterGroup", ...] = ()
    logic: LogicalOperator = LogicalOperator.AND

    @property
    def is_empty(self) -> bool:
        return not self.conditions and not self.groups

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conditions": [c.to_dict() for c in self.conditions],
            "groups": [g.to_dict() for g in self.groups],
            "logic": self.logic.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterGroup":
        return cls(
            conditions=tuple(FilterCondition.from_dict(c) for c in data.get("conditions") or []),
            groups=tuple(g for g in (cls.from_dict(g) for g in data.get("groups") or []) if not g.is_empty),
            logic=LogicalOperator.parse(data.get("logic")),
        )


@dataclass(frozen=True)
class StructuredFilter:
    """
    Top-level filter. Absent parts are None rather than empty tuples.
    """
    conditions: Optional[Tuple[FilterCondition, ...]] = None
    groups: Optional[Tuple[FilterGroup, ...]] = None
    logic: LogicalOperator = LogicalOperator.AND

    @property
    def is_empty(self) -> bool:
        return not self.conditions and not self.groups

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"logic": self.logic.value}
        if self.conditions:
            out["conditions"] = [c.to_dict() for c in self.conditions]
        if self.groups:
            out["groups"] = [g.to_dict() for g in self.groups]
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuredFilter":
        group = FilterGroup.from_dict(data)
        return cls(
            conditions=group.conditions or None,
            groups=group.groups or None,
            logic=group.logic,
        )


# ---------------------------------------------------------------------------
# JSON Schema
# ---------------------------------------------------------------------------

_OPERATOR_TOKENS = [op.value for op in Operator]
_ANY_TOKENS = [op.value for op in Operator if op.is_any]

FILTER_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/filter.schema.json",
    "title": "Structured Filter",
    "$defs": {
        "FilterCondition": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "field": {"type": "string", "minLength": 1},
                "operator": {"type": "string", "enum": _OPERATOR_TOKENS},
                "value": {
                    "oneOf": [
                        {"type": "array", "items": {"type": ["string", "number", "boolean", "null"]}},
                        {"type": "string"},
                        {"type": "number"},
                        {"type": "boolean"},
                        {"type": "null"},
                    ]
                },
            },
            "required": ["field", "value"],
            # any-of operators take an array
            "if": {"properties": {"operator": {"enum": _ANY_TOKENS}}, "required": ["operator"]},
            "then": {"properties": {"value": {"type": "array"}}},
        },
        "FilterGroup": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "logic": {"type": "string", "enum": ["AND", "OR", "And", "Or", "and", "or"]},
                "groups": {"type": "array", "items": {"$ref": "#/$defs/FilterGroup"}},
                "conditions": {"type": "array", "items": {"$ref": "#/$defs/FilterCondition"}},
            },
        },
    },
    "type": "object",
    "$ref": "#/$defs/FilterGroup",
}


def parse_filter_json(
    payload: Union[str, Dict[str, Any]],
    *,
    validate: bool = True,
) -> StructuredFilter:
    """
    Accept a JSON string or dict and return a StructuredFilter.
    """
    data = json.loads(payload) if isinstance(payload, str) else payload
    if validate:
        jsonschema.validate(instance=data, schema=FILTER_SCHEMA)
    return StructuredFilter.from_dict(data)


__all__ = [
    "Operator",
    "LogicalOperator",
    "InvalidFilterError",
    "FilterCondition",
    "FilterGroup",
    "StructuredFilter",
    "FILTER_SCHEMA",
    "parse_filter_json",
]
