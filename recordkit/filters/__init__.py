"""
Filter system for recordkit.

This module provides structured filter models, a fluent builder and the
serializer to the store's filter-string syntax.
"""

from .models import (
    Operator,
    LogicalOperator,
    InvalidFilterError,
    FilterCondition,
    FilterGroup,
    StructuredFilter,
    FILTER_SCHEMA,
    parse_filter_json,
)
from .builder import FilterBuilder, FieldMapping, to_filter_string

__all__ = [
    "Operator",
    "LogicalOperator",
    "InvalidFilterError",
    "FilterCondition",
    "FilterGroup",
    "StructuredFilter",
    "FILTER_SCHEMA",
    "parse_filter_json",
    "FilterBuilder",
    "FieldMapping",
    "to_filter_string",
]
