"""
Collection services: one CRUD / query / subscribe façade per collection.
"""

from .options import (
    ServiceConfig,
    ListOptions,
    ListResult,
    SEARCH_SCHEMA,
    parse_list_options_json,
    expand_to_string,
)
from .collection import CollectionService

__all__ = [
    "CollectionService",
    "ServiceConfig",
    "ListOptions",
    "ListResult",
    "SEARCH_SCHEMA",
    "parse_list_options_json",
    "expand_to_string",
]
