from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar, Union
import json

import jsonschema

from ..config import DEFAULT_PER_PAGE
from ..filters import FILTER_SCHEMA, StructuredFilter

T = TypeVar("T")

Expand = Union[str, Sequence[str], None]


def expand_to_string(expand: Expand) -> str:
    if not expand:
        return ""
    if isinstance(expand, str):
        return expand
    return ",".join(expand)


# ---------------------------------------------------------------------------
# Per-collection configuration
# ---------------------------------------------------------------------------

@dataclass
class ServiceConfig:
    """
    Python-idiomatic model (snake_case) with camelCase JSON interop.
    """
    collection: str
    default_sort: Optional[str] = None
    default_expand: List[str] = field(default_factory=list)
    field_mapping: Optional[Dict[str, str]] = None
    retries: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "defaultSort": self.default_sort,
            "defaultExpand": list(self.default_expand),
            "fieldMapping": dict(self.field_mapping) if self.field_mapping is not None else None,
            "retries": self.retries,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceConfig":
        expand = data.get("defaultExpand") or []
        if isinstance(expand, str):
            expand = [e.strip() for e in expand.split(",") if e.strip()]
        mapping = data.get("fieldMapping")
        return cls(
            collection=str(data["collection"]),
            default_sort=data.get("defaultSort"),
            default_expand=list(expand),
            field_mapping=dict(mapping) if mapping is not None else None,
            retries=int(data.get("retries", 0) or 0),
        )


# ---------------------------------------------------------------------------
# List options / results
# ---------------------------------------------------------------------------

SEARCH_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/search.schema.json",
    "title": "List Options",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "page": {"type": "integer", "minimum": 1},
        "perPage": {"type": "integer", "minimum": 1},
        "sort": {"type": "string"},
        "expand": {
            "oneOf": [
                {"type": "string"},
                {"type": "array", "items": {"type": "string"}},
            ]
        },
        "filter": {"$ref": "#/$defs/FilterGroup"},
    },
    "$defs": FILTER_SCHEMA["$defs"],
}


@dataclass
class ListOptions:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    sort: Optional[str] = None
    expand: Expand = None
    filter: Optional[StructuredFilter] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"page": self.page, "perPage": self.per_page}
        if self.sort:
            out["sort"] = self.sort
        if self.expand:
            out["expand"] = self.expand if isinstance(self.expand, str) else list(self.expand)
        if self.filter is not None:
            out["filter"] = self.filter.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListOptions":
        raw_filter = data.get("filter")
        return cls(
            page=int(data.get("page", 1) or 1),
            per_page=int(data.get("perPage", DEFAULT_PER_PAGE) or DEFAULT_PER_PAGE),
            sort=data.get("sort"),
            expand=data.get("expand"),
            filter=StructuredFilter.from_dict(raw_filter) if raw_filter else None,
        )


def parse_list_options_json(
    payload: Union[str, Dict[str, Any]],
    *,
    validate: bool = True,
) -> ListOptions:
    """
    Accept camelCase JSON for ListOptions, including a nested structured filter.
    """
    data = json.loads(payload) if isinstance(payload, str) else payload
    if validate:
        jsonschema.validate(instance=data, schema=SEARCH_SCHEMA)
    return ListOptions.from_dict(data)


@dataclass
class ListResult(Generic[T]):
    page: int
    per_page: int
    total_items: int
    total_pages: int
    items: List[T] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "perPage": self.per_page,
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
            "items": [_dump(i) for i in self.items],
        }


def _dump(item: Any) -> Any:
    dump = getattr(item, "model_dump", None)
    if dump is not None:
        return dump(by_alias=True, mode="json")
    return item


__all__ = [
    "ServiceConfig",
    "ListOptions",
    "ListResult",
    "SEARCH_SCHEMA",
    "parse_list_options_json",
    "expand_to_string",
]
