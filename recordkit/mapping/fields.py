from __future__ import annotations
import re
from typing import Any, Dict, Iterable, List, Mapping

from ..config import FIELD_MAPPING_MAX_DEPTH

# Store system fields that are already camelCase on the wire.
_SYSTEM_FIELDS = {
    "collectionId": "collectionId",
    "collectionName": "collectionName",
}

COMMON_MAPPINGS: Dict[str, str] = {
    # datetime fields
    "dateCreated": "date_created",
    "dateUpdated": "date_updated",
    "dateReceived": "date_received",
    "datePurchased": "date_purchased",
    "dateCompleted": "date_completed",
    # user fields
    "userId": "user_id",
    "userName": "user_name",
    "userEmail": "user_email",
    # project fields
    "projectId": "project_id",
    "projectName": "project_name",
    "projectStatus": "project_status",
    # metadata fields
    "metaData": "meta_data",
    "isActive": "is_active",
    "isPublic": "is_public",
    "isDeleted": "is_deleted",
    # file fields
    "fileName": "file_name",
    "fileSize": "file_size",
    "fileType": "file_type",
    **_SYSTEM_FIELDS,
}

_SNAKE_PART_RE = re.compile(r"(?<=[A-Za-z0-9])_([a-z])")
_CAMEL_PART_RE = re.compile(r"(?<=[A-Za-z0-9])([A-Z])")


def camel_to_snake(name: str) -> str:
    """
    Convert camelCase string to snake_case, one underscore per capital so
    that snake_to_camel() reverses it.
    Example: 'developmentAreaId' -> 'development_area_id', 'posXY' -> 'pos_x_y'
    """
    return _CAMEL_PART_RE.sub(r"_\1", name).lower()


def snake_to_camel(name: str) -> str:
    """
    Convert snake_case string to camelCase. Leading underscores are kept.
    Example: 'development_area_id' -> 'developmentAreaId'
    """
    return _SNAKE_PART_RE.sub(lambda m: m.group(1).upper(), name)


def _is_plain_object(value: Any) -> bool:
    # lists, tuples and date/time values are leaves
    return isinstance(value, Mapping)


class FieldMapper:
    """
    Bidirectional field-name translation between application keys (camelCase)
    and storage keys (snake_case). Explicit mappings win over the automatic
    rule in both directions.
    """

    def __init__(self, mapping: Mapping[str, str] | None = None, *, max_depth: int = FIELD_MAPPING_MAX_DEPTH):
        self.mapping: Dict[str, str] = dict(mapping or {})
        self.reverse_mapping: Dict[str, str] = {v: k for k, v in self.mapping.items()}
        self.max_depth = max_depth

    # ---- single keys ---------------------------------------------------------

    def storage_field(self, application_field: str) -> str:
        return self.mapping.get(application_field) or camel_to_snake(application_field)

    def application_field(self, storage_field: str) -> str:
        return self.reverse_mapping.get(storage_field) or snake_to_camel(storage_field)

    # ---- payloads ------------------------------------------------------------

    def to_storage(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self._translate(data, self.storage_field, 0)

    def to_application(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self._translate(data, self.application_field, 0)

    def _translate(self, data: Mapping[str, Any], rename, depth: int) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in data.items():
            if _is_plain_object(value) and depth + 1 < self.max_depth:
                value = self._translate(value, rename, depth + 1)
            out[rename(key)] = value
        return out

    def map_filter_fields(self, filter_map: Mapping[str, Any]) -> Dict[str, Any]:
        """Translate keys to storage names; values are left untouched."""
        return {self.storage_field(k): v for k, v in filter_map.items()}

    def map_list_to_application(self, records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [self.to_application(r) for r in records]

    def map_list_to_storage(self, records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [self.to_storage(r) for r in records]

    @staticmethod
    def has_fields(data: Any, required: Iterable[str]) -> bool:
        if not isinstance(data, Mapping):
            return False
        return all(f in data for f in required)

    # ---- constructors --------------------------------------------------------

    @classmethod
    def with_common_mappings(cls, additional: Mapping[str, str] | None = None) -> "FieldMapper":
        return cls(merge_mappings(COMMON_MAPPINGS, additional or {}))


def merge_mappings(*mappings: Mapping[str, str]) -> Dict[str, str]:
    merged: Dict[str, str] = {}
    for m in mappings:
        merged.update(m)
    return merged


def mapping_from_sample(sample: Mapping[str, Any], custom: Mapping[str, str] | None = None) -> Dict[str, str]:
    """Build an explicit mapping for every key of a sample application record."""
    custom = dict(custom or {})
    auto = {k: camel_to_snake(k) for k in sample if k not in custom}
    return {**auto, **custom}


__all__ = [
    "FieldMapper",
    "COMMON_MAPPINGS",
    "camel_to_snake",
    "snake_to_camel",
    "merge_mappings",
    "mapping_from_sample",
]
