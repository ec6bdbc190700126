"""
Field-name translation between application and storage naming conventions.
"""

from .fields import (
    FieldMapper,
    COMMON_MAPPINGS,
    camel_to_snake,
    snake_to_camel,
    merge_mappings,
    mapping_from_sample,
)

__all__ = [
    "FieldMapper",
    "COMMON_MAPPINGS",
    "camel_to_snake",
    "snake_to_camel",
    "merge_mappings",
    "mapping_from_sample",
]
