"""
recordkit: a structured data-access layer over a remote collection store.

Application code talks to CollectionService; filters are built with
FilterBuilder and every failure surfaces as a ServiceError.
"""

from .errors import ErrorClassifier, ErrorKind, ServiceError, is_retryable
from .filters import (
    FilterBuilder,
    FilterCondition,
    FilterGroup,
    InvalidFilterError,
    LogicalOperator,
    Operator,
    StructuredFilter,
    to_filter_string,
)
from .mapping import FieldMapper
from .models import Record
from .realtime import Lifecycle, LifecycleEvent, Subscription, SubscriptionRegistry
from .service import CollectionService, ListOptions, ListResult, ServiceConfig
from .transport import ClientResponseError, RecordClient, RecordCollection

__version__ = "0.1.0"

__all__ = [
    "CollectionService",
    "ServiceConfig",
    "ListOptions",
    "ListResult",
    "FilterBuilder",
    "FilterCondition",
    "FilterGroup",
    "StructuredFilter",
    "Operator",
    "LogicalOperator",
    "InvalidFilterError",
    "to_filter_string",
    "FieldMapper",
    "ErrorClassifier",
    "ErrorKind",
    "ServiceError",
    "is_retryable",
    "SubscriptionRegistry",
    "Subscription",
    "Lifecycle",
    "LifecycleEvent",
    "Record",
    "RecordClient",
    "RecordCollection",
    "ClientResponseError",
]
