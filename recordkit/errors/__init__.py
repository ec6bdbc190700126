"""
Error classification for recordkit.
"""

from .classifier import (
    ErrorKind,
    ServiceError,
    ErrorClassifier,
    format_field_name,
    is_retryable,
    NETWORK_MESSAGE_FRAGMENTS,
)

__all__ = [
    "ErrorKind",
    "ServiceError",
    "ErrorClassifier",
    "format_field_name",
    "is_retryable",
    "NETWORK_MESSAGE_FRAGMENTS",
]
