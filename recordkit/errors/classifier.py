from __future__ import annotations
import asyncio, logging, re
from contextlib import contextmanager
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, TypeVar

import httpx

from ..config import RETRY_BASE_DELAY_MS, RETRY_MAX_ATTEMPTS
from ..filters import InvalidFilterError
from ..transport import ClientResponseError

log = logging.getLogger("recordkit.errors")

T = TypeVar("T")


class ErrorKind(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    SERVER = "server"


class ServiceError(Exception):
    """
    Typed error raised by every recordkit service call. Built only by
    ErrorClassifier.classify().
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.details = details
        self.cause = cause

    @property
    def validation_errors(self) -> List[Dict[str, str]]:
        return list((self.details or {}).get("validation_errors", []))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            out["details"] = self.details
        return out

    def __repr__(self) -> str:
        return f"ServiceError(kind={self.kind.value!r}, message={self.message!r}, retryable={self.retryable})"


# ---- Messages ----------------------------------------------------------------

GENERIC_MESSAGE = "An unexpected error occurred"
NETWORK_MESSAGE = "Network connection failed. Please check your connection and try again."
AUTH_MESSAGE = "Authentication required. Please log in and try again."
PERMISSION_MESSAGE = "You don't have permission to perform this action."
NOT_FOUND_MESSAGE = "The requested resource was not found."
RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."
SERVER_MESSAGE = "Server error. Please try again later."
VALIDATION_MESSAGE = "Please check your input and try again."

# ---- Network detection -------------------------------------------------------

NETWORK_MESSAGE_FRAGMENTS = (
    "failed to fetch",
    "fetch failed",
    "networkerror",
    "network error",
    "network request failed",
    "load failed",
    "abort",
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "connection lost",
    "unreachable",
    "cancelled",
    "canceled",
)
NETWORK_ERROR_NAMES = {"NetworkError", "AbortError", "TimeoutError"}

_TRANSPORT_TYPES = (httpx.TransportError, OSError)
_NETWORK_TYPES = (httpx.NetworkError, httpx.TimeoutException, ConnectionError)


def _message_of(error: BaseException) -> str:
    return str(error) or ""


def _has_network_message(error: BaseException) -> bool:
    msg = _message_of(error).lower()
    return any(fragment in msg for fragment in NETWORK_MESSAGE_FRAGMENTS)


def _has_network_name(error: BaseException) -> bool:
    return any(cls.__name__ in NETWORK_ERROR_NAMES for cls in type(error).__mro__)


_CAMEL_BOUNDARY_RE = re.compile(r"([A-Z])")


def format_field_name(field_name: str) -> str:
    """'firstName' -> 'First Name', 'first_name' -> 'First name'."""
    spaced = _CAMEL_BOUNDARY_RE.sub(r" \1", field_name.replace("_", " ")).strip()
    return spaced[:1].upper() + spaced[1:]


class ErrorClassifier:
    """
    Total mapping from any raised exception to a ServiceError, plus a retry
    helper driven by the classification's retryable flag.

    is_online is the runtime connectivity probe; when it reports False every
    exception is classified as a network failure.
    """

    def __init__(
        self,
        *,
        is_online: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._is_online = is_online
        self._sleep = sleep

    # ---- detection ---------------------------------------------------------

    def _offline(self) -> bool:
        if self._is_online is None:
            return False
        return not self._is_online()

    def is_network_error(self, error: Any) -> bool:
        if not isinstance(error, BaseException):
            return False
        if isinstance(error, _TRANSPORT_TYPES) and _has_network_message(error):
            return True
        if self._offline():
            return True
        if isinstance(error, _NETWORK_TYPES) or _has_network_name(error):
            return True
        if isinstance(error, ClientResponseError):
            return error.status == 0 or error.response is None or error.is_abort
        return False

    # ---- classification ----------------------------------------------------

    def classify(self, error: BaseException, context: Optional[str] = None) -> ServiceError:
        if isinstance(error, ServiceError):
            return error

        if isinstance(error, InvalidFilterError):
            log.warning("Invalid filter in %s: %s", context, error)
            return ServiceError(
                ErrorKind.VALIDATION,
                str(error),
                details={"field": error.field, "operator": error.operator.value},
                cause=error,
            )

        if self.is_network_error(error):
            log.warning("Network failure in %s: %r", context, error)
            return ServiceError(ErrorKind.NETWORK, NETWORK_MESSAGE, retryable=True, cause=error)

        if isinstance(error, ClientResponseError):
            return self._classify_response(error, context)

        log.error("Unhandled error in %s: %r", context, error)
        return ServiceError(
            ErrorKind.SERVER,
            _message_of(error) or GENERIC_MESSAGE,
            retryable=False,
            cause=error,
        )

    def _classify_response(self, error: ClientResponseError, context: Optional[str]) -> ServiceError:
        status = error.status
        log.error(
            "Store error in %s: status=%s url=%s message=%s data=%s",
            context, status, error.url, error.message, error.data,
        )

        if status == 400:
            return self._validation_error(error)
        if status == 401:
            return ServiceError(ErrorKind.AUTH, AUTH_MESSAGE, cause=error)
        if status == 403:
            return ServiceError(ErrorKind.PERMISSION, PERMISSION_MESSAGE, cause=error)
        if status == 404:
            return ServiceError(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE, cause=error)
        if status == 429:
            return ServiceError(ErrorKind.SERVER, RATE_LIMIT_MESSAGE, retryable=True, cause=error)
        if 500 <= status < 600:
            return ServiceError(ErrorKind.SERVER, SERVER_MESSAGE, retryable=True, cause=error)
        return ServiceError(
            ErrorKind.SERVER,
            error.message or GENERIC_MESSAGE,
            retryable=False,
            cause=error,
        )

    def _validation_error(self, error: ClientResponseError) -> ServiceError:
        entries: List[Dict[str, str]] = []
        for field_name, payload in error.field_errors.items():
            if isinstance(payload, dict):
                entries.append({
                    "field": field_name,
                    "code": payload.get("code") or "validation_error",
                    "message": payload.get("message") or "Invalid value",
                })
        return ServiceError(
            ErrorKind.VALIDATION,
            _validation_message(entries),
            details={"validation_errors": entries},
            cause=error,
        )

    # ---- wrappers ----------------------------------------------------------

    @contextmanager
    def guard(self, context: Optional[str] = None) -> Iterator[None]:
        """
        Convert whatever the block raises into a ServiceError.

            with classifier.guard("projects.get_one"):
                raw = await records.get_one(record_id)
        """
        try:
            yield
        except Exception as exc:
            err = self.classify(exc, context)
            if err is exc:
                raise
            raise err from exc

    async def retry_operation(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int = RETRY_MAX_ATTEMPTS,
        base_delay_ms: int = RETRY_BASE_DELAY_MS,
        context: Optional[str] = None,
    ) -> T:
        """
        Run operation, retrying retryable failures with exponential back-off
        (base_delay_ms * 2**attempt). Non-retryable failures raise at once.
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                err = self.classify(exc, context)
                if not err.retryable or attempt >= max_retries:
                    if err is exc:
                        raise
                    raise err from exc
                delay_ms = base_delay_ms * (2 ** attempt)
                log.debug(
                    "Retrying %s after %sms (attempt %s/%s)",
                    context or "operation", delay_ms, attempt + 1, max_retries + 1,
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1


def _validation_message(entries: List[Dict[str, str]]) -> str:
    if not entries:
        return VALIDATION_MESSAGE
    rendered = [f"{format_field_name(e['field'])}: {e['message']}" for e in entries]
    if len(rendered) == 1:
        return rendered[0]
    return "Please fix the following errors: " + ", ".join(rendered)


def is_retryable(error: ServiceError) -> bool:
    return error.retryable


__all__ = [
    "ErrorKind",
    "ServiceError",
    "ErrorClassifier",
    "format_field_name",
    "is_retryable",
    "NETWORK_MESSAGE_FRAGMENTS",
]
