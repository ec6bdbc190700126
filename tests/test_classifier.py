import httpx
import pytest

from recordkit.errors import ErrorClassifier, ErrorKind, ServiceError, format_field_name, is_retryable
from recordkit.filters import InvalidFilterError, Operator
from recordkit.transport import ClientResponseError

from .conftest import response_error


class NetworkError(Exception):
    pass


class AbortError(Exception):
    pass


class Named:
    name = "NetworkError"
    message = "Failed to fetch"


# ---- is_network_error ----------------------------------------------------------

@pytest.mark.parametrize("error", [
    OSError("Connection refused"),
    httpx.TransportError("Failed to fetch"),
    httpx.ConnectError("connection reset by peer"),
    httpx.ReadTimeout("timed out"),
    ConnectionResetError("reset"),
    TimeoutError(),
    NetworkError("whatever"),
    AbortError("user navigated away"),
    ClientResponseError(0, {}),
    ClientResponseError(500, {}, response=None),
    ClientResponseError(200, {}, is_abort=True),
])
def test_network_errors(classifier, error):
    assert classifier.is_network_error(error)


@pytest.mark.parametrize("error", [
    None,
    "Failed to fetch",
    {"name": "NetworkError"},
    Named(),
    ValueError("timeout in user input"),
    Exception("Regular application error"),
    response_error(500),
])
def test_not_network_errors(classifier, error):
    assert not classifier.is_network_error(error)


def test_offline_forces_network_classification():
    classifier = ErrorClassifier(is_online=lambda: False)
    assert classifier.is_network_error(ValueError("anything"))
    err = classifier.classify(ValueError("anything"))
    assert err.kind is ErrorKind.NETWORK
    assert err.retryable


# ---- classify ------------------------------------------------------------------

@pytest.mark.parametrize("status,kind,retryable", [
    (401, ErrorKind.AUTH, False),
    (403, ErrorKind.PERMISSION, False),
    (404, ErrorKind.NOT_FOUND, False),
    (429, ErrorKind.SERVER, True),
    (500, ErrorKind.SERVER, True),
    (502, ErrorKind.SERVER, True),
    (503, ErrorKind.SERVER, True),
    (504, ErrorKind.SERVER, True),
    (409, ErrorKind.SERVER, False),
])
def test_status_classification(classifier, status, kind, retryable):
    err = classifier.classify(response_error(status))
    assert err.kind is kind
    assert err.retryable is retryable
    assert isinstance(err.message, str) and err.message


def test_validation_errors_are_field_qualified(classifier):
    err = classifier.classify(response_error(400, {
        "code": 400,
        "message": "Failed to create record.",
        "data": {
            "firstName": {"code": "validation_required", "message": "Missing required value."},
            "email": {"code": "validation_invalid_email", "message": "Must be a valid email address."},
        },
    }))
    assert err.kind is ErrorKind.VALIDATION
    assert not err.retryable
    assert err.validation_errors == [
        {"field": "firstName", "code": "validation_required", "message": "Missing required value."},
        {"field": "email", "code": "validation_invalid_email", "message": "Must be a valid email address."},
    ]
    assert "First Name: Missing required value." in err.message
    assert "Email: Must be a valid email address." in err.message


def test_single_validation_error_message(classifier):
    err = classifier.classify(response_error(400, {"data": {"title": {"code": "x", "message": "Too short."}}}))
    assert err.message == "Title: Too short."


def test_invalid_filter_is_validation(classifier):
    err = classifier.classify(InvalidFilterError("tags", Operator.EQ))
    assert err.kind is ErrorKind.VALIDATION
    assert err.details == {"field": "tags", "operator": "="}


def test_service_error_passes_through(classifier):
    original = classifier.classify(response_error(404))
    assert classifier.classify(original) is original


def test_unknown_exception_is_server(classifier):
    err = classifier.classify(RuntimeError("kaboom"))
    assert err.kind is ErrorKind.SERVER
    assert err.message == "kaboom"
    assert not is_retryable(err)
    assert err.to_dict() == {"kind": "server", "message": "kaboom", "retryable": False}


def test_format_field_name():
    assert format_field_name("firstName") == "First Name"
    assert format_field_name("first_name") == "First name"


# ---- guard ---------------------------------------------------------------------

def test_guard_chains_cause(classifier):
    cause = response_error(403)
    with pytest.raises(ServiceError) as exc_info:
        with classifier.guard("projects.get_one"):
            raise cause
    assert exc_info.value.kind is ErrorKind.PERMISSION
    assert exc_info.value.__cause__ is cause
    assert exc_info.value.cause is cause


# ---- retry_operation -----------------------------------------------------------

async def test_retry_succeeds_after_transient_failures(classifier, sleep):
    attempts = []

    async def op():
        attempts.append(1)
        if len(attempts) < 3:
            raise response_error(503)
        return "ok"

    assert await classifier.retry_operation(op, max_retries=3, base_delay_ms=100) == "ok"
    assert len(attempts) == 3
    assert sleep.delays == [0.1, 0.2]


async def test_retry_exhaustion_raises_last_error(classifier, sleep):
    attempts = []

    async def op():
        attempts.append(1)
        raise httpx.ConnectError("connection refused")

    with pytest.raises(ServiceError) as exc_info:
        await classifier.retry_operation(op, max_retries=2, base_delay_ms=1000)
    assert exc_info.value.kind is ErrorKind.NETWORK
    assert len(attempts) == 3
    assert sleep.delays == [1.0, 2.0]


async def test_non_retryable_aborts_immediately(classifier, sleep):
    attempts = []

    async def op():
        attempts.append(1)
        raise response_error(404)

    with pytest.raises(ServiceError) as exc_info:
        await classifier.retry_operation(op, max_retries=5)
    assert exc_info.value.kind is ErrorKind.NOT_FOUND
    assert len(attempts) == 1
    assert sleep.delays == []
