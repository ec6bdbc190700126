"""
Contract of the upstream store client.

recordkit never speaks the wire protocol itself. It is handed a client object
that satisfies RecordClient and raises ClientResponseError (or an httpx
transport exception) when a call fails.
"""

from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import httpx

RealtimeHandler = Callable[[Dict[str, Any]], Awaitable[None]]
Unsubscribe = Callable[[], Awaitable[None]]


class RecordCollection(Protocol):
    """Collection-scoped CRUD and subscribe primitives."""

    async def get_list(
        self,
        page: int,
        per_page: int,
        *,
        sort: Optional[str] = None,
        filter: Optional[str] = None,
        expand: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Returns {page, perPage, totalItems, totalPages, items}."""
        ...

    async def get_one(self, record_id: str, *, expand: Optional[str] = None) -> Dict[str, Any]: ...

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update(self, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete(self, record_id: str) -> None: ...

    async def get_first_list_item(self, filter: str, *, expand: Optional[str] = None) -> Dict[str, Any]: ...

    async def subscribe(self, topic: str, handler: RealtimeHandler) -> Unsubscribe:
        """topic is a filter string or '*'; handler receives {action, record}."""
        ...


class RecordClient(Protocol):
    def collection(self, name: str) -> RecordCollection: ...


class ClientResponseError(Exception):
    """
    Error surfaced by the store client.

    status is 0 when the server was never reached; response is None in that
    case too. data is the decoded error body, e.g.
    {"code": 400, "message": "...", "data": {"title": {"code": ..., "message": ...}}}.
    """

    def __init__(
        self,
        status: int = 0,
        data: Optional[Dict[str, Any]] = None,
        *,
        url: str = "",
        response: Optional[httpx.Response] = None,
        message: Optional[str] = None,
        is_abort: bool = False,
    ):
        self.status = status
        self.data: Dict[str, Any] = data or {}
        self.url = url
        self.response = response
        self.is_abort = is_abort
        self.message = message or self.data.get("message") or "Something went wrong while processing your request."
        super().__init__(self.message)

    @property
    def field_errors(self) -> Dict[str, Any]:
        """Per-field error payload of a validation failure."""
        nested = self.data.get("data")
        if isinstance(nested, dict):
            return nested
        return {}

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ClientResponseError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        try:
            url = str(response.request.url)
        except RuntimeError:
            # response built without a request
            url = ""
        return cls(response.status_code, body, url=url, response=response)

    def __repr__(self) -> str:
        return f"ClientResponseError(status={self.status}, url={self.url!r}, message={self.message!r})"


__all__ = [
    "RecordClient",
    "RecordCollection",
    "RealtimeHandler",
    "Unsubscribe",
    "ClientResponseError",
]
