from __future__ import annotations
from typing import Any, Dict, List, Optional

import httpx
import pytest

from recordkit.errors import ErrorClassifier
from recordkit.realtime import Lifecycle, SubscriptionRegistry
from recordkit.transport import ClientResponseError


def response_error(status: int, body: Optional[Dict[str, Any]] = None) -> ClientResponseError:
    """A ClientResponseError that did reach the server."""
    return ClientResponseError.from_response(httpx.Response(status, json=body or {"message": "boom"}))


class FakeCollection:
    """
    In-memory stand-in for one store collection. Every call is recorded in
    `calls`; queue an exception in `fail_next[method]` to make a call raise.
    """

    def __init__(self, name: str):
        self.name = name
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_next: Dict[str, List[BaseException]] = {}
        self.handlers: Dict[str, Any] = {}
        self.unsubscribed: List[str] = []
        self.list_result: Optional[Dict[str, Any]] = None
        self._next_id = 0

    def _maybe_fail(self, method: str) -> None:
        queue = self.fail_next.get(method)
        if queue:
            raise queue.pop(0)

    async def get_list(self, page, per_page, *, sort=None, filter=None, expand=None):
        self.calls.append(("get_list", page, per_page, {"sort": sort, "filter": filter, "expand": expand}))
        self._maybe_fail("get_list")
        if self.list_result is not None:
            return self.list_result
        items = list(self.records.values())
        return {
            "page": page,
            "perPage": per_page,
            "totalItems": len(items),
            "totalPages": 1 if items else 0,
            "items": items[(page - 1) * per_page: page * per_page],
        }

    async def get_one(self, record_id, *, expand=None):
        self.calls.append(("get_one", record_id, {"expand": expand}))
        self._maybe_fail("get_one")
        if record_id not in self.records:
            raise response_error(404, {"code": 404, "message": "The requested resource wasn't found."})
        return dict(self.records[record_id])

    async def create(self, data):
        self.calls.append(("create", dict(data)))
        self._maybe_fail("create")
        self._next_id += 1
        record = {"id": f"r{self._next_id}", **data}
        self.records[record["id"]] = record
        return dict(record)

    async def update(self, record_id, data):
        self.calls.append(("update", record_id, dict(data)))
        self._maybe_fail("update")
        if record_id not in self.records:
            raise response_error(404)
        self.records[record_id].update(data)
        return dict(self.records[record_id])

    async def delete(self, record_id):
        self.calls.append(("delete", record_id))
        self._maybe_fail("delete")
        if record_id not in self.records:
            raise response_error(404)
        del self.records[record_id]

    async def get_first_list_item(self, filter, *, expand=None):
        self.calls.append(("get_first_list_item", filter, {"expand": expand}))
        self._maybe_fail("get_first_list_item")
        if not self.records:
            raise response_error(404)
        return dict(next(iter(self.records.values())))

    async def subscribe(self, topic, handler):
        self.calls.append(("subscribe", topic))
        self._maybe_fail("subscribe")
        self.handlers[topic] = handler

        async def unsubscribe():
            self.unsubscribed.append(topic)
            self.handlers.pop(topic, None)
            self._maybe_fail("unsubscribe")

        return unsubscribe

    async def emit(self, topic: str, record: Dict[str, Any], action: str = "create") -> None:
        await self.handlers[topic]({"action": action, "record": record})


class FakeClient:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def lifecycle() -> Lifecycle:
    return Lifecycle()


@pytest.fixture
def registry(client, lifecycle) -> SubscriptionRegistry:
    return SubscriptionRegistry(client, lifecycle)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def classifier(sleep) -> ErrorClassifier:
    return ErrorClassifier(sleep=sleep)
