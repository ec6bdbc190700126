from __future__ import annotations
import asyncio, logging
from typing import (
    Any, Awaitable, Callable, Dict, Generic, Iterable, List, Mapping, Optional,
    Sequence, Tuple, Type, TypeVar, Union,
)

from pydantic import BaseModel

from ..errors import ErrorClassifier, ErrorKind, ServiceError
from ..filters import FilterBuilder, StructuredFilter
from ..mapping import FieldMapper
from ..realtime import Subscription, SubscriptionRegistry
from ..transport import RecordClient
from .options import Expand, ListOptions, ListResult, ServiceConfig, expand_to_string

log = logging.getLogger("recordkit.service")

T = TypeVar("T")
R = TypeVar("R")

Payload = Union[Mapping[str, Any], BaseModel]


class CollectionService(Generic[T]):
    """
    Uniform CRUD / query / subscribe contract for one collection.

    Outgoing payloads are translated to storage naming, incoming records to
    application naming (and validated into record_type when one is given).
    Every failure leaves as a ServiceError.
    """

    def __init__(
        self,
        client: RecordClient,
        config: ServiceConfig,
        *,
        subscriptions: Optional[SubscriptionRegistry] = None,
        classifier: Optional[ErrorClassifier] = None,
        record_type: Optional[Type[BaseModel]] = None,
        field_mapper: Optional[FieldMapper] = None,
    ):
        if subscriptions is None:
            from ..defaults import get_subscription_registry
            subscriptions = get_subscription_registry(client)

        self.config = config
        self.collection = config.collection
        self.records = client.collection(config.collection)
        self.subscriptions = subscriptions
        self.errors = classifier or ErrorClassifier()
        self.record_type = record_type
        self.field_mapper = field_mapper or FieldMapper.with_common_mappings(config.field_mapping)

    # ---- translation -------------------------------------------------------

    def _to_record(self, raw: Mapping[str, Any]) -> T:
        mapped = self.field_mapper.to_application(raw)
        if self.record_type is not None:
            return self.record_type.model_validate(mapped)
        return mapped

    def _to_storage(self, data: Payload) -> Dict[str, Any]:
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True, exclude_unset=True)
        return self.field_mapper.to_storage(data)

    def _filter_string(self, filter: Optional[StructuredFilter]) -> str:
        if filter is None:
            return ""
        return FilterBuilder.to_filter_string(filter, self.field_mapper.storage_field)

    def _expand(self, expand: Expand) -> str:
        return expand_to_string(expand) or expand_to_string(self.config.default_expand)

    def _context(self, op: str) -> str:
        return f"{self.collection}.{op}"

    async def _read(self, op: str, call: Callable[[], Awaitable[R]]) -> R:
        context = self._context(op)
        if self.config.retries > 0:
            return await self.errors.retry_operation(
                call, max_retries=self.config.retries, context=context
            )
        with self.errors.guard(context):
            return await call()

    # ---- queries -----------------------------------------------------------

    async def list(self, options: Optional[ListOptions] = None) -> ListResult[T]:
        options = options or ListOptions()
        with self.errors.guard(self._context("list")):
            filter_string = self._filter_string(options.filter)
        sort = options.sort or self.config.default_sort or ""
        expand = self._expand(options.expand)

        log.debug(
            "Listing %s page=%s per_page=%s sort=%s expand=%s filter=%s",
            self.collection, options.page, options.per_page, sort, expand, filter_string,
        )
        result = await self._read("list", lambda: self.records.get_list(
            options.page, options.per_page, sort=sort, filter=filter_string, expand=expand,
        ))
        return ListResult(
            page=result.get("page", options.page),
            per_page=result.get("perPage", options.per_page),
            total_items=result.get("totalItems", 0),
            total_pages=result.get("totalPages", 0),
            items=[self._to_record(item) for item in result.get("items", [])],
        )

    async def get_one(self, record_id: str, expand: Expand = None) -> T:
        expand_string = self._expand(expand)
        log.debug("Getting %s/%s expand=%s", self.collection, record_id, expand_string)
        raw = await self._read("get_one", lambda: self.records.get_one(record_id, expand=expand_string))
        return self._to_record(raw)

    async def get_first(self, filter: StructuredFilter, expand: Expand = None) -> Optional[T]:
        """First record matching filter, or None when nothing matches."""
        with self.errors.guard(self._context("get_first")):
            filter_string = self._filter_string(filter)
        expand_string = self._expand(expand)
        log.debug("Getting first %s filter=%s", self.collection, filter_string)
        try:
            raw = await self._read("get_first", lambda: self.records.get_first_list_item(
                filter_string, expand=expand_string,
            ))
        except ServiceError as err:
            if err.kind == ErrorKind.NOT_FOUND:
                return None
            raise
        return self._to_record(raw)

    async def count(self, filter: Optional[StructuredFilter] = None) -> int:
        with self.errors.guard(self._context("count")):
            filter_string = self._filter_string(filter)
        log.debug("Counting %s filter=%s", self.collection, filter_string)
        result = await self._read("count", lambda: self.records.get_list(1, 1, filter=filter_string))
        return int(result.get("totalItems", 0))

    async def exists(self, record_id: str) -> bool:
        try:
            await self.get_one(record_id)
        except ServiceError as err:
            if err.kind == ErrorKind.NOT_FOUND:
                return False
            raise
        return True

    async def get_by_ids(self, ids: Union[str, Sequence[str]], expand: Expand = None) -> List[T]:
        ids = [ids] if isinstance(ids, str) else list(ids)
        if not ids:
            return []
        filter = FilterBuilder.create().in_("id", ids).build()
        result = await self.list(ListOptions(filter=filter, expand=expand, per_page=len(ids)))
        return result.items

    # ---- writes ------------------------------------------------------------

    async def create(self, data: Payload) -> T:
        payload = self._to_storage(data)
        log.debug("Creating %s record", self.collection)
        with self.errors.guard(self._context("create")):
            raw = await self.records.create(payload)
        return self._to_record(raw)

    async def update(self, record_id: str, data: Payload) -> T:
        payload = self._to_storage(data)
        log.debug("Updating %s/%s", self.collection, record_id)
        with self.errors.guard(self._context("update")):
            raw = await self.records.update(record_id, payload)
        return self._to_record(raw)

    async def delete(self, record_id: str) -> bool:
        log.debug("Deleting %s/%s", self.collection, record_id)
        with self.errors.guard(self._context("delete")):
            await self.records.delete(record_id)
        return True

    async def create_batch(self, records: Iterable[Payload]) -> List[T]:
        records = list(records)
        log.debug("Creating %d %s records", len(records), self.collection)
        with self.errors.guard(self._context("create_batch")):
            return list(await asyncio.gather(*(self.create(r) for r in records)))

    async def update_batch(self, updates: Iterable[Tuple[str, Payload]]) -> List[T]:
        updates = list(updates)
        log.debug("Updating %d %s records", len(updates), self.collection)
        with self.errors.guard(self._context("update_batch")):
            return list(await asyncio.gather(*(self.update(i, d) for i, d in updates)))

    async def delete_batch(self, ids: Iterable[str]) -> List[bool]:
        ids = list(ids)
        log.debug("Deleting %d %s records", len(ids), self.collection)
        with self.errors.guard(self._context("delete_batch")):
            return list(await asyncio.gather(*(self.delete(i) for i in ids)))

    # ---- realtime ----------------------------------------------------------

    async def subscribe(
        self,
        callback: Callable[[T], Any],
        filter: Optional[StructuredFilter] = None,
    ) -> Subscription:
        with self.errors.guard(self._context("subscribe")):
            filter_string = self._filter_string(filter) or None
            log.debug("Subscribing to %s filter=%s", self.collection, filter_string)
            return await self.subscriptions.subscribe(
                self.collection, callback, filter_string, transform=self._to_record,
            )

    async def unsubscribe_all(self) -> int:
        return await self.subscriptions.unsubscribe_collection(self.collection)

    async def get_stats(self) -> Dict[str, Any]:
        total = await self.count()
        stats = self.subscriptions.get_subscription_stats()
        return {
            "total": total,
            "collection": self.collection,
            "subscriptions": stats["by_collection"].get(self.collection, 0),
        }

    # ---- builders ----------------------------------------------------------

    def filter(self) -> FilterBuilder:
        return FilterBuilder.create()

    def for_user(self, user_id: str) -> FilterBuilder:
        return FilterBuilder.for_user(user_id)


__all__ = ["CollectionService"]
