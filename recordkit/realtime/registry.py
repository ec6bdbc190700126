from __future__ import annotations
import asyncio, inspect, logging, time, zlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..transport import RecordClient, Unsubscribe
from .lifecycle import Lifecycle, LifecycleEvent

log = logging.getLogger("recordkit.realtime")

Callback = Callable[[Any], Any]
Transform = Callable[[Dict[str, Any]], Any]


def subscription_key(collection: str, filter: Optional[str] = None) -> str:
    """Deterministic key for one logical feed: collection, filter and a short hash."""
    filter_key = filter or "*"
    digest = zlib.crc32(f"{collection}:{filter_key}".encode("utf-8"))
    return f"{collection}:{filter_key}:{digest:08x}"


@dataclass(frozen=True)
class PausedSubscription:
    collection: str
    filter: Optional[str] = None


class Subscription:
    """
    Handle returned to whoever subscribed. cancel() may be awaited any
    number of times.
    """

    def __init__(self, registry: "SubscriptionRegistry", key: str, collection: str,
                 filter: Optional[str], unsubscribe: Unsubscribe):
        self.key = key
        self.collection = collection
        self.filter = filter
        self._registry = registry
        self._unsubscribe = unsubscribe
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def cancel(self) -> None:
        if self._cancelled:
            return
        await self._registry._release(self)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"Subscription({self.collection!r}, filter={self.filter!r}, {state})"


class SubscriptionRegistry:
    """
    Owns the mapping (collection, filter) -> live realtime subscription.

    At most one underlying subscription exists per key; subscribing again
    replaces the previous one. Map mutations are serialized with a lock.
    """

    def __init__(self, client: RecordClient, lifecycle: Optional[Lifecycle] = None):
        self._client = client
        self._entries: Dict[str, Subscription] = {}
        self._paused: List[PausedSubscription] = []
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._cleaning_up = False
        self._total_created = 0
        self._total_destroyed = 0
        self._last_activity = time.time()

        self._lifecycle = lifecycle
        self._detach: List[Callable[[], None]] = []
        if lifecycle is not None:
            self._detach = [
                lifecycle.on(LifecycleEvent.TERMINATE, self.unsubscribe_all),
                lifecycle.on(LifecycleEvent.BACKGROUND, self.pause),
                lifecycle.on(LifecycleEvent.FOREGROUND, self._on_foreground),
            ]

    def _map_lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to the loop it is first contended on
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    # ---- subscribe ---------------------------------------------------------

    async def subscribe(
        self,
        collection: str,
        callback: Callback,
        filter: Optional[str] = None,
        *,
        transform: Optional[Transform] = None,
    ) -> Subscription:
        key = subscription_key(collection, filter)

        async def handler(event: Dict[str, Any]) -> None:
            record = event.get("record", event) if isinstance(event, dict) else event
            try:
                payload = transform(record) if transform is not None else record
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception("Error in subscription callback (collection=%s filter=%s key=%s)",
                              collection, filter, key)

        async with self._map_lock():
            existing = self._entries.pop(key, None)
            self._paused = [p for p in self._paused
                            if (p.collection, p.filter) != (collection, filter)]
        if existing is not None:
            await self._teardown(existing)

        try:
            unsubscribe = await self._client.collection(collection).subscribe(filter or "*", handler)
        except Exception:
            log.exception("Failed to create subscription (collection=%s filter=%s)", collection, filter)
            raise

        sub = Subscription(self, key, collection, filter, unsubscribe)
        async with self._map_lock():
            # a concurrent subscribe for the same key may have landed first
            displaced = self._entries.get(key)
            self._entries[key] = sub
            self._total_created += 1
            self._touch()
        if displaced is not None:
            await self._teardown(displaced)

        log.debug("Subscription created: %s (active=%d, created=%d)",
                  key, len(self._entries), self._total_created)
        return sub

    # ---- teardown ----------------------------------------------------------
    #
    # Entries leave the map under the lock; the transport's unsubscribe is
    # awaited after the lock is released, so a teardown may call back into
    # the registry.

    async def _teardown(self, sub: Subscription) -> None:
        if sub._cancelled:
            return
        sub._cancelled = True
        self._total_destroyed += 1
        self._touch()
        try:
            await sub._unsubscribe()
        except Exception:
            log.exception("Error unsubscribing %s", sub.key)
        log.debug("Subscription removed: %s (remaining=%d)", sub.key, len(self._entries))

    async def _teardown_all(self, subs: List[Subscription]) -> None:
        for sub in subs:
            await self._teardown(sub)

    async def _release(self, sub: Subscription) -> None:
        if self._cleaning_up:
            # the running sweep owns every entry
            return
        async with self._map_lock():
            if self._entries.get(sub.key) is sub:
                del self._entries[sub.key]
        await self._teardown(sub)

    async def unsubscribe_collection(self, collection: str) -> int:
        if self._cleaning_up:
            return 0
        async with self._map_lock():
            doomed = [s for s in self._entries.values() if s.collection == collection]
            for sub in doomed:
                del self._entries[sub.key]
        await self._teardown_all(doomed)
        log.debug("Unsubscribed from collection %s (removed=%d)", collection, len(doomed))
        return len(doomed)

    async def unsubscribe_all(self) -> None:
        if self._cleaning_up:
            return
        self._cleaning_up = True
        try:
            async with self._map_lock():
                doomed = list(self._entries.values())
                self._entries.clear()
            log.debug("Cleaning up all subscriptions (count=%d)", len(doomed))
            await self._teardown_all(doomed)
        finally:
            self._cleaning_up = False

    # ---- pause / resume ----------------------------------------------------

    async def pause(self) -> List[PausedSubscription]:
        """
        Tear down the network side of every subscription but remember what
        was active. Callbacks are not restored automatically.
        """
        if self._cleaning_up:
            return list(self._paused)
        self._cleaning_up = True
        try:
            async with self._map_lock():
                doomed = list(self._entries.values())
                self._entries.clear()
                self._paused.extend(PausedSubscription(s.collection, s.filter) for s in doomed)
            await self._teardown_all(doomed)
        finally:
            self._cleaning_up = False
        log.info("Paused %d subscriptions", len(self._paused))
        return list(self._paused)

    @property
    def paused(self) -> List[PausedSubscription]:
        return list(self._paused)

    def resume(self) -> List[PausedSubscription]:
        """Hand the paused feeds back to the caller to re-subscribe, and forget them."""
        paused, self._paused = self._paused, []
        return paused

    def _on_foreground(self) -> None:
        if self._paused:
            log.info("Foregrounded with %d paused subscriptions awaiting re-subscribe", len(self._paused))

    # ---- inspection --------------------------------------------------------

    def has_subscription(self, collection: str, filter: Optional[str] = None) -> bool:
        return subscription_key(collection, filter) in self._entries

    def get_subscription_stats(self) -> Dict[str, Any]:
        by_collection: Dict[str, int] = {}
        active = []
        for sub in self._entries.values():
            by_collection[sub.collection] = by_collection.get(sub.collection, 0) + 1
            active.append({"collection": sub.collection, "filter": sub.filter})
        return {
            "total": len(self._entries),
            "by_collection": by_collection,
            "active": active,
            "paused": [{"collection": p.collection, "filter": p.filter} for p in self._paused],
            "lifecycle": {
                "total_created": self._total_created,
                "total_destroyed": self._total_destroyed,
                "last_activity": self._last_activity,
                "time_since_last_activity": time.time() - self._last_activity,
            },
        }

    def scoped(self, collection: str) -> "ScopedSubscriptions":
        return ScopedSubscriptions(self, collection)

    def _touch(self) -> None:
        self._last_activity = time.time()

    async def destroy(self) -> None:
        await self.unsubscribe_all()
        self._paused = []
        for detach in self._detach:
            detach()
        self._detach = []


class ScopedSubscriptions:
    """Registry view bound to one collection."""

    def __init__(self, registry: SubscriptionRegistry, collection: str):
        self.registry = registry
        self.collection = collection

    async def subscribe(self, callback: Callback, filter: Optional[str] = None,
                        *, transform: Optional[Transform] = None) -> Subscription:
        return await self.registry.subscribe(self.collection, callback, filter, transform=transform)

    async def unsubscribe(self) -> int:
        return await self.registry.unsubscribe_collection(self.collection)

    def has_subscription(self, filter: Optional[str] = None) -> bool:
        return self.registry.has_subscription(self.collection, filter)


__all__ = [
    "SubscriptionRegistry",
    "Subscription",
    "ScopedSubscriptions",
    "PausedSubscription",
    "subscription_key",
]
