"""
Process-wide default SubscriptionRegistry, built lazily on first use.

Services only fall back to it when no registry is passed explicitly. The
registry takes its lock from whichever event loop is running, so it can be
shared by code that runs successive loops (asyncio.run, test portals), but its
subscriptions belong to the loop that created them.
"""

from __future__ import annotations
import logging, threading
from typing import Optional

from .realtime import Lifecycle, SubscriptionRegistry
from .transport import RecordClient

log = logging.getLogger("recordkit.defaults")

_lock = threading.Lock()
_registry: Optional[SubscriptionRegistry] = None


def get_subscription_registry(
    client: RecordClient, lifecycle: Optional[Lifecycle] = None
) -> SubscriptionRegistry:
    global _registry
    with _lock:
        if _registry is None:
            log.debug("Creating default subscription registry")
            _registry = SubscriptionRegistry(client, lifecycle)
        return _registry


async def reset_subscription_registry() -> None:
    global _registry
    with _lock:
        registry, _registry = _registry, None
    if registry is not None:
        await registry.destroy()


__all__ = ["get_subscription_registry", "reset_subscription_registry"]
