"""
Realtime subscription bookkeeping and process lifecycle signals.
"""

from .lifecycle import Lifecycle, LifecycleEvent
from .registry import (
    SubscriptionRegistry,
    Subscription,
    ScopedSubscriptions,
    PausedSubscription,
    subscription_key,
)

__all__ = [
    "Lifecycle",
    "LifecycleEvent",
    "SubscriptionRegistry",
    "Subscription",
    "ScopedSubscriptions",
    "PausedSubscription",
    "subscription_key",
]
