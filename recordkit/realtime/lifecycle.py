from __future__ import annotations
import inspect, logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Union

log = logging.getLogger("recordkit.lifecycle")

Handler = Callable[[], Union[None, Awaitable[Any]]]


class LifecycleEvent(str, Enum):
    TERMINATE = "terminate"    # process about to exit
    BACKGROUND = "background"  # host paused us
    FOREGROUND = "foreground"  # host resumed us


class Lifecycle:
    """
    Explicit source of process lifecycle signals. Listeners attach with on()
    and detach with the returned callable; the host application calls emit().
    """

    def __init__(self):
        self._handlers: Dict[LifecycleEvent, List[Handler]] = {e: [] for e in LifecycleEvent}

    def on(self, event: Union[LifecycleEvent, str], handler: Handler) -> Callable[[], None]:
        event = LifecycleEvent(event)
        self._handlers[event].append(handler)

        def detach() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return detach

    def listener_count(self, event: Union[LifecycleEvent, str]) -> int:
        return len(self._handlers[LifecycleEvent(event)])

    async def emit(self, event: Union[LifecycleEvent, str]) -> None:
        event = LifecycleEvent(event)
        log.debug("Lifecycle event %s (%d listeners)", event.value, len(self._handlers[event]))
        for handler in list(self._handlers[event]):
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception("Lifecycle handler failed for %s", event.value)


__all__ = ["Lifecycle", "LifecycleEvent"]
