"""Synchronous observer registry.

Listeners run in subscription order, inside publish(), before publish()
returns. A listener that raises is logged and skipped; later listeners
still receive the event.
"""

from collections.abc import Callable
from typing import Generic, ParamSpec

from fxgame.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")


class ListenerRegistry(Generic[P]):
    """Ordered list of callbacks sharing one signature.

    Args:
        name: Event name used in log lines.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[P, None]] = []

    def subscribe(self, listener: Callable[P, None]) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, *args: P.args, **kwargs: P.kwargs) -> None:
        for listener in list(self._listeners):
            try:
                listener(*args, **kwargs)
            except Exception:
                logger.warning("event_listener_failed", event=self._name, exc_info=True)

    def __len__(self) -> int:
        return len(self._listeners)
