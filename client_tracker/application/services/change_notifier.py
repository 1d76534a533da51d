"""Change Notifier — in-process fan-out of mirror snapshots to observers."""

from collections.abc import Callable
from typing import Any

from client_tracker.infrastructure.logging.colored_logger import SyncLogger, SyncStage

slog = SyncLogger("ChangeNotifier")

Subscriber = Callable[[Any], None]


class ChangeNotifier:
    """Synchronous observer registry.

    ``publish`` calls every subscriber in registration order. A subscriber
    that raises is logged and skipped; the remaining subscribers still
    receive the event.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        """Register ``subscriber``; returns it so it can be used as a decorator."""
        if not callable(subscriber):
            raise TypeError("subscriber must be callable")
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, state: Any) -> None:
        """Deliver ``state`` to all current subscribers."""
        # Copy so a subscriber may unsubscribe itself while being notified
        for subscriber in list(self._subscribers):
            try:
                subscriber(state)
            except Exception as exc:
                slog.step_error(
                    SyncStage.NOTIFY,
                    f"Subscriber {subscriber!r} failed while handling a change notification",
                    error=exc,
                    exc_info=True,
                )

    def clear(self) -> None:
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
