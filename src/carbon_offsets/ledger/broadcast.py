"""In-process fan-out of ledger notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable

from carbon_offsets.schemas import OffsetCompleted, StatsUpdated

LOGGER = logging.getLogger(__name__)

__all__ = ["EventBroadcaster", "LedgerNotification", "Listener"]

LedgerNotification = OffsetCompleted | StatsUpdated
Listener = Callable[[LedgerNotification], None]


class EventBroadcaster:
    """Deliver each published notification at most once to every listener.

    Listener failures are logged and do not prevent delivery to the
    remaining listeners. Notifications published with no listeners are
    dropped.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return

        return _unsubscribe

    def publish(self, notification: LedgerNotification) -> int:
        """Fan ``notification`` out to the current listeners.

        Returns:
            Number of listeners that accepted the notification.
        """

        delivered = 0
        for listener in tuple(self._listeners):
            try:
                listener(notification)
            except Exception as exc:
                LOGGER.warning(
                    "Ledger listener failed",
                    extra={
                        "notification": notification.action,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=exc,
                )
                continue
            delivered += 1
        return delivered
