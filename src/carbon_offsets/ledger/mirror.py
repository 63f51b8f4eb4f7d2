"""Display-surface mirror of an authoritative offset ledger."""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from carbon_offsets.ledger.broadcast import LedgerNotification
from carbon_offsets.ledger.ledger import RECENT_WINDOW, Clock, utc_now
from carbon_offsets.schemas import AggregateStats, OffsetCompleted, OffsetEvent

LOGGER = logging.getLogger(__name__)

__all__ = ["ActivityEntry", "LedgerMirror", "LiveSummary"]

DEFAULT_ACTIVITY_LIMIT = 20
DEFAULT_SEEN_LIMIT = 1000


@dataclass(frozen=True, slots=True)
class ActivityEntry:
    """One line of the display activity feed."""

    offset_id: str
    label: str
    carbon_kg: float
    sourced_from_remote: bool
    created_at: datetime


@dataclass(frozen=True, slots=True)
class LiveSummary:
    """Offsets seen by the mirror during the recent window."""

    count: int
    total_carbon_kg: float
    remote_count: int


class LedgerMirror:
    """Eventually consistent copy of ledger state on the display surface.

    Offsets can reach the mirror twice, once as an ``offsetCompleted`` push
    and again through the periodic poll of the recent window. Events are
    de-duplicated by id before they are folded into the local counters.

    Counters taken from the authority (the ``stats`` seed or a
    ``statsUpdated`` notification) already include every offset created up
    to the moment they were applied. Such offsets are recorded as seen when
    they later arrive but are not folded again.

    Args:
        stats: Counters from a ``getStats`` reply, used as the starting point.
        seen: Events already covered by ``stats`` (for example the
            ``getRecentOffsets`` reply fetched alongside it).
        activity_limit: Maximum number of activity feed entries.
        seen_limit: Maximum number of remembered offset ids.
        clock: Source of aware UTC timestamps.
    """

    def __init__(
        self,
        *,
        stats: AggregateStats | None = None,
        seen: Iterable[OffsetEvent] = (),
        activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
        seen_limit: int = DEFAULT_SEEN_LIMIT,
        clock: Clock = utc_now,
    ) -> None:
        self._stats = stats.snapshot() if stats is not None else AggregateStats()
        self._activity_limit = activity_limit
        self._seen_limit = seen_limit
        self._clock = clock
        self._activities: list[ActivityEntry] = []
        self._seen: OrderedDict[str, OffsetEvent] = OrderedDict()
        self._covered_until: datetime | None = clock() if stats is not None else None
        for event in reversed(list(seen)):
            self._remember(event)

    @property
    def stats(self) -> AggregateStats:
        return self._stats.snapshot()

    @property
    def activities(self) -> tuple[ActivityEntry, ...]:
        return tuple(self._activities)

    def has_seen(self, offset_id: str) -> bool:
        return offset_id in self._seen

    def __call__(self, notification: LedgerNotification) -> None:
        self.apply(notification)

    def apply(self, notification: LedgerNotification) -> bool:
        """Apply a pushed notification.

        Returns:
            ``True`` when the notification changed the mirror.
        """

        if isinstance(notification, OffsetCompleted):
            return self.ingest(notification.event)
        self.replace_stats(notification.stats)
        return True

    def ingest(self, event: OffsetEvent) -> bool:
        """Fold ``event`` into the mirror unless it was already seen.

        Events created before the last authoritative counters were applied
        are recorded without folding.

        Returns:
            ``True`` when the event was new to the mirror.
        """

        if event.id in self._seen:
            return False
        if self._covered_until is None or event.created_at > self._covered_until:
            self._stats.fold(event.carbon_kg)
        self._remember(event)
        LOGGER.debug("Mirror ingested offset", extra={"offset_id": event.id})
        return True

    def _remember(self, event: OffsetEvent) -> None:
        if event.id in self._seen:
            return
        self._seen[event.id] = event
        while len(self._seen) > self._seen_limit:
            self._seen.popitem(last=False)

        label = f"{event.product_label or 'Purchase'} - {event.site_host}"
        self._activities.insert(
            0,
            ActivityEntry(
                offset_id=event.id,
                label=label,
                carbon_kg=event.carbon_kg,
                sourced_from_remote=event.sourced_from_remote,
                created_at=event.created_at,
            ),
        )
        del self._activities[self._activity_limit :]

    def reconcile(self, events: Iterable[OffsetEvent]) -> int:
        """Ingest a polled batch of recent events.

        Returns:
            Number of events that were new to the mirror.
        """

        # Polled windows arrive most recent first; ingest oldest first so the
        # activity feed keeps its ordering.
        return sum(1 for event in reversed(list(events)) if self.ingest(event))

    def replace_stats(self, stats: AggregateStats) -> None:
        """Adopt authoritative counters covering every offset created so far."""

        self._stats = stats.snapshot()
        self._covered_until = self._clock()

    def live_summary(self, now: datetime | None = None) -> LiveSummary:
        """Summarise offsets seen within the recent window of ``now``."""

        cutoff = (now or self._clock()) - RECENT_WINDOW
        recent = [event for event in self._seen.values() if event.created_at > cutoff]
        return LiveSummary(
            count=len(recent),
            total_carbon_kg=sum(event.carbon_kg for event in recent),
            remote_count=sum(1 for event in recent if event.sourced_from_remote),
        )
