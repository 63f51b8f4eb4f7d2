"""Append-only offset ledger with cumulative statistics.

The ledger owns two pieces of state with independent retention:

* a bounded, most-recent-first history of :class:`OffsetEvent` objects used
  for display, capped by length and pruned by age;
* :class:`AggregateStats` counters that fold in every recorded event and are
  never reduced by truncation or pruning.

Persistence and notification are injected collaborators. Persistence is a
best-effort mirror: store failures are logged and the in-memory ledger stays
authoritative for the session.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Final

from pydantic import ValidationError

from carbon_offsets.errors import PersistenceUnavailable
from carbon_offsets.ledger.broadcast import EventBroadcaster
from carbon_offsets.ledger.storage import (
    BUCKET_AUTO_OFFSET,
    BUCKET_HISTORY,
    BUCKET_STATS,
    KeyValueStore,
)
from carbon_offsets.models import MINIMUM_CARBON_KG
from carbon_offsets.schemas import (
    AggregateStats,
    OffsetCompleted,
    OffsetEvent,
    OffsetKind,
    StatsUpdated,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "OffsetIdGenerator",
    "OffsetLedger",
    "RECENT_WINDOW",
    "RETENTION_PERIOD",
    "utc_now",
]

DEFAULT_HISTORY_LIMIT: Final[int] = 100
RECENT_WINDOW: Final[timedelta] = timedelta(minutes=5)
RETENTION_PERIOD: Final[timedelta] = timedelta(days=7)

_PLACEHOLDER_LABELS: Final[dict[str, str]] = {
    "manual": "Unknown Product",
    "auto": "Auto Purchase",
}

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


class OffsetIdGenerator:
    """Produce identifiers that sort lexicographically by creation.

    Identifiers combine the creation time in microseconds with a sequence
    number that breaks ties. If the clock does not advance (or steps back)
    the previous timestamp is reused with the next sequence number.
    """

    def __init__(self) -> None:
        self._last_micros = 0
        self._sequence = 0
        self._lock = threading.Lock()

    def __call__(self, created_at: datetime) -> str:
        micros = int(created_at.timestamp() * 1_000_000)
        with self._lock:
            if micros <= self._last_micros:
                micros = self._last_micros
                self._sequence += 1
            else:
                self._sequence = 0
            self._last_micros = micros
            return f"{micros:017d}-{self._sequence:04d}"


class OffsetLedger:
    """Stateful core recording offsets and their lifetime statistics.

    Args:
        store: Optional persistence collaborator.
        broadcaster: Optional notification fan-out.
        clock: Source of aware UTC timestamps.
        history_limit: Maximum number of events retained for display.
        stats: Initial counters (for example restored from persistence).
        history: Initial events, most recent first.
        auto_offset_enabled: Initial value of the auto-offset flag.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore | None = None,
        broadcaster: EventBroadcaster | None = None,
        clock: Clock = utc_now,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        stats: AggregateStats | None = None,
        history: Iterable[OffsetEvent] = (),
        auto_offset_enabled: bool = False,
    ) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be a positive integer")
        self._store = store
        self._broadcaster = broadcaster or EventBroadcaster()
        self._clock = clock
        self._history_limit = history_limit
        self._stats = stats.snapshot() if stats is not None else AggregateStats()
        self._history: list[OffsetEvent] = list(history)[:history_limit]
        self._auto_offset_enabled = auto_offset_enabled
        self._next_id = OffsetIdGenerator()
        self._lock = threading.Lock()

    @classmethod
    def load(
        cls,
        store: KeyValueStore,
        *,
        broadcaster: EventBroadcaster | None = None,
        clock: Clock = utc_now,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> OffsetLedger:
        """Construct a ledger from the state mirrored in ``store``.

        Missing, unreadable or malformed buckets fall back to empty state.
        """

        stats = AggregateStats()
        raw_stats = _read_bucket(store, BUCKET_STATS)
        if isinstance(raw_stats, dict):
            try:
                stats = AggregateStats.model_validate(raw_stats)
            except ValidationError as exc:
                LOGGER.warning(
                    "Ignoring malformed persisted stats",
                    extra={"bucket": BUCKET_STATS, "error_count": exc.error_count()},
                )

        history: list[OffsetEvent] = []
        raw_history = _read_bucket(store, BUCKET_HISTORY)
        if isinstance(raw_history, list):
            for index, item in enumerate(raw_history):
                try:
                    history.append(OffsetEvent.model_validate(item))
                except ValidationError:
                    LOGGER.warning(
                        "Skipping malformed persisted offset",
                        extra={"bucket": BUCKET_HISTORY, "index": index},
                    )

        auto_offset = _read_bucket(store, BUCKET_AUTO_OFFSET)

        return cls(
            store=store,
            broadcaster=broadcaster,
            clock=clock,
            history_limit=history_limit,
            stats=stats,
            history=history,
            auto_offset_enabled=auto_offset is True,
        )

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self._broadcaster

    @property
    def history(self) -> tuple[OffsetEvent, ...]:
        """Retained events, most recent first."""

        with self._lock:
            return tuple(self._history)

    @property
    def history_limit(self) -> int:
        return self._history_limit

    @property
    def auto_offset_enabled(self) -> bool:
        return self._auto_offset_enabled

    def now(self) -> datetime:
        return self._clock()

    def record(self, event: OffsetEvent) -> None:
        """Record ``event``, update the counters and notify listeners."""

        with self._lock:
            self._history.insert(0, event)
            self._stats.fold(event.carbon_kg)
            if len(self._history) > self._history_limit:
                del self._history[self._history_limit :]
            stats = self._stats.snapshot()
            history = list(self._history)

        LOGGER.info(
            "Offset recorded",
            extra={
                "offset_id": event.id,
                "offset_kind": event.kind,
                "carbon_kg": event.carbon_kg,
                "site_host": event.site_host,
                "sourced_from_remote": event.sourced_from_remote,
            },
        )
        self._persist(
            {
                BUCKET_STATS: stats.to_wire(),
                BUCKET_HISTORY: [item.to_wire() for item in history],
            }
        )

        self._broadcaster.publish(OffsetCompleted(event=event))
        self._broadcaster.publish(StatsUpdated(stats=stats))

    def record_offset(
        self,
        kind: OffsetKind,
        carbon_kg: float,
        *,
        site_host: str = "",
        product_label: str | None = None,
        sourced_from_remote: bool = False,
        url: str | None = None,
    ) -> OffsetEvent:
        """Create an :class:`OffsetEvent` stamped with the ledger clock and record it.

        ``carbon_kg`` below the minimum offset mass is raised to the floor and
        a missing product label is replaced by a placeholder.
        """

        created_at = self._clock()
        event = OffsetEvent(
            id=self._next_id(created_at),
            kind=kind,
            carbon_kg=max(float(carbon_kg), MINIMUM_CARBON_KG),
            site_host=site_host,
            product_label=product_label or _PLACEHOLDER_LABELS[kind],
            created_at=created_at,
            sourced_from_remote=sourced_from_remote,
            url=url,
        )
        self.record(event)
        return event

    def recent_window(self, now: datetime | None = None) -> list[OffsetEvent]:
        """Return retained events created within the last five minutes of ``now``."""

        cutoff = (now or self._clock()) - RECENT_WINDOW
        with self._lock:
            return [event for event in self._history if event.created_at > cutoff]

    def prune_retention(self, now: datetime | None = None) -> int:
        """Drop retained events older than the retention period.

        Counters are left untouched.

        Returns:
            Number of events removed.
        """

        cutoff = (now or self._clock()) - RETENTION_PERIOD
        with self._lock:
            kept = [event for event in self._history if event.created_at > cutoff]
            removed = len(self._history) - len(kept)
            self._history = kept
            history = list(kept)

        if removed:
            LOGGER.info(
                "Pruned expired offsets",
                extra={"removed": removed, "retained": len(history)},
            )
            self._persist({BUCKET_HISTORY: [item.to_wire() for item in history]})
        return removed

    def get_stats(self) -> AggregateStats:
        """Return a snapshot of the lifetime counters."""

        with self._lock:
            return self._stats.snapshot()

    def set_auto_offset(self, enabled: bool) -> None:
        """Persist the auto-offset preference."""

        self._auto_offset_enabled = bool(enabled)
        self._persist({BUCKET_AUTO_OFFSET: self._auto_offset_enabled})

    def _persist(self, values: Mapping[str, object]) -> None:
        if self._store is None:
            return
        try:
            self._store.update(values)
        except PersistenceUnavailable as exc:
            LOGGER.warning(
                "Failed to persist ledger buckets",
                extra={"buckets": sorted(values), "error": str(exc)},
            )


def _read_bucket(store: KeyValueStore, bucket: str) -> object:
    try:
        return store.get(bucket)
    except PersistenceUnavailable as exc:
        LOGGER.warning(
            "Failed to read ledger bucket",
            extra={"bucket": bucket, "error": str(exc)},
        )
        return None
