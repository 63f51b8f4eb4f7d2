"""Tests for notification fan-out and the display-surface mirror."""

from __future__ import annotations

from datetime import timedelta

import pytest

from carbon_offsets.ledger import EventBroadcaster, LedgerMirror, LedgerRuntime, OffsetLedger
from carbon_offsets.schemas import AggregateStats, OffsetCompleted, StatsUpdated


def test_broadcaster_delivers_to_every_listener():
    broadcaster = EventBroadcaster()
    first, second = [], []
    broadcaster.subscribe(first.append)
    broadcaster.subscribe(second.append)

    notification = StatsUpdated(stats=AggregateStats())
    assert broadcaster.publish(notification) == 2
    assert first == [notification]
    assert second == [notification]


def test_broadcaster_isolates_failing_listener():
    broadcaster = EventBroadcaster()
    received = []

    def explode(_notification):
        raise RuntimeError("listener bug")

    broadcaster.subscribe(explode)
    broadcaster.subscribe(received.append)

    assert broadcaster.publish(StatsUpdated(stats=AggregateStats())) == 1
    assert len(received) == 1


def test_unsubscribe_stops_delivery():
    broadcaster = EventBroadcaster()
    received = []
    unsubscribe = broadcaster.subscribe(received.append)

    unsubscribe()
    unsubscribe()

    assert broadcaster.listener_count == 0
    assert broadcaster.publish(StatsUpdated(stats=AggregateStats())) == 0
    assert received == []


def test_mirror_dedupes_push_and_poll(clock):
    """An offset delivered by push and by poll is counted once."""
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    event = ledger.record_offset("manual", 20.0, site_host="amazon.com", product_label="Kindle")

    assert mirror.apply(OffsetCompleted(event=event))
    assert mirror.reconcile(ledger.recent_window()) == 0
    assert not mirror.ingest(event)

    assert mirror.stats.total_offset_count == 1
    assert mirror.stats.total_carbon_kg == pytest.approx(20.0)
    assert len(mirror.activities) == 1
    assert mirror.activities[0].label == "Kindle - amazon.com"


def test_mirror_reconcile_keeps_feed_order(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    events = []
    for index in range(3):
        events.append(ledger.record_offset("auto", 10.0, site_host=f"shop{index}.com"))
        clock.advance(seconds=10)

    assert mirror.reconcile(ledger.recent_window()) == 3
    assert [entry.offset_id for entry in mirror.activities] == [
        event.id for event in reversed(events)
    ]


def test_mirror_activity_feed_is_capped(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock, activity_limit=20)
    for _ in range(25):
        mirror.ingest(ledger.record_offset("manual", 5.0))

    assert len(mirror.activities) == 20
    assert mirror.stats.total_offset_count == 25


def test_stats_updated_replaces_local_counters(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    ledger.broadcaster.subscribe(mirror)

    ledger.record_offset("manual", 15.0)
    ledger.record_offset("manual", 25.0)

    assert mirror.stats == ledger.get_stats()

    authoritative = AggregateStats(total_carbon_kg=500.0, total_offset_count=9)
    mirror.apply(StatsUpdated(stats=authoritative))
    assert mirror.stats.total_offset_count == 9


def test_live_summary_counts_recent_window(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    ledger.broadcaster.subscribe(mirror)

    ledger.record_offset("manual", 10.0, sourced_from_remote=True)
    clock.advance(minutes=6)
    ledger.record_offset("auto", 12.0)
    ledger.record_offset("auto", 8.0, sourced_from_remote=True)

    summary = mirror.live_summary()
    assert summary.count == 2
    assert summary.total_carbon_kg == pytest.approx(20.0)
    assert summary.remote_count == 1

    later = mirror.live_summary(clock() + timedelta(minutes=10))
    assert later.count == 0


def test_mirror_seeded_from_stats_does_not_recount_recent_window(clock):
    """Offsets already covered by the seeded counters are only marked seen."""
    ledger = OffsetLedger(clock=clock)
    event = ledger.record_offset("manual", 20.0)
    mirror = LedgerMirror(stats=ledger.get_stats(), clock=clock)

    assert LedgerRuntime(ledger=ledger, mirror=mirror).reconcile_once() == 1

    assert mirror.stats == ledger.get_stats()
    assert mirror.stats.total_offset_count == 1
    assert mirror.has_seen(event.id)
    assert [entry.offset_id for entry in mirror.activities] == [event.id]


def test_mirror_seeded_with_recent_events_marks_them_seen(clock):
    ledger = OffsetLedger(clock=clock)
    first = ledger.record_offset("manual", 10.0)
    clock.advance(seconds=5)
    second = ledger.record_offset("auto", 12.0)
    mirror = LedgerMirror(stats=ledger.get_stats(), seen=ledger.recent_window(), clock=clock)

    assert mirror.reconcile(ledger.recent_window()) == 0
    assert [entry.offset_id for entry in mirror.activities] == [second.id, first.id]
    assert mirror.live_summary().count == 2

    clock.advance(seconds=5)
    third = ledger.record_offset("manual", 8.0)
    assert mirror.reconcile(ledger.recent_window()) == 1
    assert mirror.stats == ledger.get_stats()
    assert mirror.activities[0].offset_id == third.id


def test_stats_updated_covers_offsets_polled_later(clock):
    """A poll arriving after ``statsUpdated`` does not fold the same offset again."""
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    event = ledger.record_offset("manual", 30.0)

    mirror.apply(StatsUpdated(stats=ledger.get_stats()))
    clock.advance(seconds=2)
    assert mirror.reconcile(ledger.recent_window()) == 1

    assert mirror.stats.total_offset_count == 1
    assert mirror.stats.total_carbon_kg == pytest.approx(30.0)
    assert mirror.has_seen(event.id)
