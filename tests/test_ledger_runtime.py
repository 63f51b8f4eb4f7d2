"""Tests for the asynchronous ledger loops."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from carbon_offsets.ledger import LedgerMirror, LedgerRuntime, OffsetLedger


@pytest.mark.asyncio
async def test_prune_loop_applies_retention(clock):
    ledger = OffsetLedger(clock=clock)
    ledger.record_offset("manual", 10.0)
    clock.advance(days=8)

    runtime = LedgerRuntime(ledger=ledger, prune_interval=0.01, poll_interval=0.01)
    await runtime.start()
    assert runtime.running
    await asyncio.sleep(0.05)
    await runtime.stop()

    assert not runtime.running
    assert ledger.history == ()
    assert ledger.get_stats().total_offset_count == 1


@pytest.mark.asyncio
async def test_reconcile_loop_feeds_mirror(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    runtime = LedgerRuntime(
        ledger=ledger, prune_interval=60, poll_interval=0.01, mirror=mirror
    )

    await runtime.start()
    event = ledger.record_offset("auto", 18.0)
    await asyncio.sleep(0.05)
    await runtime.stop()

    assert mirror.has_seen(event.id)
    assert mirror.stats.total_offset_count == 1


@pytest.mark.asyncio
async def test_reconcile_loop_survives_source_errors(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    calls = []

    def flaky_source():
        calls.append(1)
        if len(calls) == 1:
            raise ConnectionError("display surface unavailable")
        return ledger.recent_window()

    runtime = LedgerRuntime(
        ledger=ledger,
        prune_interval=60,
        poll_interval=0.01,
        mirror=mirror,
        recent_source=flaky_source,
    )
    ledger.record_offset("manual", 10.0)

    await runtime.start()
    await asyncio.sleep(0.05)
    await runtime.stop()

    assert len(calls) >= 2
    assert mirror.stats.total_offset_count == 1


def test_reconcile_once_without_mirror_is_noop(clock):
    runtime = LedgerRuntime(ledger=OffsetLedger(clock=clock))
    assert runtime.reconcile_once() == 0


def test_reconcile_once_uses_recent_window(clock):
    ledger = OffsetLedger(clock=clock)
    mirror = LedgerMirror(clock=clock)
    runtime = LedgerRuntime(ledger=ledger, mirror=mirror)

    ledger.record_offset("manual", 10.0)
    clock.advance(minutes=10)
    ledger.record_offset("manual", 11.0)

    assert runtime.reconcile_once() == 1
    assert runtime.reconcile_once() == 0
    assert mirror.live_summary(clock() + timedelta(seconds=1)).count == 1


def test_runtime_logger_follows_module_path():
    runtime = LedgerRuntime(ledger=OffsetLedger())
    assert runtime.logger.name == "carbon_offsets.ledger.runtime"
