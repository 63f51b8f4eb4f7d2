"""Offset ledger, persistence, notification fan-out and display mirror."""

from __future__ import annotations

from carbon_offsets.ledger.broadcast import EventBroadcaster
from carbon_offsets.ledger.ledger import OffsetLedger
from carbon_offsets.ledger.mirror import LedgerMirror
from carbon_offsets.ledger.runtime import LedgerRuntime
from carbon_offsets.ledger.storage import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "EventBroadcaster",
    "JsonFileStore",
    "KeyValueStore",
    "LedgerMirror",
    "LedgerRuntime",
    "MemoryStore",
    "OffsetLedger",
]
