"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import inspect
import os
import random
import sys
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from carbon_offsets.ledger.storage import MemoryStore  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_pyfunc_call(pyfuncitem: Any) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials out of the test run."""

    for name in (
        "CLIMATIQ_API_KEY",
        "CLIMATIQ_BASE_URL",
        "CARBON_OFFSETS_REMOTE_TIMEOUT",
        "CARBON_OFFSETS_STORE_PATH",
        "CARBON_OFFSETS_HISTORY_LIMIT",
        "CARBON_OFFSETS_PRUNE_INTERVAL",
        "CARBON_OFFSETS_POLL_INTERVAL",
        "CARBON_OFFSETS_RANDOM_SEED",
    ):
        monkeypatch.delenv(name, raising=False)
