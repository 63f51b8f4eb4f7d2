"""Async timers driving retention pruning and mirror reconciliation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from carbon_offsets.ledger.ledger import OffsetLedger
from carbon_offsets.ledger.mirror import LedgerMirror
from carbon_offsets.schemas import OffsetEvent
from carbon_offsets.settings import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PRUNE_INTERVAL_SECONDS,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["LedgerRuntime", "RecentSource"]

RecentSource = Callable[[], Iterable[OffsetEvent]]


@dataclass(slots=True)
class LedgerRuntime:
    """Run the periodic loops around an :class:`OffsetLedger`.

    The prune loop applies retention every ``prune_interval`` seconds. When a
    ``mirror`` is supplied, the reconcile loop feeds it the recent window
    every ``poll_interval`` seconds; ``recent_source`` overrides where that
    window comes from (for example a message round trip to another surface).
    """

    ledger: OffsetLedger
    prune_interval: float = DEFAULT_PRUNE_INTERVAL_SECONDS
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    mirror: LedgerMirror | None = None
    recent_source: RecentSource | None = None
    logger: logging.Logger = field(default=LOGGER)
    _running: bool = field(init=False, default=False)
    _tasks: list[asyncio.Task[None]] = field(init=False, default_factory=list)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the loops if they are not already running."""

        if self._running:
            return
        self._running = True
        loop = asyncio.get_running_loop()
        self._tasks.append(
            loop.create_task(self._prune_loop(), name="carbon-offsets-prune")
        )
        if self.mirror is not None:
            self._tasks.append(
                loop.create_task(self._reconcile_loop(), name="carbon-offsets-poll")
            )

    async def stop(self) -> None:
        """Cancel the loops and wait for them to finish."""

        self._running = False
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:  # pragma: no cover - cancellation path
                pass

    def reconcile_once(self) -> int:
        """Feed the current recent window into the mirror once."""

        if self.mirror is None:
            return 0
        source = self.recent_source or self.ledger.recent_window
        return self.mirror.reconcile(source())

    async def _prune_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.prune_interval)
            removed = self.ledger.prune_retention()
            self.logger.debug("Retention pass complete", extra={"removed": removed})

    async def _reconcile_loop(self) -> None:
        while self._running:
            try:
                added = self.reconcile_once()
            except Exception:
                self.logger.error("Mirror reconcile failed", exc_info=True)
            else:
                if added:
                    self.logger.debug("Mirror reconciled", extra={"added": added})
            await asyncio.sleep(self.poll_interval)
