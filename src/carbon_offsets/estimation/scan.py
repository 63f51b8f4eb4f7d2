"""Async coordination of page scans on the scanning surface."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from carbon_offsets.errors import EstimationError
from carbon_offsets.estimation.service import CarbonEstimationService
from carbon_offsets.models import CarbonEstimate
from carbon_offsets.schemas import PageSignal
from carbon_offsets.settings import get_settings

LOGGER = logging.getLogger(__name__)

__all__ = ["ScanCoordinator", "ScanResult"]


@dataclass(slots=True, frozen=True)
class ScanResult:
    """Estimate produced by the scan with generation ``generation``."""

    generation: int
    signal: PageSignal
    estimate: CarbonEstimate


class ScanCoordinator:
    """Run estimates for successive scans and drop stale completions.

    Every call to :meth:`scan` takes a new generation id. The remote estimate
    runs in a worker thread bounded by ``timeout_seconds``; a timeout or any
    :class:`EstimationError` switches to the local heuristic. A scan that
    finishes after a newer scan has started resolves to ``None``.
    """

    def __init__(
        self,
        service: CarbonEstimationService,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._service = service
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else get_settings().remote_timeout_seconds
        )
        self._generation = 0
        self._latest: ScanResult | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def latest(self) -> ScanResult | None:
        """Return the most recent non-stale scan result."""

        return self._latest

    async def scan(self, signal: PageSignal) -> ScanResult | None:
        """Estimate ``signal`` for the current page.

        Args:
            signal: Product and price hints of the page being scanned.

        Returns:
            The scan result, or ``None`` when a newer scan superseded this one
            before it completed.
        """

        self._generation += 1
        generation = self._generation

        try:
            estimate = await asyncio.wait_for(
                asyncio.to_thread(self._service.estimate_remote, signal),
                timeout=self._timeout,
            )
        except TimeoutError:
            LOGGER.warning(
                "Remote estimate timed out; using local heuristic",
                extra={
                    "site_host": signal.site_host,
                    "generation": generation,
                    "timeout_seconds": self._timeout,
                },
            )
            estimate = self._service.estimate_local(signal)
        except EstimationError as exc:
            LOGGER.warning(
                "Remote estimate failed; using local heuristic",
                extra={
                    "site_host": signal.site_host,
                    "generation": generation,
                    "error_type": type(exc).__name__,
                },
            )
            estimate = self._service.estimate_local(signal)

        if generation != self._generation:
            LOGGER.info(
                "Discarding stale scan result",
                extra={"generation": generation, "latest_generation": self._generation},
            )
            return None

        result = ScanResult(generation=generation, signal=signal, estimate=estimate)
        self._latest = result
        return result
