"""Carbon estimation with a remote primary path and a local fallback."""

from __future__ import annotations

import logging

from carbon_offsets.errors import EstimationError, NoProductSignal, RemoteUnavailable
from carbon_offsets.estimation.classifier import CategoryClassifier
from carbon_offsets.estimation.factors import get_emission_factor
from carbon_offsets.estimation.heuristics import LocalHeuristicEstimator
from carbon_offsets.estimation.pricing import PriceEstimator
from carbon_offsets.estimation.remote import ClimatiqClient
from carbon_offsets.models import MINIMUM_CARBON_KG, CarbonEstimate
from carbon_offsets.schemas import PageSignal

LOGGER = logging.getLogger(__name__)

__all__ = ["CarbonEstimationService"]


class CarbonEstimationService:
    """Turn a :class:`PageSignal` into a carbon mass in kilograms.

    The remote authority is preferred for accuracy; the local heuristic keeps
    estimates available whenever the remote path fails.

    Args:
        client: Remote estimation client. ``None`` disables the remote path.
        classifier: Category classifier for the primary product.
        price_estimator: Price derivation strategy.
        heuristics: Local estimator used as the fallback.
    """

    def __init__(
        self,
        client: ClimatiqClient | None = None,
        *,
        classifier: CategoryClassifier | None = None,
        price_estimator: PriceEstimator | None = None,
        heuristics: LocalHeuristicEstimator | None = None,
    ) -> None:
        self._client = client
        self._classifier = classifier or CategoryClassifier()
        self._prices = price_estimator or PriceEstimator()
        self._heuristics = heuristics or LocalHeuristicEstimator()

    @property
    def client(self) -> ClimatiqClient | None:
        return self._client

    def estimate_remote(self, signal: PageSignal) -> CarbonEstimate:
        """Estimate ``signal`` through the remote authority.

        Raises:
            NoProductSignal: If the page carries no product names.
            RemoteUnavailable: If the remote path is disabled or unreachable.
            RemoteMalformed: If the authority replies with an unusable body.
        """

        if not signal.products:
            raise NoProductSignal("No product names detected on the page")
        if self._client is None:
            raise RemoteUnavailable("Remote estimation is disabled")

        category = self._classifier.classify(signal.primary_product)
        price = self._prices.estimate(signal)
        factor = get_emission_factor(category)
        carbon_kg = self._client.estimate_kg(factor, price)
        LOGGER.info(
            "Remote carbon estimate",
            extra={
                "site_host": signal.site_host,
                "category": category.value,
                "factor_id": factor.factor_id,
                "price_usd": price,
                "carbon_kg": carbon_kg,
            },
        )
        return CarbonEstimate(
            carbon_kg=max(carbon_kg, MINIMUM_CARBON_KG),
            sourced_from_remote=True,
            category=category,
            price_usd=price,
            factor=factor,
        )

    def estimate_local(self, signal: PageSignal) -> CarbonEstimate:
        """Estimate ``signal`` with the local heuristic. Never raises."""

        return CarbonEstimate(
            carbon_kg=self._heuristics.estimate(signal),
            sourced_from_remote=False,
            category=self._classifier.classify(signal.primary_product),
            price_usd=self._prices.estimate(signal),
        )

    def estimate(self, signal: PageSignal) -> CarbonEstimate:
        """Estimate ``signal`` remotely, falling back to the local heuristic."""

        try:
            return self.estimate_remote(signal)
        except EstimationError as exc:
            LOGGER.warning(
                "Remote estimate failed; using local heuristic",
                extra={
                    "site_host": signal.site_host,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return self.estimate_local(signal)
