"""Local heuristic carbon estimates used when the remote authority fails.

The heuristic never raises: every product name maps to a base value plus a
bounded jitter, and pages without products fall back to a per-site default.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

from carbon_offsets.estimation.pricing import SiteTable, lookup_site_default
from carbon_offsets.models import MINIMUM_CARBON_KG
from carbon_offsets.schemas import PageSignal

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PRODUCT_RANGES",
    "DEFAULT_SITE_CARBON",
    "HeuristicRange",
    "LocalHeuristicEstimator",
]


@dataclass(frozen=True, slots=True)
class HeuristicRange:
    """Carbon range ``[base_kg, base_kg + spread_kg)`` for matching products."""

    pattern: str
    base_kg: float
    spread_kg: float

    @property
    def upper_kg(self) -> float:
        return self.base_kg + self.spread_kg


DEFAULT_PRODUCT_RANGES: Final[tuple[HeuristicRange, ...]] = (
    HeuristicRange(r"iphone|samsung|phone|smartphone", 60.0, 40.0),
    HeuristicRange(r"laptop|macbook|computer", 200.0, 100.0),
    HeuristicRange(r"tablet|ipad", 80.0, 40.0),
    HeuristicRange(r"tv|television|monitor", 120.0, 80.0),
    HeuristicRange(r"camera|dslr|mirrorless", 50.0, 30.0),
    HeuristicRange(r"shirt|tshirt|t-shirt", 8.0, 6.0),
    HeuristicRange(r"jeans|pants|trousers", 15.0, 10.0),
    HeuristicRange(r"shoes|sneakers|footwear", 12.0, 8.0),
    HeuristicRange(r"jacket|coat|hoodie", 20.0, 15.0),
    HeuristicRange(r"dress|skirt|blouse", 10.0, 8.0),
    HeuristicRange(r"chair|sofa|couch", 30.0, 20.0),
    HeuristicRange(r"table|desk", 25.0, 15.0),
    HeuristicRange(r"bed|mattress", 40.0, 30.0),
    HeuristicRange(r"book|novel", 2.0, 3.0),
    HeuristicRange(r"game|console|playstation|xbox", 15.0, 10.0),
)

UNMATCHED_PRODUCT_RANGE: Final[HeuristicRange] = HeuristicRange("", 10.0, 15.0)

DEFAULT_SITE_CARBON: Final[tuple[tuple[str, float], ...]] = (
    ("amazon", 25.0),
    ("ebay", 20.0),
    ("walmart", 15.0),
    ("target", 12.0),
    ("bestbuy", 45.0),
    ("apple", 80.0),
    ("nike", 15.0),
    ("adidas", 12.0),
)
DEFAULT_SITE_CARBON_KG: Final[float] = 10.0
SITE_JITTER_KG: Final[float] = 2.0


class LocalHeuristicEstimator:
    """Estimate carbon from product names without any network access.

    Args:
        rng: Random source for the jitter; pass a seeded
            :class:`random.Random` for reproducible output.
        product_ranges: Ordered product pattern table, first match wins.
        site_carbon: Ordered ``(site, kg)`` table used when a page has no
            product names.
        site_jitter_kg: Upper bound of the jitter added to site defaults.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        product_ranges: Iterable[HeuristicRange] = DEFAULT_PRODUCT_RANGES,
        site_carbon: SiteTable = DEFAULT_SITE_CARBON,
        site_jitter_kg: float = SITE_JITTER_KG,
    ) -> None:
        self._rng = rng or random.Random()
        self._ranges = tuple(
            (re.compile(item.pattern, re.IGNORECASE), item) for item in product_ranges
        )
        self._site_carbon = tuple((site.lower(), kg) for site, kg in site_carbon)
        self._site_jitter = max(float(site_jitter_kg), 0.0)

    def range_for(self, product_text: str) -> HeuristicRange:
        """Return the heuristic range that applies to ``product_text``."""

        for pattern, item in self._ranges:
            if pattern.search(product_text):
                return item
        return UNMATCHED_PRODUCT_RANGE

    def estimate_product(self, product_text: str) -> float:
        """Return a jittered carbon estimate in kg for a single product name."""

        item = self.range_for(product_text)
        return item.base_kg + self._rng.random() * item.spread_kg

    def estimate_site(self, site_host: str) -> float:
        """Return a jittered default carbon estimate in kg for ``site_host``."""

        base = lookup_site_default(site_host, self._site_carbon, DEFAULT_SITE_CARBON_KG)
        return base + self._rng.random() * self._site_jitter

    def estimate(self, signal: PageSignal) -> float:
        """Return the heuristic carbon estimate for ``signal`` in kg.

        Products are averaged when present; otherwise the site default is
        used. The result is clamped to the minimum offset mass.
        """

        if signal.products:
            values = [self.estimate_product(product) for product in signal.products]
            carbon_kg = sum(values) / len(values)
        else:
            carbon_kg = self.estimate_site(signal.site_host)
        LOGGER.debug(
            "Local heuristic estimate",
            extra={
                "site_host": signal.site_host,
                "product_count": len(signal.products),
                "carbon_kg": carbon_kg,
            },
        )
        return max(carbon_kg, MINIMUM_CARBON_KG)
