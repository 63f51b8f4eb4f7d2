"""Representative purchase price derivation for a page scan."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from typing import Final

from carbon_offsets.schemas import PageSignal

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SITE_PRICES",
    "MAX_OBSERVED_PRICE_USD",
    "PriceEstimator",
    "SiteTable",
    "lookup_site_default",
]

SiteTable = Sequence[tuple[str, float]]

MAX_OBSERVED_PRICE_USD: Final[float] = 10_000.0
DEFAULT_PRICE_USD: Final[float] = 25.0

DEFAULT_SITE_PRICES: Final[tuple[tuple[str, float], ...]] = (
    ("amazon", 45.0),
    ("ebay", 35.0),
    ("walmart", 30.0),
    ("target", 25.0),
    ("bestbuy", 85.0),
    ("apple", 120.0),
    ("nike", 80.0),
    ("adidas", 70.0),
)


def lookup_site_default(site_host: str, table: SiteTable, default: float) -> float:
    """Return the value of the first table key contained in ``site_host``.

    Args:
        site_host: Host of the scanned page; matched case-insensitively.
        table: Ordered ``(site, value)`` pairs; first substring match wins.
        default: Value returned when no key matches.

    Returns:
        The matched value or ``default``.
    """

    host = (site_host or "").lower()
    if host:
        for site, value in table:
            if site in host:
                return value
    return default


class PriceEstimator:
    """Pick a USD price for a scan from observed prices or site defaults."""

    def __init__(
        self,
        site_prices: Iterable[tuple[str, float]] = DEFAULT_SITE_PRICES,
        *,
        default_price: float = DEFAULT_PRICE_USD,
    ) -> None:
        if not (default_price > 0 and math.isfinite(default_price)):
            raise ValueError("default_price must be positive and finite")
        self._site_prices = tuple((site.lower(), float(p)) for site, p in site_prices)
        for site, price in self._site_prices:
            if not (price > 0 and math.isfinite(price)):
                raise ValueError(f"Default price for '{site}' must be positive")
        self._default = float(default_price)

    def estimate(self, signal: PageSignal) -> float:
        """Return a positive, finite USD price for ``signal``."""

        for price in signal.prices:
            if math.isfinite(price) and 0 < price < MAX_OBSERVED_PRICE_USD:
                return float(price)

        price = lookup_site_default(signal.site_host, self._site_prices, self._default)
        LOGGER.debug(
            "Using default price",
            extra={"site_host": signal.site_host, "price_usd": price},
        )
        return price
