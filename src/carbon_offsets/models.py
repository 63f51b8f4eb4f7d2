"""Domain value types shared by the estimation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

__all__ = ["CarbonEstimate", "EmissionCategory", "EmissionFactor", "MINIMUM_CARBON_KG"]

MINIMUM_CARBON_KG = 5.0


class EmissionCategory(StrEnum):
    """Fixed set of purchase categories understood by the estimators."""

    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    FURNITURE = "furniture"
    FOOD = "food"
    MEDIA = "media"
    ENTERTAINMENT = "entertainment"
    TOYS = "toys"
    PERSONAL_CARE = "personal_care"
    GENERAL = "general"


@dataclass(frozen=True, slots=True)
class EmissionFactor:
    """Remote-authority factor identifier paired with its display name."""

    factor_id: str
    display_name: str

    def to_request(self) -> dict[str, str]:
        """Return the ``emission_factor`` object sent to the remote authority."""

        return {"id": self.factor_id, "name": self.display_name}


@dataclass(frozen=True, slots=True)
class CarbonEstimate:
    """Carbon mass attributed to a scanned page.

    ``category``, ``price_usd`` and ``factor`` record the inputs of the remote
    path; the local heuristic leaves ``factor`` unset.
    """

    carbon_kg: float
    sourced_from_remote: bool
    category: EmissionCategory = EmissionCategory.GENERAL
    price_usd: float | None = None
    factor: EmissionFactor | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready mapping of the estimate."""

        return {
            "carbonKg": float(self.carbon_kg),
            "sourcedFromRemote": self.sourced_from_remote,
            "category": self.category.value,
            "priceUsd": self.price_usd,
            "factorId": self.factor.factor_id if self.factor else None,
        }
