"""Conversions from offset carbon mass to human-friendly equivalents."""

from __future__ import annotations

from typing import Final

__all__ = [
    "KG_PER_MILE_DRIVEN",
    "KG_PER_TREE",
    "USD_PER_KG",
    "donated_usd",
    "offset_equivalents",
    "trees_equivalent",
]

KG_PER_TREE: Final[float] = 5.0
USD_PER_KG: Final[float] = 0.1
KG_PER_MILE_DRIVEN: Final[float] = 0.16


def trees_equivalent(carbon_kg: float) -> float:
    """Return the number of trees credited for ``carbon_kg``."""

    return carbon_kg / KG_PER_TREE


def donated_usd(carbon_kg: float) -> float:
    """Return the simulated donation in USD for ``carbon_kg``."""

    return carbon_kg * USD_PER_KG


def offset_equivalents(carbon_kg: float) -> dict[str, str]:
    """Convert an offset into the equivalents shown next to an estimate.

    Args:
        carbon_kg: Offset carbon mass in kilograms of CO2e.

    Returns:
        Formatted trees, donation and miles-driven equivalents.

    Raises:
        ValueError: If ``carbon_kg`` is negative.
    """

    if carbon_kg < 0:
        raise ValueError("carbon_kg must be non-negative")
    return {
        "carbon_kg": f"{carbon_kg:.1f}",
        "trees": f"{trees_equivalent(carbon_kg):.1f}",
        "donated_usd": f"{donated_usd(carbon_kg):.2f}",
        "miles_driven": f"{carbon_kg / KG_PER_MILE_DRIVEN:.0f}",
    }
