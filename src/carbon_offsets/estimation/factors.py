"""Static emission-factor table keyed by purchase category."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from carbon_offsets.models import EmissionCategory, EmissionFactor

__all__ = ["EMISSION_FACTORS", "get_emission_factor"]

_OTHER_GOODS = EmissionFactor("consumer_goods-type_other", "Other consumer goods")

EMISSION_FACTORS: Final[Mapping[EmissionCategory, EmissionFactor]] = {
    EmissionCategory.ELECTRONICS: EmissionFactor(
        "consumer_goods-type_electronics", "Electronics"
    ),
    EmissionCategory.CLOTHING: EmissionFactor(
        "consumer_goods-type_textiles", "Clothing and textiles"
    ),
    EmissionCategory.FURNITURE: EmissionFactor(
        "consumer_goods-type_wooden_furniture", "Wooden furniture"
    ),
    EmissionCategory.FOOD: EmissionFactor("consumer_goods-type_food", "Food products"),
    EmissionCategory.MEDIA: _OTHER_GOODS,
    EmissionCategory.ENTERTAINMENT: _OTHER_GOODS,
    EmissionCategory.TOYS: _OTHER_GOODS,
    EmissionCategory.PERSONAL_CARE: _OTHER_GOODS,
    EmissionCategory.GENERAL: _OTHER_GOODS,
}


def get_emission_factor(category: EmissionCategory | str | None) -> EmissionFactor:
    """Return the factor for ``category``.

    Unknown or missing categories resolve to the ``general`` factor.
    """

    try:
        key = EmissionCategory(category) if category is not None else None
    except ValueError:
        key = None
    if key is None:
        return EMISSION_FACTORS[EmissionCategory.GENERAL]
    return EMISSION_FACTORS.get(key, EMISSION_FACTORS[EmissionCategory.GENERAL])
