"""Keyword classification of product names into emission categories."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Final

from carbon_offsets.models import EmissionCategory

LOGGER = logging.getLogger(__name__)

__all__ = ["CategoryClassifier", "DEFAULT_RULES", "classify"]

_E = EmissionCategory

# First match wins. Overlapping keywords ("game", "coffee") resolve to the
# earliest category in this table.
DEFAULT_RULES: Final[tuple[tuple[str, EmissionCategory], ...]] = (
    (r"iphone|samsung|phone|smartphone|mobile|android|pixel", _E.ELECTRONICS),
    (r"laptop|macbook|computer|notebook|desktop|mac pro", _E.ELECTRONICS),
    (r"tablet|ipad|surface|kindle", _E.ELECTRONICS),
    (r"tv|television|monitor|display|screen", _E.ELECTRONICS),
    (r"camera|dslr|mirrorless|canon|nikon|sony", _E.ELECTRONICS),
    (r"headphone|earbud|airpod|speaker|audio", _E.ELECTRONICS),
    (r"watch|smartwatch|apple watch|fitbit", _E.ELECTRONICS),
    (r"shirt|tshirt|t-shirt|blouse|top", _E.CLOTHING),
    (r"jeans|pants|trousers|leggings", _E.CLOTHING),
    (r"shoes|sneakers|footwear|boots|sandals|heels", _E.CLOTHING),
    (r"jacket|coat|hoodie|sweater|sweatshirt", _E.CLOTHING),
    (r"dress|skirt|shorts|jumper", _E.CLOTHING),
    (r"underwear|sock|bra|lingerie", _E.CLOTHING),
    (r"chair|sofa|couch|recliner|stool", _E.FURNITURE),
    (r"table|desk|dining|coffee", _E.FURNITURE),
    (r"bed|mattress|headboard", _E.FURNITURE),
    (r"wardrobe|cabinet|shelf|bookcase", _E.FURNITURE),
    (r"lamp|lighting|chandelier", _E.FURNITURE),
    (r"book|novel|magazine|textbook", _E.MEDIA),
    (r"game|console|playstation|xbox|nintendo|switch", _E.ENTERTAINMENT),
    (r"food|grocery|snack|beverage|drink|coffee|tea", _E.FOOD),
    (r"toy|lego|doll|action figure|game", _E.TOYS),
    (r"cosmetic|makeup|skincare|perfume|shampoo", _E.PERSONAL_CARE),
)


class CategoryClassifier:
    """Map free-text product descriptions to an :class:`EmissionCategory`.

    Rules are applied in declaration order as case-insensitive substring
    patterns. Classification is total: empty input or an unmatched name
    yields :attr:`EmissionCategory.GENERAL`.
    """

    def __init__(
        self, rules: Iterable[tuple[str, EmissionCategory]] = DEFAULT_RULES
    ) -> None:
        self._rules: tuple[tuple[re.Pattern[str], EmissionCategory], ...] = tuple(
            (re.compile(pattern, re.IGNORECASE), category)
            for pattern, category in rules
        )

    def classify(self, product_text: str | None) -> EmissionCategory:
        """Return the category of ``product_text``.

        Args:
            product_text: Product name as scraped from the page. ``None`` and
                blank strings are accepted.

        Returns:
            The category of the first matching rule, or ``GENERAL``.
        """

        if not product_text or not product_text.strip():
            return EmissionCategory.GENERAL
        for pattern, category in self._rules:
            if pattern.search(product_text):
                return category
        LOGGER.debug("No category rule matched", extra={"product": product_text})
        return EmissionCategory.GENERAL


_DEFAULT_CLASSIFIER = CategoryClassifier()


def classify(product_text: str | None) -> EmissionCategory:
    """Classify ``product_text`` with the default rule table."""

    return _DEFAULT_CLASSIFIER.classify(product_text)
