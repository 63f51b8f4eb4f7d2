"""Carbon Offsets - purchase carbon estimation and offset tracking."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "AggregateStats",
    "CarbonEstimate",
    "CarbonEstimationService",
    "EmissionCategory",
    "OffsetAuthority",
    "OffsetEvent",
    "OffsetLedger",
    "PageSignal",
]

if TYPE_CHECKING:
    from .authority import OffsetAuthority
    from .estimation.service import CarbonEstimationService
    from .ledger.ledger import OffsetLedger
    from .models import CarbonEstimate, EmissionCategory
    from .schemas import AggregateStats, OffsetEvent, PageSignal


def __getattr__(name: str) -> Any:
    """Lazily import submodules so ``import carbon_offsets`` stays cheap."""

    module_map = {
        "AggregateStats": "schemas",
        "CarbonEstimate": "models",
        "CarbonEstimationService": "estimation.service",
        "EmissionCategory": "models",
        "OffsetAuthority": "authority",
        "OffsetEvent": "schemas",
        "OffsetLedger": "ledger.ledger",
        "PageSignal": "schemas",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
