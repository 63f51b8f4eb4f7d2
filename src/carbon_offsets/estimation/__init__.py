"""Carbon estimation pipeline: classification, pricing, remote and local paths."""

from __future__ import annotations

from .classifier import CategoryClassifier, classify
from .factors import get_emission_factor
from .heuristics import LocalHeuristicEstimator
from .pricing import PriceEstimator
from .remote import ClimatiqClient
from .scan import ScanCoordinator, ScanResult
from .service import CarbonEstimationService

__all__ = [
    "CarbonEstimationService",
    "CategoryClassifier",
    "ClimatiqClient",
    "LocalHeuristicEstimator",
    "PriceEstimator",
    "ScanCoordinator",
    "ScanResult",
    "classify",
    "get_emission_factor",
]
