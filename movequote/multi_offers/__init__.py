from .loader import load_scenarios
from .scenario import PriceAdjustment, QuoteScenario, ScenarioOverride, ScenarioSet
from .service import Breakdown, MultiQuoteService, QuoteVariant, VariantComparison

__all__ = [
    "Breakdown",
    "MultiQuoteService",
    "PriceAdjustment",
    "QuoteScenario",
    "QuoteVariant",
    "ScenarioOverride",
    "ScenarioSet",
    "VariantComparison",
    "load_scenarios",
]
