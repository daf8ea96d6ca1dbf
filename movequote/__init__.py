"""
movequote: moving quotation pipeline.

    registry = build_catalog()
    result = BaseCostEngine(registry).execute(ctx)
    variants = MultiQuoteService(registry, load_scenarios(registry=registry)).generate(ctx)
"""
from .core import BaseCostEngine, BaseCostResult, ModuleRegistry, QuoteContext
from .errors import (
    FatalInputError,
    ModuleContractError,
    ModuleExecutionError,
    QuotationError,
    UnknownScenarioError,
)
from .modules import build_catalog
from .multi_offers import MultiQuoteService, load_scenarios

__version__ = "0.1.0"

__all__ = [
    "BaseCostEngine",
    "BaseCostResult",
    "FatalInputError",
    "ModuleContractError",
    "ModuleExecutionError",
    "ModuleRegistry",
    "MultiQuoteService",
    "QuotationError",
    "QuoteContext",
    "UnknownScenarioError",
    "build_catalog",
    "load_scenarios",
]
