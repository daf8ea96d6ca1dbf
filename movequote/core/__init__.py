from .context import (
    ComputedContext,
    CostEntry,
    QuoteContext,
    RiskContribution,
)
from .engine import BaseCostEngine, BaseCostResult, SkipRecord
from .module import ALWAYS, Conditional, Module, Unconditional, when
from .registry import ModuleRegistry

__all__ = [
    "ALWAYS",
    "BaseCostEngine",
    "BaseCostResult",
    "ComputedContext",
    "Conditional",
    "CostEntry",
    "Module",
    "ModuleRegistry",
    "QuoteContext",
    "RiskContribution",
    "SkipRecord",
    "Unconditional",
    "when",
]
