from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import PricingConfig, get_pricing_config
from ..core.context import QuoteContext, money
from ..core.engine import BaseCostEngine, BaseCostResult
from ..core.registry import ModuleRegistry
from ..logging_config import logger
from .scenario import QuoteScenario, ScenarioSet

D = Decimal


# -----------------------------
# Output models
# -----------------------------


@dataclass(frozen=True)
class BreakdownLine:
    module_id: str
    category: str
    label: str
    amount: D


@dataclass(frozen=True)
class Breakdown:
    lines: Tuple[BreakdownLine, ...]
    by_category: Dict[str, D]
    base_price: D
    margin_rate: D
    margin_amount: D
    final_price: D
    risk_score: int
    manual_review_required: bool
    activated_modules: Tuple[str, ...]
    disabled_modules: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lines": [
                {
                    "moduleId": l.module_id,
                    "category": l.category,
                    "label": l.label,
                    "amount": str(l.amount),
                }
                for l in self.lines
            ],
            "byCategory": {k: str(v) for k, v in self.by_category.items()},
            "basePrice": str(self.base_price),
            "marginRate": str(self.margin_rate),
            "marginAmount": str(self.margin_amount),
            "finalPrice": str(self.final_price),
            "riskScore": self.risk_score,
            "manualReviewRequired": self.manual_review_required,
            "activatedModules": list(self.activated_modules),
            "disabledModules": list(self.disabled_modules),
        }


@dataclass(frozen=True)
class QuoteVariant:
    scenario_id: str
    label: str
    final_price: D
    breakdown: Breakdown
    tags: Tuple[str, ...] = ()
    result: Optional[BaseCostResult] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenarioId": self.scenario_id,
            "label": self.label,
            "finalPrice": str(self.final_price),
            "tags": list(self.tags),
            "breakdown": self.breakdown.to_dict(),
        }


@dataclass(frozen=True)
class VariantComparison:
    cheapest: QuoteVariant
    most_expensive: QuoteVariant
    price_range: D


# -----------------------------
# Service
# -----------------------------


def build_breakdown(
    result: BaseCostResult, scenario: QuoteScenario, disabled: Iterable[str]
) -> Breakdown:
    computed = result.computed
    by_category: Dict[str, D] = {}
    for c in computed.costs:
        by_category[c.category] = money(by_category.get(c.category, D("0")) + c.amount)

    base = result.base_cost
    margin_amount = money(base * scenario.margin_rate)
    return Breakdown(
        lines=tuple(
            BreakdownLine(c.module_id, c.category, c.label, c.amount) for c in computed.costs
        ),
        by_category=by_category,
        base_price=base,
        margin_rate=scenario.margin_rate,
        margin_amount=margin_amount,
        final_price=money(base + margin_amount),
        risk_score=result.risk_score,
        manual_review_required=result.manual_review_required,
        activated_modules=computed.activated_modules,
        disabled_modules=tuple(sorted(disabled)),
    )


class MultiQuoteService:
    """
    Derives one priced variant per scenario from the same input.

    Each scenario is a fresh engine run: disabled modules are filtered from
    the catalog and the forced context patch reaches the option phases only,
    so every variant prices the same physical move. The margin is then
    layered on the base cost. Runs share no state, so requesting a
    single scenario gives exactly the variant the all-scenarios call returns
    for that id.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        scenarios: ScenarioSet,
        config: Optional[PricingConfig] = None,
    ) -> None:
        self.registry = registry
        self.scenarios = scenarios
        self.config = config or get_pricing_config()

    def generate(
        self,
        ctx: QuoteContext,
        scenario_ids: Optional[Sequence[str]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[QuoteVariant]:
        ctx = self._pin_quoted_at(ctx, now)
        ids = list(scenario_ids) if scenario_ids is not None else list(self.scenarios.ids)
        # resolve all ids first: unknown ids fail before any computation
        selected = [self.scenarios.get(sid) for sid in ids]
        return [self._price(scenario, ctx) for scenario in selected]

    def generate_one(
        self, ctx: QuoteContext, scenario_id: str, *, now: Optional[datetime] = None
    ) -> QuoteVariant:
        ctx = self._pin_quoted_at(ctx, now)
        return self._price(self.scenarios.get(scenario_id), ctx)

    @staticmethod
    def compare(variants: Sequence[QuoteVariant]) -> VariantComparison:
        if not variants:
            raise ValueError("Cannot compare an empty list of variants.")
        cheapest = min(variants, key=lambda v: v.final_price)
        most_expensive = max(variants, key=lambda v: v.final_price)
        return VariantComparison(
            cheapest=cheapest,
            most_expensive=most_expensive,
            price_range=money(most_expensive.final_price - cheapest.final_price),
        )

    # -----------------
    # internals
    # -----------------

    @staticmethod
    def _pin_quoted_at(ctx: QuoteContext, now: Optional[datetime]) -> QuoteContext:
        if ctx.quoted_at is not None:
            return ctx
        return replace(ctx, quoted_at=now or datetime.now(timezone.utc))

    def _price(self, scenario: QuoteScenario, ctx: QuoteContext) -> QuoteVariant:
        disabled = scenario.override.disabled_module_ids
        engine = BaseCostEngine(self.registry.without(disabled), self.config)
        result = engine.execute(scenario.prepare(ctx), options_patch=scenario.options_patch)
        breakdown = build_breakdown(result, scenario, disabled)

        logger.info(
            "scenario_priced",
            scenario_id=scenario.id,
            base_price=str(breakdown.base_price),
            margin_rate=str(breakdown.margin_rate),
            final_price=str(breakdown.final_price),
        )

        return QuoteVariant(
            scenario_id=scenario.id,
            label=scenario.label,
            final_price=breakdown.final_price,
            breakdown=breakdown,
            tags=scenario.tags,
            result=result,
        )
