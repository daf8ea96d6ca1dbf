"""
Phase 5 (50-59): furniture lift (monte-meubles): recommendation, refusal, cost.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List

from ..config import PricingConfig
from ..core.context import (
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    SIDES,
    QuoteContext,
)
from ..core.module import Module, when
from .common import EQUIPMENT, RISK, done, meta

D = Decimal

RECOMMENDATION = "monte-meubles-recommendation"


def lift_sides(ctx: QuoteContext) -> List[str]:
    """Sides above ground floor with no elevator, or only a small one."""
    out = []
    for side in SIDES:
        point = ctx.access(side)
        small = (point.elevator_size or "").upper() == "SMALL"
        if point.floor_or_zero > 0 and (point.lacks_elevator or small):
            out.append(side)
    return out


def _max_floor(ctx: QuoteContext, sides: List[str]) -> int:
    return max((ctx.access(side).floor_or_zero for side in sides), default=0)


def recommend_lift(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    fc = cfg.furniture_lift
    sides = lift_sides(ctx)
    top = _max_floor(ctx, sides)

    if top >= fc.critical_floor_threshold:
        severity = SEVERITY_CRITICAL
    elif top >= fc.high_floor_threshold:
        severity = SEVERITY_HIGH
    else:
        severity = SEVERITY_MEDIUM

    computed = ctx.computed.add_requirement(
        RECOMMENDATION,
        "LIFT_RECOMMENDED",
        severity,
        f"Furniture lift recommended (floor {top}, sides {sides})",
        sides=sides,
        max_floor=top,
    )
    computed = computed.add_cross_sell(
        RECOMMENDATION,
        "MONTE_MEUBLES",
        "Monte-meubles",
        "Safer and faster handling for upper floors",
        price_impact=fc.estimated_lift_cost,
        optional=severity != SEVERITY_CRITICAL,
        severity=severity,
    )
    computed = computed.with_metadata(
        lift_recommended=True, lift_sides=sides, lift_severity=severity
    )
    return done(ctx, computed, RECOMMENDATION)


def refusal_impact(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    fc = cfg.furniture_lift
    mid = "monte-meubles-refusal-impact"
    severity = (
        SEVERITY_CRITICAL
        if meta(ctx, "lift_severity") == SEVERITY_CRITICAL
        else SEVERITY_HIGH
    )

    computed = ctx.computed.add_legal_impact(
        mid,
        severity,
        "LIFT_REFUSED",
        "Client refused the recommended furniture lift; liability is limited",
        sides=meta(ctx, "lift_sides", []),
    )
    computed = computed.add_insurance_note(
        mid,
        "REDUCED_COVERAGE",
        f"Coverage limited to {fc.refused_insurance_coverage_pct}% for items carried by hand",
        coverage_pct=fc.refused_insurance_coverage_pct,
    )
    computed = computed.add_risk(mid, fc.refusal_risk, "Furniture lift refused")
    return done(ctx, computed, mid)


def furniture_lift_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    fc = cfg.furniture_lift
    mid = "furniture-lift-cost"
    sides = list(meta(ctx, "lift_sides", []))
    cost = fc.base_cost + (fc.double_lift_extra if len(sides) > 1 else 0)

    computed = ctx.computed.add_cost(
        mid, EQUIPMENT, "Monte-meubles", cost, sides=sides
    )
    computed = computed.with_metadata(furniture_lift_used=True, furniture_lift_sides=sides)
    return done(ctx, computed, mid)


def manual_handling_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    fc = cfg.furniture_lift
    mid = "manual-handling-risk-cost"
    top = _max_floor(ctx, list(meta(ctx, "lift_sides", [])))

    computed = ctx.computed.add_cost(
        mid,
        RISK,
        "Manutention manuelle (monte-meubles refusé)",
        fc.manual_handling_base + fc.manual_handling_per_floor * top,
        max_floor=top,
    )
    return done(ctx, computed, mid)


def _refused(ctx: QuoteContext) -> bool:
    return ctx.refuse_lift_despite_recommendation


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id=RECOMMENDATION,
            description="Recommend a furniture lift for upper floors without a usable elevator",
            priority=50,
            applicability=when(lambda ctx: bool(lift_sides(ctx))),
            apply=partial(recommend_lift, cfg=cfg),
        ),
        Module(
            id="monte-meubles-refusal-impact",
            description="Legal and insurance impact of refusing the lift",
            priority=52,
            dependencies=(RECOMMENDATION,),
            applicability=when(_refused),
            apply=partial(refusal_impact, cfg=cfg),
        ),
        Module(
            id="furniture-lift-cost",
            description="Furniture lift rental (double when both sides need it)",
            priority=53,
            dependencies=(RECOMMENDATION,),
            applicability=when(lambda ctx: not _refused(ctx)),
            apply=partial(furniture_lift_cost, cfg=cfg),
        ),
        Module(
            id="manual-handling-risk-cost",
            description="Extra manual handling when the lift is refused",
            priority=55,
            dependencies=(RECOMMENDATION,),
            applicability=when(_refused),
            apply=partial(manual_handling_cost, cfg=cfg),
        ),
    ]
