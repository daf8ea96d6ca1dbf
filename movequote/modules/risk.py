"""
Phase 7 (70-79): declared value, insurance, high-value items and legal constraints.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List

from ..config import PricingConfig
from ..core.context import (
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    SIDES,
    QuoteContext,
    money,
)
from ..core.module import Module, when
from .common import ADMINISTRATIVE, INSURANCE, RISK, ZERO, done, meta

D = Decimal

HIGH_VALUE_ITEMS = ("piano", "safe", "artwork")


def _declared_value(ctx: QuoteContext) -> D:
    return ctx.declared_value or ZERO


# -----------------------------
# declared-value-validation (70)
# -----------------------------


def validate_declared_value(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "declared-value-validation"
    value = _declared_value(ctx)
    threshold = cfg.high_value_items.declared_value_threshold
    computed = ctx.computed

    if ctx.declared_value_insurance and value <= 0:
        computed = computed.add_requirement(
            mid,
            "DECLARED_VALUE_MISSING",
            SEVERITY_HIGH,
            "Insurance requested without a declared value",
        )

    computed = computed.with_metadata(
        declared_value=value,
        declared_value_above_threshold=value > threshold,
    )
    return done(ctx, computed, mid)


# -----------------------------
# insurance-premium (71)
# -----------------------------


def insurance_premium_for(value: D, cfg: PricingConfig) -> D:
    ic = cfg.insurance
    return money(max(ic.min_premium, min(ic.max_premium, value * ic.rate)))


def insurance_premium(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "insurance-premium"
    ic = cfg.insurance
    value = _declared_value(ctx)
    raw = money(value * ic.rate)
    premium = insurance_premium_for(value, cfg)

    computed = ctx.computed.add_cost(
        mid,
        INSURANCE,
        "Assurance valeur déclarée",
        premium,
        declared_value=str(value),
        rate=str(ic.rate),
        raw_premium=str(raw),
    )
    computed = computed.add_insurance_note(
        mid,
        "DECLARED_VALUE_COVERAGE",
        f"Goods covered up to the declared value of {value} €",
        declared_value=str(value),
        premium=str(premium),
    )
    computed = computed.with_metadata(insurance_premium=premium)
    return done(ctx, computed, mid)


# -----------------------------
# high-value-item-handling (73)
# -----------------------------


def high_value_items(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    hc = cfg.high_value_items
    mid = "high-value-item-handling"
    prices = {
        "piano": hc.piano_handling,
        "safe": hc.safe_handling,
        "artwork": hc.artwork_handling,
    }
    items = [item for item in HIGH_VALUE_ITEMS if getattr(ctx, item)]
    computed = ctx.computed

    for item in items:
        computed = computed.add_cost(
            mid, RISK, f"Manutention spéciale ({item})", prices[item], item=item
        )
        computed = computed.add_requirement(
            mid,
            "SPECIAL_HANDLING_REQUIRED",
            SEVERITY_CRITICAL if item == "safe" else SEVERITY_HIGH,
            f"Special handling for {item}",
            item=item,
        )
    if items:
        computed = computed.add_risk(mid, hc.risk, "High-value items", items=items)

    value = _declared_value(ctx)
    if value > hc.declared_value_threshold:
        computed = computed.add_requirement(
            mid,
            "HIGH_VALUE_DECLARATION",
            SEVERITY_HIGH,
            f"Declared value {value} € requires a detailed inventory",
            declared_value=str(value),
        )
    return done(ctx, computed, mid)


def _has_high_value(ctx: QuoteContext, cfg: PricingConfig) -> bool:
    return any(getattr(ctx, item) for item in HIGH_VALUE_ITEMS) or (
        _declared_value(ctx) > cfg.high_value_items.declared_value_threshold
    )


# -----------------------------
# co-ownership-rules (75)
# -----------------------------


def _any_upper_floor(ctx: QuoteContext) -> bool:
    return any(ctx.access(side).floor_or_zero > 0 for side in SIDES)


def co_ownership(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "co-ownership-rules"
    computed = ctx.computed.add_legal_impact(
        mid,
        SEVERITY_LOW,
        "CO_OWNERSHIP_RULES",
        "Building rules apply (common areas, elevator booking)",
    )
    computed = computed.add_risk(mid, cfg.legal.co_ownership_risk, "Co-ownership building")
    return done(ctx, computed, mid)


# -----------------------------
# neighborhood-damage-risk (76)
# -----------------------------


def _high_stair_sides(ctx: QuoteContext, cfg: PricingConfig) -> List[str]:
    threshold = cfg.furniture_lift.high_floor_threshold
    return [
        side
        for side in SIDES
        if ctx.access(side).floor_or_zero >= threshold and ctx.access(side).lacks_elevator
    ]


def neighborhood_damage(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.legal
    mid = "neighborhood-damage-risk"
    sides = _high_stair_sides(ctx, cfg)
    risk = lc.neighborhood_base_risk + lc.neighborhood_high_floor_risk * len(sides)
    if ctx.bulky_furniture:
        risk += lc.neighborhood_bulky_risk

    computed = ctx.computed.add_risk(
        mid, risk, "Risk of damage to common areas", sides=sides, bulky=ctx.bulky_furniture
    )
    computed = computed.add_legal_impact(
        mid,
        SEVERITY_MEDIUM,
        "NEIGHBORHOOD_DAMAGE",
        "Mover is liable for damage to stairways and common areas",
    )
    return done(ctx, computed, mid)


# -----------------------------
# public-domain-occupation (77)
# -----------------------------


def _public_domain_locations(ctx: QuoteContext) -> List[str]:
    locations = set()
    if meta(ctx, "furniture_lift_used"):
        locations.update(meta(ctx, "furniture_lift_sides", []) or [])
    if meta(ctx, "navette_required"):
        locations.update(meta(ctx, "navette_sides", []) or [])
    return sorted(locations)


def public_domain(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.legal
    mid = "public-domain-occupation"
    locations = _public_domain_locations(ctx)
    cost = lc.public_domain_authorization
    if len(locations) > 1:
        cost = cost * lc.public_domain_multi_location_factor

    computed = ctx.computed.add_cost(
        mid,
        ADMINISTRATIVE,
        "Autorisation d'occupation du domaine public",
        cost,
        locations=locations,
    )
    computed = computed.add_risk(mid, lc.public_domain_risk, "Public road occupation")
    computed = computed.add_legal_impact(
        mid,
        SEVERITY_MEDIUM,
        "PUBLIC_DOMAIN_AUTHORIZATION",
        "A municipal authorization is required to occupy the street",
        locations=locations,
    )
    return done(ctx, computed, mid)


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="declared-value-validation",
            description="Check the declared value against the insurance request",
            priority=70,
            applicability=when(
                lambda ctx: ctx.declared_value_insurance or ctx.declared_value is not None
            ),
            apply=partial(validate_declared_value, cfg=cfg),
        ),
        Module(
            id="insurance-premium",
            description="Declared-value insurance premium (rate with min/max)",
            priority=71,
            dependencies=("declared-value-validation",),
            applicability=when(
                lambda ctx: ctx.declared_value_insurance and _declared_value(ctx) > 0
            ),
            apply=partial(insurance_premium, cfg=cfg),
        ),
        Module(
            id="high-value-item-handling",
            description="Special handling for piano, safe and artwork",
            priority=73,
            applicability=when(lambda ctx: _has_high_value(ctx, cfg)),
            apply=partial(high_value_items, cfg=cfg),
        ),
        Module(
            id="co-ownership-rules",
            description="Co-ownership building rules for upper floors",
            priority=75,
            dependencies=("address-normalization",),
            applicability=when(_any_upper_floor),
            apply=partial(co_ownership, cfg=cfg),
        ),
        Module(
            id="neighborhood-damage-risk",
            description="Damage risk to common areas (stairs, bulky furniture)",
            priority=76,
            applicability=when(
                lambda ctx: bool(_high_stair_sides(ctx, cfg)) or ctx.bulky_furniture
            ),
            apply=partial(neighborhood_damage, cfg=cfg),
        ),
        Module(
            id="public-domain-occupation",
            description="Street occupation permit for a lift or a shuttle",
            priority=77,
            applicability=when(lambda ctx: bool(_public_domain_locations(ctx))),
            apply=partial(public_domain, cfg=cfg),
        ),
    ]
