"""
Phase 8 (80-89): temporal surcharges and cross-sell services.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List

from ..config import PricingConfig
from ..core.context import SEVERITY_LOW, SEVERITY_MEDIUM, QuoteContext
from ..core.module import Module, when
from .common import SERVICE, TEMPORAL, ZERO, done, meta, volume_of

D = Decimal


# -----------------------------
# end-of-month (80) / weekend (81)
# -----------------------------


def _temporal_surcharge(
    ctx: QuoteContext, mid: str, label: str, pct: D, risk: int, reason: str
) -> QuoteContext:
    base = ctx.computed.total_cost()
    amount = base * pct / 100

    computed = ctx.computed.add_cost(mid, TEMPORAL, label, amount, percentage=str(pct))
    computed = computed.add_adjustment(mid, label, pct, base, amount)
    computed = computed.add_risk(mid, risk, reason)
    return done(ctx, computed, mid)


def end_of_month(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    tc = cfg.temporal
    return _temporal_surcharge(
        ctx,
        "end-of-month",
        "Majoration fin de mois",
        tc.end_of_month_surcharge_pct,
        tc.end_of_month_risk,
        "End of month: high demand",
    )


def weekend(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    tc = cfg.temporal
    return _temporal_surcharge(
        ctx,
        "weekend",
        "Majoration week-end",
        tc.weekend_surcharge_pct,
        tc.weekend_risk,
        "Weekend move",
    )


def _is_end_of_month(ctx: QuoteContext, cfg: PricingConfig) -> bool:
    day = meta(ctx, "moving_day_of_month")
    return day is not None and day >= cfg.temporal.end_of_month_start_day


def _is_weekend(ctx: QuoteContext) -> bool:
    weekday = meta(ctx, "moving_weekday")
    return weekday is not None and weekday >= 5


# -----------------------------
# requirements (82-84)
# -----------------------------


def packing_requirement(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    cc = cfg.cross_selling
    mid = "packing-requirement"
    volume = volume_of(ctx)
    requested = ctx.packing

    computed = ctx.computed.add_requirement(
        mid,
        "PACKING_REQUESTED" if requested else "PACKING_RECOMMENDED",
        SEVERITY_LOW if requested else SEVERITY_MEDIUM,
        f"Packing service for {volume} m³",
        volume=str(volume),
    )
    computed = computed.add_cross_sell(
        mid,
        "PACKING",
        "Emballage",
        "Professional packing of fragile goods",
        price_impact=volume * cc.packing_cost_per_m3,
        optional=True,
    )
    computed = computed.with_metadata(packing_required=True)
    return done(ctx, computed, mid)


def cleaning_surface(ctx: QuoteContext) -> D:
    """Client surface, else the surface a scenario bills for cleaning."""
    return ctx.surface or ctx.cleaning_surface or ZERO


def cleaning_requirement(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    cc = cfg.cross_selling
    mid = "cleaning-end-requirement"
    surface = cleaning_surface(ctx)

    computed = ctx.computed.add_requirement(
        mid,
        "CLEANING_END_REQUESTED" if ctx.cleaning_end else "CLEANING_END_RECOMMENDED",
        SEVERITY_LOW,
        f"End-of-lease cleaning for {surface} m²",
        surface=str(surface),
    )
    computed = computed.add_cross_sell(
        mid,
        "CLEANING_END",
        "Nettoyage fin de bail",
        "Leave the former home ready for the inventory of fixtures",
        price_impact=surface * cc.cleaning_cost_per_m2,
    )
    return done(ctx, computed, mid)


def _storage_days(ctx: QuoteContext, cfg: PricingConfig) -> int:
    return ctx.storage_duration_days or cfg.cross_selling.default_storage_days


def storage_price(ctx: QuoteContext, cfg: PricingConfig) -> D:
    return volume_of(ctx) * cfg.cross_selling.storage_cost_per_m3_per_month * _storage_days(ctx, cfg) / 30


def storage_requirement(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "storage-requirement"
    days = _storage_days(ctx, cfg)

    computed = ctx.computed.add_requirement(
        mid,
        "TEMPORARY_STORAGE",
        SEVERITY_MEDIUM,
        f"Temporary storage for {days} days",
        days=days,
    )
    computed = computed.add_cross_sell(
        mid,
        "STORAGE",
        "Garde-meubles",
        "Secure storage between the two addresses",
        price_impact=storage_price(ctx, cfg),
        days=days,
    )
    return done(ctx, computed, mid)


# -----------------------------
# costs (85-89)
# -----------------------------


def packing_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    volume = volume_of(ctx)
    computed = ctx.computed.add_cost(
        "packing-cost",
        SERVICE,
        "Emballage",
        volume * cfg.cross_selling.packing_cost_per_m3,
        volume=str(volume),
    )
    return done(ctx, computed, "packing-cost")


def cleaning_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    surface = cleaning_surface(ctx)
    computed = ctx.computed.add_cost(
        "cleaning-end-cost",
        SERVICE,
        "Nettoyage fin de bail",
        surface * cfg.cross_selling.cleaning_cost_per_m2,
        surface=str(surface),
    )
    return done(ctx, computed, "cleaning-end-cost")


def furniture_service_price(ctx: QuoteContext, cfg: PricingConfig) -> D:
    """Dismantling or reassembly: base + complex items + bulky + piano."""
    cc = cfg.cross_selling
    price = cc.dismantling_base + cc.per_complex_item * (ctx.complex_furniture_count or 0)
    if ctx.bulky_furniture:
        price += cc.bulky_extra
    if ctx.piano:
        price += cc.piano_extra
    return price


def dismantling_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    computed = ctx.computed.add_cost(
        "dismantling-cost", SERVICE, "Démontage", furniture_service_price(ctx, cfg)
    )
    return done(ctx, computed, "dismantling-cost")


def reassembly_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    computed = ctx.computed.add_cost(
        "reassembly-cost", SERVICE, "Remontage", furniture_service_price(ctx, cfg)
    )
    return done(ctx, computed, "reassembly-cost")


def storage_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    days = _storage_days(ctx, cfg)
    computed = ctx.computed.add_cost(
        "storage-cost",
        SERVICE,
        f"Garde-meubles ({days} jours)",
        storage_price(ctx, cfg),
        days=days,
    )
    return done(ctx, computed, "storage-cost")


def modules(cfg: PricingConfig) -> List[Module]:
    cc = cfg.cross_selling
    return [
        Module(
            id="end-of-month",
            description="End-of-month demand surcharge",
            priority=80,
            dependencies=("date-validation",),
            applicability=when(lambda ctx: _is_end_of_month(ctx, cfg)),
            apply=partial(end_of_month, cfg=cfg),
        ),
        Module(
            id="weekend",
            description="Weekend surcharge",
            priority=81,
            dependencies=("date-validation",),
            applicability=when(_is_weekend),
            apply=partial(weekend, cfg=cfg),
        ),
        Module(
            id="packing-requirement",
            description="Packing requested or recommended for large volumes",
            priority=82,
            dependencies=("volume-estimation",),
            applicability=when(
                lambda ctx: ctx.packing or volume_of(ctx) > cc.packing_volume_threshold_m3
            ),
            apply=partial(packing_requirement, cfg=cfg),
        ),
        Module(
            id="cleaning-end-requirement",
            description="End-of-lease cleaning requested or recommended for large homes",
            priority=83,
            applicability=when(
                lambda ctx: ctx.cleaning_end
                or cleaning_surface(ctx) > cc.cleaning_surface_threshold_m2
            ),
            apply=partial(cleaning_requirement, cfg=cfg),
        ),
        Module(
            id="storage-requirement",
            description="Temporary storage between addresses",
            priority=84,
            dependencies=("volume-estimation",),
            applicability=when(lambda ctx: ctx.temporary_storage),
            apply=partial(storage_requirement, cfg=cfg),
        ),
        Module(
            id="packing-cost",
            description="Packing service",
            priority=85,
            dependencies=("packing-requirement",),
            applicability=when(lambda ctx: ctx.packing),
            apply=partial(packing_cost, cfg=cfg),
        ),
        Module(
            id="cleaning-end-cost",
            description="End-of-lease cleaning service",
            priority=86,
            dependencies=("cleaning-end-requirement",),
            applicability=when(lambda ctx: ctx.cleaning_end and cleaning_surface(ctx) > 0),
            apply=partial(cleaning_cost, cfg=cfg),
        ),
        Module(
            id="dismantling-cost",
            description="Furniture dismantling",
            priority=87,
            applicability=when(lambda ctx: ctx.dismantling),
            apply=partial(dismantling_cost, cfg=cfg),
        ),
        Module(
            id="reassembly-cost",
            description="Furniture reassembly",
            priority=88,
            applicability=when(lambda ctx: ctx.reassembly),
            apply=partial(reassembly_cost, cfg=cfg),
        ),
        Module(
            id="storage-cost",
            description="Storage fee prorated by month",
            priority=89,
            dependencies=("storage-requirement",),
            applicability=when(lambda ctx: ctx.temporary_storage),
            apply=partial(storage_cost, cfg=cfg),
        ),
    ]
