"""
Phase 3 (30-39): distance and transport costs.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List

from ..config import PricingConfig
from ..core.context import SEVERITY_MEDIUM, QuoteContext, money
from ..core.module import Module, when
from .common import TRANSPORT, ZERO, distance_of, done, meta

D = Decimal


def calculate_distance(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    dc = cfg.distance
    if ctx.distance_km is not None and ctx.distance_km > 0:
        km, source = ctx.distance_km, "INPUT"
    else:
        km, source = dc.default_distance_km, "DEFAULT"

    capped = km > dc.max_distance_km
    km = min(km, dc.max_distance_km)

    computed = ctx.computed.with_metadata(
        distance_km=km, distance_source=source, distance_capped=capped
    )
    return done(ctx, computed, "distance-calculation")


def long_distance_threshold(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    threshold = cfg.distance.long_distance_threshold_km
    km = distance_of(ctx)
    is_long = km > threshold

    computed = ctx.computed.with_metadata(is_long_distance=is_long)
    if is_long:
        computed = computed.add_flag(
            "long-distance-threshold",
            "LONG_DISTANCE",
            SEVERITY_MEDIUM,
            f"Long distance move ({km} km > {threshold} km)",
            distance_km=str(km),
        )
    return done(ctx, computed, "long-distance-threshold")


def fuel_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    fc = cfg.fuel
    km = distance_of(ctx)
    liters = km * fc.consumption_l_per_100km / 100
    cost = liters * fc.price_per_liter

    computed = ctx.computed.add_cost(
        "fuel-cost",
        TRANSPORT,
        "Carburant",
        cost,
        distance_km=str(km),
        liters=str(liters),
        price_per_liter=str(fc.price_per_liter),
    )
    return done(ctx, computed, "fuel-cost")


def progressive_surcharge(excess_km: D, cfg: PricingConfig) -> D:
    """Bill `excess_km` band by band (each band up to its `up_to_km`)."""
    total = ZERO
    floor = ZERO
    for band in cfg.long_distance.bands:
        portion = min(excess_km, band.up_to_km) - floor
        if portion <= 0:
            break
        total += portion * band.rate_per_km
        floor = band.up_to_km
    return money(total)


def long_distance_surcharge(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    threshold = cfg.distance.long_distance_threshold_km
    km = distance_of(ctx)
    excess = min(km - threshold, cfg.long_distance.max_excess_km)
    amount = progressive_surcharge(excess, cfg)

    computed = ctx.computed.add_cost(
        "long-distance-surcharge",
        TRANSPORT,
        "Supplément longue distance",
        amount,
        excess_km=str(excess),
    )
    return done(ctx, computed, "long-distance-surcharge")


def toll_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    tc = cfg.tolls
    km = distance_of(ctx)
    highway_km = km * tc.highway_share

    computed = ctx.computed.add_cost(
        "toll-cost",
        TRANSPORT,
        "Péages",
        highway_km * tc.cost_per_km,
        highway_km=str(highway_km),
    )
    return done(ctx, computed, "toll-cost")


def _is_long_distance(ctx: QuoteContext) -> bool:
    return bool(meta(ctx, "is_long_distance", False))


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="distance-calculation",
            description="Distance in km (default when unknown, capped at the maximum)",
            priority=30,
            apply=partial(calculate_distance, cfg=cfg),
        ),
        Module(
            id="long-distance-threshold",
            description="Mark moves above the long-distance threshold",
            priority=31,
            dependencies=("distance-calculation",),
            apply=partial(long_distance_threshold, cfg=cfg),
        ),
        Module(
            id="fuel-cost",
            description="Fuel for the trip",
            priority=33,
            dependencies=("distance-calculation",),
            apply=partial(fuel_cost, cfg=cfg),
        ),
        Module(
            id="long-distance-surcharge",
            description="Progressive per-km surcharge above the threshold",
            priority=34,
            dependencies=("long-distance-threshold",),
            applicability=when(_is_long_distance),
            apply=partial(long_distance_surcharge, cfg=cfg),
        ),
        Module(
            id="toll-cost",
            description="Highway tolls on long distance moves",
            priority=35,
            dependencies=("long-distance-threshold",),
            applicability=when(_is_long_distance),
            apply=partial(toll_cost, cfg=cfg),
        ),
    ]
