"""
Phase 4 (40-49): access constraints and local logistics.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List, Optional

from ..config import PricingConfig
from ..core.context import SEVERITY_HIGH, SEVERITY_LOW, SIDES, QuoteContext
from ..core.module import Module, when
from .common import LOGISTICS, TRANSPORT, distance_of, done, meta

D = Decimal


# -----------------------------
# no-elevator-pickup / no-elevator-delivery (40, 41)
# -----------------------------


def _needs_stairs(side: str):
    def predicate(ctx: QuoteContext) -> bool:
        point = ctx.access(side)
        return point.floor_or_zero > 0 and point.lacks_elevator

    return predicate


def no_elevator(ctx: QuoteContext, cfg: PricingConfig, side: str) -> QuoteContext:
    mid = f"no-elevator-{side}"
    floor = ctx.access(side).floor_or_zero

    computed = ctx.computed.add_risk(
        mid,
        cfg.access.no_elevator_risk,
        f"No elevator at {side} (floor {floor})",
        side=side,
        floor=floor,
    )
    computed = computed.add_flag(
        mid,
        f"NO_ELEVATOR_{side.upper()}",
        SEVERITY_HIGH if floor >= cfg.furniture_lift.high_floor_threshold else SEVERITY_LOW,
        f"Stairs only at {side}, floor {floor}",
        floor=floor,
    )
    return done(ctx, computed, mid)


# -----------------------------
# navette-required (45)
# -----------------------------


def _narrow_street(ctx: QuoteContext) -> bool:
    return any(ctx.access(side).narrow_street for side in SIDES)


def navette(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.logistics
    km = distance_of(ctx)
    sides = [side for side in SIDES if ctx.access(side).narrow_street]

    computed = ctx.computed.add_cost(
        "navette-required",
        LOGISTICS,
        "Navette (rue étroite)",
        lc.navette_base_cost + km * lc.navette_cost_per_km,
        sides=sides,
    )
    computed = computed.with_metadata(navette_required=True, navette_sides=sides)
    return done(ctx, computed, "navette-required")


# -----------------------------
# traffic-idf (46)
# -----------------------------


def _in_range(hour: int, window) -> bool:
    start, end = window
    return start <= hour < end


def traffic_surcharge_pct(ctx: QuoteContext, cfg: PricingConfig) -> Optional[Decimal]:
    """1% in IDF rush hours, 2% on Friday afternoon; None outside those windows."""
    lc = cfg.logistics
    hour = meta(ctx, "moving_hour")
    if hour is None:
        return None
    if not (meta(ctx, "pickup_is_idf") or meta(ctx, "delivery_is_idf")):
        return None

    if meta(ctx, "moving_weekday") == 4 and _in_range(hour, lc.friday_afternoon):
        return lc.friday_afternoon_surcharge_pct
    if any(_in_range(hour, window) for window in lc.rush_hours):
        return lc.rush_hour_surcharge_pct
    return None


def traffic_idf(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "traffic-idf"
    pct = traffic_surcharge_pct(ctx, cfg)
    base = ctx.computed.cost_of(TRANSPORT)
    amount = base * pct / 100

    computed = ctx.computed.add_cost(
        mid, TRANSPORT, "Supplément trafic Ile-de-France", amount, percentage=str(pct)
    )
    computed = computed.add_adjustment(
        mid, "Trafic Ile-de-France", pct, base, amount, hour=meta(ctx, "moving_hour")
    )
    return done(ctx, computed, mid)


# -----------------------------
# time-slot-syndic (47)
# -----------------------------


def syndic_time_slot(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.logistics
    mid = "time-slot-syndic"

    computed = ctx.computed.add_cost(
        mid, LOGISTICS, "Créneau imposé par le syndic", lc.syndic_time_slot_cost
    )
    computed = computed.add_risk(
        mid, lc.syndic_time_slot_risk, "Fixed time slot imposed by the building"
    )
    return done(ctx, computed, mid)


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="no-elevator-pickup",
            description="Risk for stairs-only access at pickup",
            priority=40,
            applicability=when(_needs_stairs("pickup")),
            apply=partial(no_elevator, cfg=cfg, side="pickup"),
        ),
        Module(
            id="no-elevator-delivery",
            description="Risk for stairs-only access at delivery",
            priority=41,
            applicability=when(_needs_stairs("delivery")),
            apply=partial(no_elevator, cfg=cfg, side="delivery"),
        ),
        Module(
            id="navette-required",
            description="Shuttle van when the truck cannot reach the door",
            priority=45,
            dependencies=("distance-calculation",),
            applicability=when(_narrow_street),
            apply=partial(navette, cfg=cfg),
        ),
        Module(
            id="traffic-idf",
            description="Paris-region traffic surcharge on transport costs",
            priority=46,
            dependencies=("address-normalization", "date-validation", "fuel-cost"),
            applicability=when(lambda ctx: traffic_surcharge_pct(ctx, cfg) is not None),
            apply=partial(traffic_idf, cfg=cfg),
        ),
        Module(
            id="time-slot-syndic",
            description="Building-imposed time slot",
            priority=47,
            applicability=when(lambda ctx: ctx.syndic_time_slot),
            apply=partial(syndic_time_slot, cfg=cfg),
        ),
    ]
