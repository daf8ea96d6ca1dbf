"""
Phase 6 (60-69): vehicles, crew and labor.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import Dict, List, Tuple

from ..config import PricingConfig, VehicleType
from ..core.context import SEVERITY_MEDIUM, SIDES, QuoteContext, round_half_up
from ..core.module import Module, when
from .common import LABOR, LOGISTICS, VEHICLE, ZERO, distance_of, done, meta, volume_of, workers_of

D = Decimal

SCENARIO_ECO = "ECO"
SCENARIO_STANDARD = "STANDARD"


# -----------------------------
# vehicle-selection (60)
# -----------------------------


def select_vehicles(volume: D, cfg: PricingConfig) -> List[VehicleType]:
    """
    Largest trucks first until the remainder fits; the remainder goes to the
    smallest truck that can hold it.
    """
    types = sorted(cfg.vehicle.types, key=lambda t: t.capacity_m3)
    if volume <= 0:
        by_code = {t.code: t for t in types}
        return [by_code.get(cfg.vehicle.default_type, types[0])]

    largest = types[-1]
    chosen: List[VehicleType] = []
    remaining = volume
    while remaining > 0:
        fit = next((t for t in types if t.capacity_m3 >= remaining), None)
        if fit is not None:
            chosen.append(fit)
            break
        chosen.append(largest)
        remaining -= largest.capacity_m3
    return chosen


def vehicle_selection(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "vehicle-selection"
    volume = volume_of(ctx)
    vehicles = select_vehicles(volume, cfg)
    cost = sum((v.rental_cost for v in vehicles), ZERO)

    computed = ctx.computed.add_cost(
        mid,
        VEHICLE,
        " + ".join(v.code for v in vehicles),
        cost,
        volume=str(volume),
        vehicles=[v.code for v in vehicles],
    )
    computed = computed.with_metadata(
        vehicle_count=len(vehicles),
        vehicle_types=[v.code for v in vehicles],
        vehicle_capacity=sum((v.capacity_m3 for v in vehicles), ZERO),
    )
    return done(ctx, computed, mid)


# -----------------------------
# workers-calculation (61)
# -----------------------------


def workers_for(volume: D, scenario_id, cfg: PricingConfig) -> Tuple[int, int, Dict[str, str]]:
    """Returns (workers, base_workers, scenario_adjustment)."""
    lc = cfg.labor
    if volume <= 0:
        base = lc.default_workers
    else:
        base = max(1, int(round_half_up(volume / lc.volume_per_worker_m3)))

    if scenario_id == SCENARIO_ECO and base > lc.eco_max_workers:
        return lc.eco_max_workers, base, {"type": "ECO_MAX_LIMIT"}
    if scenario_id == SCENARIO_STANDARD:
        reduced = max(1, int(round_half_up(base * lc.standard_reduction_factor)))
        return reduced, base, {"type": "STANDARD_HALF"}
    return base, base, {}


def workers_calculation(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    workers, base, adjustment = workers_for(volume_of(ctx), ctx.scenario_id, cfg)
    computed = ctx.computed.with_metadata(
        workers_count=workers,
        workers_base=base,
        scenario_adjustment=adjustment or None,
    )
    return done(ctx, computed, "workers-calculation")


# -----------------------------
# labor-base (62)
# -----------------------------


def labor_hours(volume: D, workers: int, km: D, cfg: PricingConfig) -> D:
    lc = cfg.labor
    # load + unload
    handling_minutes = 2 * volume * lc.minutes_per_m3_per_worker / workers
    driving_hours = km / cfg.distance.average_speed_kmh
    hours = handling_minutes / 60 + driving_hours
    return round_half_up(max(lc.min_hours, hours), "0.1")


def labor_base(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.labor
    workers = workers_of(ctx, lc.default_workers)
    hours = labor_hours(volume_of(ctx), workers, distance_of(ctx), cfg)

    computed = ctx.computed.add_cost(
        "labor-base",
        LABOR,
        f"Main d'oeuvre ({workers} déménageurs × {hours} h)",
        workers * hours * lc.hourly_rate,
        workers=workers,
        hours=str(hours),
        hourly_rate=str(lc.hourly_rate),
    )
    computed = computed.with_metadata(labor_hours=hours)
    return done(ctx, computed, "labor-base")


# -----------------------------
# crew-flexibility (63)
# -----------------------------


def crew_flexibility(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    computed = ctx.computed.add_cost(
        "crew-flexibility",
        LABOR,
        "Équipe flexible",
        cfg.labor.crew_flexibility_cost,
    )
    return done(ctx, computed, "crew-flexibility")


# -----------------------------
# overnight-stop-cost (64)
# -----------------------------


def _needs_overnight_stop(ctx: QuoteContext, cfg: PricingConfig) -> bool:
    return (
        ctx.force_overnight_stop
        and distance_of(ctx) > cfg.distance.overnight_stop_threshold_km
    )


def overnight_stop(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.logistics
    mid = "overnight-stop-cost"
    workers = workers_of(ctx, cfg.labor.default_workers)
    hotel = workers * lc.hotel_per_worker
    meals = workers * lc.meals_per_worker
    km = distance_of(ctx)

    computed = ctx.computed.add_cost(
        mid,
        LOGISTICS,
        "Arrêt nuit (hôtel, repas, parking)",
        hotel + meals + lc.overnight_parking,
        workers=workers,
        hotel=str(hotel),
        meals=str(meals),
        parking=str(lc.overnight_parking),
    )
    computed = computed.add_requirement(
        mid,
        "OVERNIGHT_STOP",
        SEVERITY_MEDIUM,
        f"Overnight stop required for {km} km",
        distance_km=str(km),
    )
    computed = computed.add_flag(
        mid, "OVERNIGHT_STOP", SEVERITY_MEDIUM, "Crew stays overnight on the road"
    )
    computed = computed.with_metadata(overnight_stop_required=True)
    return done(ctx, computed, mid)


# -----------------------------
# labor-access-penalty (66)
# -----------------------------


def access_penalties(ctx: QuoteContext, cfg: PricingConfig) -> List[Dict[str, object]]:
    ac = cfg.access
    lifted = set(meta(ctx, "furniture_lift_sides", []) or [])
    out: List[Dict[str, object]] = []
    for side in SIDES:
        point = ctx.access(side)
        floor = point.floor_or_zero
        if floor > ac.floor_penalty_threshold and point.lacks_elevator and side not in lifted:
            out.append(
                {"side": side, "type": "FLOORS", "floor": floor, "amount": floor * ac.penalty_per_floor}
            )
        carry = point.carry_distance or ZERO
        if carry > ac.carry_distance_threshold_m:
            out.append(
                {"side": side, "type": "CARRY", "meters": carry, "amount": carry * ac.penalty_per_carry_meter}
            )
    return out


def labor_access_penalty(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    penalties = access_penalties(ctx, cfg)
    total = sum((p["amount"] for p in penalties), ZERO)

    computed = ctx.computed.add_cost(
        "labor-access-penalty",
        LABOR,
        "Pénalité d'accès",
        total,
        penalties=[{**p, "amount": str(p["amount"])} for p in penalties],
    )
    return done(ctx, computed, "labor-access-penalty")


# -----------------------------
# loading-time-estimation (68)
# -----------------------------


def loading_time(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    lc = cfg.labor
    workers = workers_of(ctx, lc.default_workers)
    minutes = volume_of(ctx) * lc.minutes_per_m3_per_worker / workers
    for side in SIDES:
        point = ctx.access(side)
        if point.lacks_elevator:
            minutes += point.floor_or_zero * lc.minutes_per_floor
        minutes += (point.carry_distance or ZERO) * lc.minutes_per_carry_meter
    minutes = round_half_up(minutes, "1")

    computed = ctx.computed.with_metadata(loading_time_minutes=minutes)
    if minutes > lc.hours_per_day * 60:
        computed = computed.add_flag(
            "loading-time-estimation",
            "LONG_LOADING",
            SEVERITY_MEDIUM,
            f"Loading alone takes {minutes} min, more than one working day",
            minutes=str(minutes),
        )
    return done(ctx, computed, "loading-time-estimation")


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="vehicle-selection",
            description="Trucks needed for the adjusted volume",
            priority=60,
            dependencies=("volume-estimation",),
            apply=partial(vehicle_selection, cfg=cfg),
        ),
        Module(
            id="workers-calculation",
            description="Crew size from volume, with scenario limits",
            priority=61,
            dependencies=("volume-estimation",),
            apply=partial(workers_calculation, cfg=cfg),
        ),
        Module(
            id="labor-base",
            description="Crew hours × hourly rate",
            priority=62,
            dependencies=("workers-calculation", "distance-calculation"),
            apply=partial(labor_base, cfg=cfg),
        ),
        Module(
            id="crew-flexibility",
            description="Flexible crew scheduling option",
            priority=63,
            applicability=when(lambda ctx: ctx.crew_flexibility),
            apply=partial(crew_flexibility, cfg=cfg),
        ),
        Module(
            id="overnight-stop-cost",
            description="Hotel, meals and parking for very long moves",
            priority=64,
            dependencies=("distance-calculation", "workers-calculation"),
            applicability=when(lambda ctx: _needs_overnight_stop(ctx, cfg)),
            apply=partial(overnight_stop, cfg=cfg),
        ),
        Module(
            id="labor-access-penalty",
            description="Stairs above the threshold and long carrying distances",
            priority=66,
            dependencies=("workers-calculation",),
            applicability=when(lambda ctx: bool(access_penalties(ctx, cfg))),
            apply=partial(labor_access_penalty, cfg=cfg),
        ),
        Module(
            id="loading-time-estimation",
            description="Estimated loading time for the crew",
            priority=68,
            dependencies=("workers-calculation",),
            apply=partial(loading_time, cfg=cfg),
        ),
    ]
