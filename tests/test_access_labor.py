from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from movequote.core.engine import BaseCostEngine
from movequote.modules.labor import labor_hours, select_vehicles, workers_for

D = Decimal


def _costs(result):
    return {c.module_id: c for c in result.computed.costs}


# -----------------------------
# vehicles / workers
# -----------------------------


def test_vehicle_selection_splits_large_volume(config):
    vehicles = select_vehicles(D("35"), config)
    assert [v.code for v in vehicles] == ["CAMION_30M3", "CAMION_12M3"]
    assert sum(v.rental_cost for v in vehicles) == D("430")


@pytest.mark.parametrize(
    "volume, codes",
    [
        ("10", ["CAMION_12M3"]),
        ("12", ["CAMION_12M3"]),
        ("18", ["CAMION_20M3"]),
        ("30", ["CAMION_30M3"]),
        ("75", ["CAMION_30M3", "CAMION_30M3", "CAMION_20M3"]),
        ("0", ["CAMION_20M3"]),
    ],
)
def test_vehicle_selection_thresholds(config, volume, codes):
    assert [v.code for v in select_vehicles(D(volume), config)] == codes


def test_vehicle_selection_in_pipeline(engine, base_ctx):
    result = engine.execute(base_ctx)
    meta = result.computed.metadata
    assert meta["vehicle_count"] == 2
    assert meta["vehicle_types"] == ["CAMION_30M3", "CAMION_12M3"]
    assert _costs(result)["vehicle-selection"].amount == D("430.00")
    assert _costs(result)["vehicle-selection"].category == "VEHICLE"


def test_workers_rounding_half_up(config):
    assert workers_for(D("12.5"), None, config)[0] == 3
    assert workers_for(D("33"), None, config)[0] == 7
    assert workers_for(D("0"), None, config)[0] == 2


def test_workers_scenario_rules(config):
    assert workers_for(D("33"), "ECO", config) == (2, 7, {"type": "ECO_MAX_LIMIT"})
    assert workers_for(D("33"), "STANDARD", config) == (4, 7, {"type": "STANDARD_HALF"})
    assert workers_for(D("8"), "ECO", config) == (2, 2, {})
    assert workers_for(D("33"), "PREMIUM", config) == (7, 7, {})


def test_labor_hours_minimum_and_travel(config):
    assert labor_hours(D("10"), 2, D("20"), config) == D("3.0")
    # 2 × 60 × 15 / 2 = 900 min = 15 h, + 100 km / 50 = 2 h
    assert labor_hours(D("60"), 2, D("100"), config) == D("17.0")


# -----------------------------
# access / furniture lift
# -----------------------------


def test_access_penalty_without_lift(registry, config, base_ctx):
    engine = BaseCostEngine(registry.without(["furniture-lift-cost"]), config)
    result = engine.execute(replace(base_ctx, pickup_floor=4, pickup_has_elevator=False))

    penalty = _costs(result)["labor-access-penalty"]
    assert penalty.amount == D("100.00")
    assert penalty.category == "LABOR"


def test_lift_removes_floor_penalty(engine, base_ctx):
    result = engine.execute(replace(base_ctx, pickup_floor=4, pickup_has_elevator=False))
    costs = _costs(result)

    assert "labor-access-penalty" not in costs
    assert costs["furniture-lift-cost"].amount == D("250.00")
    assert result.computed.metadata["lift_severity"] == "HIGH"


def test_refused_lift_keeps_penalty_and_adds_manual_handling(engine, base_ctx):
    ctx = replace(
        base_ctx,
        pickup_floor=4,
        pickup_has_elevator=False,
        refuse_lift_despite_recommendation=True,
    )
    result = engine.execute(ctx)
    costs = _costs(result)

    assert costs["labor-access-penalty"].amount == D("100.00")
    # 150 + 50 × 4
    assert costs["manual-handling-risk-cost"].amount == D("350.00")
    assert "furniture-lift-cost" not in costs
    assert result.computed.legal_impacts[0].type == "LIFT_REFUSED"
    assert result.computed.insurance_notes[0].metadata["coverage_pct"] == 50


def test_double_lift_and_public_domain(engine, base_ctx):
    ctx = replace(
        base_ctx,
        pickup_floor=2,
        pickup_has_elevator=False,
        delivery_floor=3,
        delivery_has_elevator=True,
        delivery_elevator_size="SMALL",
    )
    costs = _costs(engine.execute(ctx))

    assert costs["furniture-lift-cost"].amount == D("500.00")
    # two locations: 50 × 1.5
    assert costs["public-domain-occupation"].amount == D("75.00")


def test_carry_distance_penalty(engine, base_ctx):
    result = engine.execute(replace(base_ctx, delivery_carry_distance=D("40")))
    assert _costs(result)["labor-access-penalty"].amount == D("80.00")


def test_no_elevator_risk_per_side(engine, base_ctx):
    ctx = replace(
        base_ctx,
        pickup_floor=1,
        pickup_has_elevator=False,
        delivery_floor=2,
        delivery_has_elevator=False,
    )
    risks = {r.module_id: r.amount for r in engine.execute(ctx).computed.risk_contributions}
    assert risks["no-elevator-pickup"] == 15
    assert risks["no-elevator-delivery"] == 15
    assert risks["co-ownership-rules"] == 8


def test_navette_and_syndic(engine, base_ctx):
    ctx = replace(base_ctx, delivery_narrow_street=True, syndic_time_slot=True)
    costs = _costs(engine.execute(ctx))
    # 20 + 30 km × 0.5
    assert costs["navette-required"].amount == D("35.00")
    assert costs["time-slot-syndic"].amount == D("80.00")
    assert costs["public-domain-occupation"].amount == D("50.00")


@pytest.mark.parametrize(
    "moving_date, pct",
    [
        ("2025-03-12T08:00:00", "1"),
        ("2025-03-14T15:00:00", "2"),
        ("2025-03-12T12:00:00", None),
    ],
)
def test_traffic_idf(engine, base_ctx, moving_date, pct):
    result = engine.execute(replace(base_ctx, moving_date=moving_date))
    costs = _costs(result)
    if pct is None:
        assert "traffic-idf" not in costs
        return
    # on fuel (6.12)
    expected = (D("6.12") * D(pct) / 100).quantize(D("0.01"))
    assert costs["traffic-idf"].amount == expected
    assert result.computed.adjustments[0].percentage == D(pct)


# -----------------------------
# crew / overnight
# -----------------------------


def test_overnight_stop_cost(engine, base_ctx):
    ctx = replace(base_ctx, distance_km=D("1200"), force_overnight_stop=True, housing_type="F2")
    result = engine.execute(ctx)
    costs = _costs(result)

    workers = result.computed.metadata["workers_count"]
    assert costs["overnight-stop-cost"].amount == D(workers * 150 + 50)
    assert result.computed.metadata["overnight_stop_required"] is True
    assert "OVERNIGHT_STOP" in [r.type for r in result.computed.requirements]


def test_overnight_stop_needs_flag_and_distance(engine, base_ctx):
    no_flag = engine.execute(replace(base_ctx, distance_km=D("1200")))
    assert "overnight-stop-cost" not in no_flag.computed.activated_modules

    too_short = engine.execute(replace(base_ctx, force_overnight_stop=True))
    assert "overnight-stop-cost" not in too_short.computed.activated_modules


def test_crew_flexibility(engine, base_ctx):
    costs = _costs(engine.execute(replace(base_ctx, crew_flexibility=True)))
    assert costs["crew-flexibility"].amount == D("500.00")


def test_loading_time_flags_long_loading(engine, base_ctx):
    ctx = replace(base_ctx, estimated_volume=D("150"), housing_type="HOUSE")
    result = engine.execute(ctx)
    assert result.computed.metadata["loading_time_minutes"] > 0
    assert "LONG_LOADING" not in [f.type for f in result.computed.operational_flags]

    heavy = engine.execute(replace(ctx, pickup_carry_distance=D("900")))
    assert "LONG_LOADING" in [f.type for f in heavy.computed.operational_flags]
