from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from movequote.modules.finalization import recommended_pack
from movequote.modules.risk import insurance_premium_for

D = Decimal


def _costs(result):
    return {c.module_id: c for c in result.computed.costs}


# -----------------------------
# insurance / declared value
# -----------------------------


@pytest.mark.parametrize(
    "value, premium",
    [
        ("1000", "50.00"),
        ("20000", "200.00"),
        ("1000000", "5000.00"),
    ],
)
def test_insurance_premium_bounds(config, value, premium):
    assert insurance_premium_for(D(value), config) == D(premium)


def test_insurance_in_pipeline(engine, base_ctx):
    ctx = replace(base_ctx, declared_value=D("20000"), declared_value_insurance=True)
    result = engine.execute(ctx)
    cost = _costs(result)["insurance-premium"]

    assert cost.amount == D("200.00")
    assert cost.category == "INSURANCE"
    assert cost.metadata["raw_premium"] == "200.00"
    assert result.computed.insurance_notes[0].type == "DECLARED_VALUE_COVERAGE"


def test_insurance_requested_without_value(engine, base_ctx):
    result = engine.execute(replace(base_ctx, declared_value_insurance=True))
    computed = result.computed

    assert "insurance-premium" not in computed.activated_modules
    assert [r.type for r in computed.requirements] == ["DECLARED_VALUE_MISSING"]


def test_declared_value_without_insurance_is_recorded(engine, base_ctx):
    computed = engine.execute(replace(base_ctx, declared_value=D("60000"))).computed
    assert computed.metadata["declared_value_above_threshold"] is True
    assert "insurance-premium" not in computed.activated_modules
    assert "HIGH_VALUE_DECLARATION" in [r.type for r in computed.requirements]


def test_high_value_items(engine, base_ctx):
    ctx = replace(base_ctx, piano=True, safe=True)
    computed = engine.execute(ctx).computed

    handling = [c for c in computed.costs if c.module_id == "high-value-item-handling"]
    assert [c.amount for c in handling] == [D("150.00"), D("200.00")]
    severities = {
        r.metadata["item"]: r.severity
        for r in computed.requirements
        if r.type == "SPECIAL_HANDLING_REQUIRED"
    }
    assert severities == {"piano": "HIGH", "safe": "CRITICAL"}
    risks = [r for r in computed.risk_contributions if r.module_id == "high-value-item-handling"]
    assert [r.amount for r in risks] == [15]


def test_neighborhood_damage_risk(engine, base_ctx):
    ctx = replace(base_ctx, pickup_floor=3, pickup_has_elevator=False, bulky_furniture=True)
    risks = {r.module_id: r.amount for r in engine.execute(ctx).computed.risk_contributions}
    # 5 + 2 (one high floor side) + 10 (bulky)
    assert risks["neighborhood-damage-risk"] == 17


# -----------------------------
# temporal
# -----------------------------


def test_weekend_and_end_of_month(engine, base_ctx):
    # Saturday 29 March 2025
    result = engine.execute(replace(base_ctx, moving_date="2025-03-29"))
    costs = _costs(result)

    base = D("1066.12")
    end_of_month = (base * 5 / 100).quantize(D("0.01"))
    weekend = ((base + end_of_month) * 5 / 100).quantize(D("0.01"))

    assert costs["end-of-month"].amount == end_of_month
    assert costs["weekend"].amount == weekend
    assert result.base_cost == base + end_of_month + weekend
    assert [a.module_id for a in result.computed.adjustments] == ["end-of-month", "weekend"]
    # 8 volume + 10 end of month + 8 weekend
    assert result.risk_score == 26


# -----------------------------
# cross-sell
# -----------------------------


def test_packing_requested(engine, base_ctx):
    computed = engine.execute(replace(base_ctx, packing=True)).computed
    costs = {c.module_id: c.amount for c in computed.costs}

    # 33 m³ × 5
    assert costs["packing-cost"] == D("165.00")
    assert computed.requirements[0].type == "PACKING_REQUESTED"
    assert computed.cross_sell_proposals[0].id == "PACKING"


def test_packing_recommended_for_large_volume(engine, base_ctx):
    computed = engine.execute(replace(base_ctx, housing_type="HOUSE")).computed
    assert "packing-requirement" in computed.activated_modules
    assert "packing-cost" not in computed.activated_modules
    assert computed.requirements[0].type == "PACKING_RECOMMENDED"


def test_cleaning_storage_and_furniture_services(engine, base_ctx):
    ctx = replace(
        base_ctx,
        surface=D("50"),
        cleaning_end=True,
        temporary_storage=True,
        storage_duration_days=60,
        dismantling=True,
        reassembly=True,
        complex_furniture_count=2,
        piano=True,
    )
    result = engine.execute(ctx)
    costs = _costs(result)
    volume = result.computed.metadata["adjusted_volume"]

    assert costs["cleaning-end-cost"].amount == D("400.00")
    assert costs["storage-cost"].amount == (volume * 30 * 60 / 30).quantize(D("0.01"))
    # 50 + 2 × 25 + 60 (piano)
    assert costs["dismantling-cost"].amount == D("160.00")
    assert costs["reassembly-cost"].amount == D("160.00")


def test_cleaning_recommended_for_large_surface(engine, base_ctx):
    computed = engine.execute(replace(base_ctx, surface=D("80"))).computed
    assert "cleaning-end-requirement" in computed.activated_modules
    assert "cleaning-end-cost" not in computed.activated_modules


# -----------------------------
# supplies
# -----------------------------


@pytest.mark.parametrize(
    "volume, name, protection",
    [
        ("10", "Pack Studio", "20"),
        ("33", "Pack Famille", "30"),
        ("60", "Pack Maison", "50"),
        ("90", "Pack XL", "70"),
    ],
)
def test_recommended_pack(config, volume, name, protection):
    pack, margin = recommended_pack(D(volume), config)
    assert pack.name == name
    assert margin == D(protection)


def test_supplies_high_end_scenario(engine, base_ctx):
    ctx = replace(base_ctx, scenario_id="CONFORT", force_supplies=True)
    costs = _costs(engine.execute(ctx))
    # Pack Famille 89 + protection 30
    assert costs["supplies-cost"].amount == D("119.00")


def test_supplies_client_selection(engine, base_ctx):
    ctx = replace(base_ctx, client_supplies_total=D("42.50"))
    costs = _costs(engine.execute(ctx))
    assert costs["supplies-cost"].amount == D("42.50")


def test_supplies_not_billed_for_other_scenarios(engine, base_ctx):
    ctx = replace(base_ctx, scenario_id="FLEX", client_supplies_total=D("42.50"))
    result = engine.execute(ctx)
    assert "supplies-cost" not in result.computed.activated_modules
