from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from movequote.core.context import ComputedContext, QuoteContext
from movequote.core.engine import (
    SKIP_MISSING_DEPENDENCIES,
    SKIP_NO_OP,
    SKIP_NOT_APPLICABLE,
    BaseCostEngine,
)
from movequote.core.module import Module, when
from movequote.core.registry import ModuleRegistry
from movequote.errors import FatalInputError, ModuleContractError, ModuleExecutionError
from movequote.modules import standard_modules

D = Decimal


def _cost_module(module_id, priority, amount="10", deps=(), applicability=None, calls=None):
    def apply(ctx):
        if calls is not None:
            calls.append(module_id)
        computed = ctx.computed.add_cost(module_id, "TEST", module_id, D(amount))
        return ctx.with_computed(computed.activate(module_id))

    kwargs = {}
    if applicability is not None:
        kwargs["applicability"] = applicability
    return Module(
        id=module_id,
        description=module_id,
        priority=priority,
        apply=apply,
        dependencies=tuple(deps),
        **kwargs,
    )


def _engine(*modules, config=None):
    return BaseCostEngine(ModuleRegistry(modules), config)


# -----------------------------
# Standard pipeline
# -----------------------------


def test_base_context_full_pipeline(engine, base_ctx):
    result = engine.execute(base_ctx)
    computed = result.computed

    # fuel 6.12 + trucks 30m³ + 12m³ (430) + labor 7 × 3.0 h × 30 (630)
    assert result.base_cost == D("1066.12")
    assert [c.module_id for c in computed.costs] == [
        "fuel-cost",
        "vehicle-selection",
        "labor-base",
    ]
    assert computed.metadata["adjusted_volume"] == D("33.0")
    assert computed.metadata["workers_count"] == 7
    assert computed.metadata["vehicle_count"] == 2
    assert result.risk_score == 8
    assert result.manual_review_required is False


def test_determinism_same_input_same_output(engine, base_ctx):
    r1 = engine.execute(base_ctx)
    r2 = engine.execute(replace(base_ctx))

    assert r1.base_cost == r2.base_cost
    assert r1.computed.costs == r2.computed.costs
    assert r1.computed.activated_modules == r2.computed.activated_modules
    assert r1 == r2


def test_quoted_at_is_filled_from_now(engine, base_ctx, fixed_now):
    ctx = replace(base_ctx, quoted_at=None)
    result = engine.execute(ctx, now=fixed_now)
    assert result.context.quoted_at == fixed_now


def test_every_entry_traces_to_an_activated_module(engine, base_ctx):
    ctx = replace(
        base_ctx,
        pickup_floor=6,
        pickup_has_elevator=False,
        piano=True,
        moving_date="2025-03-29",
        declared_value=D("20000"),
        declared_value_insurance=True,
    )
    computed = engine.execute(ctx).computed
    activated = set(computed.activated_modules)

    for name in ComputedContext.ACCUMULATORS:
        if name == "activated_modules":
            continue
        for entry in getattr(computed, name):
            assert entry.module_id in activated


def test_input_accumulator_is_reset(engine, base_ctx):
    seeded = base_ctx.with_computed(
        ComputedContext().add_cost("stale", "TEST", "stale", D("999")).activate("stale")
    )
    result = engine.execute(seeded)
    assert "stale" not in result.computed.activated_modules
    assert result.base_cost == D("1066.12")


# -----------------------------
# Fold semantics
# -----------------------------


def test_monotonic_accumulation():
    calls = []
    mods = [
        _cost_module("a", 10, calls=calls),
        _cost_module("b", 20, applicability=when(lambda ctx: False), calls=calls),
        _cost_module("c", 30, deps=["a"], calls=calls),
    ]
    result = _engine(*mods).execute(QuoteContext(), now=None)

    assert result.computed.activated_modules == ("a", "c")
    assert calls == ["a", "c"]
    assert len(result.computed.costs) == 2
    assert result.base_cost == D("20.00")


def test_dependency_gating_skips_dependent_silently():
    calls = []
    mods = [
        _cost_module("a", 10, applicability=when(lambda ctx: False), calls=calls),
        _cost_module("b", 20, deps=["a"], calls=calls),
    ]
    result = _engine(*mods).execute(QuoteContext())

    assert calls == []
    assert result.computed.costs == ()
    assert result.computed.entries_of("b") == {}
    reasons = {s.module_id: s.reason for s in result.skipped}
    assert reasons == {"a": SKIP_NOT_APPLICABLE, "b": SKIP_MISSING_DEPENDENCIES}


def test_dependency_registered_later_is_always_skipped():
    calls = []
    mods = [
        _cost_module("dependent", 20, deps=["provider"], calls=calls),
        _cost_module("provider", 30, calls=calls),
    ]
    result = _engine(*mods).execute(QuoteContext())

    assert calls == ["provider"]
    assert result.computed.activated_modules == ("provider",)
    skipped = result.skipped[0]
    assert skipped.module_id == "dependent"
    assert skipped.missing == ("provider",)


def test_applicability_evaluated_after_dependencies():
    seen = []

    def predicate(ctx):
        seen.append(ctx.computed.activated_modules)
        return True

    mods = [
        _cost_module("a", 10),
        _cost_module("b", 20, deps=["a"], applicability=when(predicate)),
    ]
    _engine(*mods).execute(QuoteContext())
    assert seen == [("a",)]


def test_module_returning_unchanged_context_is_a_no_op():
    mods = [
        Module(id="noop", description="", priority=10, apply=lambda ctx: ctx),
        _cost_module("after", 20, deps=["noop"]),
    ]
    result = _engine(*mods).execute(QuoteContext())

    assert result.computed.activated_modules == ()
    assert [s.reason for s in result.skipped] == [SKIP_NO_OP, SKIP_MISSING_DEPENDENCIES]


def test_options_patch_reaches_option_phases_only():
    seen = []

    def record(module_id):
        def apply(ctx):
            seen.append((module_id, ctx.packing))
            return ctx

        return apply

    mods = [
        Module(id="volume", description="", priority=20, apply=record("volume")),
        Module(id="packing", description="", priority=70, apply=record("packing")),
        Module(id="supplies", description="", priority=90, apply=record("supplies")),
    ]
    result = _engine(*mods).execute(QuoteContext(), options_patch={"packing": True})

    assert seen == [("volume", False), ("packing", True), ("supplies", True)]
    assert result.context.packing is True


def test_options_patch_applies_without_option_modules():
    result = _engine(_cost_module("a", 10)).execute(
        QuoteContext(), options_patch={"packing": True}
    )
    assert result.context.packing is True


# -----------------------------
# Error policy
# -----------------------------


def test_unexpected_exception_is_wrapped_with_module_id():
    def boom(ctx):
        raise ZeroDivisionError("division by zero")

    mods = [_cost_module("a", 10), Module(id="boom", description="", priority=20, apply=boom)]

    with pytest.raises(ModuleExecutionError) as exc:
        _engine(*mods).execute(QuoteContext())

    assert exc.value.module_id == "boom"
    assert isinstance(exc.value.__cause__, ZeroDivisionError)
    assert "boom" in str(exc.value)


def test_fatal_input_error_propagates_unchanged():
    def reject(ctx):
        raise FatalInputError("BAD", "bad input")

    calls = []
    mods = [
        Module(id="check", description="", priority=10, apply=reject),
        _cost_module("later", 20, calls=calls),
    ]
    with pytest.raises(FatalInputError) as exc:
        _engine(*mods).execute(QuoteContext())

    assert exc.value.module_id == "check"
    assert str(exc.value) == "[check] BAD: bad input"
    assert calls == []


def test_past_moving_date_aborts_before_later_phases(config, base_ctx):
    calls = []
    spy = _cost_module("spy", 20, calls=calls)
    engine = BaseCostEngine(ModuleRegistry(standard_modules(config) + [spy]), config)

    with pytest.raises(FatalInputError) as exc:
        engine.execute(replace(base_ctx, moving_date="2024-12-31"))

    assert exc.value.code == "MOVING_DATE_IN_PAST"
    assert exc.value.module_id == "date-validation"
    assert str(exc.value).startswith("[date-validation] MOVING_DATE_IN_PAST")
    assert calls == []


def test_rewriting_accumulator_breaks_contract():
    def drop_costs(ctx):
        computed = replace(ctx.computed, costs=()).activate("dropper")
        return ctx.with_computed(computed)

    mods = [_cost_module("a", 10), Module(id="dropper", description="", priority=20, apply=drop_costs)]
    with pytest.raises(ModuleContractError) as exc:
        _engine(*mods).execute(QuoteContext())
    assert exc.value.code == "ACCUMULATOR_REWRITTEN"


def test_activating_another_id_breaks_contract():
    def impostor(ctx):
        return ctx.with_computed(ctx.computed.activate("someone-else"))

    mods = [Module(id="impostor", description="", priority=10, apply=impostor)]
    with pytest.raises(ModuleContractError) as exc:
        _engine(*mods).execute(QuoteContext())
    assert exc.value.code == "INVALID_ACTIVATION"


def test_contributing_without_activation_breaks_contract():
    def sneaky(ctx):
        return ctx.with_computed(ctx.computed.add_cost("sneaky", "TEST", "x", D("1")))

    mods = [Module(id="sneaky", description="", priority=10, apply=sneaky)]
    with pytest.raises(ModuleContractError) as exc:
        _engine(*mods).execute(QuoteContext())
    assert exc.value.code == "CONTRIBUTED_WITHOUT_ACTIVATION"


# -----------------------------
# Aggregation
# -----------------------------


def test_risk_score_is_capped_and_triggers_manual_review():
    def risky(ctx):
        computed = ctx.computed.add_risk("risky", 150, "lots of risk").activate("risky")
        return ctx.with_computed(computed)

    result = _engine(Module(id="risky", description="", priority=10, apply=risky)).execute(
        QuoteContext()
    )
    assert result.risk_score == 100
    assert result.manual_review_required is True


def test_critical_legal_impact_triggers_manual_review(engine, base_ctx):
    ctx = replace(
        base_ctx,
        pickup_floor=6,
        pickup_has_elevator=False,
        refuse_lift_despite_recommendation=True,
    )
    result = engine.execute(ctx)

    severities = [li.severity for li in result.computed.legal_impacts]
    assert "CRITICAL" in severities
    assert result.manual_review_required is True
