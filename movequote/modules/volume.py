"""
Phase 2 (20-29): volume estimation and volume uncertainty.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List, Optional, Tuple

from ..config import PricingConfig, VolumeConfig
from ..core.context import (
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    QuoteContext,
    round_half_up,
)
from ..core.module import Module, when
from .common import ZERO, done, meta

D = Decimal

SPECIAL_ITEMS = ("piano", "bulky_furniture", "safe", "artwork", "built_in_appliances")


def theoretical_volume(ctx: QuoteContext, vc: VolumeConfig) -> Tuple[Optional[D], str]:
    """
    Volume derived from the dwelling: surface × coefficient, else the
    housing-type table, else the rooms table. (None, "NONE") if nothing is known.
    """
    housing = (ctx.housing_type or "").upper() or None

    if ctx.surface and ctx.surface > 0:
        coef = vc.coefficients.get(housing or "", vc.coefficients["F3"])
        v = ctx.surface * coef
        v = max(vc.min_volume_m3, min(vc.max_volume_m3, v))
        return v, "SURFACE"

    if housing and housing in vc.base_by_housing_type:
        return vc.base_by_housing_type[housing], "HOUSING_TYPE"

    if ctx.rooms:
        rooms = max(1, min(max(vc.base_by_rooms), ctx.rooms))
        return vc.base_by_rooms[rooms], "ROOMS"

    return None, "NONE"


def confidence_margin(ctx: QuoteContext, vc: VolumeConfig, user_provided: bool) -> D:
    method = (ctx.volume_method or "FORM").upper()
    if method == "VIDEO":
        margins = vc.video_margins
    elif method == "LIST":
        margins = vc.list_margins
    elif user_provided:
        margins = vc.form_user_margins
    else:
        margins = vc.form_calculated_margins

    confidence = (ctx.volume_confidence or SEVERITY_MEDIUM).upper()
    return getattr(margins, confidence, margins.MEDIUM)


# -----------------------------
# volume-estimation (20)
# -----------------------------


def estimate_volume(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    vc = cfg.volume
    mid = "volume-estimation"
    computed = ctx.computed

    theoretical, source = theoretical_volume(ctx, vc)
    user = ctx.estimated_volume if ctx.estimated_volume and ctx.estimated_volume > 0 else None

    diff_pct: Optional[D] = None
    validation = "CALCULATED"
    keep_user = False

    if theoretical is None:
        if user is not None:
            chosen, keep_user, validation, source = user, True, "USER_ONLY", "USER"
        else:
            theoretical, source = vc.base_by_rooms[vc.default_rooms], "DEFAULT"
            chosen = theoretical
    elif user is None:
        chosen = theoretical
    else:
        diff_pct = round_half_up(abs(user - theoretical) / theoretical * 100, "0.1")
        if user < theoretical and diff_pct > vc.critical_underestimation_pct:
            validation = "CRITICAL_UNDERESTIMATION"
            chosen = max(user, theoretical) * (1 + vc.critical_safety_margin)
            computed = computed.add_requirement(
                mid,
                "VOLUME_VALIDATION_REQUIRED",
                SEVERITY_HIGH,
                f"Declared volume {user} m³ is {diff_pct}% below the estimate {theoretical} m³",
                declared_volume=str(user),
                theoretical_volume=str(theoretical),
            )
            computed = computed.add_flag(
                mid,
                "VOLUME_UNDERESTIMATED",
                SEVERITY_CRITICAL,
                "Critical volume underestimation; on-site validation needed",
                diff_pct=str(diff_pct),
            )
            computed = computed.with_metadata(critical_volume_underestimation=True)
        elif user < theoretical and diff_pct > vc.medium_underestimation_pct:
            validation = "UNDERESTIMATION"
            chosen = theoretical * (1 + vc.medium_safety_margin)
        elif user > theoretical and diff_pct > vc.overestimation_pct:
            validation = "OVERESTIMATION"
            chosen, keep_user = user, True
            computed = computed.add_requirement(
                mid,
                "VOLUME_OPTIMIZATION_OPPORTUNITY",
                SEVERITY_MEDIUM,
                f"Declared volume {user} m³ is {diff_pct}% above the estimate {theoretical} m³",
                declared_volume=str(user),
                theoretical_volume=str(theoretical),
            )
        else:
            validation = "CONSISTENT"
            chosen, keep_user = user, True

    special = ZERO
    special_items: List[str] = []
    if not keep_user:
        for item in SPECIAL_ITEMS:
            if getattr(ctx, item):
                special += vc.special_items_m3[item]
                special_items.append(item)

    base = round_half_up(chosen + special, "0.1")
    margin = confidence_margin(ctx, vc, user_provided=user is not None)
    adjusted = round_half_up(base * margin, "0.1")

    computed = computed.with_metadata(
        base_volume=base,
        adjusted_volume=adjusted,
        theoretical_volume=theoretical,
        volume_source=source,
        volume_validation=validation,
        volume_diff_pct=diff_pct,
        volume_margin=margin,
        special_items=special_items,
    )
    return done(ctx, computed, mid)


# -----------------------------
# volume-uncertainty-risk (24)
# -----------------------------


def volume_uncertainty_risk(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    vc = cfg.volume
    base = D(meta(ctx, "base_volume"))
    adjusted = D(meta(ctx, "adjusted_volume", base))
    confidence = (ctx.volume_confidence or SEVERITY_MEDIUM).upper()

    risk = vc.uncertainty_risk.get(confidence, vc.uncertainty_risk[SEVERITY_MEDIUM])
    diff_pct = abs(adjusted - base) / base * 100
    if diff_pct > vc.uncertainty_high_diff_pct:
        risk += vc.uncertainty_high_diff_bonus
    elif diff_pct >= vc.uncertainty_medium_diff_pct:
        risk += vc.uncertainty_medium_diff_bonus
    risk = min(risk, vc.uncertainty_max_risk)

    computed = ctx.computed.add_risk(
        "volume-uncertainty-risk",
        risk,
        f"Volume uncertainty ({confidence} confidence)",
        confidence=confidence,
        diff_pct=str(round_half_up(diff_pct, "0.1")),
    )
    return done(ctx, computed, "volume-uncertainty-risk")


def _has_base_volume(ctx: QuoteContext) -> bool:
    return D(meta(ctx, "base_volume", ZERO)) > 0


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="volume-estimation",
            description="Theoretical vs declared volume, special items and confidence margin",
            priority=20,
            apply=partial(estimate_volume, cfg=cfg),
        ),
        Module(
            id="volume-uncertainty-risk",
            description="Risk points for an uncertain volume estimate",
            priority=24,
            dependencies=("volume-estimation",),
            applicability=when(_has_base_volume),
            apply=partial(volume_uncertainty_risk, cfg=cfg),
        ),
    ]
