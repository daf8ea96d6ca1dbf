"""
Phase 9 (90-99): packing supplies.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import List, Tuple

from ..config import PricingConfig, SuppliesPack
from ..core.context import QuoteContext
from ..core.module import Module, when
from .common import SERVICE, ZERO, done, volume_of

D = Decimal

SCENARIO_STANDARD = "STANDARD"


def recommended_pack(volume: D, cfg: PricingConfig) -> Tuple[SuppliesPack, D]:
    """Smallest pack covering `volume`, with the protection margin of the same step."""
    sc = cfg.supplies
    for index, pack in enumerate(sc.packs):
        if pack.max_volume_m3 is None or volume <= pack.max_volume_m3:
            return pack, sc.protection_margins[index]
    return sc.packs[-1], sc.protection_margins[-1]


def supplies_cost(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    mid = "supplies-cost"
    client_total = ctx.client_supplies_total or ZERO

    if ctx.scenario_id in cfg.supplies.high_end_scenarios:
        volume = volume_of(ctx)
        pack, protection = recommended_pack(volume, cfg)
        computed = ctx.computed.add_cost(
            mid,
            SERVICE,
            f"Fournitures ({pack.name} + protection)",
            pack.price + protection,
            pack=pack.name,
            pack_price=str(pack.price),
            protection=str(protection),
        )
        return done(ctx, computed, mid)

    if ctx.scenario_id in (None, SCENARIO_STANDARD) and client_total > 0:
        computed = ctx.computed.add_cost(
            mid,
            SERVICE,
            "Fournitures (sélection client)",
            client_total,
            items=list(ctx.client_supplies_details),
        )
        return done(ctx, computed, mid)

    # other scenarios: supplies are not billed
    return ctx


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="supplies-cost",
            description="Packing supplies: recommended pack for high-end offers, else client selection",
            priority=90,
            dependencies=("volume-estimation",),
            applicability=when(
                lambda ctx: ctx.force_supplies or (ctx.client_supplies_total or ZERO) > 0
            ),
            apply=partial(supplies_cost, cfg=cfg),
        ),
    ]
