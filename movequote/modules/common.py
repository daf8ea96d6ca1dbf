from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..core.context import ComputedContext, QuoteContext

D = Decimal

# Cost categories (avoid string typos)
TRANSPORT = "TRANSPORT"
VEHICLE = "VEHICLE"
LABOR = "LABOR"
LOGISTICS = "LOGISTICS"
EQUIPMENT = "EQUIPMENT"
RISK = "RISK"
INSURANCE = "INSURANCE"
ADMINISTRATIVE = "ADMINISTRATIVE"
TEMPORAL = "TEMPORAL"
SERVICE = "SERVICE"

ZERO = D("0")


def meta(ctx: QuoteContext, key: str, default: Any = None) -> Any:
    return ctx.computed.metadata.get(key, default)


def volume_of(ctx: QuoteContext) -> D:
    return D(meta(ctx, "adjusted_volume", ZERO))


def distance_of(ctx: QuoteContext) -> D:
    return D(meta(ctx, "distance_km", ZERO))


def workers_of(ctx: QuoteContext, default: int) -> int:
    return int(meta(ctx, "workers_count", default))


def done(ctx: QuoteContext, computed: ComputedContext, module_id: str) -> QuoteContext:
    """Record activation of `module_id` and return the new context."""
    return ctx.with_computed(computed.activate(module_id))
