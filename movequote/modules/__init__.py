"""
The standard module catalog, grouped by phase.

`build_catalog()` is the explicit factory replacing a global module list:
every call returns a fresh immutable registry built from a PricingConfig.
"""
from __future__ import annotations

from typing import List, Optional

from ..config import PricingConfig, get_pricing_config, get_settings
from ..core.module import Module
from ..core.registry import ModuleRegistry
from . import access, finalization, furniture_lift, labor, normalization, options, risk, transport, volume

# phase order; each exposes modules(cfg) -> list[Module]
PHASES = (
    normalization,
    volume,
    transport,
    access,
    furniture_lift,
    labor,
    risk,
    options,
    finalization,
)


def standard_modules(config: Optional[PricingConfig] = None) -> List[Module]:
    cfg = config or get_pricing_config()
    out: List[Module] = []
    for phase in PHASES:
        out.extend(phase.modules(cfg))
    return out


def build_catalog(
    config: Optional[PricingConfig] = None, strict: Optional[bool] = None
) -> ModuleRegistry:
    if strict is None:
        strict = get_settings().strict_dependency_order
    return ModuleRegistry(standard_modules(config), strict=strict)
