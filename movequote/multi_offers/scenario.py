from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..core.context import QuoteContext
from ..errors import UnknownScenarioError

D = Decimal


def _duplicates(ids: Iterable[str]) -> List[str]:
    seen, dups = set(), []
    for sid in ids:
        if sid in seen and sid not in dups:
            dups.append(sid)
        seen.add(sid)
    return dups


# -----------------------------
# Scenario models
# -----------------------------


@dataclass(frozen=True)
class PriceAdjustment:
    """final_price = base_price × (1 + margin_rate)"""

    margin_rate: D = D("0")

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "PriceAdjustment":
        d = d or {}
        rate = D(str(d.get("marginRate", d.get("margin_rate", "0"))))
        if rate < 0:
            raise ValueError(f"marginRate must be >= 0, got {rate}")
        return PriceAdjustment(margin_rate=rate)


@dataclass(frozen=True)
class ScenarioOverride:
    disabled_module_ids: FrozenSet[str] = frozenset()
    forced_context_patch: Dict[str, Any] = field(default_factory=dict)
    price_adjustment: PriceAdjustment = PriceAdjustment()

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ScenarioOverride":
        disabled = list(d.get("disabledModules") or [])
        dups = _duplicates(disabled)
        if dups:
            raise ValueError(f"Duplicate ids in disabledModules: {dups}")

        patch = dict(d.get("forcedContext") or {})
        unknown = sorted(set(patch) - QuoteContext.patchable_fields())
        if unknown:
            raise ValueError(f"forcedContext references unknown context fields: {unknown}")

        return ScenarioOverride(
            disabled_module_ids=frozenset(disabled),
            forced_context_patch=patch,
            price_adjustment=PriceAdjustment.from_dict(d.get("priceAdjustment")),
        )


@dataclass(frozen=True)
class QuoteScenario:
    id: str
    label: str
    description: str = ""
    tags: Tuple[str, ...] = ()
    use_client_selection: bool = False
    override: ScenarioOverride = ScenarioOverride()

    @property
    def margin_rate(self) -> D:
        return self.override.price_adjustment.margin_rate

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "QuoteScenario":
        return QuoteScenario(
            id=str(d["id"]),
            label=str(d.get("label") or d["id"]),
            description=str(d.get("description") or ""),
            tags=tuple(str(t) for t in d.get("tags") or []),
            use_client_selection=bool(d.get("useClientSelection", False)),
            override=ScenarioOverride.from_dict(d.get("override") or {}),
        )

    @property
    def options_patch(self) -> Dict[str, Any]:
        return self.override.forced_context_patch

    def prepare(self, ctx: QuoteContext) -> QuoteContext:
        """
        Input context for this scenario's engine run.

        The client's cross-sell selection is kept in metadata; only scenarios
        with `use_client_selection` keep the optional services active, the
        others reset them. Storage is never reset. The forced patch is not
        applied here: the engine applies `options_patch` before the option
        phases only.
        """
        patch: Dict[str, Any] = {
            "scenario_id": self.id,
            "metadata": {**ctx.metadata, "client_selection": ctx.client_selection()},
        }
        if not self.use_client_selection:
            patch.update({name: False for name in QuoteContext.OPTIONAL_SERVICE_FIELDS})
        return ctx.patched(patch)


@dataclass(frozen=True)
class ScenarioSet:
    version: str
    scenarios: Tuple[QuoteScenario, ...]

    @staticmethod
    def from_dict(
        d: Dict[str, Any], known_module_ids: Optional[Iterable[str]] = None
    ) -> "ScenarioSet":
        scenarios = tuple(QuoteScenario.from_dict(x) for x in d.get("scenarios", []))
        version = str(d.get("scenarioSetVersion") or d.get("version") or "v1")

        if not scenarios:
            raise ValueError("Scenario set must contain at least one scenario.")

        dups = _duplicates(s.id for s in scenarios)
        if dups:
            raise ValueError(f"Duplicate scenario ids: {dups}")

        if known_module_ids is not None:
            known = set(known_module_ids)
            unknown = sorted(
                {
                    mid
                    for s in scenarios
                    for mid in s.override.disabled_module_ids
                    if mid not in known
                }
            )
            if unknown:
                raise ValueError(f"disabledModules references unknown module ids: {unknown}")

        return ScenarioSet(version=version, scenarios=scenarios)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(s.id for s in self.scenarios)

    def get(self, scenario_id: str) -> QuoteScenario:
        for s in self.scenarios:
            if s.id == scenario_id:
                return s
        raise UnknownScenarioError(scenario_id, self.ids)
