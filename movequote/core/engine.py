from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Set, Tuple

from ..config import PricingConfig, get_pricing_config
from ..errors import FatalInputError, ModuleContractError, ModuleExecutionError
from ..logging_config import logger
from .context import SEVERITY_CRITICAL, ComputedContext, QuoteContext, money
from .module import Module
from .registry import ModuleRegistry

D = Decimal

# Skip reasons (avoid string typos)
SKIP_MISSING_DEPENDENCIES = "missing_dependencies"
SKIP_NOT_APPLICABLE = "not_applicable"
SKIP_NO_OP = "no_op"

# first priority of the option phases (7-9); phases 1-6 price the physical move
OPTION_PHASES_START = 70


@dataclass(frozen=True)
class SkipRecord:
    module_id: str
    reason: str
    missing: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BaseCostResult:
    base_cost: D
    context: QuoteContext
    skipped: Tuple[SkipRecord, ...]
    risk_score: int
    manual_review_required: bool

    @property
    def computed(self) -> ComputedContext:
        return self.context.computed


class BaseCostEngine:
    """
    Orchestrates one price computation: a single linear fold over the
    registry's modules (already sorted by priority).

    Per module:
      a) dependency gate: any declared dependency not yet activated -> skip
      b) applicability gate (evaluated after dependencies) -> skip
      c) apply(ctx); exceptions abort the computation (fail-fast)

    `now` is injected for determinism; it is only used when the input has no
    `quoted_at` yet. `options_patch` (a scenario's forced fields) is applied
    to the context right before the first option-phase module, so volume,
    vehicles, crew and labor are computed from the client's own input. Each call starts from a fresh accumulator, so the engine
    holds no per-call state and can be shared.
    """

    def __init__(
        self, registry: ModuleRegistry, config: Optional[PricingConfig] = None
    ) -> None:
        self.registry = registry
        self.config = config or get_pricing_config()

    def execute(
        self,
        ctx: QuoteContext,
        *,
        now: Optional[datetime] = None,
        options_patch: Optional[Dict[str, Any]] = None,
    ) -> BaseCostResult:
        if ctx.quoted_at is None:
            ctx = replace(ctx, quoted_at=now or datetime.now(timezone.utc))
        ctx = ctx.with_computed(ComputedContext())

        log = logger.bind(scenario_id=ctx.scenario_id)
        log.debug("pipeline_start", modules=len(self.registry))

        activated: Set[str] = set()
        skipped = []
        pending_patch = options_patch or None

        for module in self.registry:
            if pending_patch and module.priority >= OPTION_PHASES_START:
                ctx = self._apply_options_patch(ctx, pending_patch, log)
                pending_patch = None

            missing = tuple(d for d in module.dependencies if d not in activated)
            if missing:
                skipped.append(SkipRecord(module.id, SKIP_MISSING_DEPENDENCIES, missing))
                log.debug(
                    "module_skipped",
                    module_id=module.id,
                    reason=SKIP_MISSING_DEPENDENCIES,
                    missing=list(missing),
                )
                continue

            if not module.is_applicable(ctx):
                skipped.append(SkipRecord(module.id, SKIP_NOT_APPLICABLE))
                log.debug("module_skipped", module_id=module.id, reason=SKIP_NOT_APPLICABLE)
                continue

            new_ctx = self._apply(module, ctx, log)
            ran = self._check_contract(module, ctx.computed, new_ctx.computed)
            ctx = new_ctx

            if ran:
                activated.add(module.id)
                log.debug("module_applied", module_id=module.id, priority=module.priority)
            else:
                skipped.append(SkipRecord(module.id, SKIP_NO_OP))
                log.debug("module_skipped", module_id=module.id, reason=SKIP_NO_OP)

        if pending_patch:
            ctx = self._apply_options_patch(ctx, pending_patch, log)

        computed = ctx.computed
        base_cost = computed.total_cost()
        risk_score = min(self.config.risk.max_score, computed.risk_total())
        manual_review = self._needs_manual_review(computed, risk_score)

        log.info(
            "pipeline_succeeded",
            base_cost=str(base_cost),
            activated=len(computed.activated_modules),
            skipped=len(skipped),
            risk_score=risk_score,
            manual_review_required=manual_review,
        )

        return BaseCostResult(
            base_cost=money(base_cost),
            context=ctx,
            skipped=tuple(skipped),
            risk_score=risk_score,
            manual_review_required=manual_review,
        )

    # -----------------
    # internals
    # -----------------

    @staticmethod
    def _apply_options_patch(
        ctx: QuoteContext, patch: Dict[str, Any], log
    ) -> QuoteContext:
        log.debug("options_patch_applied", fields=sorted(patch))
        return ctx.patched(patch)

    @staticmethod
    def _apply(module: Module, ctx: QuoteContext, log) -> QuoteContext:
        try:
            out = module.apply(ctx)
        except FatalInputError as e:
            if e.module_id is None:
                e.attach_module(module.id)
            log.warning(
                "module_failed", module_id=module.id, code=e.code, fatal=True, error=e.message
            )
            raise
        except Exception as e:
            log.error(
                "module_failed",
                module_id=module.id,
                fatal=False,
                exc=f"{type(e).__name__}: {e}",
            )
            raise ModuleExecutionError(
                "MODULE_FAILED",
                f"{type(e).__name__}: {e}",
                module_id=module.id,
            ) from e

        if not isinstance(out, QuoteContext):
            raise ModuleContractError(
                "INVALID_RETURN",
                f"apply() returned {type(out).__name__}, expected QuoteContext",
                module_id=module.id,
            )
        return out

    @staticmethod
    def _check_contract(
        module: Module, before: ComputedContext, after: ComputedContext
    ) -> bool:
        """Verify append-only accumulation; returns True when the module activated."""
        for name in ComputedContext.ACCUMULATORS:
            old, new = getattr(before, name), getattr(after, name)
            if len(new) < len(old) or new[: len(old)] != old:
                raise ModuleContractError(
                    "ACCUMULATOR_REWRITTEN",
                    f"'{name}' entries were removed or rewritten",
                    meta={"list": name},
                    module_id=module.id,
                )

        added = after.activated_modules[len(before.activated_modules):]
        if not added:
            grown = [
                name
                for name in ComputedContext.ACCUMULATORS
                if len(getattr(after, name)) != len(getattr(before, name))
            ]
            if grown:
                raise ModuleContractError(
                    "CONTRIBUTED_WITHOUT_ACTIVATION",
                    f"entries added to {grown} without activating the module",
                    meta={"lists": grown},
                    module_id=module.id,
                )
            return False
        if added != (module.id,):
            raise ModuleContractError(
                "INVALID_ACTIVATION",
                f"expected exactly one activation of '{module.id}', got {list(added)}",
                meta={"added": list(added)},
                module_id=module.id,
            )
        return True

    def _needs_manual_review(self, computed: ComputedContext, risk_score: int) -> bool:
        if risk_score > self.config.risk.manual_review_threshold:
            return True
        if any(li.severity == SEVERITY_CRITICAL for li in computed.legal_impacts):
            return True
        return bool(computed.metadata.get("critical_volume_underestimation"))
