from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple, Union

from .context import QuoteContext

ApplyFn = Callable[[QuoteContext], QuoteContext]
Predicate = Callable[[QuoteContext], bool]


# -----------------------------
# Applicability (tagged variant)
# -----------------------------


@dataclass(frozen=True)
class Unconditional:
    """The module's business condition always holds."""

    def holds(self, ctx: QuoteContext) -> bool:
        return True


@dataclass(frozen=True)
class Conditional:
    """The module only runs when `predicate(ctx)` is true (after dependency gating)."""

    predicate: Predicate

    def holds(self, ctx: QuoteContext) -> bool:
        return bool(self.predicate(ctx))


Applicability = Union[Unconditional, Conditional]

ALWAYS = Unconditional()


def when(predicate: Predicate) -> Conditional:
    return Conditional(predicate)


# -----------------------------
# Module
# -----------------------------


@dataclass(frozen=True)
class Module:
    """
    Named, prioritized, optionally-conditional pure transform `ctx -> ctx`.

    - priority: `phase * 10 + slot`, phase 1..9; sole ordering key
    - dependencies: ids that must already be activated (run-time gate, not a scheduling hint)
    - apply: must append its own id to `computed.activated_modules` when it contributes
    """

    id: str
    description: str
    priority: int
    apply: ApplyFn
    dependencies: Tuple[str, ...] = ()
    applicability: Applicability = ALWAYS

    @property
    def phase(self) -> int:
        return self.priority // 10

    @property
    def is_conditional(self) -> bool:
        return isinstance(self.applicability, Conditional)

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return self.applicability.holds(ctx)
