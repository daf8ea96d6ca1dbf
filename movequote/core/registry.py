from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..logging_config import logger
from .module import Module

MIN_PRIORITY = 10
MAX_PRIORITY = 99


def _duplicates(ids: Iterable[str]) -> List[str]:
    seen, dups = set(), []
    for mid in ids:
        if mid in seen and mid not in dups:
            dups.append(mid)
        seen.add(mid)
    return dups


class ModuleRegistry:
    """
    Immutable, priority-ordered module catalog.

    - ids must be unique (ValueError lists duplicates)
    - priorities must fall in 10..99 (phase 1..9)
    - order: ascending priority, ties keep registration order (stable sort)
    - dependencies registered at a same-or-higher priority are reported as
      `dependency_misordered`; with strict=True they raise instead
    """

    def __init__(
        self,
        modules: Iterable[Module],
        *,
        strict: bool = False,
        _validate_dependencies: bool = True,
    ) -> None:
        mods = list(modules)

        dups = _duplicates(m.id for m in mods)
        if dups:
            raise ValueError(f"Duplicate module ids in catalog: {dups}")

        out_of_range = sorted(
            m.id for m in mods if not MIN_PRIORITY <= m.priority <= MAX_PRIORITY
        )
        if out_of_range:
            raise ValueError(
                f"Module priorities outside {MIN_PRIORITY}-{MAX_PRIORITY}: {out_of_range}"
            )

        self.strict = strict
        self._modules: Tuple[Module, ...] = tuple(sorted(mods, key=lambda m: m.priority))
        self._index: Dict[str, Module] = {m.id: m for m in self._modules}

        if _validate_dependencies:
            self._check_dependency_order()

    # -----------------
    # lookup
    # -----------------

    @property
    def modules(self) -> Tuple[Module, ...]:
        return self._modules

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(m.id for m in self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._index

    def get(self, module_id: str) -> Module:
        try:
            return self._index[module_id]
        except KeyError:
            raise KeyError(
                f"Unknown module '{module_id}'. Registered: {sorted(self._index.keys())}"
            )

    def find(self, module_id: str) -> Optional[Module]:
        return self._index.get(module_id)

    def by_phase(self, phase: int) -> Tuple[Module, ...]:
        """Modules with priority in [phase*10, phase*10 + 10), ascending."""
        if not 1 <= phase <= 9:
            raise ValueError(f"Phase must be within 1..9, got {phase}")
        lo, hi = phase * 10, phase * 10 + 10
        return tuple(m for m in self._modules if lo <= m.priority < hi)

    # -----------------
    # derivation
    # -----------------

    def without(self, module_ids: Iterable[str]) -> "ModuleRegistry":
        """Copy of this registry with `module_ids` filtered out (unknown ids are ignored)."""
        excluded = set(module_ids)
        return ModuleRegistry(
            (m for m in self._modules if m.id not in excluded),
            strict=self.strict,
            _validate_dependencies=False,
        )

    def stats(self) -> Dict[str, Any]:
        by_phase: Dict[int, int] = {}
        for m in self._modules:
            by_phase[m.phase] = by_phase.get(m.phase, 0) + 1
        return {
            "total": len(self._modules),
            "conditional": sum(1 for m in self._modules if m.is_conditional),
            "with_dependencies": sum(1 for m in self._modules if m.dependencies),
            "by_phase": by_phase,
        }

    # -----------------
    # internals
    # -----------------

    def misordered_dependencies(self) -> List[Dict[str, Any]]:
        """
        Dependencies that can never be satisfied at run time: unregistered ids, or
        ids registered at a same-or-higher priority than their dependent.
        """
        problems: List[Dict[str, Any]] = []
        for m in self._modules:
            for dep in m.dependencies:
                target = self._index.get(dep)
                if target is None:
                    problems.append(
                        {"module_id": m.id, "dependency": dep, "problem": "unregistered"}
                    )
                elif target.priority >= m.priority:
                    problems.append(
                        {
                            "module_id": m.id,
                            "dependency": dep,
                            "problem": "not_lower_priority",
                            "module_priority": m.priority,
                            "dependency_priority": target.priority,
                        }
                    )
        return problems

    def _check_dependency_order(self) -> None:
        problems = self.misordered_dependencies()
        if not problems:
            return
        if self.strict:
            raise ValueError(f"Misordered module dependencies: {problems}")
        for p in problems:
            # behavior is unchanged: the dependent will simply always be skipped
            logger.warning("dependency_misordered", **p)
