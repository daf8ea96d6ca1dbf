from __future__ import annotations

from typing import Any, Dict, Optional


class QuotationError(Exception):
    """
    Base error for the quotation pipeline.

    Carries a stable `code`, a human readable `message`, an optional `meta`
    payload and the id of the module that raised it (if any).
    """

    def __init__(
        self,
        code: str,
        message: str,
        meta: Optional[Dict[str, Any]] = None,
        module_id: Optional[str] = None,
    ):
        self.code = str(code)
        self.message = str(message)
        self.meta = meta or {}
        self.module_id = module_id
        super().__init__(self._render())

    def _render(self) -> str:
        prefix = f"[{self.module_id}] " if self.module_id else ""
        return f"{prefix}{self.code}: {self.message}"

    def attach_module(self, module_id: str) -> None:
        """Name the originating module once the engine knows it."""
        self.module_id = module_id
        self.args = (self._render(),)


class FatalInputError(QuotationError):
    """
    Raised by normalization/validation modules for unrecoverable input.
    Aborts the whole computation; no partial price is returned.
    """


class ModuleExecutionError(QuotationError):
    """Unexpected exception inside a module's apply()."""


class ModuleContractError(QuotationError):
    """A module broke the append-only accumulator contract."""


class UnknownScenarioError(QuotationError, KeyError):
    def __init__(self, scenario_id: str, known: Any):
        super().__init__(
            "UNKNOWN_SCENARIO",
            f"Unknown scenario '{scenario_id}'. Registered: {sorted(known)}",
            meta={"scenario_id": scenario_id},
        )

    def __str__(self) -> str:
        return self.args[0] if self.args else self.message
