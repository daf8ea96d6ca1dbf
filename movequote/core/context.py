from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, FrozenSet, Optional, Tuple

D = Decimal

SIDES = ("pickup", "delivery")

# Severities (avoid string typos)
SEVERITY_LOW = "LOW"
SEVERITY_MEDIUM = "MEDIUM"
SEVERITY_HIGH = "HIGH"
SEVERITY_CRITICAL = "CRITICAL"


def money(value: D) -> D:
    return D(value).quantize(D("0.01"), rounding=ROUND_HALF_UP)


def round_half_up(value: D, places: str = "1") -> D:
    return D(value).quantize(D(places), rounding=ROUND_HALF_UP)


# -----------------------------
# Accumulator entries
# -----------------------------


@dataclass(frozen=True)
class CostEntry:
    module_id: str
    category: str
    label: str
    amount: D
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskContribution:
    module_id: str
    amount: int
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Adjustment:
    """Explanatory record of a percentage applied on a base amount."""

    module_id: str
    label: str
    percentage: D
    base_amount: D
    amount: D
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LegalImpact:
    module_id: str
    severity: str
    type: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InsuranceNote:
    module_id: str
    type: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Requirement:
    module_id: str
    type: str
    severity: str
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CrossSellProposal:
    module_id: str
    id: str
    label: str
    reason: str
    price_impact: D = D("0.00")
    optional: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationalFlag:
    module_id: str
    type: str
    severity: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


# -----------------------------
# Computed context (append-only accumulator)
# -----------------------------


@dataclass(frozen=True)
class ComputedContext:
    """
    Append-only accumulator threaded through the pipeline.

    Every `add_*` returns a new instance holding the previous entries plus the
    new one; nothing is ever edited or removed. `activated_modules` is the
    audit trail and the source of truth for dependency gating.
    """

    costs: Tuple[CostEntry, ...] = ()
    risk_contributions: Tuple[RiskContribution, ...] = ()
    adjustments: Tuple[Adjustment, ...] = ()
    legal_impacts: Tuple[LegalImpact, ...] = ()
    insurance_notes: Tuple[InsuranceNote, ...] = ()
    requirements: Tuple[Requirement, ...] = ()
    cross_sell_proposals: Tuple[CrossSellProposal, ...] = ()
    operational_flags: Tuple[OperationalFlag, ...] = ()
    activated_modules: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    # names of the additive lists, used by the engine's contract check
    ACCUMULATORS = (
        "costs",
        "risk_contributions",
        "adjustments",
        "legal_impacts",
        "insurance_notes",
        "requirements",
        "cross_sell_proposals",
        "operational_flags",
        "activated_modules",
    )

    # --- additive writers ---

    def add_cost(
        self, module_id: str, category: str, label: str, amount: D, **metadata: Any
    ) -> "ComputedContext":
        entry = CostEntry(module_id, category, label, money(amount), metadata)
        return replace(self, costs=self.costs + (entry,))

    def add_risk(
        self, module_id: str, amount: int, reason: str, **metadata: Any
    ) -> "ComputedContext":
        entry = RiskContribution(module_id, int(amount), reason, metadata)
        return replace(self, risk_contributions=self.risk_contributions + (entry,))

    def add_adjustment(
        self,
        module_id: str,
        label: str,
        percentage: D,
        base_amount: D,
        amount: D,
        **metadata: Any,
    ) -> "ComputedContext":
        entry = Adjustment(
            module_id, label, D(percentage), money(base_amount), money(amount), metadata
        )
        return replace(self, adjustments=self.adjustments + (entry,))

    def add_legal_impact(
        self, module_id: str, severity: str, type: str, message: str, **metadata: Any
    ) -> "ComputedContext":
        entry = LegalImpact(module_id, severity, type, message, metadata)
        return replace(self, legal_impacts=self.legal_impacts + (entry,))

    def add_insurance_note(
        self, module_id: str, type: str, message: str, **metadata: Any
    ) -> "ComputedContext":
        entry = InsuranceNote(module_id, type, message, metadata)
        return replace(self, insurance_notes=self.insurance_notes + (entry,))

    def add_requirement(
        self, module_id: str, type: str, severity: str, reason: str, **metadata: Any
    ) -> "ComputedContext":
        entry = Requirement(module_id, type, severity, reason, metadata)
        return replace(self, requirements=self.requirements + (entry,))

    def add_cross_sell(
        self,
        module_id: str,
        id: str,
        label: str,
        reason: str,
        price_impact: D = D("0.00"),
        optional: bool = True,
        **metadata: Any,
    ) -> "ComputedContext":
        entry = CrossSellProposal(
            module_id, id, label, reason, money(price_impact), optional, metadata
        )
        return replace(self, cross_sell_proposals=self.cross_sell_proposals + (entry,))

    def add_flag(
        self, module_id: str, type: str, severity: str, message: str, **metadata: Any
    ) -> "ComputedContext":
        entry = OperationalFlag(module_id, type, severity, message, metadata)
        return replace(self, operational_flags=self.operational_flags + (entry,))

    def with_metadata(self, **values: Any) -> "ComputedContext":
        return replace(self, metadata={**self.metadata, **values})

    def activate(self, module_id: str) -> "ComputedContext":
        return replace(self, activated_modules=self.activated_modules + (module_id,))

    # --- readers ---

    def is_activated(self, module_id: str) -> bool:
        return module_id in self.activated_modules

    def total_cost(self) -> D:
        return money(sum((c.amount for c in self.costs), D("0")))

    def cost_of(self, *categories: str) -> D:
        wanted = set(categories)
        return money(sum((c.amount for c in self.costs if c.category in wanted), D("0")))

    def risk_total(self) -> int:
        return sum(r.amount for r in self.risk_contributions)

    def entries_of(self, module_id: str) -> Dict[str, Tuple[Any, ...]]:
        """All accumulator entries tagged with `module_id`, per list."""
        out: Dict[str, Tuple[Any, ...]] = {}
        for name in self.ACCUMULATORS:
            if name == "activated_modules":
                continue
            hits = tuple(e for e in getattr(self, name) if e.module_id == module_id)
            if hits:
                out[name] = hits
        return out


# -----------------------------
# Input context
# -----------------------------


@dataclass(frozen=True)
class AccessPoint:
    """One side (pickup or delivery) of the move."""

    side: str
    address: Optional[str]
    postal_code: Optional[str]
    city: Optional[str]
    floor: Optional[int]
    has_elevator: Optional[bool]
    elevator_size: Optional[str]
    carry_distance: Optional[D]
    narrow_street: bool

    @property
    def floor_or_zero(self) -> int:
        return self.floor or 0

    @property
    def lacks_elevator(self) -> bool:
        return not self.has_elevator


@dataclass(frozen=True)
class QuoteContext:
    """
    Input + working record for one price computation.

    Raw order fields are flat; `computed` is the accumulator. Modules never
    mutate a context, they return a new one via `with_computed()`.
    """

    service_type: str = "MOVING"

    # --- access ---
    pickup_address: Optional[str] = None
    pickup_postal_code: Optional[str] = None
    pickup_city: Optional[str] = None
    pickup_floor: Optional[int] = None
    pickup_has_elevator: Optional[bool] = None
    pickup_elevator_size: Optional[str] = None  # SMALL | STANDARD | LARGE
    pickup_carry_distance: Optional[D] = None
    pickup_narrow_street: bool = False

    delivery_address: Optional[str] = None
    delivery_postal_code: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_floor: Optional[int] = None
    delivery_has_elevator: Optional[bool] = None
    delivery_elevator_size: Optional[str] = None
    delivery_carry_distance: Optional[D] = None
    delivery_narrow_street: bool = False

    # --- dates ---
    moving_date: Optional[str] = None  # ISO date or datetime
    quoted_at: Optional[datetime] = None

    # --- volume ---
    volume_method: str = "FORM"  # FORM | LIST | VIDEO
    estimated_volume: Optional[D] = None
    volume_confidence: str = SEVERITY_MEDIUM  # LOW | MEDIUM | HIGH
    surface: Optional[D] = None
    # surface billed for end-of-lease cleaning when the client gave none
    cleaning_surface: Optional[D] = None
    housing_type: Optional[str] = None
    rooms: Optional[int] = None

    distance_km: Optional[D] = None

    # --- value / insurance ---
    declared_value: Optional[D] = None
    declared_value_insurance: bool = False

    # --- cross-sell ---
    packing: bool = False
    dismantling: bool = False
    reassembly: bool = False
    cleaning_end: bool = False
    temporary_storage: bool = False
    storage_duration_days: Optional[int] = None
    bulky_furniture: bool = False
    piano: bool = False
    safe: bool = False
    artwork: bool = False
    built_in_appliances: bool = False
    complex_furniture_count: int = 0
    force_supplies: bool = False
    client_supplies_total: Optional[D] = None
    client_supplies_details: Tuple[Dict[str, Any], ...] = ()

    # --- access / logistics options ---
    syndic_time_slot: bool = False
    refuse_lift_despite_recommendation: bool = False
    force_overnight_stop: bool = False
    crew_flexibility: bool = False

    scenario_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    computed: ComputedContext = field(default_factory=ComputedContext)

    # optional services the client picked (reset by non-FLEX scenarios)
    OPTIONAL_SERVICE_FIELDS = (
        "packing",
        "dismantling",
        "reassembly",
        "cleaning_end",
    )
    # storage is part of the move itself, recorded but never reset
    CLIENT_SELECTION_FIELDS = OPTIONAL_SERVICE_FIELDS + ("temporary_storage",)

    DECIMAL_FIELDS = frozenset(
        {
            "pickup_carry_distance",
            "delivery_carry_distance",
            "estimated_volume",
            "surface",
            "cleaning_surface",
            "distance_km",
            "declared_value",
            "client_supplies_total",
        }
    )

    def access(self, side: str) -> AccessPoint:
        if side not in SIDES:
            raise ValueError(f"Unknown side '{side}'. Expected one of {list(SIDES)}")
        return AccessPoint(
            side=side,
            address=getattr(self, f"{side}_address"),
            postal_code=getattr(self, f"{side}_postal_code"),
            city=getattr(self, f"{side}_city"),
            floor=getattr(self, f"{side}_floor"),
            has_elevator=getattr(self, f"{side}_has_elevator"),
            elevator_size=getattr(self, f"{side}_elevator_size"),
            carry_distance=getattr(self, f"{side}_carry_distance"),
            narrow_street=bool(getattr(self, f"{side}_narrow_street")),
        )

    def with_computed(self, computed: ComputedContext) -> "QuoteContext":
        return replace(self, computed=computed)

    def client_selection(self) -> Dict[str, bool]:
        return {name: bool(getattr(self, name)) for name in self.CLIENT_SELECTION_FIELDS}

    @classmethod
    def patchable_fields(cls) -> FrozenSet[str]:
        return frozenset(f.name for f in fields(cls) if f.name != "computed")

    def patched(self, patch: Dict[str, Any]) -> "QuoteContext":
        """
        Apply a partial-context patch (e.g. a scenario's forced flags).
        Numeric values for Decimal fields are coerced via str().
        """
        unknown = sorted(set(patch) - self.patchable_fields())
        if unknown:
            raise ValueError(f"Unknown context fields in patch: {unknown}")

        values: Dict[str, Any] = {}
        for key, value in patch.items():
            if key in self.DECIMAL_FIELDS and value is not None:
                value = D(str(value))
            values[key] = value
        return replace(self, **values)
