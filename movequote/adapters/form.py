# movequote/adapters/form.py
from __future__ import annotations

import unicodedata
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..core.context import QuoteContext

D = Decimal

# categorical "volumeEstime" -> m³
VOLUME_CATEGORIES: Dict[str, D] = {
    "tres-petit": D("12"),
    "petit": D("20"),
    "moyen-1": D("20"),
    "petit-moyen": D("30"),
    "moyen-2": D("30"),
    "moyen": D("42"),
    "moyen-intermediaire": D("42"),
    "moyen-grand": D("60"),
    "grand": D("85"),
    "tres-grand": D("120"),
    "extra-grand": D("120"),
}

ELEVATOR_SIZES = {"small": "SMALL", "medium": "STANDARD", "large": "LARGE"}


def _strip_accents(s: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", s) if unicodedata.category(c) != "Mn"
    )


def volume_from_category(value: Optional[str]) -> Optional[D]:
    if not value:
        return None
    return VOLUME_CATEGORIES.get(_strip_accents(value.strip().lower()))


def estimate_carry_distance(floor: Optional[int], has_elevator: Optional[bool]) -> D:
    """Ground floor 0 m; with elevator 5 m; stairs 10 / 20 / 30 m by floor."""
    if not floor:
        return D("0")
    if has_elevator:
        return D("5")
    if floor <= 2:
        return D("10")
    if floor <= 4:
        return D("20")
    return D("30")


def _alias(*names: str) -> Any:
    return Field(None, validation_alias=AliasChoices(*names))


class SupplyItemV1(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    quantity: int = Field(1, ge=0)
    unit_price: D = Field(D("0"), validation_alias=AliasChoices("unitPrice", "unit_price"), ge=0)


class QuoteFormV1(BaseModel):
    """
    Raw quote form payload (camelCase, with the legacy aliases the forms still send).
    Unknown keys are ignored: the form carries UI-only fields.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    moving_date: Optional[str] = _alias("movingDate", "dateSouhaitee")

    housing_type: Optional[str] = _alias("housingType")
    surface: Optional[D] = Field(None, ge=0)
    rooms: Optional[int] = Field(None, ge=0)

    volume_method: Literal["FORM", "LIST", "VIDEO"] = Field(
        "FORM", validation_alias=AliasChoices("volumeMethod")
    )
    estimated_volume: Optional[D] = Field(
        None, ge=0, validation_alias=AliasChoices("estimatedVolume")
    )
    volume_category: Optional[str] = _alias("volumeEstime")
    volume_confidence: Optional[Literal["LOW", "MEDIUM", "HIGH"]] = _alias("volumeConfidence")

    pickup_address: Optional[str] = _alias("pickupAddress", "departureAddress", "adresseDepart")
    pickup_postal_code: Optional[str] = _alias("pickupPostalCode", "departurePostalCode")
    pickup_city: Optional[str] = _alias("pickupCity", "departureCity")
    pickup_floor: Optional[int] = _alias("pickupFloor")
    pickup_has_elevator: Optional[bool] = _alias("pickupHasElevator")
    pickup_elevator: Optional[str] = _alias("pickupElevator")
    pickup_carry_distance: Optional[D] = _alias("pickupCarryDistance")
    pickup_street_narrow: bool = Field(False, validation_alias=AliasChoices("pickupStreetNarrow"))
    pickup_syndic_time_slot: bool = Field(
        False, validation_alias=AliasChoices("pickupSyndicTimeSlot")
    )

    delivery_address: Optional[str] = _alias("deliveryAddress", "arrivalAddress", "adresseArrivee")
    delivery_postal_code: Optional[str] = _alias("deliveryPostalCode", "arrivalPostalCode")
    delivery_city: Optional[str] = _alias("deliveryCity", "arrivalCity")
    delivery_floor: Optional[int] = _alias("deliveryFloor")
    delivery_has_elevator: Optional[bool] = _alias("deliveryHasElevator")
    delivery_elevator: Optional[str] = _alias("deliveryElevator")
    delivery_carry_distance: Optional[D] = _alias("deliveryCarryDistance")
    delivery_street_narrow: bool = Field(
        False, validation_alias=AliasChoices("deliveryStreetNarrow")
    )
    delivery_syndic_time_slot: bool = Field(
        False, validation_alias=AliasChoices("deliverySyndicTimeSlot")
    )

    distance: Optional[D] = Field(None, ge=0)

    bulky_furniture: bool = Field(False, validation_alias=AliasChoices("bulkyFurniture"))
    piano: bool = False
    safe: bool = False
    artwork: bool = False
    built_in_appliances: bool = Field(False, validation_alias=AliasChoices("builtInAppliances"))
    complex_furniture_count: int = Field(
        0, ge=0, validation_alias=AliasChoices("complexFurnitureCount")
    )
    force_supplies: bool = Field(False, validation_alias=AliasChoices("forceSupplies"))

    temporary_storage: bool = Field(False, validation_alias=AliasChoices("temporaryStorage"))
    storage_duration_days: Optional[int] = Field(
        None, ge=1, validation_alias=AliasChoices("storageDurationDays")
    )
    packing: bool = False
    dismantling: bool = False
    reassembly: bool = False
    cleaning_end: bool = Field(False, validation_alias=AliasChoices("cleaningEnd"))

    declared_value: Optional[D] = Field(None, ge=0, validation_alias=AliasChoices("declaredValue"))
    declared_value_insurance: bool = Field(
        False, validation_alias=AliasChoices("declaredValueInsurance")
    )
    refuse_lift_despite_recommendation: bool = Field(
        False, validation_alias=AliasChoices("refuseLiftDespiteRecommendation")
    )
    force_overnight_stop: bool = Field(
        False, validation_alias=AliasChoices("forceOvernightStop")
    )
    crew_flexibility: bool = Field(False, validation_alias=AliasChoices("crewFlexibility"))

    selected_supplies: List[SupplyItemV1] = Field(
        default_factory=list, validation_alias=AliasChoices("selectedSupplies")
    )
    selected_scenario: Optional[str] = _alias("selectedScenario")

    @field_validator("pickup_floor", "delivery_floor")
    @classmethod
    def _floor_not_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("floor must be >= 0")
        return v

    @field_validator("housing_type")
    @classmethod
    def _housing_upper(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    # -----------------
    # derived values
    # -----------------

    def _volume(self) -> Optional[D]:
        if self.estimated_volume:
            return self.estimated_volume
        return volume_from_category(self.volume_category)

    def _volume_confidence(self, volume: Optional[D]) -> str:
        """VIDEO high, LIST medium, FORM medium when coherent with the surface."""
        if self.volume_confidence:
            return self.volume_confidence
        if self.volume_method == "VIDEO":
            return "HIGH"
        if self.volume_method == "LIST":
            return "MEDIUM"
        if self.surface and volume:
            factor = {"STUDIO": D("0.9"), "HOUSE": D("1.1")}.get(self.housing_type or "", D("1"))
            expected = self.surface * D("2.5") * D("0.3") * factor
            if expected > 0 and D("0.7") <= volume / expected <= D("1.3"):
                return "MEDIUM"
        return "LOW"

    def _side(self, side: str) -> Dict[str, Any]:
        floor = getattr(self, f"{side}_floor")
        has_elevator = getattr(self, f"{side}_has_elevator")
        elevator = (getattr(self, f"{side}_elevator") or "").strip().lower()
        if has_elevator is None and elevator:
            has_elevator = elevator != "no"
        carry = getattr(self, f"{side}_carry_distance")
        if carry is None:
            carry = estimate_carry_distance(floor, has_elevator)
        return {
            f"{side}_address": getattr(self, f"{side}_address"),
            f"{side}_postal_code": getattr(self, f"{side}_postal_code"),
            f"{side}_city": getattr(self, f"{side}_city"),
            f"{side}_floor": floor,
            f"{side}_has_elevator": has_elevator,
            f"{side}_elevator_size": ELEVATOR_SIZES.get(elevator),
            f"{side}_carry_distance": carry,
            f"{side}_narrow_street": getattr(self, f"{side}_street_narrow"),
        }

    def to_quote_context(self) -> QuoteContext:
        volume = self._volume()
        supplies = tuple(
            {"id": s.id, "name": s.name, "quantity": s.quantity, "unit_price": str(s.unit_price)}
            for s in self.selected_supplies
        )
        supplies_total = sum(
            (s.unit_price * s.quantity for s in self.selected_supplies), D("0")
        )

        return QuoteContext(
            **self._side("pickup"),
            **self._side("delivery"),
            moving_date=self.moving_date,
            volume_method=self.volume_method,
            estimated_volume=volume,
            volume_confidence=self._volume_confidence(volume),
            surface=self.surface,
            housing_type=self.housing_type,
            rooms=self.rooms,
            distance_km=self.distance,
            declared_value=self.declared_value,
            declared_value_insurance=self.declared_value_insurance,
            packing=self.packing,
            dismantling=self.dismantling,
            reassembly=self.reassembly,
            cleaning_end=self.cleaning_end,
            temporary_storage=self.temporary_storage,
            storage_duration_days=self.storage_duration_days,
            bulky_furniture=self.bulky_furniture,
            piano=self.piano,
            safe=self.safe,
            artwork=self.artwork,
            built_in_appliances=self.built_in_appliances,
            complex_furniture_count=self.complex_furniture_count,
            force_supplies=self.force_supplies,
            client_supplies_total=supplies_total if supplies else None,
            client_supplies_details=supplies,
            syndic_time_slot=self.pickup_syndic_time_slot or self.delivery_syndic_time_slot,
            refuse_lift_despite_recommendation=self.refuse_lift_despite_recommendation,
            force_overnight_stop=self.force_overnight_stop,
            crew_flexibility=self.crew_flexibility,
            scenario_id=self.selected_scenario,
        )


def context_from_form(payload: Dict[str, Any]) -> QuoteContext:
    """Validate a raw form payload and build the pipeline input context."""
    return QuoteFormV1.model_validate(payload).to_quote_context()
