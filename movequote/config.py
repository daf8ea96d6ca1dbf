# movequote/config.py
import os
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

D = Decimal


# -----------------------------
# Pricing constants (per business area)
# -----------------------------


class DistanceConfig(BaseModel):
    default_distance_km: D = D("20")
    max_distance_km: D = D("5000")
    long_distance_threshold_km: D = D("50")
    overnight_stop_threshold_km: D = D("1000")
    average_speed_kmh: D = D("50")


class FuelConfig(BaseModel):
    price_per_liter: D = D("1.70")
    consumption_l_per_100km: D = D("12")


class TollConfig(BaseModel):
    cost_per_km: D = D("0.08")
    highway_share: D = D("0.7")


class SurchargeBand(BaseModel):
    up_to_km: D
    rate_per_km: D


class LongDistanceSurchargeConfig(BaseModel):
    # bands are cumulative: excess distance is billed band by band
    bands: list[SurchargeBand] = Field(
        default_factory=lambda: [
            SurchargeBand(up_to_km=D("200"), rate_per_km=D("0.15")),
            SurchargeBand(up_to_km=D("1000"), rate_per_km=D("0.20")),
        ]
    )
    max_excess_km: D = D("1000")


class VehicleType(BaseModel):
    code: str
    capacity_m3: D
    rental_cost: D


class VehicleConfig(BaseModel):
    types: list[VehicleType] = Field(
        default_factory=lambda: [
            VehicleType(code="CAMION_12M3", capacity_m3=D("12"), rental_cost=D("80")),
            VehicleType(code="CAMION_20M3", capacity_m3=D("20"), rental_cost=D("250")),
            VehicleType(code="CAMION_30M3", capacity_m3=D("30"), rental_cost=D("350")),
        ]
    )
    default_type: str = "CAMION_20M3"


class ConfidenceMargins(BaseModel):
    LOW: D
    MEDIUM: D
    HIGH: D


class VolumeConfig(BaseModel):
    coefficients: Dict[str, D] = Field(
        default_factory=lambda: {
            "STUDIO": D("0.5"),
            "F2": D("0.45"),
            "F3": D("0.45"),
            "F4": D("0.45"),
            "HOUSE": D("0.4"),
        }
    )
    base_by_housing_type: Dict[str, D] = Field(
        default_factory=lambda: {
            "STUDIO": D("12"),
            "F2": D("20"),
            "F3": D("30"),
            "F4": D("40"),
            "HOUSE": D("60"),
        }
    )
    base_by_rooms: Dict[int, D] = Field(
        default_factory=lambda: {
            1: D("12"),
            2: D("20"),
            3: D("30"),
            4: D("40"),
            5: D("50"),
            6: D("60"),
        }
    )
    default_rooms: int = 2
    min_volume_m3: D = D("5")
    max_volume_m3: D = D("200")

    special_items_m3: Dict[str, D] = Field(
        default_factory=lambda: {
            "piano": D("8"),
            "bulky_furniture": D("5"),
            "safe": D("3"),
            "artwork": D("2"),
            "built_in_appliances": D("3"),
        }
    )

    video_margins: ConfidenceMargins = ConfidenceMargins(
        LOW=D("1.05"), MEDIUM=D("1.02"), HIGH=D("1.0")
    )
    list_margins: ConfidenceMargins = ConfidenceMargins(
        LOW=D("1.10"), MEDIUM=D("1.05"), HIGH=D("1.02")
    )
    form_user_margins: ConfidenceMargins = ConfidenceMargins(
        LOW=D("1.10"), MEDIUM=D("1.05"), HIGH=D("1.02")
    )
    form_calculated_margins: ConfidenceMargins = ConfidenceMargins(
        LOW=D("1.20"), MEDIUM=D("1.10"), HIGH=D("1.05")
    )

    # user vs theoretical validation (percent)
    critical_underestimation_pct: D = D("30")
    medium_underestimation_pct: D = D("15")
    overestimation_pct: D = D("30")
    critical_safety_margin: D = D("0.25")
    medium_safety_margin: D = D("0.15")

    # volume-uncertainty-risk
    uncertainty_risk: Dict[str, int] = Field(
        default_factory=lambda: {"LOW": 15, "MEDIUM": 8, "HIGH": 3}
    )
    uncertainty_medium_diff_pct: D = D("15")
    uncertainty_high_diff_pct: D = D("30")
    uncertainty_medium_diff_bonus: int = 5
    uncertainty_high_diff_bonus: int = 10
    uncertainty_max_risk: int = 30


class LaborConfig(BaseModel):
    default_workers: int = 2
    hourly_rate: D = D("30")
    hours_per_day: D = D("7")
    volume_per_worker_m3: D = D("5")
    min_hours: D = D("3")
    eco_max_workers: int = 2
    standard_reduction_factor: D = D("0.5")
    crew_flexibility_cost: D = D("500")

    # loading-time-estimation (minutes)
    minutes_per_m3_per_worker: D = D("15")
    minutes_per_floor: D = D("5")
    minutes_per_carry_meter: D = D("0.5")


class AccessConfig(BaseModel):
    floor_penalty_threshold: int = 3
    penalty_per_floor: D = D("25")
    carry_distance_threshold_m: D = D("30")
    penalty_per_carry_meter: D = D("2")
    no_elevator_risk: int = 15


class FurnitureLiftConfig(BaseModel):
    base_cost: D = D("250")
    double_lift_extra: D = D("250")
    high_floor_threshold: int = 3
    critical_floor_threshold: int = 5
    estimated_lift_cost: D = D("350")
    refusal_risk: int = 20
    refused_insurance_coverage_pct: int = 50
    manual_handling_base: D = D("150")
    manual_handling_per_floor: D = D("50")


class LogisticsConfig(BaseModel):
    navette_base_cost: D = D("20")
    navette_cost_per_km: D = D("0.5")
    syndic_time_slot_cost: D = D("80")
    syndic_time_slot_risk: int = 5

    hotel_per_worker: D = D("120")
    meals_per_worker: D = D("30")
    overnight_parking: D = D("50")

    idf_departments: list[str] = Field(
        default_factory=lambda: ["75", "77", "78", "91", "92", "93", "94", "95"]
    )
    rush_hour_surcharge_pct: D = D("1")
    friday_afternoon_surcharge_pct: D = D("2")
    rush_hours: list[tuple[int, int]] = Field(default_factory=lambda: [(7, 9), (17, 19)])
    friday_afternoon: tuple[int, int] = (14, 19)


class TemporalConfig(BaseModel):
    weekend_surcharge_pct: D = D("5")
    weekend_risk: int = 8
    end_of_month_start_day: int = 25
    end_of_month_surcharge_pct: D = D("5")
    end_of_month_risk: int = 10


class CrossSellingConfig(BaseModel):
    packing_cost_per_m3: D = D("5")
    packing_volume_threshold_m3: D = D("40")
    cleaning_cost_per_m2: D = D("8")
    cleaning_surface_threshold_m2: D = D("60")
    storage_cost_per_m3_per_month: D = D("30")
    default_storage_days: int = 30

    dismantling_base: D = D("50")
    per_complex_item: D = D("25")
    bulky_extra: D = D("40")
    piano_extra: D = D("60")


class SuppliesPack(BaseModel):
    name: str
    max_volume_m3: Optional[D] = None
    price: D


class SuppliesConfig(BaseModel):
    high_end_scenarios: list[str] = Field(
        default_factory=lambda: ["CONFORT", "SECURITY_PLUS", "PREMIUM"]
    )
    packs: list[SuppliesPack] = Field(
        default_factory=lambda: [
            SuppliesPack(name="Pack Studio", max_volume_m3=D("15"), price=D("49")),
            SuppliesPack(name="Pack Famille", max_volume_m3=D("35"), price=D("89")),
            SuppliesPack(name="Pack Maison", max_volume_m3=D("60"), price=D("129")),
            SuppliesPack(name="Pack XL", max_volume_m3=None, price=D("179")),
        ]
    )
    # protection margin added on top of the pack, by the same volume steps
    protection_margins: list[D] = Field(
        default_factory=lambda: [D("20"), D("30"), D("50"), D("70")]
    )


class HighValueItemsConfig(BaseModel):
    piano_handling: D = D("150")
    safe_handling: D = D("200")
    artwork_handling: D = D("100")
    risk: int = 15
    declared_value_threshold: D = D("50000")


class InsuranceConfig(BaseModel):
    rate: D = D("0.01")
    min_premium: D = D("50")
    max_premium: D = D("5000")


class LegalConfig(BaseModel):
    co_ownership_risk: int = 8
    neighborhood_base_risk: int = 5
    neighborhood_high_floor_risk: int = 2
    neighborhood_bulky_risk: int = 10
    public_domain_authorization: D = D("50")
    public_domain_multi_location_factor: D = D("1.5")
    public_domain_risk: int = 5


class RiskConfig(BaseModel):
    max_score: int = 100
    manual_review_threshold: int = 70


class PricingConfig(BaseModel):
    distance: DistanceConfig = DistanceConfig()
    fuel: FuelConfig = FuelConfig()
    tolls: TollConfig = TollConfig()
    long_distance: LongDistanceSurchargeConfig = LongDistanceSurchargeConfig()
    vehicle: VehicleConfig = VehicleConfig()
    volume: VolumeConfig = VolumeConfig()
    labor: LaborConfig = LaborConfig()
    access: AccessConfig = AccessConfig()
    furniture_lift: FurnitureLiftConfig = FurnitureLiftConfig()
    logistics: LogisticsConfig = LogisticsConfig()
    temporal: TemporalConfig = TemporalConfig()
    cross_selling: CrossSellingConfig = CrossSellingConfig()
    supplies: SuppliesConfig = SuppliesConfig()
    high_value_items: HighValueItemsConfig = HighValueItemsConfig()
    insurance: InsuranceConfig = InsuranceConfig()
    legal: LegalConfig = LegalConfig()
    risk: RiskConfig = RiskConfig()


# -----------------------------
# Application settings
# -----------------------------


class Settings(BaseSettings):
    # === Algemene app settings ===
    app_env: str = "local"  # local | development | production

    # === Logging ===
    log_level: str = "INFO"

    # === Pipeline ===
    strict_dependency_order: bool = False
    scenarios_path: Optional[str] = Field(
        None, description="YAML file with scenario definitions (defaults to packaged set)"
    )

    # === Pricing ===
    pricing: PricingConfig = PricingConfig()

    # === Pydantic Settings config ===
    model_config = SettingsConfigDict(
        env_prefix="MOVEQUOTE_",
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance met simpele env-overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
        s.strict_dependency_order = True
    elif env == "development":
        s.log_level = "DEBUG"

    return s


def get_pricing_config() -> PricingConfig:
    return get_settings().pricing
