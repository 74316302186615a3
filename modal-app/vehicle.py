"""
Vehicle facts as resolved from the RDW registry (or entered manually).
Fuel category and age classification are derived, never stored.
"""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from constants import FUEL_OVERRIDES, YOUNGTIMER_MAX_AGE, YOUNGTIMER_MIN_AGE
from errors import InvalidInputError
from utils import (
    add_years, calculate_vehicle_age_years, format_kenteken, normalize_fuel_type, normalize_kenteken,
    parse_rdw_date,
)


class FuelCategory(str, Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYDROGEN = "hydrogen"
    LPG = "lpg"
    CNG = "cng"
    HYBRID = "hybrid"
    PLUGIN_HYBRID = "plugin_hybrid"
    UNKNOWN = "unknown"

    @property
    def is_zero_emission(self) -> bool:
        """Electric and hydrogen share the low bijtelling column and the MRB discount."""
        return self in (FuelCategory.ELECTRIC, FuelCategory.HYDROGEN)


class Classification(str, Enum):
    STANDARD = "standard"
    YOUNGTIMER = "youngtimer"
    OLDTIMER = "oldtimer"


FUEL_LABELS = {
    FuelCategory.PETROL: "Benzine",
    FuelCategory.DIESEL: "Diesel",
    FuelCategory.ELECTRIC: "Elektrisch",
    FuelCategory.HYDROGEN: "Waterstof",
    FuelCategory.LPG: "LPG",
    FuelCategory.CNG: "CNG",
    FuelCategory.HYBRID: "Hybride",
    FuelCategory.PLUGIN_HYBRID: "Plug-in Hybride",
    FuelCategory.UNKNOWN: "Onbekend",
}

_HYBRID_CLASSES = {
    "OVC-HEV": FuelCategory.PLUGIN_HYBRID,
    "NOVC-HEV": FuelCategory.HYBRID,
}


def find_fuel_override(make: str, model: str = "", only_forced: bool = False) -> Optional[FuelCategory]:
    """
    Look up the brand/model override table.

    Args:
        make: Brand as registered (case-insensitive)
        model: Trade name (handelsbenaming)
        only_forced: Only return overrides that win over the upstream fuel text

    Returns:
        The override category, or None
    """
    make_lower = (make or "").lower()
    model_lower = (model or "").lower()

    for override in FUEL_OVERRIDES:
        if only_forced and not override.get("force"):
            continue
        if override["make"] not in make_lower:
            continue
        if override["model"] is None or override["model"] in model_lower:
            return FuelCategory(override["fuel"])
    return None


def resolve_fuel_category(
    fuel_description: Optional[str],
    make: str = "",
    model: str = "",
    hybrid_class: str = "",
) -> FuelCategory:
    """
    Resolve the fuel category from upstream text with make/model fallback.

    Order:
    1. Forced brand overrides (electric-only brands)
    2. RDW hybrid class (OVC-HEV / NOVC-HEV)
    3. Normalized fuel description
    4. Model-line overrides when the description is blank or unrecognized
    """
    forced = find_fuel_override(make, model, only_forced=True)
    if forced is not None:
        return forced

    hybrid = _HYBRID_CLASSES.get((hybrid_class or "").strip().upper())
    if hybrid is not None:
        return hybrid

    category = FuelCategory(normalize_fuel_type(fuel_description))
    if category is not FuelCategory.UNKNOWN:
        return category

    override = find_fuel_override(make, model)
    if override is not None:
        print(f"[RDW] {make} {model} als {FUEL_LABELS[override]} herkend o.b.v. merk/model")
        return override

    return FuelCategory.UNKNOWN


def classify_age(first_registration_date: date, on: Optional[date] = None) -> Classification:
    """
    Classify a vehicle by age since first registration, to the day.

    A vehicle becomes a youngtimer on its 15th DET anniversary, stays one
    through its 30th anniversary and is an oldtimer from the day after.
    """
    now = on or date.today()
    if now > add_years(first_registration_date, YOUNGTIMER_MAX_AGE):
        return Classification.OLDTIMER
    if now >= add_years(first_registration_date, YOUNGTIMER_MIN_AGE):
        return Classification.YOUNGTIMER
    return Classification.STANDARD


@dataclass(frozen=True)
class VehicleFacts:
    """Vehicle facts for one kenteken lookup."""
    plate_id: str
    make: str = ""
    model: str = ""
    first_registration_date: Optional[date] = None
    catalog_price: Optional[int] = None
    weight_kg: Optional[int] = None
    fuel_description: str = ""
    hybrid_class: str = ""
    combined_consumption: Optional[float] = None
    consumption_city: Optional[float] = None
    consumption_highway: Optional[float] = None
    consumption_source: str = ""  # "NEDC", "WLTP" or "" when unknown
    co2_gkm: Optional[int] = None
    monthly_road_tax: Optional[float] = None  # Reported MRB per month, if known
    recall_count: int = 0
    data_quality: int = 0

    @property
    def fuel_category(self) -> FuelCategory:
        return resolve_fuel_category(
            self.fuel_description, self.make, self.model, self.hybrid_class
        )

    @property
    def is_electric(self) -> bool:
        return self.fuel_category.is_zero_emission

    @property
    def kenteken(self) -> str:
        return format_kenteken(self.plate_id)

    def age_years(self, on: Optional[date] = None) -> Optional[int]:
        if self.first_registration_date is None:
            return None
        return calculate_vehicle_age_years(self.first_registration_date, on)

    def classification(self, on: Optional[date] = None) -> Optional[Classification]:
        if self.first_registration_date is None:
            return None
        return classify_age(self.first_registration_date, on)


def vehicle_from_dict(data: dict) -> VehicleFacts:
    """
    Build VehicleFacts from a JSON body (manual entry or a stored lookup).

    Accepts the camelCase keys produced by vehicle_to_dict. Derived keys
    (fuelCategory, classification, ageYears) are ignored.

    Raises:
        InvalidInputError: a numeric field is not a finite number
    """
    def _text(*keys: str) -> str:
        for key in keys:
            value = data.get(key)
            if value not in (None, ""):
                return str(value)
        return ""

    def _optional_float(key: str) -> Optional[float]:
        value = data.get(key)
        if value in (None, ""):
            return None
        if isinstance(value, bool):
            raise InvalidInputError(f"{key} moet een getal zijn, niet {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError(f"{key} moet een getal zijn, niet {value!r}") from None
        if not math.isfinite(number):
            raise InvalidInputError(f"{key} moet een eindig getal zijn, niet {value!r}")
        return number

    def _optional_int(key: str) -> Optional[int]:
        number = _optional_float(key)
        return int(number) if number is not None else None

    raw_date = data.get("firstRegistrationDate")
    registration_date = parse_rdw_date(raw_date)
    if raw_date not in (None, "") and registration_date is None:
        # Keep the vehicle; the engine rejects it with InvalidVehicleDataError
        print(f"[VEHICLE] Onleesbare datum eerste toelating: {raw_date!r}")

    return VehicleFacts(
        plate_id=normalize_kenteken(_text("kenteken")),
        make=_text("make"),
        model=_text("model"),
        first_registration_date=registration_date,
        catalog_price=_optional_int("catalogPrice"),
        weight_kg=_optional_int("weightKg"),
        fuel_description=_text("fuelDescription", "fuelType"),
        hybrid_class=_text("hybridClass"),
        combined_consumption=_optional_float("combinedConsumption"),
        consumption_city=_optional_float("consumptionCity"),
        consumption_highway=_optional_float("consumptionHighway"),
        consumption_source=_text("consumptionSource"),
        co2_gkm=_optional_int("co2_gkm"),
        monthly_road_tax=_optional_float("monthlyRoadTax"),
        recall_count=_optional_int("recallCount") or 0,
        data_quality=_optional_int("dataQuality") or 0,
    )


def vehicle_to_dict(vehicle: VehicleFacts, on: Optional[date] = None) -> dict:
    """Convert VehicleFacts to dictionary for JSON serialization."""
    classification = vehicle.classification(on)
    fuel = vehicle.fuel_category
    return {
        "kenteken": vehicle.kenteken,
        "make": vehicle.make,
        "model": vehicle.model,
        "firstRegistrationDate": (
            vehicle.first_registration_date.isoformat()
            if vehicle.first_registration_date else None
        ),
        "catalogPrice": vehicle.catalog_price,
        "weightKg": vehicle.weight_kg,
        "fuelDescription": vehicle.fuel_description,
        "hybridClass": vehicle.hybrid_class,
        "fuelCategory": fuel.value,
        "fuelLabel": FUEL_LABELS[fuel],
        "isElectric": vehicle.is_electric,
        "combinedConsumption": vehicle.combined_consumption,
        "consumptionCity": vehicle.consumption_city,
        "consumptionHighway": vehicle.consumption_highway,
        "consumptionSource": vehicle.consumption_source,
        "co2_gkm": vehicle.co2_gkm,
        "monthlyRoadTax": vehicle.monthly_road_tax,
        "ageYears": vehicle.age_years(on),
        "classification": classification.value if classification else None,
        "recallCount": vehicle.recall_count,
        "dataQuality": vehicle.data_quality,
    }
