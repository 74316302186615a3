"""
Cost calculator: auto privé kopen, zakelijk gebruiken.

Annual and monthly cost of ownership net of the tax relief on the
€0,23 per business kilometer allowance. All amounts stay unrounded until
breakdown_to_dict / format_breakdown.
"""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from bijtelling import (
    BijtellingResult, bijtelling_to_dict, calculate_vehicle_bijtelling, describe_percentage,
)
from constants import (
    BRAND_DEPRECIATION_PER_YEAR, BRAND_MIN_VALUE_FACTOR, BRAND_PRICE_ESTIMATES,
    CALCULATION_METHOD, COST_DEFAULTS, DEFAULT_BRAND_PRICE, DEFAULT_CONSUMPTION,
    DEFAULT_CONSUMPTION_BY_FUEL, DEFAULT_FUEL_PRICE, DEFAULT_FUEL_PRICES,
    DEFAULT_INPUTS, INSURANCE_ALIASES, INSURANCE_BASE, INSURANCE_MAX_FACTOR,
    INSURANCE_REFERENCE_PRICE, KILOMETER_ALLOWANCE, RESIDUAL_VALUE_FACTOR,
    VEHICLE_DEPRECIATION_PER_YEAR, VEHICLE_MIN_VALUE_FACTOR,
)
from errors import InvalidInputError, InvalidVehicleDataError
from utils import calculate_vehicle_age_years, format_currency
from vehicle import FuelCategory, VehicleFacts


class InsuranceTier(str, Enum):
    LIABILITY = "liability"            # WA
    LIABILITY_PLUS = "liability_plus"  # WA+ (beperkt casco)
    COMPREHENSIVE = "comprehensive"    # Allrisk

    @classmethod
    def from_value(cls, value) -> "InsuranceTier":
        """Accept enum values and the Dutch form values (wa, wa-plus, allrisk)."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        key = INSURANCE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise InvalidInputError(
                f"Onbekend verzekeringstype: {value!r} (kies wa, wa-plus of allrisk)"
            ) from None


@dataclass(frozen=True)
class CostInputs:
    """User-supplied parameters for one calculation."""
    purchase_price: float
    residual_value: float
    ownership_years: int
    annual_distance: float
    business_share_percent: float
    fuel_unit_price: float
    insurance_tier: InsuranceTier
    marginal_tax_rate_percent: float
    vehicle: Optional[VehicleFacts] = None


@dataclass(frozen=True)
class FixedCosts:
    """Vaste kosten per jaar."""
    depreciation: float
    insurance: float
    road_tax: float
    inspection: float
    maintenance: float

    @property
    def total(self) -> float:
        return self.depreciation + self.insurance + self.road_tax + self.inspection + self.maintenance


@dataclass(frozen=True)
class VariableCosts:
    """Variabele kosten per jaar."""
    fuel: float
    tires: float
    repairs: float
    consumption: float = 0       # Gebruikt verbruik per 100 km
    consumption_source: str = ""  # "NEDC", "WLTP", "default"

    @property
    def total(self) -> float:
        return self.fuel + self.tires + self.repairs


@dataclass(frozen=True)
class TaxRelief:
    """Fiscaal voordeel van de kilometervergoeding."""
    business_distance: float
    per_km_rate: float
    mileage_allowance: float  # Zakelijke km * tarief
    marginal_rate_percent: float
    relief: float


@dataclass(frozen=True)
class CostBreakdown:
    """Complete cost calculation result."""
    fixed: FixedCosts
    variable: VariableCosts
    tax_relief: TaxRelief
    gross_annual: float
    net_annual: float
    net_per_km: float
    annual_distance: float
    calculated_on: date
    bijtelling: Optional[BijtellingResult] = None
    method: str = CALCULATION_METHOD

    @property
    def gross_monthly(self) -> float:
        return self.gross_annual / 12

    @property
    def net_monthly(self) -> float:
        return self.net_annual / 12

    @property
    def private_distance(self) -> float:
        return self.annual_distance - self.tax_relief.business_distance


# =============================================================================
# VALIDATIE
# =============================================================================


def _check_number(name: str, value, minimum: Optional[float] = None, maximum: Optional[float] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInputError(f"{name} moet een getal zijn, niet {value!r}")
    if minimum is not None and value < minimum:
        raise InvalidInputError(f"{name} moet minimaal {minimum:g} zijn (kreeg {value:g})")
    if maximum is not None and value > maximum:
        raise InvalidInputError(f"{name} mag maximaal {maximum:g} zijn (kreeg {value:g})")


def validate_cost_inputs(inputs: CostInputs, on: Optional[date] = None) -> None:
    """
    Reject invalid parameters before any formula runs.

    Raises:
        InvalidInputError: negative prices, non-positive duration or distance,
            percentages outside 0-100, unknown insurance tier
        InvalidVehicleDataError: vehicle present without a usable DET, with a
            DET in the future or with negative figures
    """
    _check_number("Aankoopprijs", inputs.purchase_price, minimum=0)
    _check_number("Restwaarde", inputs.residual_value, minimum=0)
    if inputs.residual_value > inputs.purchase_price:
        raise InvalidInputError("Restwaarde kan niet hoger zijn dan de aankoopprijs")

    if isinstance(inputs.ownership_years, bool) or not isinstance(inputs.ownership_years, int):
        raise InvalidInputError(f"Eigendomsduur moet een geheel aantal jaren zijn, niet {inputs.ownership_years!r}")
    if inputs.ownership_years <= 0:
        raise InvalidInputError("Eigendomsduur moet minimaal 1 jaar zijn")

    _check_number("Kilometers per jaar", inputs.annual_distance, minimum=0)
    if inputs.annual_distance == 0:
        raise InvalidInputError("Kilometers per jaar moet groter dan 0 zijn")

    _check_number("Zakelijk percentage", inputs.business_share_percent, minimum=0, maximum=100)
    _check_number("Brandstofprijs", inputs.fuel_unit_price, minimum=0)
    _check_number("Belastingtarief", inputs.marginal_tax_rate_percent, minimum=0, maximum=100)

    if not isinstance(inputs.insurance_tier, InsuranceTier):
        raise InvalidInputError(f"Onbekend verzekeringstype: {inputs.insurance_tier!r}")

    if inputs.vehicle is not None:
        _validate_vehicle(inputs.vehicle, on or date.today())


def _validate_vehicle(vehicle: VehicleFacts, on: date) -> None:
    name = vehicle.kenteken or "dit voertuig"
    if vehicle.first_registration_date is None:
        raise InvalidVehicleDataError(
            f"Datum eerste toelating ontbreekt voor {name}. "
            f"Vul de voertuiggegevens handmatig in."
        )
    if vehicle.first_registration_date > on:
        raise InvalidVehicleDataError(
            f"Datum eerste toelating {vehicle.first_registration_date.isoformat()} "
            f"van {name} ligt in de toekomst."
        )

    figures = {
        "Catalogusprijs": vehicle.catalog_price,
        "Gewicht": vehicle.weight_kg,
        "Verbruik": vehicle.combined_consumption,
        "MRB per maand": vehicle.monthly_road_tax,
    }
    for label, value in figures.items():
        if value is not None and value < 0:
            raise InvalidVehicleDataError(f"{label} van {name} kan niet negatief zijn.")


# =============================================================================
# DEELBEREKENINGEN
# =============================================================================


def calculate_depreciation(purchase_price: float, residual_value: float, ownership_years: int) -> float:
    """Linear depreciation per year."""
    if ownership_years <= 0:
        raise InvalidInputError("Eigendomsduur moet minimaal 1 jaar zijn")
    return (purchase_price - residual_value) / ownership_years


def calculate_insurance(tier: InsuranceTier, purchase_price: float) -> float:
    """
    Insurance per year: tier base amount scaled by vehicle value.
    The value factor is capped at 2.0.
    """
    base = INSURANCE_BASE[tier.value]
    value_factor = min(INSURANCE_MAX_FACTOR, purchase_price / INSURANCE_REFERENCE_PRICE)
    return base * value_factor


def calculate_road_tax(vehicle: Optional[VehicleFacts]) -> float:
    """
    MRB per year.

    Uses the reported monthly MRB when known. Otherwise estimates
    round(weight / 100 * €8) per month (default weight 1500 kg), with a 25%
    discount for electric and hydrogen vehicles.
    """
    if vehicle is not None and vehicle.monthly_road_tax:
        return vehicle.monthly_road_tax * 12

    weight = (vehicle.weight_kg if vehicle is not None else None) or COST_DEFAULTS["weight_kg"]
    monthly = round(weight / 100 * COST_DEFAULTS["mrb_per_100kg_month"])
    if vehicle is not None and vehicle.is_electric:
        monthly = monthly * (1 - COST_DEFAULTS["mrb_electric_discount"])
    return monthly * 12


def _vehicle_age(vehicle: Optional[VehicleFacts], on: date) -> Optional[int]:
    if vehicle is None or vehicle.first_registration_date is None:
        return None
    return calculate_vehicle_age_years(vehicle.first_registration_date, on)


def calculate_inspection(vehicle: Optional[VehicleFacts], on: Optional[date] = None) -> float:
    """APK fee from age 4; unknown age counts as not yet due."""
    age = _vehicle_age(vehicle, on or date.today())
    if age is not None and age > COST_DEFAULTS["apk_exempt_max_age"]:
        return COST_DEFAULTS["apk_fee"]
    return 0


def calculate_maintenance(annual_distance: float, vehicle: Optional[VehicleFacts], on: Optional[date] = None) -> float:
    """Maintenance: €800 * (1 + age * 10%) * (km / 15.000)."""
    age = _vehicle_age(vehicle, on or date.today())
    if age is None:
        age = COST_DEFAULTS["vehicle_age_years"]
    age_factor = 1 + age * COST_DEFAULTS["maintenance_age_factor"]
    km_factor = annual_distance / COST_DEFAULTS["maintenance_reference_km"]
    return COST_DEFAULTS["maintenance_base"] * age_factor * km_factor


def resolve_consumption(vehicle: Optional[VehicleFacts]) -> tuple[float, str]:
    """
    Consumption per 100 km and its source.

    Priority: the vehicle's combined figure (NEDC outranks WLTP, see
    rdw_api.get_best_consumption_value), then the fuel category default
    (18 kWh for electric), then 7.0 l.
    """
    if vehicle is not None and vehicle.combined_consumption:
        return vehicle.combined_consumption, vehicle.consumption_source or "vehicle"

    if vehicle is not None:
        default = DEFAULT_CONSUMPTION_BY_FUEL.get(vehicle.fuel_category.value)
        if default is not None:
            return default, "default"

    return DEFAULT_CONSUMPTION, "default"


def calculate_fuel_cost(annual_distance: float, fuel_unit_price: float, vehicle: Optional[VehicleFacts]) -> float:
    """Fuel (or electricity) cost per year."""
    consumption, _ = resolve_consumption(vehicle)
    return consumption * (annual_distance / 100) * fuel_unit_price


def calculate_tire_cost(annual_distance: float) -> float:
    """One €800 tire set per 50.000 km, amortized per year."""
    return round(annual_distance / COST_DEFAULTS["tire_lifespan_km"] * COST_DEFAULTS["tire_set_price"])


def calculate_repair_cost(vehicle: Optional[VehicleFacts], on: Optional[date] = None) -> float:
    """Repairs: €300 per year, growing 20% per year of age beyond 5."""
    age = _vehicle_age(vehicle, on or date.today())
    if age is None:
        age = COST_DEFAULTS["vehicle_age_years"]
    years_over = max(0, age - COST_DEFAULTS["repair_growth_after_years"])
    return COST_DEFAULTS["repair_base"] * COST_DEFAULTS["repair_growth"] ** years_over


def calculate_tax_relief(
    annual_distance: float,
    business_share_percent: float,
    marginal_tax_rate_percent: float,
    per_km_rate: float = KILOMETER_ALLOWANCE,
) -> TaxRelief:
    """Tax relief from the per-km allowance at the marginal tax rate."""
    business_distance = annual_distance * business_share_percent / 100
    mileage_allowance = business_distance * per_km_rate
    relief = mileage_allowance * marginal_tax_rate_percent / 100
    return TaxRelief(
        business_distance=business_distance,
        per_km_rate=per_km_rate,
        mileage_allowance=mileage_allowance,
        marginal_rate_percent=marginal_tax_rate_percent,
        relief=relief,
    )


# =============================================================================
# HOOFDBEREKENING
# =============================================================================


def calculate_costs(inputs: CostInputs, on: Optional[date] = None) -> CostBreakdown:
    """
    Calculate the full annual cost breakdown.

    Args:
        inputs: Financial and usage parameters, optionally with vehicle facts
        on: Calculation date for vehicle age (default: today)

    Returns:
        CostBreakdown with fixed, variable, relief and totals

    Raises:
        InvalidInputError: invalid parameters
        InvalidVehicleDataError: vehicle facts without a usable DET, with a
            future DET or with negative figures
    """
    validate_cost_inputs(inputs, on)
    today = on or date.today()
    vehicle = inputs.vehicle

    fixed = FixedCosts(
        depreciation=calculate_depreciation(inputs.purchase_price, inputs.residual_value, inputs.ownership_years),
        insurance=calculate_insurance(inputs.insurance_tier, inputs.purchase_price),
        road_tax=calculate_road_tax(vehicle),
        inspection=calculate_inspection(vehicle, today),
        maintenance=calculate_maintenance(inputs.annual_distance, vehicle, today),
    )

    consumption, consumption_source = resolve_consumption(vehicle)
    variable = VariableCosts(
        fuel=calculate_fuel_cost(inputs.annual_distance, inputs.fuel_unit_price, vehicle),
        tires=calculate_tire_cost(inputs.annual_distance),
        repairs=calculate_repair_cost(vehicle, today),
        consumption=consumption,
        consumption_source=consumption_source,
    )

    tax_relief = calculate_tax_relief(
        inputs.annual_distance,
        inputs.business_share_percent,
        inputs.marginal_tax_rate_percent,
    )

    gross_annual = fixed.total + variable.total
    net_annual = gross_annual - tax_relief.relief

    bijtelling = calculate_vehicle_bijtelling(vehicle, on=today) if vehicle is not None else None

    return CostBreakdown(
        fixed=fixed,
        variable=variable,
        tax_relief=tax_relief,
        gross_annual=gross_annual,
        net_annual=net_annual,
        net_per_km=net_annual / inputs.annual_distance,
        annual_distance=inputs.annual_distance,
        calculated_on=today,
        bijtelling=bijtelling,
    )


# =============================================================================
# INVOER
# =============================================================================


def cost_inputs_from_dict(data: dict, vehicle: Optional[VehicleFacts] = None) -> CostInputs:
    """
    Build CostInputs from a JSON body. Missing fields take the form defaults.

    Accepts snake_case and camelCase keys.
    """
    def _value(key: str):
        camel = "".join(
            part.capitalize() if i else part for i, part in enumerate(key.split("_"))
        )
        for candidate in (key, camel):
            if candidate in data and data[candidate] not in (None, ""):
                return data[candidate]
        return DEFAULT_INPUTS[key]

    def _number(key: str) -> float:
        value = _value(key)
        if isinstance(value, bool):
            raise InvalidInputError(f"{key} moet een getal zijn, niet {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError(f"{key} moet een getal zijn, niet {value!r}") from None
        if not math.isfinite(number):
            raise InvalidInputError(f"{key} moet een eindig getal zijn, niet {value!r}")
        return number

    years = _number("ownership_years")
    if years != int(years):
        raise InvalidInputError("Eigendomsduur moet een geheel aantal jaren zijn")

    return CostInputs(
        purchase_price=_number("purchase_price"),
        residual_value=_number("residual_value"),
        ownership_years=int(years),
        annual_distance=_number("annual_distance"),
        business_share_percent=_number("business_share_percent"),
        fuel_unit_price=_number("fuel_unit_price"),
        insurance_tier=InsuranceTier.from_value(_value("insurance_tier")),
        marginal_tax_rate_percent=_number("marginal_tax_rate_percent"),
        vehicle=vehicle,
    )


def estimate_price_by_brand(make: str, build_year: int, on: Optional[date] = None) -> int:
    """Rough price estimate per brand when no catalog price is known."""
    current_year = (on or date.today()).year
    base_price = BRAND_PRICE_ESTIMATES.get((make or "").upper(), DEFAULT_BRAND_PRICE)
    age = current_year - build_year
    depreciation = max(BRAND_MIN_VALUE_FACTOR, 1 - age * BRAND_DEPRECIATION_PER_YEAR)
    return round(base_price * depreciation)


def estimate_vehicle_price(vehicle: VehicleFacts, on: Optional[date] = None) -> int:
    """
    Estimate today's purchase price: catalog price (or brand estimate)
    minus 12% per year, with a floor of 20%.
    """
    today = on or date.today()
    age = vehicle.age_years(today) or 0
    base_price = vehicle.catalog_price or 0
    if not base_price:
        build_year = vehicle.first_registration_date.year if vehicle.first_registration_date else today.year
        base_price = estimate_price_by_brand(vehicle.make, build_year, today)

    age_factor = max(VEHICLE_MIN_VALUE_FACTOR, 1 - age * VEHICLE_DEPRECIATION_PER_YEAR)
    return round(base_price * age_factor)


def default_fuel_price(fuel_category: FuelCategory) -> float:
    """Default price per liter or kWh for a fuel category."""
    return DEFAULT_FUEL_PRICES.get(fuel_category.value, DEFAULT_FUEL_PRICE)


def suggest_inputs(vehicle: VehicleFacts, on: Optional[date] = None) -> dict:
    """Pre-fill purchase price, residual value and fuel price from vehicle facts."""
    price = estimate_vehicle_price(vehicle, on)
    return {
        "purchasePrice": price,
        "residualValue": round(price * RESIDUAL_VALUE_FACTOR),
        "fuelUnitPrice": default_fuel_price(vehicle.fuel_category),
    }


# =============================================================================
# PRESENTATIE (enige plek waar afgerond wordt)
# =============================================================================


def breakdown_to_dict(breakdown: CostBreakdown) -> dict:
    """Convert CostBreakdown to dictionary for JSON serialization."""
    fixed = breakdown.fixed
    variable = breakdown.variable
    relief = breakdown.tax_relief

    d = {
        "fixedCosts": {
            "depreciation": round(fixed.depreciation),
            "insurance": round(fixed.insurance),
            "roadTax": round(fixed.road_tax),
            "inspection": round(fixed.inspection),
            "maintenance": round(fixed.maintenance),
            "total": round(fixed.total),
        },
        "variableCosts": {
            "fuel": round(variable.fuel),
            "tires": round(variable.tires),
            "repairs": round(variable.repairs),
            "total": round(variable.total),
            "consumption": variable.consumption,
            "consumptionSource": variable.consumption_source,
        },
        "taxRelief": {
            "businessDistance": round(relief.business_distance),
            "privateDistance": round(breakdown.private_distance),
            "perKmRate": relief.per_km_rate,
            "mileageAllowance": round(relief.mileage_allowance),
            "marginalRatePercent": relief.marginal_rate_percent,
            "relief": round(relief.relief),
        },
        "totals": {
            "grossAnnual": round(breakdown.gross_annual),
            "grossMonthly": round(breakdown.gross_monthly),
            "netAnnual": round(breakdown.net_annual),
            "netMonthly": round(breakdown.net_monthly),
            "netPerKm": round(breakdown.net_per_km, 2),
        },
        "calculationDate": breakdown.calculated_on.isoformat(),
        "method": breakdown.method,
    }
    if breakdown.bijtelling is not None:
        d["bijtelling"] = bijtelling_to_dict(breakdown.bijtelling)
    return d


def format_breakdown(breakdown: CostBreakdown) -> str:
    """Dutch text summary of a calculation."""
    fixed = breakdown.fixed
    variable = breakdown.variable
    relief = breakdown.tax_relief
    km_rate = f"€{relief.per_km_rate:.2f}".replace(".", ",")
    per_km = f"€{breakdown.net_per_km:.2f}".replace(".", ",")

    lines = [
        f"VASTE KOSTEN ({format_currency(fixed.total)}/jaar):",
        f"  Afschrijving:      {format_currency(fixed.depreciation)}",
        f"  Verzekering:       {format_currency(fixed.insurance)}",
        f"  MRB:               {format_currency(fixed.road_tax)}",
        f"  APK:               {format_currency(fixed.inspection)}",
        f"  Onderhoud:         {format_currency(fixed.maintenance)}",
        "",
        f"VARIABELE KOSTEN ({format_currency(variable.total)}/jaar):",
        f"  Brandstof:         {format_currency(variable.fuel)}",
        f"  Banden:            {format_currency(variable.tires)}",
        f"  Reparaties:        {format_currency(variable.repairs)}",
        "",
        "FISCAAL VOORDEEL:",
        f"  Zakelijke km:      {relief.business_distance:,.0f} km".replace(",", "."),
        f"  Kilometervergoeding ({km_rate}/km): {format_currency(relief.mileage_allowance)}",
        f"  Belastingvoordeel ({relief.marginal_rate_percent:g}%): -{format_currency(relief.relief)}",
        "  ─────────────────────",
        f"  BRUTO PER MAAND:   {format_currency(breakdown.gross_monthly)}",
        f"  NETTO PER MAAND:   {format_currency(breakdown.net_monthly)}",
        f"  NETTO PER KM:      {per_km}",
    ]
    if breakdown.bijtelling is not None:
        lines += [
            "",
            f"BIJTELLING (ter info): {describe_percentage(breakdown.bijtelling.percentage)}",
            f"  {breakdown.bijtelling.rule_applied}",
        ]
    return "\n".join(lines)
