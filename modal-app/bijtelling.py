"""
Bijtelling (benefit-in-kind) calculator for Dutch passenger cars.
Applies the rate schedule of the DET year, the 60-month lock and the
youngtimer/oldtimer age rules.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from constants import (
    BIJTELLING_RULES, PROTECTION_PERIOD_MONTHS, YOUNGTIMER_MARKET_VALUE_FACTOR,
    YOUNGTIMER_RATE,
)
from errors import InvalidVehicleDataError
from utils import add_months, format_currency
from vehicle import Classification, FuelCategory, VehicleFacts, classify_age


@dataclass(frozen=True)
class ThresholdPair:
    """Split schedule: low_rate up to threshold, high_rate over the remainder."""
    low_rate: float
    high_rate: float
    threshold: int


Percentage = Union[float, ThresholdPair]


@dataclass(frozen=True)
class BijtellingResult:
    """Result of a bijtelling calculation."""
    percentage: Percentage
    effective_percentage: float
    rule_applied: str
    gross_annual_benefit: float
    protection_end_date: Optional[date]
    classification: Classification
    fuel_category: FuelCategory
    basis: float = 0  # Catalogus- of dagwaarde waarover de bijtelling loopt
    regime_label: str = ""
    protected: bool = False  # Binnen de 60-maandentermijn

    @property
    def gross_monthly_benefit(self) -> float:
        return self.gross_annual_benefit / 12


def _validate_rules(rules: list) -> None:
    """
    Check the rule table once at startup: contiguous year ranges without
    gaps or overlap, open at both ends, and complete threshold rows.
    """
    if not rules:
        raise ValueError("Bijtelling rule table is empty")
    if rules[0]["year_from"] is not None or rules[-1]["year_to"] is not None:
        raise ValueError("Bijtelling rule table must be open-ended on both sides")

    for previous, current in zip(rules, rules[1:]):
        if previous["year_to"] is None or current["year_from"] is None:
            raise ValueError(f"Open range in the middle of the table at {current['label']}")
        if current["year_from"] != previous["year_to"] + 1:
            raise ValueError(
                f"Bijtelling rule table not contiguous between "
                f"{previous['label']} and {current['label']}"
            )

    for rule in rules:
        if rule["year_from"] is not None and rule["year_to"] is not None:
            if rule["year_from"] > rule["year_to"]:
                raise ValueError(f"Inverted year range in {rule['label']}")
        if rule["electric_cap"] is not None and rule["electric_rate_above_cap"] is None:
            raise ValueError(f"Threshold row {rule['label']} lacks a rate above the cap")


_validate_rules(BIJTELLING_RULES)


def get_rule_for_year(year: int) -> dict:
    """
    Get the bijtelling regime for a calendar year.

    Years before the first row fall in the first row, years after the last
    row in the last row.
    """
    for rule in BIJTELLING_RULES:
        lower_ok = rule["year_from"] is None or year >= rule["year_from"]
        upper_ok = rule["year_to"] is None or year <= rule["year_to"]
        if lower_ok and upper_ok:
            return rule

    # Unreachable with a validated table
    raise ValueError(f"No bijtelling rule for {year}")


def rule_percentage(rule: dict, fuel_category: FuelCategory) -> Percentage:
    """Select the percentage (flat or threshold pair) for a fuel category."""
    if fuel_category is FuelCategory.HYDROGEN and rule["hydrogen_rate"] is not None:
        return rule["hydrogen_rate"]

    if fuel_category.is_zero_emission:
        if rule["electric_cap"] is None:
            return rule["electric_rate"]
        return ThresholdPair(
            low_rate=rule["electric_rate"],
            high_rate=rule["electric_rate_above_cap"],
            threshold=rule["electric_cap"],
        )

    return rule["standard_rate"]


def blended_rate(percentage: Percentage, catalog_price: Optional[float]) -> float:
    """
    Effective percentage over the full catalog price.

    For threshold pairs:
        (min(price, threshold) * low + max(0, price - threshold) * high) / price

    Without a catalog price the rate on the first euro (low_rate) is reported.
    """
    if not isinstance(percentage, ThresholdPair):
        return float(percentage)
    if not catalog_price:
        return float(percentage.low_rate)
    return _split_amount(percentage, catalog_price) / catalog_price


def _split_amount(pair: ThresholdPair, value: float) -> float:
    """Percentage-weighted amount (in % units) for a threshold pair."""
    low_part = min(value, pair.threshold) * pair.low_rate
    high_part = max(0, value - pair.threshold) * pair.high_rate
    return low_part + high_part


def annual_benefit(percentage: Percentage, basis: float) -> float:
    """Annual bijtelling amount for a catalog (or market) value."""
    if not basis:
        return 0.0
    if isinstance(percentage, ThresholdPair):
        return _split_amount(percentage, basis) / 100
    return basis * percentage / 100


def describe_percentage(percentage: Percentage) -> str:
    """Human-readable schedule, e.g. "16% tot €30.000, 22% daarboven"."""
    if isinstance(percentage, ThresholdPair):
        return (
            f"{percentage.low_rate:g}% tot {format_currency(percentage.threshold)}, "
            f"{percentage.high_rate:g}% daarboven"
        )
    return f"{percentage:g}%"


def _coerce_fuel_category(fuel_category: Union[FuelCategory, str, None]) -> FuelCategory:
    if isinstance(fuel_category, FuelCategory):
        return fuel_category
    try:
        return FuelCategory(str(fuel_category or "").lower())
    except ValueError:
        return FuelCategory.UNKNOWN


def calculate_bijtelling(
    first_registration_date: Optional[date],
    fuel_category: Union[FuelCategory, str, None],
    catalog_price: Optional[int] = None,
    on: Optional[date] = None,
    market_value: Optional[float] = None,
) -> BijtellingResult:
    """
    Calculate the bijtelling percentage and its yearly effect.

    Decision order:
    1. Older than 30 years: oldtimer, 0%
    2. 15 to 30 years: youngtimer, 35% over the market value (not locked)
    3. Within DET + 61 months: the schedule of the DET year
    4. After that: the schedule of the current year

    Args:
        first_registration_date: Datum eerste toelating (DET)
        fuel_category: FuelCategory or its string value
        catalog_price: Catalogusprijs in euros (None: percentage only)
        on: Evaluation date (default: today)
        market_value: Dagwaarde for youngtimers (default: catalog price * 0.6)

    Returns:
        BijtellingResult with schedule, effective rate and annual amount

    Raises:
        InvalidVehicleDataError: DET missing or in the future, negative price
    """
    now = on or date.today()

    if first_registration_date is None:
        raise InvalidVehicleDataError(
            "Datum eerste toelating ontbreekt. Vul de voertuiggegevens handmatig in."
        )
    if first_registration_date > now:
        raise InvalidVehicleDataError(
            f"Datum eerste toelating {first_registration_date.isoformat()} ligt in de toekomst."
        )
    if catalog_price is not None and catalog_price < 0:
        raise InvalidVehicleDataError("Catalogusprijs kan niet negatief zijn.")
    if market_value is not None and market_value < 0:
        raise InvalidVehicleDataError("Dagwaarde kan niet negatief zijn.")

    fuel = _coerce_fuel_category(fuel_category)
    if fuel is FuelCategory.UNKNOWN:
        print(
            f"[BIJTELLING] Onbekende brandstofcategorie {fuel_category!r}, "
            f"niet-elektrisch tarief toegepast"
        )

    classification = classify_age(first_registration_date, now)

    if classification is Classification.OLDTIMER:
        return BijtellingResult(
            percentage=0,
            effective_percentage=0.0,
            rule_applied="Oldtimer (ouder dan 30 jaar): geen bijtelling",
            gross_annual_benefit=0.0,
            protection_end_date=None,
            classification=classification,
            fuel_category=fuel,
            basis=0,
            regime_label="oldtimer",
        )

    if classification is Classification.YOUNGTIMER:
        if market_value is not None:
            basis = float(market_value)
        elif catalog_price:
            basis = catalog_price * YOUNGTIMER_MARKET_VALUE_FACTOR
        else:
            basis = 0.0
        return BijtellingResult(
            percentage=YOUNGTIMER_RATE,
            effective_percentage=float(YOUNGTIMER_RATE),
            rule_applied=(
                f"Youngtimer (15-30 jaar): {YOUNGTIMER_RATE}% over de dagwaarde, "
                f"jaarlijks opnieuw bepaald"
            ),
            gross_annual_benefit=annual_benefit(YOUNGTIMER_RATE, basis),
            protection_end_date=None,
            classification=classification,
            fuel_category=fuel,
            basis=basis,
            regime_label="youngtimer",
        )

    protection_end_date = add_months(first_registration_date, PROTECTION_PERIOD_MONTHS)
    protected = now < protection_end_date
    det_year = first_registration_date.year

    if protected:
        rule = get_rule_for_year(det_year)
        lock_text = f"vast tot {protection_end_date.isoformat()}"
    else:
        rule = get_rule_for_year(now.year)
        lock_text = (
            f"60-maandentermijn verlopen op {protection_end_date.isoformat()}, "
            f"regime {now.year}"
        )

    percentage = rule_percentage(rule, fuel)
    basis = float(catalog_price or 0)

    return BijtellingResult(
        percentage=percentage,
        effective_percentage=blended_rate(percentage, catalog_price),
        rule_applied=f"DET {det_year}, regime {rule['label']}: {describe_percentage(percentage)} ({lock_text})",
        gross_annual_benefit=annual_benefit(percentage, basis),
        protection_end_date=protection_end_date,
        classification=classification,
        fuel_category=fuel,
        basis=basis,
        regime_label=rule["label"],
        protected=protected,
    )


def calculate_vehicle_bijtelling(
    vehicle: VehicleFacts,
    on: Optional[date] = None,
    market_value: Optional[float] = None,
) -> BijtellingResult:
    """Calculate bijtelling from looked-up vehicle facts."""
    return calculate_bijtelling(
        vehicle.first_registration_date,
        vehicle.fuel_category,
        vehicle.catalog_price,
        on=on,
        market_value=market_value,
    )


def bijtelling_to_dict(result: BijtellingResult) -> dict:
    """Convert BijtellingResult to dictionary for JSON serialization."""
    if isinstance(result.percentage, ThresholdPair):
        percentage = {
            "lowRate": result.percentage.low_rate,
            "highRate": result.percentage.high_rate,
            "threshold": result.percentage.threshold,
        }
    else:
        percentage = result.percentage

    return {
        "percentage": percentage,
        "effectivePercentage": round(result.effective_percentage, 2),
        "ruleApplied": result.rule_applied,
        "regimeLabel": result.regime_label,
        "grossAnnualBenefit": round(result.gross_annual_benefit),
        "grossMonthlyBenefit": round(result.gross_monthly_benefit),
        "basis": round(result.basis),
        "protectionEndDate": (
            result.protection_end_date.isoformat() if result.protection_end_date else None
        ),
        "protected": result.protected,
        "classification": result.classification.value,
        "fuelCategory": result.fuel_category.value,
    }
