"""
Utility functions for the AutoKosten calculator.
"""

import calendar
import re
from datetime import date, datetime
from typing import Optional, Union


def add_months(start: date, months: int) -> date:
    """
    Add calendar months to a date, clamping to the last day of the month.

    E.g., 2021-03-15 + 61 -> 2026-04-15
          2020-01-31 + 1  -> 2020-02-29
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(start: date, years: int) -> date:
    """Add whole years to a date; 29 February becomes 28 February in non-leap years."""
    return add_months(start, years * 12)


def calculate_vehicle_age_years(first_registration_date: date, on: Optional[date] = None) -> int:
    """Age as RDW and the cost formulas count it: calendar year minus DET year."""
    now = on or date.today()
    return max(0, now.year - first_registration_date.year)


def parse_rdw_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an RDW date field.

    RDW returns "20210315" in the registration dataset; the API also accepts
    ISO strings ("2021-03-15", "2021-03-15T00:00:00.000").

    Returns:
        The parsed date, or None for empty/unparseable input
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(text[:10] if "-" in text else text[:8], fmt).date()
        except ValueError:
            continue
    return None


def parse_number(value, integer: bool = False) -> Optional[Union[int, float]]:
    """
    Parse a numeric RDW field. Empty strings and zero mean "not reported".
    """
    if value is None:
        return None
    text = str(value).strip().replace(",", ".")
    if text in ("", "0", "0.0", "0.00"):
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if number <= 0:
        return None
    return int(number) if integer else number


def normalize_kenteken(kenteken: str) -> str:
    """Normalize a Dutch license plate: uppercase, letters and digits only."""
    return re.sub(r"[^A-Z0-9]", "", str(kenteken or "").upper())


def format_kenteken(kenteken: str) -> str:
    """Format a 6-character plate for display as XX-XX-XX."""
    normalized = normalize_kenteken(kenteken)
    if len(normalized) == 6:
        return f"{normalized[0:2]}-{normalized[2:4]}-{normalized[4:6]}"
    return normalized


def is_valid_kenteken(kenteken: str) -> bool:
    """Dutch plates are 6 alphanumeric characters once dashes are removed."""
    return bool(re.fullmatch(r"[A-Z0-9]{6}", normalize_kenteken(kenteken)))


def normalize_fuel_type(fuel_type: Optional[str]) -> str:
    """
    Normalize RDW/listing fuel descriptions to standard values.

    IMPORTANT: Hybrid/PHEV must be checked BEFORE petrol/electric because
    combined fuel strings like "Benzine/Elektriciteit" contain both terms.
    Hydrogen and CNG are checked before LPG because "aardgas" contains "gas".

    Args:
        fuel_type: Raw fuel description

    Returns:
        'petrol', 'diesel', 'electric', 'hydrogen', 'lpg', 'cng',
        'hybrid', 'plugin_hybrid' or 'unknown'
    """
    fuel_lower = (fuel_type or "").lower().strip()

    if fuel_lower in ("", "onbekend", "unknown"):
        return "unknown"

    # 1. Exact RDW terms
    exact = {
        "benzine": "petrol",
        "euro 95 benzine": "petrol",
        "super benzine": "petrol",
        "diesel": "diesel",
        "gasolie": "diesel",
        "elektriciteit": "electric",
        "elektrisch": "electric",
        "electric": "electric",
        "waterstof": "hydrogen",
        "hydrogen": "hydrogen",
        "lpg": "lpg",
        "autogas": "lpg",
        "cng": "cng",
        "aardgas": "cng",
    }
    if fuel_lower in exact:
        return exact[fuel_lower]

    # 2. Plug-in hybrids, then regular hybrids
    plugin_terms = ["plug-in", "plugin", "phev", "ovc-hev"]
    if any(term in fuel_lower for term in plugin_terms):
        return "plugin_hybrid"
    hybrid_terms = ["hybride", "hybrid", "novc-hev"]
    if any(term in fuel_lower for term in hybrid_terms):
        return "hybrid"

    electric_terms = ["elektr", "electric", "battery", "accu", "stroom"]
    combustion_terms = ["benzin", "diesel", "petrol", "gasoline", "gasolie"]
    has_electric = any(t in fuel_lower for t in electric_terms) or re.search(r"\b(b?ev)\b", fuel_lower)
    has_combustion = any(t in fuel_lower for t in combustion_terms)
    if has_electric and has_combustion:
        return "hybrid"

    # 3. Hydrogen before electric ("waterstof elektrisch")
    if any(t in fuel_lower for t in ["waterstof", "hydrogen", "h2"]):
        return "hydrogen"

    if has_electric:
        return "electric"

    if any(t in fuel_lower for t in ["diesel", "gasolie"]):
        return "diesel"

    if any(t in fuel_lower for t in ["benzine", "benzin", "euro 95", "super", "petrol", "gasoline"]):
        return "petrol"

    # 4. Gas: CNG before LPG
    if any(t in fuel_lower for t in ["cng", "aardgas", "methaan"]):
        return "cng"
    if any(t in fuel_lower for t in ["lpg", "autogas", "gas"]):
        return "lpg"

    return "unknown"


def format_currency(amount: float, currency: str = "EUR") -> str:
    """
    Format a number as currency.

    Args:
        amount: The amount to format
        currency: Currency code (default: EUR)

    Returns:
        Formatted currency string, e.g. "€9.323"
    """
    if currency == "EUR":
        return f"€{amount:,.0f}".replace(",", ".")
    return f"{amount:,.0f} {currency}"
