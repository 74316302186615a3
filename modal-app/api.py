"""
Request handlers behind the web endpoints.

Each handler takes a parsed JSON body and returns the response envelope:
    {"success": True, "data": {...}, "warnings": [...], "meta": {...}}
    {"success": False, "error": {"type": ..., "message": ...}}
Engine errors are raised by the calculators and converted here.
"""

import math
from dataclasses import asdict
from datetime import date, datetime
from typing import Optional

from bijtelling import bijtelling_to_dict, calculate_bijtelling, calculate_vehicle_bijtelling
from comparison import ComparisonList, comparison_summary
from cost_calculator import (
    breakdown_to_dict, calculate_costs, cost_inputs_from_dict, format_breakdown, suggest_inputs,
)
from errors import AutoKostenError, InvalidInputError, InvalidVehicleDataError, LookupNotFoundError
from rdw_api import RDWClient
from utils import parse_rdw_date
from vehicle import VehicleFacts, resolve_fuel_category, vehicle_from_dict, vehicle_to_dict


def error_response(error_type: str, message: str) -> dict:
    return {
        "success": False,
        "error": {
            "type": error_type,
            "message": message,
        },
    }


def _error_from_exception(error: AutoKostenError) -> dict:
    return error_response(error.error_type, str(error))


def _meta(start_time: datetime) -> dict:
    return {
        "calculatedAt": datetime.now().isoformat(),
        "processingTimeMs": int((datetime.now() - start_time).total_seconds() * 1000),
    }


def _text(body: dict, *keys: str) -> str:
    for key in keys:
        value = body.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


def _optional_number(body: dict, *keys: str) -> Optional[float]:
    for key in keys:
        value = body.get(key)
        if value in (None, ""):
            continue
        if isinstance(value, bool):
            raise InvalidInputError(f"{key} moet een getal zijn, niet {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError(f"{key} moet een getal zijn, niet {value!r}") from None
        if not math.isfinite(number):
            raise InvalidInputError(f"{key} moet een eindig getal zijn, niet {value!r}")
        return number
    return None


async def _run_calculation(
    body: dict,
    resolver: Optional[RDWClient],
    on: Optional[date],
    warnings: list,
) -> tuple:
    """
    Resolve the vehicle and run the cost calculation for one request body.

    Returns:
        Tuple of (CostBreakdown, VehicleFacts or None)

    Raises:
        AutoKostenError: invalid input or unusable vehicle data
    """
    vehicle: Optional[VehicleFacts] = None

    if isinstance(body.get("vehicle"), dict):
        try:
            vehicle = vehicle_from_dict(body["vehicle"])
        except InvalidInputError as e:
            raise InvalidInputError(f"Ongeldige voertuiggegevens: {e}") from e
    elif body.get("kenteken") and resolver is not None:
        try:
            vehicle = await resolver.get_vehicle_facts(body["kenteken"])
        except LookupNotFoundError as e:
            warnings.append(f"{e} Berekening zonder voertuiggegevens.")

    inputs = cost_inputs_from_dict(body, vehicle)
    return calculate_costs(inputs, on=on), vehicle


async def handle_calculate(
    body: dict,
    resolver: Optional[RDWClient] = None,
    on: Optional[date] = None,
) -> dict:
    """
    POST /calculate

    Request body: the cost parameters (purchasePrice, residualValue,
    ownershipYears, annualDistance, businessSharePercent, fuelUnitPrice,
    insuranceTier, marginalTaxRatePercent), plus optionally either a
    "kenteken" to look up or a "vehicle" object entered by hand.

    A kenteken that RDW does not know is not an error: the calculation runs
    without vehicle data and a warning is returned.
    """
    start_time = datetime.now()
    warnings = []

    try:
        breakdown, vehicle = await _run_calculation(body, resolver, on, warnings)
    except AutoKostenError as e:
        return _error_from_exception(e)

    data = breakdown_to_dict(breakdown)
    data["summary"] = format_breakdown(breakdown)
    if vehicle is not None:
        data["vehicle"] = vehicle_to_dict(vehicle, on=breakdown.calculated_on)

    return {
        "success": True,
        "data": data,
        "warnings": warnings,
        "meta": _meta(start_time),
    }


async def handle_compare(
    body: dict,
    comparisons: ComparisonList,
    resolver: Optional[RDWClient] = None,
    on: Optional[date] = None,
) -> dict:
    """
    POST /compare

    Request body: {"action": "add" | "list" | "remove" | "clear", ...}

    "add" (the default) takes the same fields as /calculate and stores the
    result; "remove" needs an "id". Every action returns the stored
    entries, cheapest first, with the comparison summary.
    """
    start_time = datetime.now()
    warnings = []
    action = str(body.get("action") or "add").strip().lower()

    if action == "add":
        try:
            breakdown, vehicle = await _run_calculation(body, resolver, on, warnings)
        except AutoKostenError as e:
            return _error_from_exception(e)
        comparisons.add(breakdown, vehicle)
    elif action == "remove":
        entry_id = _text(body, "id")
        if not comparisons.remove(entry_id):
            return error_response("NOT_FOUND", f"Vergelijking {entry_id!r} niet gevonden")
    elif action == "clear":
        comparisons.clear()
    elif action != "list":
        return error_response("VALIDATION_ERROR", f"Onbekende actie: {action!r}")

    return {
        "success": True,
        "data": {
            "comparisons": [asdict(entry) for entry in comparisons.sorted_by_net_monthly()],
            "summary": comparison_summary(comparisons),
        },
        "warnings": warnings,
        "meta": _meta(start_time),
    }


def handle_bijtelling(body: dict, on: Optional[date] = None) -> dict:
    """
    POST /bijtelling

    Request body:
    {
        "firstRegistrationDate": "2021-03-15",
        "fuelType": "Elektriciteit",
        "catalogPrice": 38000,
        "make": "TESLA",          (optional, for brand overrides)
        "model": "MODEL 3",       (optional)
        "marketValue": 12000      (optional, youngtimers)
    }
    """
    start_time = datetime.now()

    raw_date = body.get("firstRegistrationDate") or body.get("first_registration_date")
    if not raw_date:
        return error_response("VALIDATION_ERROR", "firstRegistrationDate is verplicht")
    registration_date = parse_rdw_date(raw_date)
    if registration_date is None:
        return error_response("VALIDATION_ERROR", f"Ongeldige datum eerste toelating: {raw_date!r}")

    fuel_category = resolve_fuel_category(
        _text(body, "fuelType", "fuelCategory", "fuel_type"),
        _text(body, "make"),
        _text(body, "model"),
        _text(body, "hybridClass"),
    )

    try:
        catalog_price = _optional_number(body, "catalogPrice", "catalog_price")
        market_value = _optional_number(body, "marketValue", "market_value")
        result = calculate_bijtelling(
            registration_date,
            fuel_category,
            catalog_price,
            on=on,
            market_value=market_value,
        )
    except AutoKostenError as e:
        return _error_from_exception(e)

    return {
        "success": True,
        "data": bijtelling_to_dict(result),
        "meta": _meta(start_time),
    }


async def handle_lookup(kenteken: str, resolver: RDWClient, on: Optional[date] = None) -> dict:
    """
    POST /kenteken

    Look up a kenteken and return the vehicle facts, the bijtelling for
    today and suggested form inputs.
    """
    start_time = datetime.now()
    warnings = []

    try:
        vehicle = await resolver.get_vehicle_facts(kenteken)
    except AutoKostenError as e:
        return _error_from_exception(e)

    bijtelling = None
    try:
        bijtelling = bijtelling_to_dict(calculate_vehicle_bijtelling(vehicle, on=on))
    except InvalidVehicleDataError as e:
        warnings.append(str(e))

    return {
        "success": True,
        "data": {
            "vehicle": vehicle_to_dict(vehicle, on=on),
            "bijtelling": bijtelling,
            "suggestedInputs": suggest_inputs(vehicle, on=on),
        },
        "warnings": warnings,
        "meta": _meta(start_time),
    }
