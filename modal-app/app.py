"""
AutoKosten Calculator - Modal App

Main entry point for the Modal deployment.
Provides webhook endpoints for the cost of ownership (auto privé kopen,
zakelijk gebruiken), bijtelling and kenteken lookups.
"""

import modal
from datetime import datetime

# =============================================================================
# MODAL APP SETUP
# =============================================================================

app = modal.App("autokosten")

# Define the container image with all dependencies and local modules
image = (
    modal.Image.debian_slim(python_version="3.11")
    .pip_install("httpx", "fastapi[standard]")
    .add_local_file("constants.py", "/root/constants.py")
    .add_local_file("errors.py", "/root/errors.py")
    .add_local_file("utils.py", "/root/utils.py")
    .add_local_file("vehicle.py", "/root/vehicle.py")
    .add_local_file("bijtelling.py", "/root/bijtelling.py")
    .add_local_file("cost_calculator.py", "/root/cost_calculator.py")
    .add_local_file("rdw_api.py", "/root/rdw_api.py")
    .add_local_file("comparison.py", "/root/comparison.py")
    .add_local_file("api.py", "/root/api.py")
)

# =============================================================================
# SECRETS
# =============================================================================
# RDW Open Data works without a token. For a higher rate limit:
#   modal secret create rdw-secret RDW_APP_TOKEN=your_socrata_app_token

rdw_secret = modal.Secret.from_name("rdw-secret", required_keys=[])


# One RDW client (and lookup cache) per container
_resolver = None
_comparisons = None


def get_resolver():
    """RDW client for this container, with the optional app token."""
    global _resolver
    if _resolver is None:
        import os
        from rdw_api import RDWClient

        _resolver = RDWClient(app_token=os.environ.get("RDW_APP_TOKEN") or None)
    return _resolver


def get_comparisons():
    """Saved comparisons for this container."""
    global _comparisons
    if _comparisons is None:
        from comparison import ComparisonList

        _comparisons = ComparisonList()
    return _comparisons


# =============================================================================
# MODAL FUNCTIONS
# =============================================================================


@app.function(
    image=image,
    secrets=[rdw_secret],
    timeout=60,
)
async def calculate_costs_fn(body: dict) -> dict:
    """
    Calculate the full cost breakdown, looking up the kenteken when given.
    Returns the response envelope as a dictionary.
    """
    from api import handle_calculate

    return await handle_calculate(body, resolver=get_resolver())


# =============================================================================
# WEB ENDPOINTS
# =============================================================================


@app.function(
    image=image,
    secrets=[rdw_secret],
    timeout=60,
)
@modal.fastapi_endpoint(method="POST", docs=True)
async def calculate(body: dict) -> dict:
    """
    POST /calculate

    Calculate the annual and monthly cost of a privately bought car used
    for business.

    Request body:
    {
        "kenteken": "AB-123-C",          (optional)
        "purchasePrice": 25000,
        "residualValue": 10000,
        "ownershipYears": 5,
        "annualDistance": 15000,
        "businessSharePercent": 60,
        "fuelUnitPrice": 1.85,
        "insuranceTier": "allrisk",
        "marginalTaxRatePercent": 37
    }

    Returns:
    - Fixed and variable costs per year
    - Tax relief on the €0,23/km allowance
    - Gross and net totals per year, month and km
    - Bijtelling (for information) when vehicle data is known
    """
    from api import handle_calculate

    return await handle_calculate(body, resolver=get_resolver())


@app.function(
    image=image,
    timeout=30,
)
@modal.fastapi_endpoint(method="POST", docs=True)
def bijtelling(body: dict) -> dict:
    """
    POST /bijtelling

    Calculate the bijtelling percentage only.

    Request body:
    {
        "firstRegistrationDate": "2021-03-15",
        "fuelType": "Elektriciteit",
        "catalogPrice": 38000
    }
    """
    from api import handle_bijtelling

    return handle_bijtelling(body)


@app.function(
    image=image,
    secrets=[rdw_secret],
    timeout=30,
)
@modal.fastapi_endpoint(method="POST", docs=True)
async def kenteken(body: dict) -> dict:
    """
    POST /kenteken

    Look up a Dutch license plate at RDW Open Data.

    Request body:
    {
        "kenteken": "AB-123-C"
    }
    """
    from api import error_response, handle_lookup

    plate = body.get("kenteken")
    if not plate:
        return error_response("VALIDATION_ERROR", "kenteken is verplicht")

    return await handle_lookup(plate, get_resolver())


@app.function(
    image=image,
    secrets=[rdw_secret],
    timeout=60,
)
@modal.fastapi_endpoint(method="POST", docs=True)
async def compare(body: dict) -> dict:
    """
    POST /compare

    Save calculations and compare them side by side.

    Request body:
    {
        "action": "add",                 (add, list, remove or clear)
        "kenteken": "AB-123-C",
        "purchasePrice": 25000,
        ...                              (same fields as /calculate)
    }

    Returns the saved calculations, cheapest first, with the best option
    and the monthly price difference.
    """
    from api import handle_compare

    return await handle_compare(body, get_comparisons(), resolver=get_resolver())


@app.function(
    image=image,
    timeout=10,
)
@modal.fastapi_endpoint(method="GET", docs=True)
def health() -> dict:
    """
    GET /health

    Health check endpoint.
    """
    return {
        "status": "healthy",
        "service": "autokosten",
        "version": "1.0.0",
        "timestamp": datetime.now().isoformat(),
    }


# =============================================================================
# LOCAL TESTING
# =============================================================================


@app.local_entrypoint()
def main(
    kenteken: str = "",
    purchase_price: float = 25000,
    residual_value: float = 10000,
    annual_distance: float = 15000,
    business_share: float = 60,
):
    """
    Local entrypoint for testing.

    Usage:
        modal run app.py --kenteken "AB-123-C" --purchase-price 18000
    """
    body = {
        "purchasePrice": purchase_price,
        "residualValue": residual_value,
        "annualDistance": annual_distance,
        "businessSharePercent": business_share,
    }
    if kenteken:
        body["kenteken"] = kenteken

    print(f"Berekenen: {kenteken or 'zonder kenteken'}")
    print("-" * 60)

    result = calculate_costs_fn.remote(body)

    if not result["success"]:
        print(f"Error: {result['error']}")
        return

    for warning in result.get("warnings", []):
        print(f"Let op: {warning}")

    data = result["data"]
    vehicle = data.get("vehicle")

    if vehicle:
        print(f"\n{vehicle['make']} {vehicle['model']} ({vehicle['kenteken']})")
        print(f"Brandstof: {vehicle['fuelLabel']}, leeftijd: {vehicle['ageYears']} jaar")
    print()
    print(data["summary"])
