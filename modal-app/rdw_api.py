"""
RDW Open Data lookup: kenteken -> VehicleFacts.
Queries the registration, fuel, NEDC consumption and recall datasets in
parallel and merges them. Free API, no key required (an app token raises
the rate limit).
"""

import asyncio
import time
from typing import Callable, Optional

import httpx

from constants import (
    RDW_BASE_URL, RDW_CACHE_TTL_SECONDS, RDW_DATASETS, RDW_RATE_LIMIT_DELAY,
    RDW_TIMEOUT,
)
from errors import InvalidInputError, LookupNotFoundError, UpstreamUnavailableError
from utils import is_valid_kenteken, normalize_kenteken, parse_number, parse_rdw_date
from vehicle import VehicleFacts, resolve_fuel_category


class VehicleCache:
    """
    Short-lived lookup cache keyed by normalized kenteken.

    Args:
        ttl_seconds: Entry lifetime (default 5 minutes)
        clock: Monotonic time source, replaceable in tests
    """

    def __init__(self, ttl_seconds: float = RDW_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict = {}

    def get(self, kenteken: str) -> Optional[VehicleFacts]:
        entry = self._entries.get(kenteken)
        if entry is None:
            return None
        stored_at, vehicle = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[kenteken]
            return None
        return vehicle

    def set(self, kenteken: str, vehicle: VehicleFacts) -> None:
        now = self._clock()
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for k in expired:
            del self._entries[k]
        self._entries[kenteken] = (now, vehicle)

    def expire(self, kenteken: str) -> None:
        self._entries.pop(kenteken, None)

    def clear(self) -> None:
        self._entries.clear()
        print("[RDW] Cache geleegd")

    def __len__(self) -> int:
        return len(self._entries)


def get_best_consumption_value(wltp_value, nedc_value, integer: bool = False) -> tuple:
    """
    Pick the consumption (or CO2) figure used for Dutch fiscal purposes.

    NEDC takes priority over WLTP when both exist.

    Returns:
        Tuple of (value, source) where source is "NEDC", "WLTP" or ""
    """
    nedc = parse_number(nedc_value, integer=integer)
    if nedc is not None:
        return nedc, "NEDC"

    wltp = parse_number(wltp_value, integer=integer)
    if wltp is not None:
        return wltp, "WLTP"

    return None, ""


def assess_data_quality(basic: Optional[dict], fuel: Optional[dict], consumption: Optional[dict]) -> int:
    """
    Score (0-100) how complete the looked-up data is.

    Base fields (make, DET, weight) and fiscal fields (catalog price, fuel)
    count one point each; NEDC consumption counts two, WLTP one.
    """
    basic = basic or {}
    score = 0
    max_score = 7

    for field in ("merk", "datum_eerste_toelating", "massa_ledig_voertuig", "catalogusprijs"):
        if basic.get(field):
            score += 1
    if basic.get("brandstof_omschrijving") or (fuel or {}).get("brandstof_omschrijving"):
        score += 1

    if (consumption or {}).get("brandstofverbruik_gecombineerd"):
        score += 2
    elif (fuel or {}).get("brandstofverbruik_gecombineerd"):
        score += 1

    return round(score / max_score * 100)


def _sort_fuel_rows(fuel_rows: Optional[list]) -> list:
    def _order(row: dict) -> int:
        try:
            return int(row.get("brandstof_volgnummer", 1))
        except (TypeError, ValueError):
            return 1

    return sorted(fuel_rows or [], key=_order)


def combine_vehicle_data(
    basic: dict,
    fuel_rows: Optional[list],
    consumption: Optional[dict],
    recalls: Optional[list],
    kenteken: str,
) -> VehicleFacts:
    """
    Merge the RDW datasets into one VehicleFacts record.

    Args:
        basic: Registration record (required)
        fuel_rows: Fuel dataset rows, one per fuel for hybrids (optional)
        consumption: NEDC consumption record (optional)
        recalls: Recall records (optional)
        kenteken: Normalized kenteken

    Returns:
        VehicleFacts
    """
    rows = _sort_fuel_rows(fuel_rows)
    primary_fuel = rows[0] if rows else {}
    consumption = consumption or {}

    fuel_description = basic.get("brandstof_omschrijving") or "/".join(
        row.get("brandstof_omschrijving", "") for row in rows if row.get("brandstof_omschrijving")
    )
    hybrid_class = next(
        (row["klasse_hybride_elektrisch_voertuig"] for row in rows
         if row.get("klasse_hybride_elektrisch_voertuig")),
        "",
    )

    make = basic.get("merk") or "Onbekend"
    model = basic.get("handelsbenaming") or ""

    combined, source = get_best_consumption_value(
        primary_fuel.get("brandstofverbruik_gecombineerd"),
        consumption.get("brandstofverbruik_gecombineerd"),
    )
    if combined is None:
        fuel_category = resolve_fuel_category(fuel_description, make, model, hybrid_class)
        if fuel_category.is_zero_emission:
            # Wh/km -> kWh/100 km
            wh_per_km = next(
                (parse_number(row.get("elektrisch_verbruik_enkel_elektrisch_wh")) for row in rows
                 if parse_number(row.get("elektrisch_verbruik_enkel_elektrisch_wh"))),
                None,
            )
            if wh_per_km:
                combined, source = wh_per_km / 10, "WLTP"

    city, _ = get_best_consumption_value(
        primary_fuel.get("brandstofverbruik_stad"), consumption.get("brandstofverbruik_stad")
    )
    highway, _ = get_best_consumption_value(
        primary_fuel.get("brandstofverbruik_buiten"), consumption.get("brandstofverbruik_buiten")
    )
    co2, _ = get_best_consumption_value(
        primary_fuel.get("co2_uitstoot_gecombineerd"),
        consumption.get("co2_uitstoot_gecombineerd"),
        integer=True,
    )

    return VehicleFacts(
        plate_id=kenteken,
        make=make,
        model=model,
        first_registration_date=parse_rdw_date(basic.get("datum_eerste_toelating")),
        catalog_price=parse_number(basic.get("catalogusprijs"), integer=True),
        weight_kg=parse_number(basic.get("massa_ledig_voertuig"), integer=True),
        fuel_description=fuel_description,
        hybrid_class=hybrid_class,
        combined_consumption=combined,
        consumption_city=city,
        consumption_highway=highway,
        consumption_source=source,
        co2_gkm=co2,
        recall_count=len(recalls) if recalls else 0,
        data_quality=assess_data_quality(basic, primary_fuel, consumption),
    )


class RDWClient:
    """
    RDW lookup client with rate limiting and a short-lived cache.

    Args:
        base_url: RDW Open Data base URL
        app_token: Optional Socrata app token
        cache: VehicleCache (a private 5-minute cache by default)
        rate_limit_delay: Minimum seconds between request batches
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str = RDW_BASE_URL,
        app_token: Optional[str] = None,
        cache: Optional[VehicleCache] = None,
        rate_limit_delay: float = RDW_RATE_LIMIT_DELAY,
        timeout: float = RDW_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.app_token = app_token
        self.cache = cache if cache is not None else VehicleCache()
        self.rate_limit_delay = rate_limit_delay
        self.timeout = timeout
        self._transport = transport
        self._last_request_time = 0.0
        self._rate_lock = asyncio.Lock()

    async def _respect_rate_limit(self) -> None:
        async with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay - elapsed)
            self._last_request_time = time.monotonic()

    async def _fetch_dataset(self, client: httpx.AsyncClient, name: str, kenteken: str) -> list:
        """
        Fetch all rows of one dataset for a kenteken.

        Raises:
            UpstreamUnavailableError: HTTP error, timeout or non-list payload
        """
        url = f"{self.base_url}/resource/{RDW_DATASETS[name]}.json"
        try:
            response = await client.get(url, params={"kenteken": kenteken})
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(name, str(e) or type(e).__name__) from e

        if response.status_code != 200:
            raise UpstreamUnavailableError(name, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(name, "invalid JSON") from e
        if not isinstance(data, list):
            raise UpstreamUnavailableError(name, "unexpected payload")
        return data

    async def get_vehicle_facts(self, kenteken: str) -> VehicleFacts:
        """
        Look up a kenteken.

        Returns:
            VehicleFacts for the vehicle

        Raises:
            InvalidInputError: kenteken is not 6 letters/digits
            LookupNotFoundError: no registration record (or the registration
                dataset itself is unreachable)
        """
        if not kenteken or not is_valid_kenteken(kenteken):
            raise InvalidInputError(f"Ongeldig kenteken: {kenteken!r}")

        normalized = normalize_kenteken(kenteken)

        cached = self.cache.get(normalized)
        if cached is not None:
            print(f"[RDW] Uit cache: {normalized}")
            return cached

        await self._respect_rate_limit()

        print(f"[RDW] Lookup voor: {normalized}")
        headers = {"Accept": "application/json"}
        if self.app_token:
            headers["X-App-Token"] = self.app_token

        names = list(RDW_DATASETS)
        async with httpx.AsyncClient(
            headers=headers, timeout=self.timeout, transport=self._transport
        ) as client:
            results = await asyncio.gather(
                *(self._fetch_dataset(client, name, normalized) for name in names),
                return_exceptions=True,
            )

        datasets = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                print(f"[RDW] Dataset {name} niet beschikbaar: {result}")
                datasets[name] = None
            elif isinstance(result, BaseException):
                raise result
            else:
                datasets[name] = result

        basic_rows = datasets["basic"]
        if not basic_rows:
            raise LookupNotFoundError(
                f"Kenteken {normalized} niet gevonden in de RDW database. "
                f"Vul de gegevens handmatig in."
            )

        consumption_rows = datasets["consumption"]
        vehicle = combine_vehicle_data(
            basic_rows[0],
            datasets["fuel"],
            consumption_rows[0] if consumption_rows else None,
            datasets["recalls"],
            normalized,
        )

        self.cache.set(normalized, vehicle)
        print(f"[RDW] Gevonden: {vehicle.make} {vehicle.model} ({vehicle.fuel_category.value})")
        return vehicle

    def clear_cache(self) -> None:
        self.cache.clear()
