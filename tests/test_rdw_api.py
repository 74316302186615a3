import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

import rdw_api
from conftest import TESLA_BASIC, TESLA_FUEL
from errors import InvalidInputError, LookupNotFoundError
from rdw_api import VehicleCache, assess_data_quality, combine_vehicle_data, get_best_consumption_value
from vehicle import FuelCategory


def test_lookup_combines_datasets(rdw_client):
    client, requests = rdw_client({
        "basic": [TESLA_BASIC],
        "fuel": [TESLA_FUEL],
        "consumption": [],
        "recalls": [{"kenteken": "AB123C", "referentiecode_rdw": "R1"}],
    })

    vehicle = asyncio.run(client.get_vehicle_facts("ab-123-c"))

    assert len(requests) == 4
    assert all(r.url.params["kenteken"] == "AB123C" for r in requests)
    assert vehicle.plate_id == "AB123C"
    assert vehicle.make == "TESLA"
    assert vehicle.first_registration_date == date(2021, 3, 15)
    assert vehicle.catalog_price == 38000
    assert vehicle.weight_kg == 1761
    assert vehicle.fuel_category is FuelCategory.ELECTRIC
    # 150 Wh/km
    assert vehicle.combined_consumption == pytest.approx(15.0)
    assert vehicle.consumption_source == "WLTP"
    assert vehicle.recall_count == 1
    assert vehicle.data_quality == 71


def test_cached_lookup_makes_no_requests(rdw_client, capsys):
    client, requests = rdw_client({"basic": [TESLA_BASIC], "fuel": [TESLA_FUEL]})

    first = asyncio.run(client.get_vehicle_facts("AB123C"))
    second = asyncio.run(client.get_vehicle_facts("AB-12-3C"))

    assert first is second
    assert len(requests) == 4
    assert "[RDW] Uit cache: AB123C" in capsys.readouterr().out


def test_cache_entries_expire():
    now = [1000.0]
    cache = VehicleCache(ttl_seconds=300, clock=lambda: now[0])
    cache.set("AB123C", "vehicle")

    now[0] += 299
    assert cache.get("AB123C") == "vehicle"

    now[0] += 1
    assert cache.get("AB123C") is None
    assert len(cache) == 0


def test_set_prunes_expired_entries_of_other_plates():
    now = [0.0]
    cache = VehicleCache(ttl_seconds=300, clock=lambda: now[0])
    cache.set("AA11BB", "first")
    now[0] += 200
    cache.set("CC22DD", "second")
    now[0] += 150
    cache.set("EE33FF", "third")

    assert len(cache) == 2
    assert cache.get("AA11BB") is None
    assert cache.get("CC22DD") == "second"


def test_rate_limit_waits_between_lookups(rdw_client, monkeypatch):
    now = [100.0]
    delays = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, result=None):
        if delay > 0:
            delays.append(delay)
            now[0] += delay
        return await real_sleep(0, result)

    monkeypatch.setattr(rdw_api, "time", SimpleNamespace(monotonic=lambda: now[0]))
    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    client, requests = rdw_client({"basic": [TESLA_BASIC]}, rate_limit_delay=0.5)

    asyncio.run(client.get_vehicle_facts("AB123C"))
    assert delays == []

    now[0] += 0.2
    asyncio.run(client.get_vehicle_facts("XY987Z"))
    assert delays == [pytest.approx(0.3)]

    now[0] += 1.0
    asyncio.run(client.get_vehicle_facts("GH456J"))
    assert len(delays) == 1
    assert len(requests) == 12


def test_cached_lookup_skips_rate_limit(rdw_client, monkeypatch):
    delays = []

    async def fake_sleep(delay, result=None):
        delays.append(delay)

    monkeypatch.setattr(rdw_api, "time", SimpleNamespace(monotonic=lambda: 100.0))
    client, _ = rdw_client({"basic": [TESLA_BASIC]}, rate_limit_delay=0.5)
    asyncio.run(client.get_vehicle_facts("AB123C"))

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    asyncio.run(client.get_vehicle_facts("AB123C"))

    assert delays == []


def test_expired_cache_triggers_new_lookup(rdw_client):
    now = [0.0]
    client, requests = rdw_client(
        {"basic": [TESLA_BASIC]},
        cache=VehicleCache(clock=lambda: now[0]),
    )

    asyncio.run(client.get_vehicle_facts("AB123C"))
    now[0] += 301
    asyncio.run(client.get_vehicle_facts("AB123C"))

    assert len(requests) == 8


def test_failed_optional_dataset_is_absorbed(rdw_client, capsys):
    client, _ = rdw_client({"basic": [TESLA_BASIC], "fuel": [TESLA_FUEL], "recalls": 500})

    vehicle = asyncio.run(client.get_vehicle_facts("AB123C"))

    assert vehicle.recall_count == 0
    assert vehicle.fuel_category is FuelCategory.ELECTRIC
    assert "Dataset recalls niet beschikbaar" in capsys.readouterr().out


def test_unknown_kenteken_raises_not_found(rdw_client):
    client, _ = rdw_client({"basic": []})

    with pytest.raises(LookupNotFoundError):
        asyncio.run(client.get_vehicle_facts("ZZ999Z"))


def test_unreachable_registration_dataset_raises_not_found(rdw_client):
    client, _ = rdw_client({"basic": 503, "fuel": [TESLA_FUEL]})

    with pytest.raises(LookupNotFoundError):
        asyncio.run(client.get_vehicle_facts("AB123C"))


def test_invalid_kenteken_is_rejected_without_requests(rdw_client):
    client, requests = rdw_client({})

    with pytest.raises(InvalidInputError):
        asyncio.run(client.get_vehicle_facts("ABC"))
    assert requests == []


def test_app_token_is_sent(rdw_client):
    client, requests = rdw_client({"basic": [TESLA_BASIC]}, app_token="secret-token")

    asyncio.run(client.get_vehicle_facts("AB123C"))

    assert all(r.headers["X-App-Token"] == "secret-token" for r in requests)


def test_plugin_hybrid_from_fuel_rows_prefers_nedc():
    basic = {
        "merk": "VOLVO",
        "handelsbenaming": "XC60",
        "datum_eerste_toelating": "20190601",
        "catalogusprijs": "65000",
        "massa_ledig_voertuig": "2000",
    }
    fuel_rows = [
        {"brandstof_volgnummer": "2", "brandstof_omschrijving": "Elektriciteit"},
        {
            "brandstof_volgnummer": "1",
            "brandstof_omschrijving": "Benzine",
            "brandstofverbruik_gecombineerd": "2.4",
            "co2_uitstoot_gecombineerd": "55",
            "klasse_hybride_elektrisch_voertuig": "OVC-HEV",
        },
    ]
    nedc = {"brandstofverbruik_gecombineerd": "2.1", "co2_uitstoot_gecombineerd": "49"}

    vehicle = combine_vehicle_data(basic, fuel_rows, nedc, None, "XX999X")

    assert vehicle.fuel_description == "Benzine/Elektriciteit"
    assert vehicle.fuel_category is FuelCategory.PLUGIN_HYBRID
    assert vehicle.combined_consumption == pytest.approx(2.1)
    assert vehicle.consumption_source == "NEDC"
    assert vehicle.co2_gkm == 49
    assert vehicle.recall_count == 0
    assert vehicle.data_quality == 100


def test_get_best_consumption_value():
    assert get_best_consumption_value("5.9", "5.2") == (5.2, "NEDC")
    assert get_best_consumption_value("5.9", None) == (5.9, "WLTP")
    assert get_best_consumption_value("", "0") == (None, "")


def test_assess_data_quality():
    assert assess_data_quality(None, None, None) == 0
    assert assess_data_quality({"merk": "KIA"}, {"brandstofverbruik_gecombineerd": "5"}, None) == 29
