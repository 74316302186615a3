import sys
from pathlib import Path

import httpx
import pytest

# Ensure modal-app on sys.path for module resolution
MODAL_APP = Path(__file__).resolve().parents[1] / "modal-app"
if str(MODAL_APP) not in sys.path:
    sys.path.insert(0, str(MODAL_APP))

from constants import RDW_DATASETS  # noqa: E402
from rdw_api import RDWClient, VehicleCache  # noqa: E402

TESLA_BASIC = {
    "kenteken": "AB123C",
    "merk": "TESLA",
    "handelsbenaming": "MODEL 3",
    "datum_eerste_toelating": "20210315",
    "catalogusprijs": "38000",
    "massa_ledig_voertuig": "1761",
}

TESLA_FUEL = {
    "kenteken": "AB123C",
    "brandstof_volgnummer": "1",
    "brandstof_omschrijving": "Elektriciteit",
    "elektrisch_verbruik_enkel_elektrisch_wh": "150",
}


@pytest.fixture
def rdw_client():
    """
    Factory for an RDWClient backed by httpx.MockTransport.

    responses maps dataset name (basic, fuel, consumption, recalls) to a list
    of rows or to an int HTTP status. Missing datasets answer [].
    Returns (client, requests) where requests collects every request made.
    """
    def _make(responses: dict, **kwargs):
        requests = []
        by_id = {dataset_id: name for name, dataset_id in RDW_DATASETS.items()}

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            dataset_id = request.url.path.rsplit("/", 1)[-1].removesuffix(".json")
            answer = responses.get(by_id.get(dataset_id), [])
            if isinstance(answer, int):
                return httpx.Response(answer, json={"error": "boom"})
            return httpx.Response(200, json=answer)

        kwargs.setdefault("rate_limit_delay", 0)
        kwargs.setdefault("cache", VehicleCache())
        client = RDWClient(transport=httpx.MockTransport(handler), **kwargs)
        return client, requests

    return _make
