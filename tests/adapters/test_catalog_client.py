from __future__ import annotations

import json

import httpx
import pytest

from shipdb.adapters.catalog_client import CatalogClient, CatalogServiceError
from shipdb.adapters.http_resilience import ResilientClient
from shipdb.config import MissingConfigurationError, ResilienceConfig, RetryPolicy
from shipdb.domain.queries import Adjustables
from shipdb.domain.ships import Ship, SpeedKey

BASE_URL = "http://catalog.test"


def _client(requests: list[httpx.Request], response: httpx.Response) -> CatalogClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return response

    config = ResilienceConfig(name="test", base_url=BASE_URL, retry=RetryPolicy(total=0))
    return CatalogClient(
        resilience=config,
        client_factory=lambda cfg: ResilientClient(cfg, transport=httpx.MockTransport(handler)),
    )


def test_get_sends_speed_as_query_parameters() -> None:
    requests: list[httpx.Request] = []
    client = _client(requests, httpx.Response(200, text="#C (1, 0)/4, population 9\n"))

    text = client.get("int", SpeedKey(1, 0, 4), Adjustables.NO)

    assert text.startswith("#C (1, 0)/4")
    (request,) = requests
    assert request.method == "GET"
    assert request.url.path == "/get"
    assert dict(request.url.params) == {
        "type": "int",
        "dx": "1",
        "dy": "0",
        "period": "4",
        "adjustables": "no",
    }


def test_submit_posts_catalog_lines() -> None:
    requests: list[httpx.Request] = []
    client = _client(requests, httpx.Response(200, text="No changes made\n"))
    ships = [Ship(9, "B3/S23", 1, 0, 4, "3o!"), Ship(5, "B3/S23", 1, 1, 4, "2o!")]

    assert client.submit("int", ships) == "No changes made\n"

    (request,) = requests
    assert request.method == "POST"
    assert request.url.params["type"] == "int"
    assert request.content.decode() == "9, B3/S23, 1, 0, 4, 3o!\n5, B3/S23, 1, 1, 4, 2o!\n"


def test_counts_returns_text() -> None:
    requests: list[httpx.Request] = []
    client = _client(requests, httpx.Response(200, text="int:\n0 total\n"))

    assert client.counts("int") == "int:\n0 total\n"
    assert requests[0].url.path == "/counts"


def test_drain_parses_change_entries() -> None:
    payload = [
        {"type": "int", "status": "new", "speed": "c/4o", "line": "9, B3/S23, 1, 0, 4, 3o!"},
        {"type": "int", "status": "improved", "speed": "c/4d", "line": "5, B3/S23, 1, 1, 4, 2o!"},
    ]
    client = _client([], httpx.Response(200, content=json.dumps(payload).encode()))

    entries = client.drain()

    assert [(entry.status, entry.speed) for entry in entries] == [
        ("new", "c/4o"),
        ("improved", "c/4d"),
    ]


def test_error_status_raises_with_server_message() -> None:
    client = _client([], httpx.Response(429, text="Too many requests, wait 10 seconds\n"))

    with pytest.raises(CatalogServiceError) as excinfo:
        client.counts("int")

    assert excinfo.value.status_code == 429
    assert str(excinfo.value) == (
        "GET /counts failed (429): Too many requests, wait 10 seconds"
    )


def test_default_config_requires_server_url() -> None:
    with pytest.raises(MissingConfigurationError, match="SHIPDB_SERVER_URL"):
        CatalogClient()


def test_default_config_reads_server_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHIPDB_SERVER_URL", BASE_URL)

    client = CatalogClient()

    assert client.resilience.base_url == BASE_URL
    assert client.resilience.ratelimit is not None
    assert client.resilience.retry.allowed_methods == frozenset({"GET", "HEAD"})
