"""Unit tests for the seed stage sequence (fake store, mocked HTTP)."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from federation_etl.config import RemoteSettings, RunConfig
from federation_etl.remote import RemoteFetcher, TokenProvider
from federation_etl.seed import run_seed
from federation_etl.shared import AuthenticationError, ConfigurationError, RunCounters

from fakes import FakeStore

ORGS = [{"id": 1, "name": "Club A"}, {"id": 1, "name": "Club A (dup)"}, {"id": 2, "name": "Club B"}]
ATHLETES = [
    {"id": 10, "firstname": "Ann", "lastname": "Dua", "liveId": "L10", "organizationId": 1},
    {"id": 11, "firstname": "Bo", "lastname": "Eyck", "liveId": "L11", "organizationId": 2},
]
CATEGORIES = [{"id": 100, "name": "Senior", "abbr": "SEN"}]
RESULTS = {
    "L10": [{"id": 500, "event": {"id": 70}, "eventType": {"id": 80}, "categoryId": 100}],
    "L11": [{"id": 501, "event": {"id": 70}, "eventType": {"id": 81}},
            {"id": 502, "category": {"id": 100}}],
}


class Remote:
    """Minimal stand-in for the federation API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.tokens_issued = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST":
            self.tokens_issued += 1
            return httpx.Response(200, json={"access_token": f"tok-{self.tokens_issued}"})
        if path.endswith("/all") and request.headers.get("authorization", "").startswith("Bearer "):
            return httpx.Response(200, json={
                "/api/organization/all": ORGS,
                "/api/athlete/all": ATHLETES,
                "/api/category/all": CATEGORIES,
            }[path])
        if path.startswith("/api/athlete/"):
            return httpx.Response(200, json={"results": RESULTS[path.rsplit("/", 1)[-1]]})
        return httpx.Response(404)


def _seed(store, settings, remote, run_config, counters):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as client:
            await run_seed(
                store, TokenProvider(client, settings), RemoteFetcher(client, settings),
                run_config, counters,
            )
    asyncio.run(go())


class TestRunSeed:
    def test_full_sequence(self, store, settings):
        counters = RunCounters()
        _seed(store, settings, Remote(), RunConfig(), counters)

        assert set(store.rows("organization")) == {1, 2}
        assert store.rows("organization")[1]["name"] == "Club A"
        assert set(store.rows("athlete")) == {10, 11}
        assert set(store.rows("category")) == {100}
        assert set(store.rows("result")) == {500, 501, 502}
        assert store.rows("result")[502]["category_id"] == 100
        assert counters.stage("organizations").fetched == 3
        assert counters.stage("organizations").inserted == 2
        assert counters.results_inserted == 3

    def test_stages_run_in_fixed_order(self, store, settings):
        _seed(store, settings, Remote(), RunConfig(), RunCounters())
        tables = []
        for table, _ in store.calls:
            if not tables or tables[-1] != table:
                tables.append(table)
        assert tables[:3] == ["organization", "athlete", "category"]
        assert set(tables[3:]) == {"event", "event_type", "result"}

    def test_each_collection_stage_gets_a_fresh_token(self, store, settings):
        remote = Remote()
        _seed(store, settings, remote, RunConfig(), RunCounters())
        assert remote.tokens_issued == 3

    def test_second_run_inserts_nothing(self, store, settings):
        _seed(store, settings, Remote(), RunConfig(), RunCounters())
        sizes = {t: len(rows) for t, rows in store.tables.items()}
        again = RunCounters()
        _seed(store, settings, Remote(), RunConfig(), again)
        assert {t: len(rows) for t, rows in store.tables.items()} == sizes
        assert all(c.inserted == 0 for c in again.stages.values())

    def test_disabled_stages_are_skipped(self, settings):
        store = FakeStore(athletes=[{"id": 10, "live_id": "L10"}])
        config = RunConfig()
        config.only_stages(["results"])
        remote = Remote()
        _seed(store, settings, remote, config, RunCounters())
        assert remote.tokens_issued == 0
        assert set(store.rows("result")) == {500}
        assert "organization" not in store.tables

    def test_results_athlete_limit(self, settings):
        store = FakeStore(athletes=[{"id": 10, "live_id": "L10"}, {"id": 11, "live_id": "L11"}])
        config = RunConfig(results_athlete_limit=1)
        config.only_stages(["results"])
        remote = Remote()
        _seed(store, settings, remote, config, RunCounters())
        fetched = [r.url.path for r in remote.requests]
        assert fetched == ["/api/athlete/L10"]

    def test_missing_auth_url_aborts_before_any_request(self, store):
        remote = Remote()
        settings = RemoteSettings(api_url="https://api.example.test")
        with pytest.raises(ConfigurationError):
            _seed(store, settings, remote, RunConfig(), RunCounters())
        assert remote.requests == []
        assert store.calls == []

    def test_auth_failure_aborts_run(self, store, settings):
        def remote(request):
            return httpx.Response(403)

        with pytest.raises(AuthenticationError):
            _seed(store, settings, remote, RunConfig(), RunCounters())
        assert store.calls == []
