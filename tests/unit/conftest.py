"""Unit test fixtures. No database or network access."""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from fakes import FakeStore

from federation_etl.config import RemoteSettings


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def settings():
    return RemoteSettings(
        auth_url="https://auth.example.test/token",
        api_url="https://api.example.test",
        client_id="client",
        client_secret="secret",
        search_url="https://search.example.test/api/search/public",
        timeout=5.0,
    )


@pytest.fixture()
def mock_client() -> Callable[[Callable[[httpx.Request], Any]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by *handler*."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make
