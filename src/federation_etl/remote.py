"""federation_etl.remote

HTTP access to the federation platform.

  - TokenProvider: OAuth client-credentials exchange, one POST per call.
    No caching; every stage asks for a fresh token.
  - RemoteFetcher: collection GETs (bearer-authenticated), per-athlete
    result history and public search partitions (unauthenticated).

Both take an httpx.AsyncClient built by the caller, so tests can plug in an
httpx.MockTransport. No retries: every failure is raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from federation_etl.config import RemoteSettings
from federation_etl.shared import AuthenticationError, FetchError

log = logging.getLogger(__name__)

ORGANIZATIONS_ENDPOINT = "/api/organization/all"
ATHLETES_ENDPOINT = "/api/athlete/all"
CATEGORIES_ENDPOINT = "/api/category/all"

_JSON_HEADERS = {"Accept": "application/json"}


def build_client(settings: RemoteSettings, **kwargs: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.timeout,
        headers={"User-Agent": "federation-etl/0.1"},
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Token provider
# ---------------------------------------------------------------------------

@dataclass
class TokenProvider:
    client: httpx.AsyncClient
    settings: RemoteSettings

    async def get_token(self) -> str:
        auth_url = self.settings.require_auth_url()
        form = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "scope": "openid",
            "grant_type": "client_credentials",
        }
        # unset credentials are left out of the form entirely
        form = {k: v for k, v in form.items() if v is not None}
        log.debug("Getting token from %s", auth_url)
        try:
            resp = await self.client.post(auth_url, data=form)
            resp.raise_for_status()
            token = resp.json().get("access_token")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            log.error("An error occurred while getting the token: %s", exc)
            raise AuthenticationError(f"token exchange failed: {exc}") from exc
        if not token:
            log.error("Token endpoint answered without an access_token")
            raise AuthenticationError("token response has no access_token")
        return token


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------

@dataclass
class RemoteFetcher:
    client: httpx.AsyncClient
    settings: RemoteSettings

    async def fetch_collection(self, endpoint: str, token: str) -> list[dict[str, Any]]:
        url = self.settings.require_api_url() + endpoint
        body = await self._get_json(url, {"Authorization": f"Bearer {token}"})
        if not isinstance(body, list):
            raise FetchError(f"GET {url}: expected a JSON array, got {type(body).__name__}")
        log.info("Fetched %d records from %s", len(body), endpoint)
        return body

    async def fetch_athlete_results(self, live_id: Any) -> dict[str, Any]:
        url = f"{self.settings.require_api_url()}/api/athlete/{live_id}"
        body = await self._get_json(url)
        if not isinstance(body, dict):
            raise FetchError(f"GET {url}: expected a JSON object, got {type(body).__name__}")
        return body

    async def fetch_search_partition(self, prefix: str) -> dict[str, Any]:
        url = f"{self.settings.search_url.rstrip('/')}/{prefix}"
        log.info("fetching %s", prefix)
        body = await self._get_json(url)
        if not isinstance(body, dict):
            raise FetchError(f"GET {url}: expected a JSON object, got {type(body).__name__}")
        return body

    async def _get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        combined = dict(_JSON_HEADERS)
        if headers:
            combined.update(headers)
        try:
            resp = await self.client.get(url, headers=combined)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"GET {url} returned status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"GET {url} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"GET {url}: response is not valid JSON") from exc
