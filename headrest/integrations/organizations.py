from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from headrest.config import Settings
from headrest.core.exceptions import ConfigurationError, IntegrationError

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def message(self) -> str:
        return str(self.body.get("message") or self.body.get("detail") or self.text)


class OrganizationsClient:
    """Client for the PrestaShop proxy backend's organizations API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = settings.api_url
        self.timeout = settings.http_timeout_seconds
        self.transport = transport
        self.enabled = bool(self.base_url)

    def _require_base_url(self) -> str:
        if not self.enabled:
            logger.error("API_URL not configured")
            raise ConfigurationError("API URL not configured", missing=["API_URL"])
        return self.base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._require_base_url(),
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def _parse(response: httpx.Response) -> BackendResponse:
        body: dict[str, Any] = {}
        if response.text:
            try:
                parsed = response.json()
            except ValueError:
                parsed = {"message": response.text}
            body = parsed if isinstance(parsed, dict) else {"data": parsed}
        return BackendResponse(status_code=response.status_code, body=body, text=response.text)

    async def create_organization(self, payload: dict[str, Any]) -> BackendResponse:
        async with self._client() as client:
            try:
                response = await client.post("/api/v1/organizations", json=payload)
            except httpx.HTTPError as exc:
                logger.error("Organizations API request failed: %s", exc)
                raise IntegrationError(str(exc)) from exc

        logger.info("Organizations API response status: %s", response.status_code)
        result = self._parse(response)
        if not result.ok:
            logger.error("Organizations API error: %s", result.text)
        return result

    async def get_me(self, access_token: str) -> BackendResponse:
        async with self._client() as client:
            try:
                response = await client.get(
                    "/api/v1/organizations/me",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            except httpx.HTTPError as exc:
                raise IntegrationError(str(exc)) from exc
        return self._parse(response)
