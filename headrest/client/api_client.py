"""HTTP client for the signup pages: the browser's side of the billing API."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    status_code: int
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> str | None:
        return self.data.get("error")


class HeadrestClient:
    """Thin async wrapper around the /api/stripe endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> ApiResponse:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.request(method, path, **kwargs)
        try:
            data = response.json() if response.content else {}
        except ValueError:
            logger.error("Invalid JSON from %s %s (status %s)", method, path, response.status_code)
            data = {"error": f"Invalid response from server (Status: {response.status_code})"}
        if not isinstance(data, dict):
            data = {"data": data}
        return ApiResponse(status_code=response.status_code, data=data)

    async def list_plans(self) -> ApiResponse:
        return await self._request("GET", "/api/stripe/plans")

    async def create_checkout_session(
        self,
        price_id: str | None,
        plan_id: str,
        billing_period: str,
        success_url: str,
        cancel_url: str,
    ) -> ApiResponse:
        return await self._request(
            "POST",
            "/api/stripe/create-checkout-session",
            json={
                "priceId": price_id,
                "planId": plan_id,
                "billingPeriod": billing_period,
                "successUrl": success_url,
                "cancelUrl": cancel_url,
            },
        )

    async def get_session(self, session_id: str) -> ApiResponse:
        return await self._request("GET", "/api/stripe/get-session", params={"session_id": session_id})

    async def get_handoff(self, session_id: str) -> ApiResponse:
        return await self._request("GET", f"/api/stripe/handoff/{session_id}")

    async def create_customer_account(self, payload: dict[str, Any]) -> ApiResponse:
        return await self._request("POST", "/api/stripe/create-customer-account", json=payload)
