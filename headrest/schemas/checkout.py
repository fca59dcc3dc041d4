from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CheckoutSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: str | None = Field(default=None, alias="priceId")
    plan_id: str | None = Field(default=None, alias="planId")
    billing_period: str | None = Field(default=None, alias="billingPeriod")
    success_url: str = Field(default="", alias="successUrl")
    cancel_url: str = Field(default="", alias="cancelUrl")


class CheckoutSessionResponse(BaseModel):
    url: str


class SessionSummary(BaseModel):
    id: str
    customer_email: str | None = None
    customer_id: str | None = None
    subscription_id: str | None = None
    payment_status: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
