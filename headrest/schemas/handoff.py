from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

HOUR_MS = 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class PaymentHandoff(BaseModel):
    """Payment details kept between checkout completion and account creation.

    Serialized with camelCase keys, the same shape the signup pages have
    always written to browser storage.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    email: str | None = None
    plan_id: str | None = Field(default=None, alias="planId")
    billing_period: Literal["monthly", "annual"] = Field(default="monthly", alias="billingPeriod")
    stripe_customer_id: str | None = Field(default=None, alias="stripeCustomerId")
    subscription_id: str | None = Field(default=None, alias="subscriptionId")
    is_trial: bool = Field(default=False, alias="isTrial")
    timestamp: int = Field(default_factory=now_ms)

    def is_expired(self, now: int, ttl_hours: int) -> bool:
        return now - self.timestamp >= ttl_hours * HOUR_MS

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
