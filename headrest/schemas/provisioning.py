from __future__ import annotations

from typing import Any

from pydantic import BaseModel

REQUIRED_FIELDS = (
    "firstname",
    "lastname",
    "email",
    "passwd",
    "plan_tier",
    "stripe_customer_id",
    "stripe_subscription_id",
)


class ProvisioningRequest(BaseModel):
    # Fields stay optional so the endpoint can answer with its own messages.
    firstname: str | None = None
    lastname: str | None = None
    email: str | None = None
    passwd: str | None = None
    plan_tier: str | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    is_trial: bool | None = None

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not str(getattr(self, name) or "").strip()]

    def organization_payload(self) -> dict[str, Any]:
        """Body expected by the backend's POST /api/v1/organizations."""
        return {
            "email": self.email,
            "password": self.passwd,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "plan_tier": self.plan_tier,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
        }


class ProvisioningResponse(BaseModel):
    success: bool = True
    message: str = "Account created successfully"
    organization: dict[str, Any]
    autoLogin: bool = False
    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] | None = None
