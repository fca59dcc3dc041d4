"""Account provisioning: create the organization tied to a paid subscription."""
from __future__ import annotations

import logging
from typing import Any

from headrest.core.exceptions import ConflictError, IntegrationError, ValidationError
from headrest.core.validation import is_valid_email, is_valid_password
from headrest.integrations.organizations import OrganizationsClient
from headrest.schemas.provisioning import ProvisioningRequest, ProvisioningResponse
from headrest.services.plan_catalog import is_valid_plan_tier

logger = logging.getLogger(__name__)


class UpstreamError(IntegrationError):
    """Non-conflict failure reported by the organizations API."""

    def __init__(self, status_code: int, details: str):
        super().__init__(f"Backend API error: {status_code} - {details}")
        self.status_code = status_code
        self.details = details


def validate_provisioning_request(request: ProvisioningRequest) -> None:
    if request.missing_fields():
        raise ValidationError("Missing required fields")
    if not is_valid_email(request.email):
        logger.error("Email validation failed for provisioning request")
        raise ValidationError("Invalid email format")
    if not is_valid_password(request.passwd):
        raise ValidationError("Password must be at least 6 characters")
    if not is_valid_plan_tier(request.plan_tier):
        raise ValidationError("Invalid plan tier")


class ProvisioningService:
    def __init__(self, organizations: OrganizationsClient):
        self.organizations = organizations

    async def create_account(self, request: ProvisioningRequest) -> ProvisioningResponse:
        """Validate and forward one provisioning request.

        Raises ValidationError, ConfigurationError, ConflictError,
        UpstreamError or IntegrationError; the route maps each to a status.
        """
        validate_provisioning_request(request)
        logger.info(
            "Creating organization plan=%s customer=%s subscription=%s",
            request.plan_tier,
            request.stripe_customer_id,
            request.stripe_subscription_id,
        )

        result = await self.organizations.create_organization(request.organization_payload())
        if not result.ok:
            if result.status_code == 409 and "already exists" in result.message:
                raise ConflictError(
                    "A user with this email address already exists. Please try logging in instead."
                )
            raise UpstreamError(status_code=result.status_code, details=result.message)

        organization: dict[str, Any] = result.body
        logger.info("Organization created successfully: %s", organization.get("id"))
        if organization.get("access_token"):
            return ProvisioningResponse(
                organization=organization,
                access_token=organization["access_token"],
                refresh_token=organization.get("refresh_token"),
                user=organization.get("user"),
                autoLogin=True,
            )
        return ProvisioningResponse(organization=organization, autoLogin=False)
