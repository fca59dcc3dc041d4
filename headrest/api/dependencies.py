"""Shared API service dependencies."""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from headrest.config import Settings, get_settings
from headrest.database import get_db
from headrest.integrations.organizations import OrganizationsClient
from headrest.services.checkout_service import CheckoutService
from headrest.services.provisioning_service import ProvisioningService
from headrest.services.webhook_service import StripeWebhookService


def get_checkout_service(settings: Settings = Depends(get_settings)) -> CheckoutService:
    return CheckoutService(settings)


def get_webhook_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> StripeWebhookService:
    return StripeWebhookService(db, settings)


def get_organizations_client(settings: Settings = Depends(get_settings)) -> OrganizationsClient:
    return OrganizationsClient(settings)


def get_provisioning_service(
    organizations: OrganizationsClient = Depends(get_organizations_client),
) -> ProvisioningService:
    return ProvisioningService(organizations)


__all__ = [
    "get_checkout_service",
    "get_organizations_client",
    "get_provisioning_service",
    "get_settings",
    "get_webhook_service",
]
