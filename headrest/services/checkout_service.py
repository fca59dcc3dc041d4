"""Stripe Checkout session creation and lookup.

Prices come from the plan catalog configuration; the trial policy is applied
here so the hosted checkout page and the resulting subscription agree.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import stripe

from headrest.config import Settings
from headrest.core.exceptions import ConfigurationError, IntegrationError, ValidationError
from headrest.schemas.checkout import CheckoutSessionRequest, SessionSummary
from headrest.services.plan_catalog import has_trial, trial_end

logger = logging.getLogger(__name__)

SESSION_ID_TEMPLATE = "{CHECKOUT_SESSION_ID}"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _object_id(value: Any) -> str | None:
    """Collapse an expanded Stripe object (or a bare id) to its id."""
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None) or (value.get("id") if hasattr(value, "get") else None)


def build_success_url(success_url: str, trial: bool) -> str:
    separator = "&" if "?" in success_url else "?"
    return f"{success_url}{separator}session_id={SESSION_ID_TEMPLATE}&trial={'true' if trial else 'false'}"


class CheckoutService:
    """Stripe checkout operations."""

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = now_utc):
        self.settings = settings
        self.clock = clock
        self.api_key = settings.stripe_secret_key.get_secret_value().strip()

    def _request_options(self) -> dict[str, Any]:
        if not self.api_key:
            logger.error("STRIPE_SECRET_KEY not configured")
            raise ConfigurationError(
                "STRIPE_SECRET_KEY environment variable not set",
                missing=["STRIPE_SECRET_KEY"],
            )
        options: dict[str, Any] = {"api_key": self.api_key}
        if self.settings.stripe_api_version:
            options["stripe_version"] = self.settings.stripe_api_version
        return options

    def build_session_params(self, request: CheckoutSessionRequest) -> dict[str, Any]:
        trial = has_trial(request.plan_id, request.billing_period)
        metadata = {
            "planId": request.plan_id or "",
            "billingPeriod": request.billing_period or "",
            "hasTrial": "true" if trial else "false",
        }
        subscription_data: dict[str, Any] = {"metadata": dict(metadata)}
        if trial:
            subscription_data["trial_end"] = trial_end(self.clock(), self.settings.trial_days)

        return {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": request.price_id, "quantity": 1}],
            "success_url": build_success_url(request.success_url, trial),
            "cancel_url": request.cancel_url,
            "metadata": metadata,
            "subscription_data": subscription_data,
            "billing_address_collection": "required",
            "allow_promotion_codes": True,
        }

    def create_checkout_session(self, request: CheckoutSessionRequest) -> str:
        """Create a subscription checkout session and return its hosted URL."""
        if not request.price_id:
            logger.error("Missing priceId in checkout request")
            raise ValidationError("No priceId provided in request body")

        options = self._request_options()
        params = self.build_session_params(request)
        logger.info(
            "Creating checkout session plan=%s period=%s price=%s trial=%s",
            request.plan_id,
            request.billing_period,
            request.price_id,
            params["metadata"]["hasTrial"],
        )
        try:
            session = stripe.checkout.Session.create(**params, **options)
        except stripe.StripeError as exc:
            logger.error("Stripe checkout error for price %s: %s", request.price_id, exc)
            raise IntegrationError(getattr(exc, "user_message", None) or str(exc)) from exc

        logger.info("Checkout session created: %s", session.id)
        return session.url

    def retrieve_session(self, session_id: str) -> SessionSummary:
        if not session_id:
            raise ValidationError("Session ID is required")

        options = self._request_options()
        try:
            session = stripe.checkout.Session.retrieve(
                session_id, expand=["customer", "subscription"], **options
            )
        except stripe.StripeError as exc:
            logger.error("Error retrieving checkout session %s: %s", session_id, exc)
            raise IntegrationError(str(exc)) from exc

        logger.info("Retrieved session: %s", session.id)
        return SessionSummary(
            id=session.id,
            customer_email=session_email(session),
            customer_id=_object_id(session.get("customer")),
            subscription_id=_object_id(session.get("subscription")),
            payment_status=session.get("payment_status"),
            metadata=dict(session.get("metadata") or {}),
        )

    def list_products(self, limit: int = 5) -> list[dict[str, Any]]:
        options = self._request_options()
        try:
            products = stripe.Product.list(limit=limit, **options)
        except stripe.StripeError as exc:
            logger.error("Stripe connection test failed: %s", exc)
            raise IntegrationError(str(exc)) from exc
        return [
            {"id": product.get("id"), "name": product.get("name"), "active": product.get("active")}
            for product in products.get("data", [])
        ]


def session_email(session: Any) -> str | None:
    """Email the customer used at checkout; prefilled or typed on the hosted page."""
    email = session.get("customer_email")
    if email:
        return email
    details = session.get("customer_details") or {}
    return details.get("email") if hasattr(details, "get") else None
