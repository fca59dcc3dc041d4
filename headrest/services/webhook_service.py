"""Stripe webhook handling.

Events are verified against the raw request body, dispatched by type and
recorded by event id so a redelivered event is acknowledged without being
dispatched again. Only ``checkout.session.completed`` produces state: the
PaymentHandoff the signup flow later reads. Subscription and invoice events
are logged and acknowledged.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from headrest.config import Settings
from headrest.core.exceptions import ConfigurationError, WebhookSignatureError
from headrest.models import ProcessedWebhookEvent
from headrest.schemas.handoff import PaymentHandoff, now_ms
from headrest.services.checkout_service import session_email
from headrest.services.handoff_store import PaymentHandoffStore, SqlBackend, session_handoff_key
from headrest.services.plan_catalog import BILLING_PERIODS

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300

LOGGED_EVENT_TYPES = {
    "customer.subscription.updated": "Subscription updated",
    "customer.subscription.trial_will_end": "Trial ending soon",
    "customer.subscription.deleted": "Subscription cancelled",
    "invoice.payment_succeeded": "Payment succeeded",
    "invoice.payment_failed": "Payment failed",
}


@dataclass
class WebhookResult:
    event_id: str | None
    event_type: str | None
    duplicate: bool = False
    handoff: PaymentHandoff | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def response_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"received": True}
        if self.duplicate:
            body["duplicate"] = True
        return body


def _extract_webhook_context(event: dict[str, Any]) -> dict[str, Any]:
    obj = event.get("data", {}).get("object", {}) or {}
    return {
        "event_id": event.get("id"),
        "event_type": event.get("type"),
        "livemode": event.get("livemode"),
        "object_id": obj.get("id"),
    }


class StripeWebhookService:
    """Verify, dedupe and dispatch Stripe webhook events."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        clock: Callable[[], int] = now_ms,
    ):
        self.db = db
        self.settings = settings
        self.clock = clock

    def _secret(self) -> str:
        secret = self.settings.stripe_webhook_secret.get_secret_value().strip()
        if not secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured")
            raise ConfigurationError(
                "STRIPE_WEBHOOK_SECRET environment variable not set",
                missing=["STRIPE_WEBHOOK_SECRET"],
            )
        return secret

    def verify(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Check the signature over the raw body and return the parsed event."""
        secret = self._secret()
        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text, signature, secret, tolerance=SIGNATURE_TOLERANCE_SECONDS
            )
            event = json.loads(text)
        except stripe.SignatureVerificationError as exc:
            logger.error("Webhook signature verification failed: %s", exc)
            raise WebhookSignatureError("Invalid signature") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("Webhook payload is not valid JSON: %s", exc)
            raise WebhookSignatureError("Invalid payload") from exc
        if not isinstance(event, dict):
            raise WebhookSignatureError("Invalid payload")
        return event

    def _already_processed(self, event_id: str) -> bool:
        return (
            self.db.query(ProcessedWebhookEvent.id)
            .filter(ProcessedWebhookEvent.event_id == event_id)
            .first()
            is not None
        )

    def _record(self, event_id: str, event_type: str) -> bool:
        """Persist the event id; False when a concurrent delivery got there first."""
        self.db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

    def dispatch(self, event: dict[str, Any]) -> WebhookResult:
        ctx = _extract_webhook_context(event)
        event_id = ctx["event_id"]
        event_type = ctx["event_type"]
        logger.info(
            "WEBHOOK_RECEIVED event_id=%s event_type=%s livemode=%s object_id=%s",
            event_id,
            event_type,
            ctx["livemode"],
            ctx["object_id"],
        )

        if event_id and self._already_processed(event_id):
            logger.info("Event %s already processed - skipping", event_id)
            return WebhookResult(event_id=event_id, event_type=event_type, duplicate=True)

        result = WebhookResult(event_id=event_id, event_type=event_type)
        obj = event.get("data", {}).get("object", {}) or {}

        if event_type == "checkout.session.completed":
            result.handoff = self._handle_checkout_completed(obj)
        elif event_type in LOGGED_EVENT_TYPES:
            logger.info("%s: %s", LOGGED_EVENT_TYPES[event_type], obj.get("id"))
        else:
            logger.info("Unhandled event type: %s", event_type)

        if event_id and not self._record(event_id, event_type or "unknown"):
            logger.info("Event %s recorded by a concurrent delivery", event_id)
            result.duplicate = True
        return result

    def _handle_checkout_completed(self, session: dict[str, Any]) -> PaymentHandoff | None:
        if session.get("mode") != "subscription":
            logger.info("Ignoring checkout session %s in mode %s", session.get("id"), session.get("mode"))
            return None

        metadata = session.get("metadata") or {}
        billing_period = metadata.get("billingPeriod")
        handoff = PaymentHandoff(
            email=session_email(session),
            plan_id=metadata.get("planId"),
            billing_period=billing_period if billing_period in BILLING_PERIODS else "monthly",
            stripe_customer_id=session.get("customer"),
            subscription_id=session.get("subscription"),
            is_trial=metadata.get("hasTrial") == "true",
            timestamp=self.clock(),
        )
        store = PaymentHandoffStore(
            SqlBackend(self.db),
            key=session_handoff_key(session["id"]),
            ttl_hours=self.settings.handoff_ttl_hours,
            clock=self.clock,
        )
        store.set(handoff)
        logger.info(
            "Subscription %s created for customer %s; payment data stored for account creation",
            handoff.subscription_id,
            handoff.stripe_customer_id,
        )
        return handoff
