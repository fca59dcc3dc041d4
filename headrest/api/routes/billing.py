"""
Stripe checkout, webhook and account provisioning routes.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from headrest.api.dependencies import (
    get_checkout_service,
    get_provisioning_service,
    get_settings,
    get_webhook_service,
)
from headrest.config import Settings
from headrest.core.exceptions import (
    ConfigurationError,
    ConflictError,
    IntegrationError,
    ValidationError,
    WebhookSignatureError,
)
from headrest.database import get_db
from headrest.schemas.checkout import CheckoutSessionRequest
from headrest.schemas.provisioning import ProvisioningRequest
from headrest.services import plan_catalog
from headrest.services.checkout_service import CheckoutService
from headrest.services.handoff_store import PaymentHandoffStore, SqlBackend, session_handoff_key
from headrest.services.provisioning_service import ProvisioningService, UpstreamError
from headrest.services.webhook_service import StripeWebhookService

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


@router.get("/plans")
async def list_plans(settings: Settings = Depends(get_settings)) -> dict:
    return {"plans": plan_catalog.catalog(settings), "trial_days": settings.trial_days}


@router.post("/create-checkout-session")
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    service: CheckoutService = Depends(get_checkout_service),
):
    try:
        url = await run_in_threadpool(service.create_checkout_session, payload)
    except ValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, "Price ID is required", details=str(exc))
    except ConfigurationError as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Stripe configuration error", details=str(exc))
    except IntegrationError as exc:
        logger.error("Error creating checkout session for price %s: %s", payload.price_id, exc)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to create checkout session",
            details=str(exc),
            priceId=payload.price_id or "undefined",
        )
    return {"url": url}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    service: StripeWebhookService = Depends(get_webhook_service),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        return _error(status.HTTP_400_BAD_REQUEST, "No signature")

    try:
        event = service.verify(payload, signature)
    except WebhookSignatureError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except ConfigurationError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook not configured")

    try:
        result = await run_in_threadpool(service.dispatch, event)
    except Exception:
        logger.exception("Error processing webhook event %s", event.get("id"))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed")
    return result.response_body()


@router.get("/get-session")
async def get_session(
    session_id: str | None = None,
    service: CheckoutService = Depends(get_checkout_service),
):
    if not session_id:
        return _error(status.HTTP_400_BAD_REQUEST, "Session ID is required")
    try:
        summary = await run_in_threadpool(service.retrieve_session, session_id)
    except (ConfigurationError, IntegrationError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to retrieve session data")
    return summary.model_dump()


@router.get("/handoff/{session_id}")
async def get_handoff(
    session_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Payment data the webhook stored for a completed checkout session."""
    store = PaymentHandoffStore(
        SqlBackend(db),
        key=session_handoff_key(session_id),
        ttl_hours=settings.handoff_ttl_hours,
    )
    handoff = store.get()
    if handoff is None:
        return _error(status.HTTP_404_NOT_FOUND, "No payment data for this session")
    return handoff.model_dump(by_alias=True)


@router.post("/create-customer-account")
async def create_customer_account(
    payload: ProvisioningRequest,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    try:
        response = await service.create_account(payload)
    except ValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except ConfigurationError as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except ConflictError as exc:
        return _error(
            status.HTTP_409_CONFLICT,
            "Account already exists",
            details=str(exc),
            statusCode=status.HTTP_409_CONFLICT,
        )
    except UpstreamError as exc:
        return _error(
            exc.status_code,
            "Failed to create customer account",
            details=exc.details,
            statusCode=exc.status_code,
        )
    except IntegrationError as exc:
        logger.error("Account creation error: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    return response.model_dump(exclude_none=True)


@router.get("/test-connection")
async def test_connection(service: CheckoutService = Depends(get_checkout_service)):
    try:
        products = await run_in_threadpool(service.list_products, 5)
    except (ConfigurationError, IntegrationError) as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Stripe connection failed", details=str(exc))
    return {
        "status": "Stripe connection successful",
        "productsCount": len(products),
        "products": products,
    }


@router.get("/test-webhook")
async def test_webhook(settings: Settings = Depends(get_settings)):
    secret = settings.stripe_webhook_secret.get_secret_value()
    if not secret:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Webhook secret not configured",
                "message": "Please add STRIPE_WEBHOOK_SECRET to your environment",
            },
        )
    return {
        "status": "Webhook endpoint configured correctly",
        "webhookSecret": secret[:10] + "...",
        "message": "Your webhook is ready to receive events from Stripe",
    }
