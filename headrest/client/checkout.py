from __future__ import annotations

import logging

from headrest.client.api_client import HeadrestClient
from headrest.core.exceptions import CheckoutError

logger = logging.getLogger(__name__)


async def start_checkout(
    client: HeadrestClient,
    plan_id: str,
    billing_period: str,
    origin: str,
) -> str:
    """Ask the API for a hosted checkout page for one plan; returns its URL."""
    plans = await client.list_plans()
    if not plans.ok:
        raise CheckoutError(plans.error or "Could not load plans")

    plan = next((item for item in plans.data.get("plans", []) if item.get("id") == plan_id), None)
    if plan is None:
        raise CheckoutError(f"Unknown plan: {plan_id}")
    price_id = (plan.get("price_ids") or {}).get(billing_period)

    origin = origin.rstrip("/")
    logger.info("Creating checkout session plan=%s period=%s price=%s", plan_id, billing_period, price_id)
    response = await client.create_checkout_session(
        price_id=price_id,
        plan_id=plan_id,
        billing_period=billing_period,
        success_url=f"{origin}/signup/account-creation?plan={plan_id}",
        cancel_url=f"{origin}/signup/plans",
    )
    if not response.ok:
        details = response.data.get("details") or "No details available"
        raise CheckoutError(f"{response.error or 'Checkout failed'}: {details}")

    url = response.data.get("url")
    if not url:
        raise CheckoutError("No checkout URL received from server")
    return url
