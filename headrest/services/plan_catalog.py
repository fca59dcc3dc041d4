"""Plan tiers offered at signup and the trial policy attached to them."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from headrest.config import Settings

BILLING_PERIODS = ("monthly", "annual")
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    description: str
    monthly_price: float
    api_calls_per_month: int
    stores: int
    free_trial: bool = False


PLANS: dict[str, Plan] = {
    "hobby": Plan(
        id="hobby",
        name="Hobby",
        description="Perfect for developers and hobbyists",
        monthly_price=4.99,
        api_calls_per_month=1_000,
        stores=1,
        free_trial=True,
    ),
    "starter": Plan(
        id="starter",
        name="Starter",
        description="Most popular for growing businesses",
        monthly_price=19.0,
        api_calls_per_month=10_000,
        stores=1,
    ),
    "professional": Plan(
        id="professional",
        name="Professional",
        description="For established businesses",
        monthly_price=79.0,
        api_calls_per_month=100_000,
        stores=3,
    ),
    "business": Plan(
        id="business",
        name="Business",
        description="For large enterprises",
        monthly_price=149.0,
        api_calls_per_month=500_000,
        stores=10,
    ),
}


def is_valid_plan_tier(plan_id: str | None) -> bool:
    return plan_id in PLANS


def has_trial(plan_id: str | None, billing_period: str | None) -> bool:
    """Only the monthly Hobby plan starts with a free trial."""
    return plan_id == "hobby" and billing_period == "monthly"


def trial_end(now: datetime, trial_days: int) -> int:
    """Unix timestamp a whole number of days after ``now``, truncated to the second."""
    return int(now.timestamp()) + trial_days * SECONDS_PER_DAY


def price_id_for(settings: Settings, plan_id: str, billing_period: str) -> str:
    if plan_id not in PLANS:
        raise KeyError(f"Unknown plan tier: {plan_id}")
    if billing_period not in BILLING_PERIODS:
        raise KeyError(f"Unknown billing period: {billing_period}")
    return settings.price_id(plan_id, billing_period)


def catalog(settings: Settings) -> list[dict[str, Any]]:
    """Serializable plan listing including which price ids are configured."""
    items = []
    for plan in PLANS.values():
        items.append(
            {
                "id": plan.id,
                "name": plan.name,
                "description": plan.description,
                "monthly_price": plan.monthly_price,
                "api_calls_per_month": plan.api_calls_per_month,
                "stores": plan.stores,
                "free_trial": plan.free_trial,
                "price_ids": {
                    period: price_id_for(settings, plan.id, period) or None for period in BILLING_PERIODS
                },
            }
        )
    return items
