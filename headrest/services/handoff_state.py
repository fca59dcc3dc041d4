"""Lifecycle of a single checkout-to-account handoff."""
from __future__ import annotations

import logging
from enum import Enum

from headrest.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class HandoffState(str, Enum):
    INITIATED = "initiated"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PROVISIONED = "provisioned"
    EXPIRED = "expired"


class HandoffEvent(str, Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"  # return redirect or webhook-derived data
    EXPIRED_ON_READ = "expired_on_read"
    PROVISIONED = "provisioned"


_TRANSITIONS: dict[tuple[HandoffState, HandoffEvent], HandoffState] = {
    (HandoffState.INITIATED, HandoffEvent.PAYMENT_CONFIRMED): HandoffState.PAYMENT_CONFIRMED,
    (HandoffState.INITIATED, HandoffEvent.EXPIRED_ON_READ): HandoffState.EXPIRED,
    # URL parameters and the session lookup may both confirm the same payment.
    (HandoffState.PAYMENT_CONFIRMED, HandoffEvent.PAYMENT_CONFIRMED): HandoffState.PAYMENT_CONFIRMED,
    (HandoffState.PAYMENT_CONFIRMED, HandoffEvent.EXPIRED_ON_READ): HandoffState.EXPIRED,
    (HandoffState.PAYMENT_CONFIRMED, HandoffEvent.PROVISIONED): HandoffState.PROVISIONED,
    # A fresh return redirect replaces an expired record.
    (HandoffState.EXPIRED, HandoffEvent.PAYMENT_CONFIRMED): HandoffState.PAYMENT_CONFIRMED,
    (HandoffState.EXPIRED, HandoffEvent.EXPIRED_ON_READ): HandoffState.EXPIRED,
}


class HandoffStateMachine:
    """Explicit transitions so a handoff is provisioned at most once."""

    def __init__(self, state: HandoffState = HandoffState.INITIATED):
        self.state = state

    def can(self, event: HandoffEvent) -> bool:
        return (self.state, event) in _TRANSITIONS

    def fire(self, event: HandoffEvent) -> HandoffState:
        try:
            target = _TRANSITIONS[(self.state, event)]
        except KeyError:
            raise InvalidTransitionError(
                f"Cannot apply {event.value} to a handoff in state {self.state.value}"
            ) from None
        if target is not self.state:
            logger.info("Handoff %s -> %s", self.state.value, target.value)
        self.state = target
        return target

    def confirm_payment(self) -> HandoffState:
        return self.fire(HandoffEvent.PAYMENT_CONFIRMED)

    def expire(self) -> HandoffState:
        return self.fire(HandoffEvent.EXPIRED_ON_READ)

    def mark_provisioned(self) -> HandoffState:
        return self.fire(HandoffEvent.PROVISIONED)

    @property
    def can_provision(self) -> bool:
        return self.can(HandoffEvent.PROVISIONED)
