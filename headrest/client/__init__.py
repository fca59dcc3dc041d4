"""Client-side signup flow: plan checkout and account creation."""

from .account_creation import (
    AccountCreationFlow,
    AccountForm,
    OutcomeStatus,
    PaymentDetails,
    Redirect,
    SubmissionOutcome,
    validate_account_form,
)
from .api_client import ApiResponse, HeadrestClient
from .checkout import start_checkout
from .session import AuthSession, SessionStore

__all__ = [
    "AccountCreationFlow",
    "AccountForm",
    "ApiResponse",
    "AuthSession",
    "HeadrestClient",
    "OutcomeStatus",
    "PaymentDetails",
    "Redirect",
    "SessionStore",
    "SubmissionOutcome",
    "start_checkout",
    "validate_account_form",
]
