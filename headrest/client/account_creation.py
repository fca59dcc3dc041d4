"""Account creation after a completed checkout.

The return page gets payment details from the redirect's query string, the
checkout session lookup (or, when that fails, the handoff the webhook
stored) and the handoff kept by an earlier visit. Whatever it learns is
written back to the store so a reload can finish without the lookup. It
validates the form locally and makes a single provisioning call per
submission.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping
from urllib.parse import unquote

import httpx
from pydantic import ValidationError as PydanticValidationError

from headrest.client.api_client import HeadrestClient
from headrest.client.session import AuthSession, SessionStore
from headrest.core.exceptions import IntegrationError
from headrest.core.validation import MIN_PASSWORD_LENGTH, is_valid_email
from headrest.integrations.organizations import OrganizationsClient
from headrest.schemas.handoff import PaymentHandoff
from headrest.services.handoff_state import HandoffState, HandoffStateMachine
from headrest.services.handoff_store import PaymentHandoffStore
from headrest.services.plan_catalog import BILLING_PERIODS

logger = logging.getLogger(__name__)

PLACEHOLDERS = {
    "email": "{CHECKOUT_SESSION_EMAIL}",
    "customer_id": "{CHECKOUT_SESSION_CUSTOMER}",
    "subscription_id": "{CHECKOUT_SESSION_SUBSCRIPTION}",
}

MISSING_DETAILS_MESSAGE = "Missing payment details. Please try signing up again."
PLACEHOLDER_MESSAGE = (
    "Payment data not fully loaded. Please ensure you entered your email address and try again."
)
CONFLICT_MESSAGE = "An account with this email already exists. Please try logging in instead."

PAID_STATUSES = ("paid", "no_payment_required")


@dataclass(frozen=True)
class Redirect:
    path: str
    delay_seconds: float = 0.0


DASHBOARD_REDIRECT = Redirect("/dashboard", 2.0)
LOGIN_REDIRECT = Redirect("/login?message=account-created", 3.0)
PLANS_REDIRECT = Redirect("/signup/plans")

LOGIN_LINK = "/login"
USE_DIFFERENT_EMAIL = "use-different-email"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    CONFLICT = "conflict"
    ERROR = "error"
    BUSY = "busy"


@dataclass
class SubmissionOutcome:
    status: OutcomeStatus
    message: str = ""
    redirect: Redirect | None = None
    session: AuthSession | None = None
    actions: tuple[str, ...] = ()


@dataclass
class AccountForm:
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


@dataclass
class PaymentDetails:
    email: str | None = None
    plan_id: str | None = None
    stripe_customer_id: str | None = None
    subscription_id: str | None = None
    is_trial: bool = False
    has_placeholders: bool = False

    @property
    def complete(self) -> bool:
        return all((self.email, self.plan_id, self.stripe_customer_id, self.subscription_id))


def _first(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return None


def validate_account_form(details: PaymentDetails, form: AccountForm) -> str | None:
    """Return the first failing check's message, or None when the form is valid."""
    if not details.complete:
        return PLACEHOLDER_MESSAGE if details.has_placeholders else MISSING_DETAILS_MESSAGE
    if not is_valid_email(details.email):
        return f"Invalid email format: {details.email}"
    if not form.firstname.strip():
        return "First name is required"
    if not form.lastname.strip():
        return "Last name is required"
    if len(form.password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if form.password != form.confirm_password:
        return "Passwords do not match"
    return None


class AccountCreationFlow:
    def __init__(
        self,
        client: HeadrestClient,
        store: PaymentHandoffStore,
        sessions: SessionStore,
        query: Mapping[str, str] | None = None,
        organizations: OrganizationsClient | None = None,
    ):
        self.client = client
        self.store = store
        self.sessions = sessions
        self.query = dict(query or {})
        self.organizations = organizations
        self.machine = HandoffStateMachine()
        self.handoff: PaymentHandoff | None = None
        self.session_data: dict[str, Any] | None = None
        self.in_flight = False

    @property
    def state(self) -> HandoffState:
        return self.machine.state

    def _param(self, name: str) -> str | None:
        value = self.query.get(name)
        if not value or (name in PLACEHOLDERS and PLACEHOLDERS[name] in unquote(value)):
            return None
        return value

    def _has_placeholders(self) -> bool:
        return any(marker in unquote(self.query.get(name) or "") for name, marker in PLACEHOLDERS.items())

    async def load(self) -> Redirect | None:
        """Gather payment details; returns a redirect when there is nothing to finish."""
        self.handoff = self.store.get()
        if self.handoff is not None:
            self.machine.confirm_payment()
        elif self.store.last_read_expired:
            self.machine.expire()

        from_url = bool(self._param("email") and self._param("customer_id"))
        if from_url:
            self.handoff = PaymentHandoff(
                email=unquote(self._param("email")),
                plan_id=self._param("plan"),
                stripe_customer_id=self._param("customer_id"),
                subscription_id=self._param("subscription_id"),
                billing_period="monthly",
                is_trial=self.query.get("trial") == "true",
            )
            self.store.set(self.handoff)
            self.machine.confirm_payment()

        session_id = self.query.get("session_id")
        if session_id:
            if await self._load_session(session_id):
                if self.session_data.get("payment_status") in PAID_STATUSES:
                    self.machine.confirm_payment()
                    self._remember_session()
            elif not from_url:
                await self._load_webhook_handoff(session_id)

        details = self.payment_details()
        if not any((details.email, details.plan_id, details.stripe_customer_id, details.subscription_id)):
            if self.handoff is None and not session_id:
                logger.info("Redirecting to plans - no payment data found")
                return PLANS_REDIRECT
        return None

    async def _load_session(self, session_id: str) -> bool:
        try:
            response = await self.client.get_session(session_id)
        except httpx.HTTPError as exc:
            logger.error("Error fetching session data: %s", exc)
            return False
        if not response.ok:
            logger.warning("Session lookup for %s failed with %s", session_id, response.status_code)
            return False
        self.session_data = response.data
        return True

    def _remember_session(self) -> None:
        """Persist the merged details so a reload finds them without the lookup."""
        details = self.payment_details()
        if not details.complete:
            return
        period = (self.session_data.get("metadata") or {}).get("billingPeriod")
        self.handoff = PaymentHandoff(
            email=details.email,
            plan_id=details.plan_id,
            billing_period=period if period in BILLING_PERIODS else "monthly",
            stripe_customer_id=details.stripe_customer_id,
            subscription_id=details.subscription_id,
            is_trial=details.is_trial,
        )
        self.store.set(self.handoff)

    async def _load_webhook_handoff(self, session_id: str) -> None:
        try:
            response = await self.client.get_handoff(session_id)
        except httpx.HTTPError as exc:
            logger.error("Error fetching stored payment data: %s", exc)
            return
        if not response.ok:
            logger.info("No webhook payment data for session %s", session_id)
            return
        try:
            handoff = PaymentHandoff.model_validate(response.data)
        except PydanticValidationError:
            logger.warning("Discarding malformed payment data for session %s", session_id)
            return
        self.handoff = handoff
        self.store.set(handoff)
        self.machine.confirm_payment()

    def payment_details(self, typed_email: str = "") -> PaymentDetails:
        session = self.session_data or {}
        metadata = session.get("metadata") or {}
        stored = self.handoff

        raw_email = _first(
            self._param("email"),
            session.get("customer_email"),
            stored.email if stored else None,
            typed_email.strip(),
        )
        return PaymentDetails(
            email=unquote(raw_email) if raw_email else None,
            plan_id=_first(self._param("plan"), metadata.get("planId"), stored.plan_id if stored else None),
            stripe_customer_id=_first(
                self._param("customer_id"),
                session.get("customer_id"),
                stored.stripe_customer_id if stored else None,
            ),
            subscription_id=_first(
                self._param("subscription_id"),
                session.get("subscription_id"),
                stored.subscription_id if stored else None,
            ),
            is_trial=bool(
                self.query.get("trial") == "true"
                or metadata.get("hasTrial") == "true"
                or (stored.is_trial if stored else False)
            ),
            has_placeholders=self._has_placeholders(),
        )

    async def submit(self, form: AccountForm) -> SubmissionOutcome:
        if self.in_flight:
            return SubmissionOutcome(OutcomeStatus.BUSY, "Account creation is already in progress.")
        if self.state is HandoffState.PROVISIONED:
            return SubmissionOutcome(OutcomeStatus.ERROR, "This account has already been created.")

        details = self.payment_details(form.email)
        error = validate_account_form(details, form)
        if error:
            return SubmissionOutcome(OutcomeStatus.INVALID, error)

        payload = {
            "firstname": form.firstname.strip(),
            "lastname": form.lastname.strip(),
            "email": details.email,
            "passwd": form.password,
            "plan_tier": details.plan_id,
            "stripe_customer_id": details.stripe_customer_id,
            "stripe_subscription_id": details.subscription_id,
            "is_trial": details.is_trial,
        }
        logger.info(
            "Account creation request plan=%s customer=%s subscription=%s trial=%s",
            details.plan_id,
            details.stripe_customer_id,
            details.subscription_id,
            details.is_trial,
        )

        self.in_flight = True
        try:
            response = await self.client.create_customer_account(payload)
        except httpx.HTTPError as exc:
            logger.error("Account creation error: %s", exc)
            return SubmissionOutcome(OutcomeStatus.ERROR, "Failed to create account")
        finally:
            self.in_flight = False

        if not response.ok:
            reason = f"{response.error or ''} {response.data.get('details') or ''}".lower()
            if response.status_code == 409 and "already exists" in reason:
                return SubmissionOutcome(
                    OutcomeStatus.CONFLICT,
                    CONFLICT_MESSAGE,
                    actions=(LOGIN_LINK, USE_DIFFERENT_EMAIL),
                )
            return SubmissionOutcome(OutcomeStatus.ERROR, response.error or "Failed to create account")

        if self.state is not HandoffState.PAYMENT_CONFIRMED:
            self.machine.confirm_payment()
        self.machine.mark_provisioned()
        self.store.clear()
        self.handoff = None

        data = response.data
        if data.get("autoLogin") and data.get("access_token") and data.get("organization"):
            session = await self._establish_session(data)
            return SubmissionOutcome(
                OutcomeStatus.SUCCESS,
                "Account created successfully",
                redirect=DASHBOARD_REDIRECT,
                session=session,
            )
        return SubmissionOutcome(OutcomeStatus.SUCCESS, "Account created successfully", redirect=LOGIN_REDIRECT)

    async def _establish_session(self, data: dict[str, Any]) -> AuthSession:
        user = dict(data.get("user") or {})
        organization = data.get("organization") or {}
        # Organizations are named "<first> <last>'s Store".
        name = str(organization.get("name") or "").split("'s")[0]
        user["user_metadata"] = {
            **(user.get("user_metadata") or {}),
            "firstname": name,
            "lastname": "",
        }

        session = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            user=user,
        )
        self.sessions.establish(session)

        if self.organizations is not None and self.organizations.enabled:
            try:
                me = await self.organizations.get_me(session.access_token)
            except IntegrationError as exc:
                logger.error("Error fetching user data: %s", exc)
            else:
                if me.ok:
                    session.user["organization"] = me.body
                    self.sessions.establish(session)
        return session
