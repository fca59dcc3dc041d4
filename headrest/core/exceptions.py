"""Custom exception types for domain and API layers."""


class AppError(Exception):
    """Base app exception."""


class ValidationError(AppError):
    """Validation failure for user input."""


class ConfigurationError(AppError):
    """A required setting is missing; never the caller's fault."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class IntegrationError(AppError):
    """External integration call failure."""


class ConflictError(AppError):
    """The resource being created already exists."""


class WebhookSignatureError(AppError):
    """Webhook payload failed signature verification."""


class DecryptionError(AppError):
    """Ciphertext is malformed or failed authentication."""


class InvalidTransitionError(AppError):
    """A handoff state change that the state machine does not allow."""


class CheckoutError(AppError):
    """Checkout session could not be started."""
