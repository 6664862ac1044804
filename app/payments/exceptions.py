"""
Payment-specific exceptions for the settlement pipeline.

Exception Hierarchy:
    SettlementError (base for the settlement pipeline)
    ├── WebhookAuthenticationError - Bad or missing signature (reject, never process)
    ├── AlreadySettledError - Target already applied (benign no-op)
    ├── TargetNotFoundError - Event references nothing we know (ack, don't retry)
    ├── TransientStoreError - Database unavailable (retry)
    └── PermanentDataError - Structurally invalid state (ack, dead-letter)

    StripeError - Base for processor call failures
    ├── StripeInvalidRequestError - Invalid request params (permanent)
    ├── StripeAccountError - Payout destination problem (permanent)
    ├── StripeRateLimitError - Rate limited (transient, retry)
    ├── StripeAPIUnavailableError - API unavailable (transient, retry)
    └── StripeTimeoutError - Request timeout (transient, retry)

Every class carries is_retryable so the inbox worker can decide between
retrying and dead-lettering without knowing the concrete type.

Usage:
    from payments.exceptions import PermanentDataError

    if order.total_cents <= 0:
        raise PermanentDataError(
            "Order total must be positive",
            error_code="NON_POSITIVE_TOTAL",
            details={"order_id": str(order.id), "total_cents": order.total_cents},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


class SettlementError(BaseApplicationError):
    """Base exception for the settlement pipeline."""

    default_error_code: str = "SETTLEMENT_ERROR"
    is_retryable: bool = False


class WebhookAuthenticationError(SettlementError):
    """
    Raised when a notification's signature cannot be verified.

    Nothing in the payload may be trusted once this is raised; the
    endpoint answers 400 and stores nothing.
    """

    default_error_code: str = "WEBHOOK_AUTHENTICATION_FAILED"


class AlreadySettledError(SettlementError):
    """
    Raised when the idempotency fence finds the order is no longer pending.

    Callers treat this as success.
    """

    default_error_code: str = "ALREADY_SETTLED"


class TargetNotFoundError(SettlementError):
    """
    Raised when an event references an order or subscription we don't have.

    Logged and acknowledged; redelivery cannot make the target appear.
    """

    default_error_code: str = "TARGET_NOT_FOUND"


class TransientStoreError(SettlementError):
    """
    Raised when the database is unavailable or a transaction was aborted
    for reasons that may succeed on retry (deadlock, serialization failure).
    """

    default_error_code: str = "TRANSIENT_STORE_FAILURE"
    is_retryable: bool = True


class PermanentDataError(SettlementError):
    """
    Raised when persisted data is structurally invalid.

    Examples: a non-positive order total, a line item whose catalog item
    was deleted, a fee larger than the total. Retrying cannot help; the
    event is dead-lettered and the order flagged for manual review.
    """

    default_error_code: str = "PERMANENT_DATA_ERROR"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(ExternalServiceError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        is_retryable: Whether the operation can be retried
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeInvalidRequestError(StripeError):
    """Invalid parameters were supplied to Stripe's API."""

    default_error_code: str = "INVALID_STRIPE_REQUEST"


class StripeAccountError(StripeError):
    """
    The payout could not be sent because of the account itself
    (no external account, insufficient platform balance, permissions).
    """

    default_error_code: str = "STRIPE_ACCOUNT_ERROR"


# -----------------------------------------------------------------------------
# Transient Errors (retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True
