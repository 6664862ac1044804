"""
Stripe adapter: the only module that talks to the Stripe SDK.

The adapter wraps the few calls the settlement pipeline needs:
- Webhook signature verification
- Payouts (shipping cost reimbursement)
- Subscription lookup (for invoices that don't carry plan metadata)

Stripe SDK errors are translated into payments.exceptions so callers can
decide on retries with is_retryable, without importing stripe.

Usage:
    from payments.adapters import StripeAdapter

    event = StripeAdapter.verify_webhook_signature(request.body, signature)
    result = StripeAdapter.create_payout(
        amount_cents=799,
        currency="usd",
        idempotency_key="a1b2...:shipping",
        metadata={"order_id": "a1b2...", "reason": "shipping"},
    )
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAccountError,
    StripeAPIUnavailableError,
    StripeError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookAuthenticationError,
)

# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PayoutResult:
    """Result of a payout creation."""

    id: str
    amount_cents: int
    currency: str
    status: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class SubscriptionDetails:
    """The parts of a Stripe subscription the pipeline uses."""

    id: str
    status: str
    customer: str | None
    metadata: dict[str, str] = field(default_factory=dict)
    current_period_end: datetime | None = None


def timestamp_to_datetime(value: int | float | None) -> datetime | None:
    """Convert a Stripe epoch-seconds timestamp to an aware datetime."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


def subscription_period_end(subscription: dict[str, Any]) -> datetime | None:
    """
    Read current_period_end from a subscription payload.

    Newer API versions moved the field onto subscription items.
    """
    period_end = subscription.get("current_period_end")
    if period_end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            period_end = items[0].get("current_period_end")
    return timestamp_to_datetime(period_end)


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.
    """

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, timeout and retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = settings.STRIPE_MAX_RETRIES
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str | None,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw request body bytes (must not be re-encoded)
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            WebhookAuthenticationError: Missing or invalid signature, or a
                body that is not a valid event
        """
        if not signature:
            raise WebhookAuthenticationError(
                "Missing webhook signature",
                error_code="MISSING_SIGNATURE",
            )
        if not settings.STRIPE_WEBHOOK_SECRET:
            cls.get_logger().error("STRIPE_WEBHOOK_SECRET is not configured")
            raise WebhookAuthenticationError(
                "Webhook secret not configured",
                error_code="WEBHOOK_SECRET_NOT_CONFIGURED",
            )
        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
            # Plain JSON types all the way down, as stored in the inbox
            event = json.loads(payload)
        except stripe.SignatureVerificationError as e:
            raise WebhookAuthenticationError(
                "Invalid webhook signature",
                error_code="INVALID_SIGNATURE",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise WebhookAuthenticationError(
                "Invalid webhook payload",
                error_code="INVALID_PAYLOAD",
            ) from e
        if not isinstance(event, dict):
            raise WebhookAuthenticationError(
                "Invalid webhook payload",
                error_code="INVALID_PAYLOAD",
            )
        return event

    # =========================================================================
    # Payouts
    # =========================================================================

    @classmethod
    def create_payout(
        cls,
        amount_cents: int,
        idempotency_key: str,
        currency: str = "usd",
        metadata: dict[str, str] | None = None,
        method: str = "standard",
    ) -> PayoutResult:
        """
        Create a payout from the platform balance.

        Args:
            amount_cents: Amount in cents
            idempotency_key: Stripe idempotency key (the payout correlation id)
            currency: Currency code
            metadata: Metadata attached to the payout
            method: "standard" or "instant"

        Raises:
            StripeError subclasses (see _handle_stripe_error)
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_payout",
            "amount_cents": amount_cents,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            payout = stripe.Payout.create(
                amount=amount_cents,
                currency=currency,
                method=method,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, "payout_id": payout.id, "duration_ms": duration_ms},
        )
        return PayoutResult(
            id=payout.id,
            amount_cents=payout.amount,
            currency=payout.currency,
            status=payout.status,
            metadata=dict(payout.metadata or {}),
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def retrieve_subscription(cls, subscription_id: str) -> SubscriptionDetails:
        """
        Retrieve a subscription, used to recover plan metadata for invoices.

        Raises:
            StripeError subclasses (see _handle_stripe_error)
        """
        cls._configure_stripe()
        log_context = {
            "operation": "retrieve_subscription",
            "subscription_id": subscription_id,
        }

        start_time = time.time()
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        data = subscription.to_dict()
        return SubscriptionDetails(
            id=data["id"],
            status=data.get("status", ""),
            customer=data.get("customer"),
            metadata=dict(data.get("metadata") or {}),
            current_period_end=subscription_period_end(data),
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Returns without raising for non-Stripe exceptions; the caller
        re-raises those unchanged.

        Raises:
            StripeAccountError: Balance/account problems on our side
            StripeInvalidRequestError: Invalid request or credentials
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: Network or Stripe server error
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}
        stripe_code = getattr(error, "code", None)

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": stripe_code},
            )
            if stripe_code in ("balance_insufficient", "insufficient_funds") or (
                "account" in str(error).lower()
            ):
                raise StripeAccountError(str(error), stripe_code=stripe_code) from error
            raise StripeInvalidRequestError(str(error), stripe_code=stripe_code) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.StripeError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error
