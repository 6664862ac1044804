"""
Tests for Stripe adapter.

Tests cover:
- Webhook signature verification with real HMAC signatures
- Payout creation and error translation
- Subscription retrieval
- Helper functions (timestamps, subscription period end)
"""

import time
from datetime import datetime, timezone

import pytest

from payments.adapters import (
    StripeAdapter,
    subscription_period_end,
    timestamp_to_datetime,
)
from payments.exceptions import (
    StripeAccountError,
    StripeAPIUnavailableError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookAuthenticationError,
)


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestVerifyWebhookSignature:
    """Tests for StripeAdapter.verify_webhook_signature()."""

    def test_valid_signature(self, event_body, sign_payload):
        """Should return the event as a plain dict."""
        event = StripeAdapter.verify_webhook_signature(event_body, sign_payload(event_body))

        assert event["id"] == "evt_test_signed"
        assert event["type"] == "checkout.session.completed"
        assert event["data"]["object"]["metadata"] == {"orderId": "abc"}

    def test_signature_with_wrong_secret(self, event_body, sign_payload):
        signature = sign_payload(event_body, secret="whsec_someone_else")

        with pytest.raises(WebhookAuthenticationError) as exc_info:
            StripeAdapter.verify_webhook_signature(event_body, signature)

        assert exc_info.value.error_code == "INVALID_SIGNATURE"

    def test_tampered_body(self, event_body, sign_payload):
        """Should reject a body that differs from what was signed."""
        signature = sign_payload(event_body)
        tampered = event_body.replace(b"cs_test_1", b"cs_test_2")

        with pytest.raises(WebhookAuthenticationError):
            StripeAdapter.verify_webhook_signature(tampered, signature)

    def test_stale_timestamp(self, event_body, sign_payload):
        signature = sign_payload(event_body, timestamp=int(time.time()) - 3600)

        with pytest.raises(WebhookAuthenticationError):
            StripeAdapter.verify_webhook_signature(event_body, signature)

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature(self, event_body, webhook_secret, signature):
        with pytest.raises(WebhookAuthenticationError) as exc_info:
            StripeAdapter.verify_webhook_signature(event_body, signature)

        assert exc_info.value.error_code == "MISSING_SIGNATURE"

    def test_secret_not_configured(self, event_body, settings):
        settings.STRIPE_WEBHOOK_SECRET = ""

        with pytest.raises(WebhookAuthenticationError) as exc_info:
            StripeAdapter.verify_webhook_signature(event_body, "t=1,v1=abc")

        assert exc_info.value.error_code == "WEBHOOK_SECRET_NOT_CONFIGURED"

    def test_signed_body_that_is_not_json(self, sign_payload):
        body = b"not json"

        with pytest.raises(WebhookAuthenticationError) as exc_info:
            StripeAdapter.verify_webhook_signature(body, sign_payload(body))

        assert exc_info.value.error_code == "INVALID_PAYLOAD"


# =============================================================================
# Payout Tests
# =============================================================================


class TestCreatePayout:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        """Set up common mocks for all tests."""
        pass

    def test_create_payout_success(self, mock_stripe_payout, mock_payout):
        """Should pass the idempotency key and return a PayoutResult."""
        mock_stripe_payout.create.return_value = mock_payout(
            id="po_abc", amount=799, metadata={"reason": "shipping"}
        )

        result = StripeAdapter.create_payout(
            amount_cents=799,
            idempotency_key="order-1:shipping",
            metadata={"order_id": "order-1", "reason": "shipping"},
            method="instant",
        )

        assert result.id == "po_abc"
        assert result.amount_cents == 799
        assert result.metadata == {"reason": "shipping"}
        call_kwargs = mock_stripe_payout.create.call_args.kwargs
        assert call_kwargs["idempotency_key"] == "order-1:shipping"
        assert call_kwargs["method"] == "instant"
        assert call_kwargs["amount"] == 799

    def test_insufficient_balance_is_account_error(
        self, mock_stripe_payout, invalid_request_error
    ):
        mock_stripe_payout.create.side_effect = invalid_request_error(
            message="Insufficient funds in Stripe account",
            code="balance_insufficient",
        )

        with pytest.raises(StripeAccountError) as exc_info:
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

        assert exc_info.value.is_retryable is False

    def test_invalid_request_error(self, mock_stripe_payout, invalid_request_error):
        mock_stripe_payout.create.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError):
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

    def test_rate_limit_error(self, mock_stripe_payout, rate_limit_error):
        mock_stripe_payout.create.side_effect = rate_limit_error

        with pytest.raises(StripeRateLimitError) as exc_info:
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

        assert exc_info.value.is_retryable is True

    def test_api_connection_error(self, mock_stripe_payout, api_connection_error):
        mock_stripe_payout.create.side_effect = api_connection_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

    def test_timeout_error(self, mock_stripe_payout):
        import stripe

        mock_stripe_payout.create.side_effect = stripe.APIConnectionError(
            message="Request timed out"
        )

        with pytest.raises(StripeTimeoutError):
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

    def test_api_error(self, mock_stripe_payout, api_error):
        mock_stripe_payout.create.side_effect = api_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

    def test_authentication_error(self, mock_stripe_payout, authentication_error):
        mock_stripe_payout.create.side_effect = authentication_error

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")

        assert exc_info.value.stripe_code == "authentication_error"

    def test_unknown_error_propagates(self, mock_stripe_payout):
        mock_stripe_payout.create.side_effect = RuntimeError("Unexpected")

        with pytest.raises(RuntimeError):
            StripeAdapter.create_payout(amount_cents=799, idempotency_key="k")


# =============================================================================
# Subscription Tests
# =============================================================================


class TestRetrieveSubscription:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    def test_retrieve_subscription(self, mock_stripe_subscription, mock_subscription):
        mock_stripe_subscription.retrieve.return_value = mock_subscription(
            metadata={"memberId": "m-1", "planId": "subscribe"}
        )

        details = StripeAdapter.retrieve_subscription("sub_test123456")

        assert details.id == "sub_test123456"
        assert details.metadata == {"memberId": "m-1", "planId": "subscribe"}
        assert details.current_period_end == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_missing_subscription(self, mock_stripe_subscription, invalid_request_error):
        mock_stripe_subscription.retrieve.side_effect = invalid_request_error(
            message="No such subscription", code="resource_missing"
        )

        with pytest.raises(StripeInvalidRequestError):
            StripeAdapter.retrieve_subscription("sub_missing")


# =============================================================================
# Helper Tests
# =============================================================================


class TestHelpers:
    def test_timestamp_to_datetime(self):
        assert timestamp_to_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert timestamp_to_datetime(None) is None

    def test_period_end_on_subscription(self):
        assert subscription_period_end({"current_period_end": 0}) == datetime(
            1970, 1, 1, tzinfo=timezone.utc
        )

    def test_period_end_on_items(self):
        subscription = {"items": {"data": [{"current_period_end": 1_767_225_600}]}}

        assert subscription_period_end(subscription) == datetime(
            2026, 1, 1, tzinfo=timezone.utc
        )

    def test_period_end_missing(self):
        assert subscription_period_end({}) is None

