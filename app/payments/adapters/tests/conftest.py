"""
Pytest fixtures for Stripe adapter tests.

This module provides fixtures for testing the Stripe adapter, including
mock Stripe API responses, error conditions, and signed webhook bodies.

Sections:
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
    - Webhook Signing Fixtures
"""

import json
from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe

from payments.tests.factories import stripe_signature_header


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payout():
    """Create a mock Payout response."""

    def _create(
        id: str = "po_test123456",
        amount: int = 799,
        currency: str = "usd",
        status: str = "pending",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payout",
                "amount": amount,
                "currency": currency,
                "status": status,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_subscription():
    """Create a mock Subscription response."""

    def _create(
        id: str = "sub_test123456",
        status: str = "active",
        customer: str = "cus_test123",
        metadata: dict | None = None,
        current_period_end: int | None = 1_767_225_600,
    ) -> MockStripeObject:
        data = {
            "id": id,
            "object": "subscription",
            "status": status,
            "customer": customer,
            "metadata": metadata or {},
        }
        if current_period_end is not None:
            data["items"] = {"data": [{"current_period_end": current_period_end}]}
        return MockStripeObject(data)

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "Invalid payout amount",
        param: str | None = "amount",
        code: str = "parameter_invalid_integer",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def api_error():
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError(message="Invalid API Key provided.")


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient so no HTTP client is built."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_stripe_payout(mock_payout):
    """Mock stripe.Payout API."""
    with patch("stripe.Payout") as mock:
        mock.create.return_value = mock_payout()
        yield mock


@pytest.fixture
def mock_stripe_subscription(mock_subscription):
    """Mock stripe.Subscription API."""
    with patch("stripe.Subscription") as mock:
        mock.retrieve.return_value = mock_subscription()
        yield mock


# =============================================================================
# Webhook Signing Fixtures
# =============================================================================


@pytest.fixture
def webhook_secret(settings):
    settings.STRIPE_WEBHOOK_SECRET = "whsec_adapter_test"
    return settings.STRIPE_WEBHOOK_SECRET


@pytest.fixture
def sign_payload(webhook_secret):
    """Sign a body with the test webhook secret, or another one."""

    def _sign(body: bytes, secret: str | None = None, timestamp: int | None = None) -> str:
        return stripe_signature_header(body, secret or webhook_secret, timestamp)

    return _sign


@pytest.fixture
def event_body():
    return json.dumps(
        {
            "id": "evt_test_signed",
            "object": "event",
            "type": "checkout.session.completed",
            "created": 1_700_000_000,
            "data": {"object": {"id": "cs_test_1", "metadata": {"orderId": "abc"}}},
        }
    ).encode("utf-8")
