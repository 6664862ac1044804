"""
Pytest fixtures for webhook tests.
"""

import json

import pytest

from payments.tests.factories import stripe_signature_header


@pytest.fixture
def webhook_secret(settings):
    settings.STRIPE_WEBHOOK_SECRET = "whsec_webhook_test"
    return settings.STRIPE_WEBHOOK_SECRET


@pytest.fixture
def signed_body(webhook_secret):
    """
    Serialize an event dict and sign it.

    Returns (body, signature_header).
    """

    def _signed(event: dict) -> tuple[bytes, str]:
        body = json.dumps(event).encode("utf-8")
        return body, stripe_signature_header(body, webhook_secret)

    return _signed


@pytest.fixture
def post_webhook(client, signed_body):
    """POST a signed event to the Stripe webhook endpoint."""

    def _post(event: dict, signature: str | None = None):
        body, header = signed_body(event)
        return client.post(
            "/api/v1/payments/webhooks/stripe/",
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature if signature is not None else header,
        )

    return _post
