"""
Tests for the Stripe webhook endpoint.

Bodies are signed with the real Stripe scheme; only the Celery publish
is mocked.
"""

from unittest.mock import patch

import pytest
from django.db import DatabaseError

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventOutcome, WebhookEventStatus
from payments.tests.factories import WebhookEventFactory, stripe_event

WEBHOOK_URL = "/api/v1/payments/webhooks/stripe/"


@pytest.fixture
def mock_delay():
    with patch("payments.tasks.process_webhook_event.delay") as mock:
        yield mock


@pytest.mark.django_db
class TestStripeWebhook:
    """Tests for stripe_webhook()."""

    def test_accepts_and_queues_event(self, post_webhook, mock_delay):
        response = post_webhook(stripe_event("checkout.session.completed", event_id="evt_1"))

        assert response.status_code == 200
        assert response.content == b"Accepted"
        webhook_event = WebhookEvent.objects.get(provider_event_id="evt_1")
        assert webhook_event.status == WebhookEventStatus.PENDING
        mock_delay.assert_called_once_with(str(webhook_event.id))

    def test_invalid_signature(self, post_webhook, mock_delay):
        response = post_webhook(stripe_event("invoice.paid"), signature="t=1,v1=forged")

        assert response.status_code == 400
        assert response.content == b"Invalid signature"
        assert not WebhookEvent.objects.exists()
        mock_delay.assert_not_called()

    def test_missing_signature(self, client, mock_delay):
        response = client.post(WEBHOOK_URL, data=b"{}", content_type="application/json")

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()

    def test_malformed_signed_body(self, post_webhook, mock_delay):
        """Should reject a validly signed body that is not an event."""
        response = post_webhook({"hello": "world"})

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()

    def test_get_not_allowed(self, client):
        assert client.get(WEBHOOK_URL).status_code == 405

    def test_duplicate_of_processed_event(self, post_webhook, mock_delay):
        WebhookEventFactory(
            payload=stripe_event("checkout.session.completed", event_id="evt_dup"),
            status=WebhookEventStatus.PROCESSED,
        )

        response = post_webhook(stripe_event("checkout.session.completed", event_id="evt_dup"))

        assert response.status_code == 200
        assert response.content == b"Already processed"
        assert WebhookEvent.objects.count() == 1
        mock_delay.assert_not_called()

    def test_duplicate_of_unfinished_event_is_requeued(self, post_webhook, mock_delay):
        existing = WebhookEventFactory(
            payload=stripe_event("checkout.session.completed", event_id="evt_dup"),
            status=WebhookEventStatus.FAILED,
        )

        response = post_webhook(stripe_event("checkout.session.completed", event_id="evt_dup"))

        assert response.status_code == 200
        assert WebhookEvent.objects.count() == 1
        mock_delay.assert_called_once_with(str(existing.id))

    def test_unrecognized_event_is_acknowledged(self, post_webhook, mock_delay):
        response = post_webhook(stripe_event("customer.created", event_id="evt_other"))

        assert response.status_code == 200
        webhook_event = WebhookEvent.objects.get(provider_event_id="evt_other")
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.outcome == WebhookEventOutcome.IGNORED
        mock_delay.assert_not_called()

    def test_inbox_unavailable(self, post_webhook, mock_delay):
        with patch(
            "payments.webhooks.views.record_event",
            side_effect=DatabaseError("database is locked"),
        ):
            response = post_webhook(stripe_event("invoice.paid"))

        assert response.status_code == 503
        assert b"database" not in response.content
        mock_delay.assert_not_called()

    def test_queue_failure_still_acknowledges(self, post_webhook, mock_delay):
        """Should keep the inbox row for the retry sweep when the broker is down."""
        mock_delay.side_effect = ConnectionError("broker down")

        response = post_webhook(stripe_event("invoice.paid", event_id="evt_q"))

        assert response.status_code == 200
        assert WebhookEvent.objects.get(provider_event_id="evt_q").status == (
            WebhookEventStatus.PENDING
        )
