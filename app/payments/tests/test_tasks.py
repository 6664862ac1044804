"""
Tests for inbox processing and maintenance tasks.

Tasks are called directly; a direct call of an autoretry task re-raises
the original exception instead of scheduling a retry.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import OperationalError
from django.utils import timezone

from core.services import ServiceResult
from payments.exceptions import TransientStoreError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventOutcome, WebhookEventStatus
from payments.tasks import (
    cleanup_old_webhooks,
    cleanup_stuck_webhooks,
    process_webhook_event,
    retry_failed_webhooks,
)
from payments.tests.factories import WebhookEventFactory, stripe_event
from store.models import Order, OrderStatus
from store.tests.factories import OrderWithItemFactory


def checkout_inbox_event(*orders, **kwargs):
    ids = ",".join(str(order.id) for order in orders)
    return WebhookEventFactory(
        payload=stripe_event(
            "checkout.session.completed",
            {"id": "cs_test_1", "metadata": {"orderIds": ids}},
        ),
        **kwargs,
    )


def reload(webhook_event):
    return WebhookEvent.objects.get(pk=webhook_event.pk)


class TestProcessWebhookEvent:
    """Tests for process_webhook_event()."""

    def test_settles_and_marks_processed(self, db):
        order = OrderWithItemFactory()
        webhook_event = checkout_inbox_event(order)

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "processed"
        assert result["outcome"] == WebhookEventOutcome.SETTLED
        webhook_event = reload(webhook_event)
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.outcome == WebhookEventOutcome.SETTLED
        assert webhook_event.retry_count == 1
        assert Order.objects.get(pk=order.pk).status == OrderStatus.PAID

    def test_not_found(self, db):
        result = process_webhook_event("00000000-0000-0000-0000-000000000000")

        assert result["status"] == "not_found"

    @pytest.mark.parametrize(
        "status", [WebhookEventStatus.PROCESSED, WebhookEventStatus.DEAD_LETTERED]
    )
    def test_finished_event_is_skipped(self, db, status):
        webhook_event = WebhookEventFactory(status=status)

        with patch("payments.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "already_processed"
        mock_dispatch.assert_not_called()

    def test_event_claimed_elsewhere_is_skipped(self, db):
        webhook_event = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "skipped"

    def test_target_not_found_is_acknowledged(self, db):
        webhook_event = WebhookEventFactory(
            payload=stripe_event(
                "checkout.session.completed",
                {"id": "cs_1", "metadata": {"orderId": "00000000-0000-0000-0000-000000000001"}},
            )
        )

        result = process_webhook_event(str(webhook_event.id))

        assert result["outcome"] == WebhookEventOutcome.TARGET_NOT_FOUND
        webhook_event = reload(webhook_event)
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.error_message == "Event references no known order"

    def test_permanent_error_dead_letters(self, db):
        webhook_event = checkout_inbox_event(OrderWithItemFactory(total_cents=0, subtotal_cents=0))

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "dead_lettered"
        webhook_event = reload(webhook_event)
        assert webhook_event.status == WebhookEventStatus.DEAD_LETTERED
        assert webhook_event.outcome == WebhookEventOutcome.PERMANENT_ERROR
        assert webhook_event.error_message.startswith("[NON_POSITIVE_TOTAL]")

    def test_transient_error_marks_failed_and_raises(self, db):
        order = OrderWithItemFactory()
        webhook_event = checkout_inbox_event(order)

        with patch(
            "payments.settlement.engine.InventoryService.decrement",
            side_effect=OperationalError("connection lost"),
        ):
            with pytest.raises(TransientStoreError):
                process_webhook_event(str(webhook_event.id))

        webhook_event = reload(webhook_event)
        assert webhook_event.status == WebhookEventStatus.FAILED
        assert "TransientStoreError" in webhook_event.error_message
        assert Order.objects.get(pk=order.pk).status == OrderStatus.PENDING

    def test_failed_event_succeeds_on_retry(self, db):
        order = OrderWithItemFactory()
        webhook_event = checkout_inbox_event(
            order, status=WebhookEventStatus.FAILED, retry_count=1
        )

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "processed"
        assert reload(webhook_event).retry_count == 2

    def test_handler_failure_marks_failed(self, db):
        webhook_event = WebhookEventFactory()

        with patch(
            "payments.webhooks.handlers.dispatch_webhook",
            return_value=ServiceResult.failure("Bad event", error_code="BAD_EVENT"),
        ):
            result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "handler_failed"
        webhook_event = reload(webhook_event)
        assert webhook_event.status == WebhookEventStatus.FAILED
        assert webhook_event.error_message == "Bad event"

    def test_redelivered_event_settles_once(self, db):
        order = OrderWithItemFactory()
        first = checkout_inbox_event(order)
        second = WebhookEventFactory(payload={**first.payload, "id": "evt_other_delivery"})

        process_webhook_event(str(first.id))
        result = process_webhook_event(str(second.id))

        assert result["outcome"] == WebhookEventOutcome.ALREADY_SETTLED


class TestRetryFailedWebhooks:
    @pytest.fixture
    def mock_delay(self):
        with patch("payments.tasks.process_webhook_event.delay") as mock:
            yield mock

    def test_requeues_retryable_and_lost_events(self, db, settings, mock_delay):
        settings.WEBHOOK_MAX_RETRIES = 3
        failed = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=3)
        lost = WebhookEventFactory()
        WebhookEvent.objects.filter(pk=lost.pk).update(
            created_at=timezone.now() - timedelta(hours=2)
        )
        WebhookEventFactory()  # fresh pending, still in flight

        result = retry_failed_webhooks()

        assert result == {"queued_count": 2}
        queued = {call.args[0] for call in mock_delay.call_args_list}
        assert queued == {str(failed.id), str(lost.id)}

    def test_publish_failure_is_not_counted(self, db, mock_delay):
        WebhookEventFactory(status=WebhookEventStatus.FAILED)
        mock_delay.side_effect = ConnectionError("broker down")

        assert retry_failed_webhooks() == {"queued_count": 0}


class TestCleanupStuckWebhooks:
    def test_resets_stuck_processing_events(self, db):
        stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        WebhookEvent.objects.filter(pk=stuck.pk).update(
            updated_at=timezone.now() - timedelta(hours=1)
        )
        active = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 1}
        assert reload(stuck).status == WebhookEventStatus.FAILED
        assert reload(active).status == WebhookEventStatus.PROCESSING


class TestCleanupOldWebhooks:
    def test_deletes_only_old_processed_events(self, db):
        old = timezone.now() - timedelta(days=40)
        expired = WebhookEventFactory(status=WebhookEventStatus.PROCESSED, processed_at=old)
        dead = WebhookEventFactory(status=WebhookEventStatus.DEAD_LETTERED, processed_at=old)
        recent = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED, processed_at=timezone.now()
        )

        result = cleanup_old_webhooks(days=30)

        assert result == {"deleted_count": 1}
        remaining = set(WebhookEvent.objects.values_list("pk", flat=True))
        assert remaining == {dead.pk, recent.pk}
        assert expired.pk not in remaining
