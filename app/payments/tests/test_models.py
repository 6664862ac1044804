"""
Tests for payment models.

Tests cover:
- WebhookEvent status helpers
- ShippingPayout state transitions and optimistic locking
- PendingSideEffect retry backoff
- Subscription queryset helpers
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from django_fsm import TransitionNotAllowed
from freezegun import freeze_time

from payments.models import ShippingPayout, Subscription
from payments.state_machines import (
    PayoutState,
    SideEffectStatus,
    SubscriptionStatus,
    WebhookEventOutcome,
    WebhookEventStatus,
)
from payments.tests.factories import (
    PendingSideEffectFactory,
    ShippingPayoutFactory,
    SubscriptionFactory,
    WebhookEventFactory,
)


class TestWebhookEvent:
    def test_mark_processed(self, db):
        event = WebhookEventFactory(error_message="old error")

        event.mark_processed(WebhookEventOutcome.SETTLED)

        assert event.status == WebhookEventStatus.PROCESSED
        assert event.outcome == WebhookEventOutcome.SETTLED
        assert event.processed_at is not None
        assert event.error_message is None

    def test_mark_dead_lettered(self, db):
        event = WebhookEventFactory()

        event.mark_dead_lettered("[NON_POSITIVE_TOTAL] Order total must be positive")

        assert event.status == WebhookEventStatus.DEAD_LETTERED
        assert event.outcome == WebhookEventOutcome.PERMANENT_ERROR
        assert event.is_finished

    @pytest.mark.parametrize(
        "status,finished",
        [
            (WebhookEventStatus.PENDING, False),
            (WebhookEventStatus.PROCESSING, False),
            (WebhookEventStatus.FAILED, False),
            (WebhookEventStatus.PROCESSED, True),
            (WebhookEventStatus.DEAD_LETTERED, True),
        ],
    )
    def test_is_finished(self, db, status, finished):
        assert WebhookEventFactory(status=status).is_finished is finished

    def test_can_retry_respects_max_retries(self, db, settings):
        settings.WEBHOOK_MAX_RETRIES = 3

        assert WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=2).can_retry
        assert not WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=3).can_retry


class TestShippingPayout:
    """Tests for ShippingPayout state transitions."""

    def test_complete(self, db):
        payout = ShippingPayoutFactory()

        payout.complete("po_123")
        payout.save()

        payout = ShippingPayout.objects.get(pk=payout.pk)
        assert payout.state == PayoutState.PAID
        assert payout.provider_payout_id == "po_123"
        assert payout.paid_at is not None

    def test_fail_then_retry(self, db):
        payout = ShippingPayoutFactory()

        payout.fail("Stripe unavailable", retryable=True)
        assert payout.state == PayoutState.FAILED
        assert payout.last_error_retryable is True

        payout.retry()
        assert payout.state == PayoutState.PENDING
        assert payout.failed_at is None

    def test_cannot_pay_twice(self, db):
        payout = ShippingPayoutFactory()
        payout.complete("po_123")

        with pytest.raises(TransitionNotAllowed):
            payout.complete("po_456")

    def test_state_is_protected(self, db):
        payout = ShippingPayoutFactory()

        with pytest.raises(AttributeError):
            payout.state = PayoutState.PAID

    def test_version_increments_on_save(self, db):
        payout = ShippingPayoutFactory()
        assert payout.version == 1

        payout.attempts = 1
        payout.save()

        assert payout.version == 2


class TestPendingSideEffect:
    """Tests for PendingSideEffect delivery bookkeeping."""

    @freeze_time("2026-01-01 12:00:00")
    def test_backoff_doubles_per_attempt(self, db):
        effect = PendingSideEffectFactory(attempts=3)

        effect.mark_attempt_failed("boom", max_attempts=5, base_delay_seconds=30)

        assert effect.status == SideEffectStatus.PENDING
        assert effect.next_attempt_at == timezone.now() + timedelta(seconds=120)
        assert effect.last_error == "boom"

    def test_fails_after_max_attempts(self, db):
        effect = PendingSideEffectFactory(attempts=5)

        effect.mark_attempt_failed("boom", max_attempts=5, base_delay_seconds=30)

        assert effect.status == SideEffectStatus.FAILED

    def test_mark_delivered(self, db):
        effect = PendingSideEffectFactory(last_error="earlier failure")

        effect.mark_delivered()

        assert effect.status == SideEffectStatus.DELIVERED
        assert effect.delivered_at is not None
        assert effect.last_error is None


class TestSubscriptionQuerySet:
    def test_active_excludes_canceled(self, db):
        active = SubscriptionFactory()
        SubscriptionFactory(status=SubscriptionStatus.CANCELED)

        assert list(Subscription.objects.active()) == [active]
