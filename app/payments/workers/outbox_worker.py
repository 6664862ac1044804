"""
Outbox worker: delivers PendingSideEffect rows.

Tasks:
- deliver_side_effect: Deliver one side effect (queued on commit)
- deliver_pending_side_effects: Periodic sweep for due rows whose publish
  was lost or whose previous attempt failed

Delivery failures are recorded on the row and retried with exponential
backoff. They never touch order or ledger state.

Usage:
    from payments.workers import deliver_pending_side_effects

    deliver_pending_side_effects.delay()
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Callable

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from members.services import BadgeService
from payments.models import PendingSideEffect
from payments.services import PayoutService
from payments.state_machines import SideEffectKind, SideEffectStatus

logger = logging.getLogger(__name__)

# Maximum side effects to sweep per run
BATCH_SIZE = 100


# =============================================================================
# Side Effect Handlers
# =============================================================================


def _check_buyer_badges(payload: dict[str, Any]) -> None:
    BadgeService.evaluate_buyer_spend(payload["member_id"])


def _award_business_badges(payload: dict[str, Any]) -> None:
    BadgeService.award_business_signup_badges(payload["business_id"])


def _trigger_shipping_payout(payload: dict[str, Any]) -> None:
    # Payout failures are recorded on the ShippingPayout and retried by
    # retry_failed_shipping_payouts, not by the outbox.
    PayoutService.trigger_shipping_payout(payload["order_id"])


SIDE_EFFECT_HANDLERS: dict[str, Callable[[dict[str, Any]], None]] = {
    SideEffectKind.BUYER_BADGE_CHECK: _check_buyer_badges,
    SideEffectKind.BUSINESS_BADGES: _award_business_badges,
    SideEffectKind.SHIPPING_PAYOUT: _trigger_shipping_payout,
}


def claim_side_effect(side_effect_id: uuid.UUID | str) -> PendingSideEffect | None:
    """
    Lease a due side effect for one delivery attempt.

    The attempt is counted and next_attempt_at pushed forward before the
    handler runs, and that is committed. The on-commit task and the sweep
    therefore never deliver the same row side by side, and a worker that
    dies mid-delivery leaves a row the sweep picks up once the lease ends.

    Returns:
        The claimed row, or None if it is not pending or not yet due
    """
    now = timezone.now()
    with transaction.atomic():
        effect = (
            PendingSideEffect.objects.select_for_update()
            .filter(
                pk=side_effect_id,
                status=SideEffectStatus.PENDING,
                next_attempt_at__lte=now,
            )
            .first()
        )
        if effect is None:
            return None
        effect.attempts += 1
        effect.next_attempt_at = now + timedelta(
            seconds=settings.SIDE_EFFECT_RETRY_BASE_SECONDS
        )
        effect.save(update_fields=["attempts", "next_attempt_at", "updated_at"])
    return effect


def deliver(side_effect_id: uuid.UUID | str) -> str | None:
    """
    Deliver one side effect if it is pending and due.

    The handler runs outside any transaction: a shipping payout calls the
    processor, which must not happen while database locks are held.
    Handlers are idempotent, so a repeated delivery is harmless.

    Returns:
        The resulting status, or None if the row was not claimable
    """
    effect = claim_side_effect(side_effect_id)
    if effect is None:
        return None

    log_context = {
        "side_effect_id": str(effect.id),
        "kind": effect.kind,
        "dedupe_key": effect.dedupe_key,
        "attempts": effect.attempts,
    }

    handler = SIDE_EFFECT_HANDLERS.get(effect.kind)
    try:
        if handler is None:
            raise LookupError(f"No handler for side effect kind {effect.kind!r}")
        handler(effect.payload)
    except Exception as e:
        effect.mark_attempt_failed(
            f"{type(e).__name__}: {e}",
            max_attempts=settings.SIDE_EFFECT_MAX_ATTEMPTS,
            base_delay_seconds=settings.SIDE_EFFECT_RETRY_BASE_SECONDS,
        )
        if effect.status == SideEffectStatus.FAILED:
            logger.error("Side effect failed permanently", extra=log_context, exc_info=True)
        else:
            logger.warning(
                "Side effect delivery failed; will retry",
                extra={**log_context, "next_attempt_at": effect.next_attempt_at.isoformat()},
                exc_info=True,
            )
    else:
        effect.mark_delivered()
        logger.info("Side effect delivered", extra=log_context)

    effect.save()
    return effect.status


@shared_task(bind=True, acks_late=True)
def deliver_side_effect(self, side_effect_id: str) -> dict:
    """Deliver a single side effect."""
    status = deliver(side_effect_id)
    return {"side_effect_id": side_effect_id, "status": status or "skipped"}


@shared_task(bind=True)
def deliver_pending_side_effects(self) -> dict:
    """
    Sweep pending side effects that are due and deliver them.

    Runs via celery-beat. Idempotent: deliver() skips rows another worker
    already handled.
    """
    due_ids = list(
        PendingSideEffect.objects.filter(
            status=SideEffectStatus.PENDING,
            next_attempt_at__lte=timezone.now(),
        )
        .order_by("next_attempt_at")
        .values_list("id", flat=True)[:BATCH_SIZE]
    )

    counts = {"delivered": 0, "retrying": 0, "failed": 0, "skipped": 0}
    for side_effect_id in due_ids:
        status = deliver(side_effect_id)
        if status == SideEffectStatus.DELIVERED:
            counts["delivered"] += 1
        elif status == SideEffectStatus.FAILED:
            counts["failed"] += 1
        elif status == SideEffectStatus.PENDING:
            counts["retrying"] += 1
        else:
            counts["skipped"] += 1

    if due_ids:
        logger.info("Swept pending side effects", extra=counts)
    return counts
