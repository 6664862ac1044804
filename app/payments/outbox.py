"""
Transactional outbox for post-commit side effects.

enqueue_side_effect() writes a PendingSideEffect row in the caller's
transaction and schedules a Celery publish for after commit. If the
transaction rolls back, neither the row nor the publish survives. If the
publish is lost, the deliver_pending_side_effects sweep finds the row.

Usage:
    from payments.outbox import enqueue_side_effect

    enqueue_side_effect(
        SideEffectKind.SHIPPING_PAYOUT,
        dedupe_key=f"{order.id}:shipping",
        payload={"order_id": str(order.id)},
    )
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.db import transaction

from payments.models import PendingSideEffect
from payments.state_machines import SideEffectKind

logger = logging.getLogger(__name__)


def enqueue_side_effect(
    kind: SideEffectKind | str,
    dedupe_key: str,
    payload: dict[str, Any],
) -> PendingSideEffect:
    """
    Record a side effect and publish it once the transaction commits.

    Idempotent on dedupe_key: a second call returns the existing row and
    publishes nothing.
    """
    effect, created = PendingSideEffect.objects.get_or_create(
        dedupe_key=dedupe_key,
        defaults={"kind": kind, "payload": payload},
    )
    if created:
        effect_id = effect.id
        transaction.on_commit(lambda: _publish(effect_id), robust=True)
        logger.info(
            "Side effect enqueued",
            extra={"side_effect_id": str(effect.id), "kind": kind, "dedupe_key": dedupe_key},
        )
    return effect


def _publish(side_effect_id: uuid.UUID) -> None:
    from payments.workers.outbox_worker import deliver_side_effect

    deliver_side_effect.delay(str(side_effect_id))
