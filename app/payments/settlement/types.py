"""
Value types passed into and out of the settlement engine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from django.db import models


class SettlementStatus(models.TextChoices):
    SETTLED = "settled", "Settled"
    ALREADY_SETTLED = "already_settled", "Already Settled"


@dataclass(frozen=True)
class SettlementInput:
    """
    Everything the engine needs to settle one order.

    Event kinds differ only in where these values come from; the
    resolver extracts them so the engine has a single entry point.

    Attributes:
        order_id: Order to settle
        provider_event_id: Event that confirmed the payment (for logs)
        checkout_ref: Checkout session that paid for the order, if known
        payment_ref: Payment intent that paid for the order, if known
    """

    order_id: uuid.UUID
    provider_event_id: str = ""
    checkout_ref: str | None = None
    payment_ref: str | None = None


@dataclass(frozen=True)
class SettlementResult:
    """
    Outcome of a settle() call.

    For ALREADY_SETTLED results the amount fields are zero: nothing was
    applied by this call.
    """

    order_id: uuid.UUID
    status: SettlementStatus
    platform_fee_cents: int = 0
    seller_credit_cents: int = 0
    points_awarded: int = 0
    seller_points_awarded: int = 0
    oversold_items: list[uuid.UUID] = field(default_factory=list)

    @property
    def settled(self) -> bool:
        return self.status == SettlementStatus.SETTLED

    @property
    def needs_review(self) -> bool:
        return bool(self.oversold_items)
