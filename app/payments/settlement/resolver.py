"""
Order resolver: maps a payment event onto what it should change.

All event-kind specific parsing lives here. Order targets are looked up
in the database so the current persisted status is what decides whether
an order still needs settling; an already paid order is reported as such,
never as an error.

Usage:
    from payments.settlement.resolver import OrderResolver, TargetType

    target = OrderResolver.resolve(event)
    if target.target_type == TargetType.ORDERS:
        for settlement_input in target.settlement_inputs(event.id):
            settlement_engine.settle(settlement_input)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from django.db import models

from core.helpers import validate_uuid
from payments.exceptions import TargetNotFoundError
from payments.settlement.types import SettlementInput
from payments.state_machines import PaymentEventKind
from store.models import Order, OrderStatus

if TYPE_CHECKING:
    from payments.webhooks.ingress import PaymentEvent

logger = logging.getLogger(__name__)


class TargetType(models.TextChoices):
    ORDERS = "orders", "Orders"
    SUBSCRIPTION = "subscription", "Subscription"
    NONE = "none", "None"


@dataclass(frozen=True)
class OrderTarget:
    order_id: uuid.UUID
    already_settled: bool = False


@dataclass(frozen=True)
class ResolvedTarget:
    """
    What an event concerns.

    Attributes:
        target_type: ORDERS, SUBSCRIPTION or NONE
        orders: Known orders referenced by the event
        missing_order_ids: Referenced order ids with no local order
        checkout_ref / payment_ref: Processor references to stamp on orders
        subscription_ref: Processor subscription id for subscription targets
    """

    target_type: TargetType
    orders: list[OrderTarget] = field(default_factory=list)
    missing_order_ids: list[str] = field(default_factory=list)
    checkout_ref: str | None = None
    payment_ref: str | None = None
    subscription_ref: str | None = None

    @property
    def pending_orders(self) -> list[OrderTarget]:
        return [target for target in self.orders if not target.already_settled]

    def settlement_inputs(self, provider_event_id: str = "") -> list[SettlementInput]:
        """
        One SettlementInput per order still pending.

        Already settled orders are skipped here; the engine's fence would
        turn them into no-ops anyway.
        """
        return [
            SettlementInput(
                order_id=target.order_id,
                provider_event_id=provider_event_id,
                checkout_ref=self.checkout_ref,
                payment_ref=self.payment_ref,
            )
            for target in self.pending_orders
        ]


def parse_order_ids(metadata: dict[str, Any]) -> list[str]:
    """
    Read order ids from event metadata.

    Accepts metadata.orderIds (comma separated) or metadata.orderId.
    Duplicates are dropped, first occurrence wins.
    """
    raw = metadata.get("orderIds") or metadata.get("orderId") or ""
    seen: list[str] = []
    for part in str(raw).split(","):
        order_id = part.strip()
        if order_id and order_id not in seen:
            seen.append(order_id)
    return seen


def invoice_subscription_id(invoice: dict[str, Any]) -> str | None:
    """
    Subscription id of an invoice.

    Newer API versions nest it under parent.subscription_details.
    """
    subscription = invoice.get("subscription")
    if isinstance(subscription, dict):
        subscription = subscription.get("id")
    if subscription:
        return subscription
    parent = invoice.get("parent") or {}
    return (parent.get("subscription_details") or {}).get("subscription")


class OrderResolver:
    """Resolves payment events to orders or subscriptions."""

    @classmethod
    def resolve(cls, event: PaymentEvent) -> ResolvedTarget:
        """
        Resolve an event to its target.

        Raises:
            TargetNotFoundError: An order event names no order we know
        """
        obj = event.data_object

        if event.kind == PaymentEventKind.CHECKOUT_COMPLETED:
            if obj.get("mode") == "subscription":
                return ResolvedTarget(
                    target_type=TargetType.SUBSCRIPTION,
                    subscription_ref=obj.get("subscription"),
                )
            return cls._resolve_orders(
                event,
                checkout_ref=obj.get("id"),
                payment_ref=obj.get("payment_intent"),
            )

        if event.kind == PaymentEventKind.PAYMENT_CAPTURED:
            return cls._resolve_orders(event, payment_ref=obj.get("id"))

        if event.kind == PaymentEventKind.INVOICE_PAID:
            return ResolvedTarget(
                target_type=TargetType.SUBSCRIPTION,
                subscription_ref=invoice_subscription_id(obj),
            )

        if event.kind == PaymentEventKind.SUBSCRIPTION_CHANGED:
            return ResolvedTarget(
                target_type=TargetType.SUBSCRIPTION,
                subscription_ref=obj.get("id"),
            )

        return ResolvedTarget(target_type=TargetType.NONE)

    @classmethod
    def _resolve_orders(
        cls,
        event: PaymentEvent,
        checkout_ref: str | None = None,
        payment_ref: str | None = None,
    ) -> ResolvedTarget:
        requested = parse_order_ids(event.metadata)
        valid_ids = [value for value in requested if validate_uuid(value)]
        missing = [value for value in requested if not validate_uuid(value)]

        statuses = dict(
            Order.objects.filter(pk__in=valid_ids).values_list("id", "status")
        )
        found_ids = {str(order_id) for order_id in statuses}
        missing.extend(value for value in valid_ids if str(uuid.UUID(value)) not in found_ids)

        if not statuses:
            raise TargetNotFoundError(
                "Event references no known order",
                details={
                    "provider_event_id": event.id,
                    "order_ids": requested,
                },
            )

        if missing:
            logger.warning(
                "Event references unknown orders",
                extra={"provider_event_id": event.id, "missing_order_ids": missing},
            )

        orders = [
            OrderTarget(
                order_id=order_id,
                already_settled=status != OrderStatus.PENDING,
            )
            for order_id, status in statuses.items()
        ]
        return ResolvedTarget(
            target_type=TargetType.ORDERS,
            orders=orders,
            missing_order_ids=missing,
            checkout_ref=checkout_ref,
            payment_ref=payment_ref,
        )
