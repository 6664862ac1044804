"""
Settlement engine: turns a confirmed payment into durable order state.

settle() applies, in one database transaction:
1. The idempotency fence: a conditional UPDATE moving the order from
   PENDING to PAID. Zero rows updated means another delivery got there
   first and the whole call is a no-op.
2. The commission split (platform fee and seller credit).
3. Buyer points, doubled for active subscribers. The subscription rows
   are locked so a concurrent cancellation cannot interleave.
4. Inventory decrements, one atomic UPDATE per line item. Oversold items
   are clamped at zero and the order is flagged for review.
5. The buyer's loyalty delta.
6. The seller ledger credit (balance upsert and sale transaction).
7. Resale seller points when every line item is a resale listing.
8. Outbox rows for badge checks and shipping payouts, published only
   after commit.

Any exception rolls everything back, leaving the order PENDING and the
event safe to redeliver.

Usage:
    from payments.settlement import SettlementInput, settlement_engine

    result = settlement_engine.settle(SettlementInput(order_id=order.id))
"""

from __future__ import annotations

import uuid

from django.db import InterfaceError, OperationalError, transaction
from django.utils import timezone

from core.exceptions import NotFoundError
from core.helpers import short_reference
from core.services import BaseService
from members.models import PointsReason
from members.services import LoyaltyService
from payments.exceptions import (
    AlreadySettledError,
    PermanentDataError,
    TargetNotFoundError,
    TransientStoreError,
)
from payments.ledger import ledger
from payments.models import Subscription, shipping_correlation_id
from payments.outbox import enqueue_side_effect
from payments.settlement.policy import (
    compute_buyer_points,
    compute_commission,
    compute_resale_seller_points,
)
from payments.settlement.types import (
    SettlementInput,
    SettlementResult,
    SettlementStatus,
)
from payments.state_machines import SideEffectKind, SubscriptionPlan
from store.models import ListingType, Order, OrderStatus
from store.services import InventoryService


def buyer_badge_dedupe_key(order_id: uuid.UUID) -> str:
    return f"{order_id}:buyer_badges"


class SettlementEngine(BaseService):
    """
    Single entry point for order settlement.

    Every event kind that confirms a purchase ends up here with a
    SettlementInput; nothing else writes settlement state.
    """

    @classmethod
    def settle(cls, settlement_input: SettlementInput) -> SettlementResult:
        """
        Settle one order.

        Returns:
            SettlementResult with status SETTLED, or ALREADY_SETTLED if the
            order had already left PENDING

        Raises:
            TargetNotFoundError: The order does not exist
            PermanentDataError: The order's data cannot be settled; the
                order is flagged for review before this propagates
            TransientStoreError: The database was unavailable
        """
        logger = cls.get_logger()
        log_context = {
            "order_id": str(settlement_input.order_id),
            "provider_event_id": settlement_input.provider_event_id,
        }

        try:
            result = cls._settle_in_transaction(settlement_input)
        except AlreadySettledError:
            logger.info("Order already settled; nothing to do", extra=log_context)
            return SettlementResult(
                order_id=settlement_input.order_id,
                status=SettlementStatus.ALREADY_SETTLED,
            )
        except PermanentDataError as e:
            logger.error(
                "Order cannot be settled; flagged for review",
                extra={**log_context, "error_code": e.error_code, "details": e.details},
            )
            cls.flag_order_for_review(settlement_input.order_id, e.message)
            raise
        except (OperationalError, InterfaceError) as e:
            logger.warning(
                "Database unavailable during settlement",
                extra=log_context,
                exc_info=True,
            )
            raise TransientStoreError(
                "Database unavailable during settlement",
                details={"order_id": str(settlement_input.order_id)},
            ) from e

        logger.info(
            "Order settled",
            extra={
                **log_context,
                "platform_fee_cents": result.platform_fee_cents,
                "seller_credit_cents": result.seller_credit_cents,
                "points_awarded": result.points_awarded,
                "needs_review": result.needs_review,
            },
        )
        return result

    @classmethod
    def _settle_in_transaction(cls, settlement_input: SettlementInput) -> SettlementResult:
        order_id = settlement_input.order_id
        now = timezone.now()

        with transaction.atomic():
            # Step 1: the fence
            updates = {"status": OrderStatus.PAID, "paid_at": now, "updated_at": now}
            if settlement_input.checkout_ref:
                updates["checkout_ref"] = settlement_input.checkout_ref
            if settlement_input.payment_ref:
                updates["payment_ref"] = settlement_input.payment_ref

            claimed = Order.objects.filter(pk=order_id, status=OrderStatus.PENDING).update(
                **updates
            )
            if not claimed:
                if not Order.objects.filter(pk=order_id).exists():
                    raise TargetNotFoundError(
                        f"Order {order_id} not found",
                        details={"order_id": str(order_id)},
                    )
                raise AlreadySettledError(
                    f"Order {order_id} is not pending",
                    details={"order_id": str(order_id)},
                )

            order = Order.objects.get(pk=order_id)
            # Catalog id order so concurrent orders lock stock rows in the same order
            line_items = list(order.line_items.order_by("catalog_item_id", "pk"))
            if not line_items:
                raise PermanentDataError(
                    "Order has no line items",
                    error_code="ORDER_WITHOUT_LINE_ITEMS",
                    details={"order_id": str(order_id)},
                )

            # Step 2
            split = compute_commission(order.total_cents)

            # Step 3
            is_subscriber = cls._buyer_is_subscriber(order.buyer_id)
            points = compute_buyer_points(order.total_cents, is_subscriber)

            # Step 4
            oversold = []
            for item in line_items:
                if item.catalog_item_id is None:
                    raise PermanentDataError(
                        "Line item references a deleted catalog item",
                        error_code="CATALOG_ITEM_MISSING",
                        details={"order_id": str(order_id), "line_item_id": item.pk},
                    )
                try:
                    decrement = InventoryService.decrement(item.catalog_item_id, item.quantity)
                except NotFoundError as e:
                    raise PermanentDataError(
                        "Line item references a deleted catalog item",
                        error_code="CATALOG_ITEM_MISSING",
                        details={
                            "order_id": str(order_id),
                            "catalog_item_id": str(item.catalog_item_id),
                        },
                    ) from e
                if decrement.oversold:
                    oversold.append(item.catalog_item_id)

            # Step 5
            LoyaltyService.apply_delta(order.buyer_id, points, PointsReason.PURCHASE, order.id)

            # Step 6
            if split.seller_credit_cents > 0:
                ledger.credit_sale(
                    seller_id=order.seller_id,
                    order_id=order.id,
                    amount_cents=split.seller_credit_cents,
                    description=f"Sale: Order #{short_reference(order.id)}",
                )

            # Step 7
            seller_points = 0
            if all(item.listing_type == ListingType.RESALE for item in line_items):
                seller_points = compute_resale_seller_points(order.total_cents)
                LoyaltyService.apply_delta(
                    order.seller_id, seller_points, PointsReason.RESALE_SALE, order.id
                )

            review_reason = None
            if oversold:
                review_reason = "Oversold catalog items: " + ", ".join(
                    str(item_id) for item_id in oversold
                )
            Order.objects.filter(pk=order_id).update(
                platform_fee_cents=split.platform_fee_cents,
                seller_credit_cents=split.seller_credit_cents,
                points_awarded=points,
                needs_review=bool(oversold),
                review_reason=review_reason,
            )

            # Step 8
            enqueue_side_effect(
                SideEffectKind.BUYER_BADGE_CHECK,
                dedupe_key=buyer_badge_dedupe_key(order.id),
                payload={"member_id": str(order.buyer_id), "order_id": str(order.id)},
            )
            if order.shipping_cost_cents > 0:
                enqueue_side_effect(
                    SideEffectKind.SHIPPING_PAYOUT,
                    dedupe_key=shipping_correlation_id(order.id),
                    payload={"order_id": str(order.id)},
                )

        return SettlementResult(
            order_id=order_id,
            status=SettlementStatus.SETTLED,
            platform_fee_cents=split.platform_fee_cents,
            seller_credit_cents=split.seller_credit_cents,
            points_awarded=points,
            seller_points_awarded=seller_points,
            oversold_items=oversold,
        )

    @staticmethod
    def _buyer_is_subscriber(buyer_id: uuid.UUID) -> bool:
        # Locks the buyer's active subscriber rows until commit.
        locked = (
            Subscription.objects.select_for_update()
            .active()
            .filter(member_id=buyer_id, plan=SubscriptionPlan.SUBSCRIBE)
            .values_list("pk", flat=True)[:1]
        )
        return bool(list(locked))

    @classmethod
    def flag_order_for_review(cls, order_id: uuid.UUID, reason: str) -> bool:
        """
        Mark an order as needing manual review.

        Runs outside the (rolled back) settlement transaction so the flag
        survives.

        Returns:
            True if the order exists
        """
        flagged = Order.objects.filter(pk=order_id).update(
            needs_review=True,
            review_reason=reason,
            updated_at=timezone.now(),
        )
        return bool(flagged)


settlement_engine = SettlementEngine()
