"""
Shipping payout service: reimburses sellers for shipping after settlement.

A payout is an external side effect with no compensating transaction, so
the service works in two phases:
1. Phase 1: Create or lock the ShippingPayout row and count the attempt,
   commit
2. Phase 2: Call Stripe outside any transaction, then record PAID or
   FAILED

The payout correlation id ("<order_id>:shipping") is also the Stripe
idempotency key, so a retry after a lost response cannot pay twice.

trigger_shipping_payout never raises. Failures are stored on the payout
row and picked up by the retry_failed_shipping_payouts job; the order and
ledger are never touched.

Usage:
    from payments.services import PayoutService

    result = PayoutService.trigger_shipping_payout(order_id)
    if not result.success:
        logger.warning(result.error, extra={"error_code": result.error_code})
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import transaction

from core.services import BaseService, ServiceResult
from payments.adapters import StripeAdapter
from payments.exceptions import StripeError
from payments.models import ShippingPayout, shipping_correlation_id
from payments.state_machines import PayoutState
from store.models import Order


class PayoutService(BaseService):
    """
    Service for shipping cost reimbursements.

    Usage:
        result = PayoutService.trigger_shipping_payout(order_id)
        failed = PayoutService.retry_failed_payouts()
    """

    # Stripe adapter - can be injected for testing
    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        """Get the Stripe adapter class."""
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        """Set the Stripe adapter class (for testing)."""
        cls._stripe_adapter = adapter

    @classmethod
    def trigger_shipping_payout(
        cls, order_id: uuid.UUID
    ) -> ServiceResult[ShippingPayout | None]:
        """
        Pay a settled order's shipping cost out to its seller.

        Returns:
            ServiceResult with the ShippingPayout, success(None) when the
            order has no shipping cost, or a failure with one of:
            ORDER_NOT_FOUND, ORDER_NOT_SETTLED, PAYOUT_FAILED,
            PAYOUT_TRIGGER_ERROR
        """
        try:
            return cls._trigger(order_id)
        except Exception as e:
            cls.get_logger().exception(
                "Unexpected error triggering shipping payout",
                extra={"order_id": str(order_id)},
            )
            return ServiceResult.from_exception(e, error_code="PAYOUT_TRIGGER_ERROR")

    @classmethod
    def _trigger(cls, order_id: uuid.UUID) -> ServiceResult[ShippingPayout | None]:
        logger = cls.get_logger()
        log_context = {"order_id": str(order_id)}

        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            logger.warning("Shipping payout for unknown order", extra=log_context)
            return ServiceResult.failure(
                f"Order {order_id} not found",
                error_code="ORDER_NOT_FOUND",
            )
        if order.shipping_cost_cents <= 0:
            return ServiceResult.success(None)
        if not order.is_settled:
            logger.warning("Shipping payout for unsettled order", extra=log_context)
            return ServiceResult.failure(
                "Order has not been settled",
                error_code="ORDER_NOT_SETTLED",
            )

        correlation_id = shipping_correlation_id(order.id)

        # Phase 1: record the attempt
        with transaction.atomic():
            payout, _ = ShippingPayout.objects.select_for_update().get_or_create(
                correlation_id=correlation_id,
                defaults={
                    "order": order,
                    "seller_id": order.seller_id,
                    "amount_cents": order.shipping_cost_cents,
                    "currency": settings.SHIPPING_PAYOUT_CURRENCY,
                },
            )
            if payout.is_paid:
                logger.info(
                    "Shipping payout already paid",
                    extra={**log_context, "payout_id": str(payout.id)},
                )
                return ServiceResult.success(payout)
            if payout.state == PayoutState.FAILED:
                payout.retry()
            payout.attempts += 1
            payout.save()

        # Phase 2: call Stripe outside the transaction
        try:
            result = cls.get_stripe_adapter().create_payout(
                amount_cents=payout.amount_cents,
                idempotency_key=correlation_id,
                currency=payout.currency,
                metadata={"order_id": str(order.id), "reason": "shipping"},
                method=settings.SHIPPING_PAYOUT_METHOD,
            )
        except StripeError as e:
            logger.error(
                "Shipping payout failed",
                extra={
                    **log_context,
                    "payout_id": str(payout.id),
                    "attempts": payout.attempts,
                    "error_code": e.error_code,
                    "retryable": e.is_retryable,
                },
            )
            payout.fail(str(e), retryable=e.is_retryable)
            payout.save()
            return ServiceResult.failure(str(e), error_code="PAYOUT_FAILED")
        except Exception as e:
            logger.exception(
                "Unexpected error calling payout provider",
                extra={**log_context, "payout_id": str(payout.id)},
            )
            payout.fail(f"{type(e).__name__}: {e}", retryable=True)
            payout.save()
            return ServiceResult.failure(str(e), error_code="PAYOUT_FAILED")

        payout.complete(result.id)
        payout.save()
        logger.info(
            "Shipping payout paid",
            extra={
                **log_context,
                "payout_id": str(payout.id),
                "provider_payout_id": result.id,
                "amount_cents": payout.amount_cents,
            },
        )
        return ServiceResult.success(payout)

    @classmethod
    def retry_failed_payouts(cls) -> dict[str, int]:
        """
        Retry failed payouts that are retryable and under the attempt limit.

        Returns:
            Counts of payouts retried, paid and still failing
        """
        candidates = ShippingPayout.objects.filter(
            state=PayoutState.FAILED,
            last_error_retryable=True,
            attempts__lt=settings.PAYOUT_MAX_ATTEMPTS,
        ).values_list("order_id", flat=True)

        counts = {"retried": 0, "paid": 0, "failed": 0}
        for order_id in list(candidates):
            counts["retried"] += 1
            result = cls.trigger_shipping_payout(order_id)
            if result.success:
                counts["paid"] += 1
            else:
                counts["failed"] += 1

        if counts["retried"]:
            cls.get_logger().info("Retried failed shipping payouts", extra=counts)
        return counts
