"""
Payment event handlers.

This module provides a handler registry keyed by PaymentEventKind and the
handlers for each kind. Handlers return a ServiceResult whose data is the
WebhookEventOutcome to record, and raise the settlement exceptions
(payments.exceptions) for everything the inbox task must map onto a
status.

Usage:
    from payments.webhooks.handlers import dispatch_webhook

    result = dispatch_webhook(event)
    webhook_event.mark_processed(result.data)
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult
from payments.exceptions import PermanentDataError, TargetNotFoundError
from payments.services import SubscriptionService
from payments.settlement import (
    OrderResolver,
    ResolvedTarget,
    TargetType,
    settlement_engine,
)
from payments.state_machines import PaymentEventKind, WebhookEventOutcome
from payments.webhooks.ingress import PaymentEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


Handler = Callable[[PaymentEvent], ServiceResult]

# Maps event kinds to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(*kinds: PaymentEventKind) -> Callable[[Handler], Handler]:
    """
    Decorator to register a handler for one or more event kinds.

    Usage:
        @register_handler(PaymentEventKind.INVOICE_PAID)
        def handle_invoice_paid(event: PaymentEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Handler) -> Handler:
        for kind in kinds:
            WEBHOOK_HANDLERS[kind] = func
        return func

    return decorator


def dispatch_webhook(event: PaymentEvent) -> ServiceResult:
    """
    Dispatch an event to its handler.

    Kinds without a handler (UNRECOGNIZED) succeed with outcome IGNORED so
    the processor never sees a failure for an event type we don't handle.
    """
    handler = WEBHOOK_HANDLERS.get(event.kind)

    if not handler:
        logger.info(
            f"No handler registered for event type: {event.event_type}",
            extra={"provider_event_id": event.id},
        )
        return ServiceResult.success(WebhookEventOutcome.IGNORED)

    logger.info(
        f"Dispatching {event.event_type} to handler",
        extra={"provider_event_id": event.id, "kind": event.kind},
    )
    return handler(event)


# =============================================================================
# Purchase Handlers
# =============================================================================


@register_handler(PaymentEventKind.CHECKOUT_COMPLETED, PaymentEventKind.PAYMENT_CAPTURED)
def handle_payment_confirmed(event: PaymentEvent) -> ServiceResult:
    """
    Handle a checkout completion or payment capture.

    Both kinds can confirm the same purchase; the settlement fence makes
    the second one a no-op. Subscription checkouts go to subscription
    handling instead.
    """
    target = OrderResolver.resolve(event)
    if target.target_type == TargetType.SUBSCRIPTION:
        return handle_subscription_event(event)
    return settle_orders(event, target)


def settle_orders(event: PaymentEvent, target: ResolvedTarget) -> ServiceResult:
    """
    Settle every pending order of a resolved target, each independently.

    A failure on one order never stops the others. Afterwards:
    - any unexpected or transient failure is re-raised, so the event is
      retried (orders settled this time are no-ops on retry)
    - if every order failed permanently, PermanentDataError is raised
    - if every order vanished before settling, TargetNotFoundError is raised
    - a mix of settled and permanently failed orders is PARTIALLY_SETTLED

    Raises:
        PermanentDataError: No order in the event could be settled
        TargetNotFoundError: Every order was deleted before it could settle
        Exception: The first transient failure
    """
    settled = []
    already_settled = [o.order_id for o in target.orders if o.already_settled]
    missing = []
    permanent_failures: list[tuple] = []
    transient_failures: list[tuple] = []

    for settlement_input in target.settlement_inputs(event.id):
        try:
            result = settlement_engine.settle(settlement_input)
        except TargetNotFoundError:
            missing.append(settlement_input.order_id)
            continue
        except PermanentDataError as e:
            permanent_failures.append((settlement_input.order_id, e))
            continue
        except Exception as e:
            logger.exception(
                "Order settlement failed; event will be retried",
                extra={
                    "provider_event_id": event.id,
                    "order_id": str(settlement_input.order_id),
                },
            )
            transient_failures.append((settlement_input.order_id, e))
            continue

        if result.settled:
            settled.append(result.order_id)
        else:
            already_settled.append(result.order_id)

    log_context = {
        "provider_event_id": event.id,
        "settled": [str(order_id) for order_id in settled],
        "already_settled": [str(order_id) for order_id in already_settled],
        "failed": [str(order_id) for order_id, _ in permanent_failures],
        "missing": [str(order_id) for order_id in missing],
    }

    if transient_failures:
        raise transient_failures[0][1]

    if permanent_failures and not settled and not already_settled:
        first_error = permanent_failures[0][1]
        raise PermanentDataError(
            "No order in the event could be settled",
            error_code=first_error.error_code,
            details=log_context,
        ) from first_error

    if missing and not settled and not already_settled:
        raise TargetNotFoundError("Event references no known order", details=log_context)

    if missing:
        logger.warning("Orders vanished before settlement", extra=log_context)

    if permanent_failures:
        logger.error("Event partially settled", extra=log_context)
        return ServiceResult.success(WebhookEventOutcome.PARTIALLY_SETTLED)

    if settled:
        logger.info("Event settled", extra=log_context)
        return ServiceResult.success(WebhookEventOutcome.SETTLED)

    logger.info("Event already settled", extra=log_context)
    return ServiceResult.success(WebhookEventOutcome.ALREADY_SETTLED)


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler(PaymentEventKind.INVOICE_PAID, PaymentEventKind.SUBSCRIPTION_CHANGED)
def handle_subscription_event(event: PaymentEvent) -> ServiceResult:
    """Handle subscription activation and status changes."""
    result = SubscriptionService.apply_subscription_event(event)
    if not result.success:
        return result
    return ServiceResult.success(WebhookEventOutcome.SUBSCRIPTION_APPLIED)
