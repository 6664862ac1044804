"""
Subscription lifecycle handling.

Mirrors processor subscriptions into Subscription rows:
- Activation (subscription checkout, paid invoice) creates the row,
  idempotent on the processor subscription id
- Status changes overwrite status and period end; the processor is the
  source of truth, so there is no transition guard
- A first sponsor activation carrying business profile data creates the
  sponsor's directory business exactly once

Usage:
    from payments.services import SubscriptionService

    result = SubscriptionService.apply_subscription_event(event)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.utils import timezone

from core.helpers import validate_uuid
from core.services import BaseService, ServiceResult
from directory.services import BusinessService, parse_signup_data
from members.models import Member
from payments.adapters import StripeAdapter, subscription_period_end
from payments.exceptions import PermanentDataError, StripeError, TargetNotFoundError
from payments.models import Subscription
from payments.outbox import enqueue_side_effect
from payments.settlement.resolver import invoice_subscription_id
from payments.state_machines import (
    PaymentEventKind,
    SideEffectKind,
    SubscriptionPlan,
    SubscriptionStatus,
)

if TYPE_CHECKING:
    from payments.webhooks.ingress import PaymentEvent

ACTIVE_PROVIDER_STATUSES = frozenset({"active", "trialing"})


def business_badges_dedupe_key(business_id: uuid.UUID) -> str:
    return f"{business_id}:signup_badges"


class SubscriptionService(BaseService):
    """
    Applies subscription events.

    Errors follow the settlement taxonomy: TargetNotFoundError when the
    member or subscription is unknown, PermanentDataError for an unknown
    plan. Everything else propagates so the event is retried.
    """

    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def apply_subscription_event(cls, event: PaymentEvent) -> ServiceResult[Subscription]:
        """
        Apply a subscription checkout, paid invoice or status change.

        Raises:
            TargetNotFoundError: The event names no known member/subscription
            PermanentDataError: The event names an unknown plan
        """
        obj = event.data_object

        if event.kind == PaymentEventKind.CHECKOUT_COMPLETED:
            metadata = obj.get("metadata") or {}
            return cls.activate(
                member_id=metadata.get("memberId"),
                plan=metadata.get("planId"),
                provider_ref=obj.get("subscription"),
                provider_customer_ref=obj.get("customer"),
                business_data=metadata.get("businessData"),
            )

        if event.kind == PaymentEventKind.INVOICE_PAID:
            return cls._apply_paid_invoice(obj)

        if event.kind == PaymentEventKind.SUBSCRIPTION_CHANGED:
            return cls.apply_status_change(obj)

        return ServiceResult.failure(
            f"Not a subscription event: {event.event_type}",
            error_code="NOT_A_SUBSCRIPTION_EVENT",
        )

    @classmethod
    def _apply_paid_invoice(cls, invoice: dict[str, Any]) -> ServiceResult[Subscription]:
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            raise TargetNotFoundError(
                "Invoice is not for a subscription",
                details={"invoice_id": invoice.get("id")},
            )

        existing = Subscription.objects.filter(provider_ref=subscription_id).first()
        if existing is not None:
            cls.get_logger().info(
                "Invoice paid for known subscription",
                extra={"subscription_ref": subscription_id},
            )
            return ServiceResult.success(existing)

        parent = invoice.get("parent") or {}
        metadata = (
            (parent.get("subscription_details") or {}).get("metadata")
            or (invoice.get("subscription_details") or {}).get("metadata")
            or {}
        )
        period_end = None
        if not metadata.get("memberId"):
            try:
                details = cls.get_stripe_adapter().retrieve_subscription(subscription_id)
            except StripeError as e:
                if e.is_retryable:
                    raise
                raise PermanentDataError(
                    "Could not retrieve subscription for invoice",
                    error_code="SUBSCRIPTION_LOOKUP_FAILED",
                    details={"subscription_ref": subscription_id},
                ) from e
            metadata = details.metadata
            period_end = details.current_period_end

        return cls.activate(
            member_id=metadata.get("memberId"),
            plan=metadata.get("planId"),
            provider_ref=subscription_id,
            provider_customer_ref=invoice.get("customer"),
            business_data=metadata.get("businessData"),
            current_period_end=period_end,
        )

    @classmethod
    def activate(
        cls,
        member_id: str | None,
        plan: str | None,
        provider_ref: str | None,
        provider_customer_ref: str | None = None,
        business_data: Any = None,
        current_period_end: datetime | None = None,
    ) -> ServiceResult[Subscription]:
        """
        Record an active subscription, once per provider_ref.

        A sponsor plan with business_data also runs the one-time sponsor
        business setup.

        Raises:
            TargetNotFoundError: Missing ids or unknown member
            PermanentDataError: Unknown plan
        """
        if not member_id or not provider_ref:
            raise TargetNotFoundError(
                "Subscription event is missing member or subscription id",
                details={"member_id": member_id, "subscription_ref": provider_ref},
            )
        if plan not in SubscriptionPlan.values:
            raise PermanentDataError(
                f"Unknown subscription plan: {plan!r}",
                error_code="UNKNOWN_PLAN",
                details={"subscription_ref": provider_ref, "plan": plan},
            )
        if not validate_uuid(member_id) or not Member.objects.filter(pk=member_id).exists():
            raise TargetNotFoundError(
                f"Member {member_id} not found",
                details={"member_id": member_id, "subscription_ref": provider_ref},
            )

        with transaction.atomic():
            subscription, created = Subscription.objects.get_or_create(
                provider_ref=provider_ref,
                defaults={
                    "member_id": member_id,
                    "plan": plan,
                    "provider_customer_ref": provider_customer_ref,
                    "status": SubscriptionStatus.ACTIVE,
                    "current_period_end": current_period_end,
                },
            )
            if subscription.plan == SubscriptionPlan.SPONSOR and business_data:
                cls._complete_sponsor_setup(subscription, business_data)

        cls.get_logger().info(
            "Subscription activated" if created else "Subscription already recorded",
            extra={
                "subscription_ref": provider_ref,
                "member_id": str(member_id),
                "plan": plan,
            },
        )
        return ServiceResult.success(subscription)

    @classmethod
    def _complete_sponsor_setup(cls, subscription: Subscription, business_data: Any) -> None:
        logger = cls.get_logger()
        log_context = {"subscription_ref": subscription.provider_ref}

        claimed = Subscription.objects.filter(
            pk=subscription.pk,
            sponsor_setup_completed_at__isnull=True,
        ).update(sponsor_setup_completed_at=timezone.now())
        if not claimed:
            return

        data = parse_signup_data(business_data)
        if data is None:
            logger.warning("Sponsor signup data unreadable; no business created", extra=log_context)
            return

        result = BusinessService.create_from_signup(subscription.member_id, data)
        if not result.success:
            logger.warning(
                "Sponsor business not created",
                extra={
                    **log_context,
                    "error_code": result.error_code,
                    "errors": result.errors,
                },
            )
            return

        business = result.data
        Subscription.objects.filter(pk=subscription.pk).update(business=business)
        subscription.business = business
        enqueue_side_effect(
            SideEffectKind.BUSINESS_BADGES,
            dedupe_key=business_badges_dedupe_key(business.id),
            payload={"business_id": str(business.id)},
        )

    @classmethod
    def apply_status_change(cls, provider_subscription: dict[str, Any]) -> ServiceResult[Subscription]:
        """
        Overwrite status and period end from a processor subscription.

        Raises:
            TargetNotFoundError: The subscription was never recorded
        """
        provider_ref = provider_subscription.get("id")
        status = (
            SubscriptionStatus.ACTIVE
            if provider_subscription.get("status") in ACTIVE_PROVIDER_STATUSES
            else SubscriptionStatus.CANCELED
        )
        updated = Subscription.objects.filter(provider_ref=provider_ref).update(
            status=status,
            current_period_end=subscription_period_end(provider_subscription),
            updated_at=timezone.now(),
        )
        if not updated:
            raise TargetNotFoundError(
                f"Subscription {provider_ref} not found",
                details={"subscription_ref": provider_ref},
            )

        cls.get_logger().info(
            "Subscription status updated",
            extra={"subscription_ref": provider_ref, "status": status},
        )
        return ServiceResult.success(Subscription.objects.get(provider_ref=provider_ref))
