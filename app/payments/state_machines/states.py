"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

WebhookEvent (inbox) Status:
    pending → processing → processed
    processing → failed → processing (retry)
    processing → dead_lettered (permanent data error; manual requeue only)

ShippingPayout States (django-fsm):
    pending → paid
    pending → failed → pending (reconciliation retry)

PendingSideEffect Status:
    pending → delivered
    pending → failed (attempts exhausted; manual requeue only)

Subscription Status:
    Not a guarded state machine: the processor's status overwrites ours.
"""

from django.db import models


class PaymentEventKind(models.TextChoices):
    """
    Event kinds the settlement pipeline understands.

    Every processor event type maps onto one of these (see
    payments.webhooks.ingress.EVENT_KIND_MAP). Anything unmapped is
    UNRECOGNIZED: acknowledged and otherwise ignored.
    """

    CHECKOUT_COMPLETED = "checkout_completed", "Checkout Completed"
    PAYMENT_CAPTURED = "payment_captured", "Payment Captured"
    INVOICE_PAID = "invoice_paid", "Invoice Paid"
    SUBSCRIPTION_CHANGED = "subscription_changed", "Subscription Changed"
    UNRECOGNIZED = "unrecognized", "Unrecognized"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for inbox events.

    Values:
        PENDING: Stored, waiting for the worker
        PROCESSING: Worker is applying the event
        PROCESSED: Fully applied (or nothing to do)
        FAILED: Transient failure; will be retried
        DEAD_LETTERED: Permanent failure; needs manual remediation
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
    DEAD_LETTERED = "dead_lettered", "Dead Lettered"


class WebhookEventOutcome(models.TextChoices):
    """What processing an inbox event ended up doing."""

    SETTLED = "settled", "Settled"
    ALREADY_SETTLED = "already_settled", "Already Settled"
    PARTIALLY_SETTLED = "partially_settled", "Partially Settled"
    SUBSCRIPTION_APPLIED = "subscription_applied", "Subscription Applied"
    TARGET_NOT_FOUND = "target_not_found", "Target Not Found"
    IGNORED = "ignored", "Ignored"
    PERMANENT_ERROR = "permanent_error", "Permanent Error"


class PayoutState(models.TextChoices):
    """
    States for shipping reimbursement payouts.

    Terminal state: PAID
    FAILED payouts are retried by the reconciliation job until
    PAYOUT_MAX_ATTEMPTS is reached.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


class SubscriptionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CANCELED = "canceled", "Canceled"


class SubscriptionPlan(models.TextChoices):
    """
    Plans members can subscribe to.

    Values:
        SUBSCRIBE: Member subscription; doubles purchase points
        SPONSOR: Business sponsorship; first activation creates a business
        SELLER: Seller plan
    """

    SUBSCRIBE = "subscribe", "Subscriber"
    SPONSOR = "sponsor", "Sponsor"
    SELLER = "seller", "Seller"


class SideEffectKind(models.TextChoices):
    """
    Work the outbox worker delivers after a transaction commits.

    Values:
        BUYER_BADGE_CHECK: Re-evaluate spend badges for a buyer
        BUSINESS_BADGES: Award signup badges to a new business
        SHIPPING_PAYOUT: Reimburse a seller's shipping cost
    """

    BUYER_BADGE_CHECK = "buyer_badge_check", "Buyer Badge Check"
    BUSINESS_BADGES = "business_badges", "Business Badges"
    SHIPPING_PAYOUT = "shipping_payout", "Shipping Payout"


class SideEffectStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    DELIVERED = "delivered", "Delivered"
    FAILED = "failed", "Failed"
