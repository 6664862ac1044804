"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule and
registers the payment models. Operators requeue dead-lettered or failed
webhook events and failed side effects from here.
"""

from django.contrib import admin
from django.db import transaction
from django.utils import timezone

from payments.ledger.admin import BalanceTransactionAdmin, SellerBalanceAdmin
from payments.models import PendingSideEffect, ShippingPayout, Subscription, WebhookEvent
from payments.state_machines import SideEffectStatus, WebhookEventStatus

__all__ = [
    "BalanceTransactionAdmin",
    "PendingSideEffectAdmin",
    "SellerBalanceAdmin",
    "ShippingPayoutAdmin",
    "SubscriptionAdmin",
    "WebhookEventAdmin",
]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into inbox processing status. Webhook events are
    immutable once received; the requeue action is the only way to change
    their status here.
    """

    list_display = [
        "provider_event_id",
        "event_type",
        "kind",
        "status",
        "outcome",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "kind", "outcome", "created_at"]
    search_fields = ["id", "provider_event_id", "event_type"]
    readonly_fields = [
        "id",
        "provider_event_id",
        "event_type",
        "kind",
        "occurred_at",
        "status",
        "outcome",
        "retry_count",
        "error_message",
        "payload",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["requeue_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "provider_event_id", "event_type", "kind", "occurred_at"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("status", "outcome", "processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Requeue selected failed or dead-lettered events")
    def requeue_events(self, request, queryset):
        """Reset failed/dead-lettered events to pending and queue them."""
        from payments.tasks import process_webhook_event

        requeue_ids = list(
            queryset.filter(
                status__in=[WebhookEventStatus.FAILED, WebhookEventStatus.DEAD_LETTERED]
            ).values_list("id", flat=True)
        )
        WebhookEvent.objects.filter(id__in=requeue_ids).update(
            status=WebhookEventStatus.PENDING,
            outcome=None,
            retry_count=0,
            updated_at=timezone.now(),
        )
        for event_id in requeue_ids:
            transaction.on_commit(
                lambda event_id=event_id: process_webhook_event.delay(str(event_id))
            )
        self.message_user(request, f"Requeued {len(requeue_ids)} webhook events.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False


@admin.register(PendingSideEffect)
class PendingSideEffectAdmin(admin.ModelAdmin):
    list_display = [
        "dedupe_key",
        "kind",
        "status",
        "attempts",
        "next_attempt_at",
        "delivered_at",
    ]
    list_filter = ["status", "kind"]
    search_fields = ["dedupe_key"]
    readonly_fields = [
        "id",
        "kind",
        "payload",
        "dedupe_key",
        "status",
        "attempts",
        "next_attempt_at",
        "last_error",
        "delivered_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["requeue_side_effects"]

    @admin.action(description="Requeue selected failed side effects")
    def requeue_side_effects(self, request, queryset):
        count = queryset.filter(status=SideEffectStatus.FAILED).update(
            status=SideEffectStatus.PENDING,
            attempts=0,
            next_attempt_at=timezone.now(),
            updated_at=timezone.now(),
        )
        self.message_user(request, f"Requeued {count} side effects.")

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(ShippingPayout)
class ShippingPayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for ShippingPayout.

    State changes go through PayoutService, not the admin.
    """

    list_display = [
        "correlation_id",
        "seller",
        "amount_display",
        "state",
        "attempts",
        "last_error_retryable",
        "paid_at",
    ]
    list_filter = ["state", "last_error_retryable", "currency"]
    search_fields = ["correlation_id", "provider_payout_id", "seller__email"]
    readonly_fields = [
        "id",
        "order",
        "seller",
        "amount_cents",
        "currency",
        "correlation_id",
        "state",
        "provider_payout_id",
        "attempts",
        "last_error_retryable",
        "failure_reason",
        "paid_at",
        "failed_at",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def amount_display(self, obj: ShippingPayout) -> str:
        return f"{obj.amount_cents / 100:.2f} {obj.currency.upper()}"

    amount_display.short_description = "Amount"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "provider_ref",
        "member",
        "plan",
        "status",
        "current_period_end",
        "business",
    ]
    list_filter = ["plan", "status"]
    search_fields = ["provider_ref", "provider_customer_ref", "member__email"]
    readonly_fields = [
        "id",
        "provider_ref",
        "provider_customer_ref",
        "sponsor_setup_completed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
