"""
Django admin configuration for ledger models.

Key features:
- BalanceTransaction is immutable (no add/edit/delete permissions)
- SellerBalance shows the materialized balance next to the log total
"""

from django.contrib import admin

from .models import BalanceTransaction, SellerBalance
from .services import ledger


@admin.register(SellerBalance)
class SellerBalanceAdmin(admin.ModelAdmin):
    """
    Admin configuration for SellerBalance.

    Balances are written only by LedgerService; the admin is read-only.
    """

    list_display = [
        "seller",
        "balance_display",
        "total_earned_cents",
        "currency",
        "updated_at",
    ]
    list_filter = ["currency"]
    search_fields = ["seller__email", "seller__id"]
    readonly_fields = [
        "seller",
        "balance_cents",
        "total_earned_cents",
        "currency",
        "log_total_display",
        "created_at",
        "updated_at",
    ]
    ordering = ["-updated_at"]

    def balance_display(self, obj: SellerBalance) -> str:
        return f"${obj.balance_cents / 100:.2f}"

    balance_display.short_description = "Balance"

    def log_total_display(self, obj: SellerBalance) -> str:
        """Sum of the seller's transaction log (one query)."""
        cents = ledger.recompute_balance(obj.seller_id)
        return f"${cents / 100:.2f}"

    log_total_display.short_description = "Transaction log total"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(BalanceTransaction)
class BalanceTransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for BalanceTransaction.

    Transactions are immutable - they cannot be added, edited or deleted
    through the admin interface. Corrections are new ADJUSTMENT rows
    recorded through LedgerService.
    """

    list_display = [
        "id",
        "created_at",
        "type",
        "amount_display",
        "seller",
        "order",
    ]
    list_filter = ["type", "created_at"]
    search_fields = ["idempotency_key", "description", "seller__email"]
    readonly_fields = [
        "seller",
        "type",
        "amount_cents",
        "order",
        "description",
        "idempotency_key",
        "created_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def amount_display(self, obj: BalanceTransaction) -> str:
        """Display the amount formatted as currency."""
        return f"${obj.amount_cents / 100:.2f}"

    amount_display.short_description = "Amount"

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False
