"""
Seller ledger models.

This module defines:
- SellerBalance: Materialized running balance per seller (a cache)
- BalanceTransaction: Append-only log of balance changes (the source of truth)

Invariant:
    SellerBalance.balance_cents == sum(BalanceTransaction.amount_cents)
    for that seller. LedgerService.verify_balance() checks it and the
    reconcile_seller_balances task runs that check for every seller.

Usage:
    from payments.ledger.models import SellerBalance, BalanceTransaction

    balance = SellerBalance.objects.get(seller_id=seller.id)
    history = BalanceTransaction.objects.filter(seller_id=seller.id)
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.exceptions import ConflictError


class TransactionType(models.TextChoices):
    """
    Types of balance transactions.

    Values:
        SALE: Seller credit from a settled order (positive)
        PAYOUT: Money withdrawn by the seller (negative)
        REFUND: Reversal of a sale (negative)
        ADJUSTMENT: Manual correction (either sign)
    """

    SALE = "sale", "Sale"
    PAYOUT = "payout", "Payout"
    REFUND = "refund", "Refund"
    ADJUSTMENT = "adjustment", "Adjustment"


class SellerBalance(models.Model):
    """
    A seller's running balance.

    Fields:
        seller: Member who sells
        balance_cents: Current balance; changes with every transaction
        total_earned_cents: Lifetime sale credits; only sales increase it
        currency: ISO 4217 currency code
    """

    seller = models.OneToOneField(
        "members.Member",
        on_delete=models.PROTECT,
        related_name="seller_balance",
    )
    balance_cents = models.BigIntegerField(
        default=0,
        help_text="Current balance in cents (cache of the transaction log)",
    )
    total_earned_cents = models.BigIntegerField(
        default=0,
        help_text="Lifetime sale credits in cents",
    )
    currency = models.CharField(max_length=3, default="usd")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Seller Balance"
        verbose_name_plural = "Seller Balances"

    def __str__(self) -> str:
        return f"SellerBalance({self.seller_id}, {self.balance_cents} cents)"


class BalanceTransaction(models.Model):
    """
    One immutable change to a seller's balance.

    Fields:
        seller: Member whose balance changed
        type: TransactionType
        amount_cents: Signed amount (never zero)
        order: Order that caused the change, if any
        description: Human-readable line, e.g. "Sale: Order #A1B2C3"
        idempotency_key: Unique key so retries never append twice
            (e.g. "sale:<order_id>")

    Constraints:
        - amount_cents is non-zero
        - idempotency_key is unique

    Rows cannot be updated or deleted through the ORM instance API;
    corrections are new ADJUSTMENT rows.
    """

    seller = models.ForeignKey(
        "members.Member",
        on_delete=models.PROTECT,
        related_name="balance_transactions",
    )
    type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
    )
    amount_cents = models.BigIntegerField(
        help_text="Signed amount in cents",
    )
    order = models.ForeignKey(
        "store.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="balance_transactions",
    )
    description = models.CharField(max_length=255, blank=True, default="")
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate transactions",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["seller", "created_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount_cents=0),
                name="balance_transaction_amount_non_zero",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()}: {self.amount_cents} cents"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ConflictError(
                "Balance transactions are append-only",
                error_code="LEDGER_IMMUTABLE",
                details={"transaction_id": self.pk},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ConflictError(
            "Balance transactions are append-only",
            error_code="LEDGER_IMMUTABLE",
            details={"transaction_id": self.pk},
        )
