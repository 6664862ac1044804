"""
Store models: catalog items, orders and line items.

This module defines:
- CatalogItem: Something a seller lists, with a mutable available quantity
- Order: A purchase from one seller by one buyer
- LineItem: A priced, immutable copy of a catalog item inside an order

Lifecycle:
    Orders are created by checkout in PENDING. Payment settlement moves them
    PENDING -> PAID exactly once (a conditional UPDATE, see
    payments.settlement.engine). SHIPPED, DELIVERED, REFUNDED and CANCELED
    are owned by fulfilment and support tooling.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.exceptions import ConflictError
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ListingType(models.TextChoices):
    """
    How an item is sold.

    Values:
        STANDARD: Retail stock sold by a shop
        RESALE: Peer-to-peer resale between members
    """

    STANDARD = "standard", "Standard"
    RESALE = "resale", "Resale"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    REFUNDED = "refunded", "Refunded"
    CANCELED = "canceled", "Canceled"


class CatalogItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    An item listed for sale.

    available_quantity is decremented by settlement with single-row atomic
    updates (see store.services.InventoryService). A database constraint
    keeps it from going negative.
    """

    seller = models.ForeignKey(
        "members.Member",
        on_delete=models.CASCADE,
        related_name="catalog_items",
    )
    title = models.CharField(max_length=200)
    price_cents = models.PositiveIntegerField(
        help_text="Current list price in cents",
    )
    available_quantity = models.IntegerField(
        default=0,
        help_text="Units currently available for purchase",
    )
    listing_type = models.CharField(
        max_length=20,
        choices=ListingType.choices,
        default=ListingType.STANDARD,
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(available_quantity__gte=0),
                name="catalog_item_quantity_non_negative",
            )
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.available_quantity} available)"


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchase from one seller.

    Fields:
        buyer / seller: The two members involved
        subtotal_cents, shipping_cost_cents, total_cents: Amounts fixed at checkout
        status: Lifecycle status (see OrderStatus)
        checkout_ref: Processor checkout session id that paid for this order
        payment_ref: Processor payment intent id that paid for this order
        platform_fee_cents / seller_credit_cents: Commission split, set at settlement
        points_awarded: Buyer points granted at settlement
        paid_at: When settlement committed
        needs_review / review_reason: Set when settlement hit something a
            human must look at (oversold stock, inconsistent data)

    Note:
        total_cents is signed so that corrupt totals can be detected and
        rejected by settlement instead of failing at the database layer.
    """

    buyer = models.ForeignKey(
        "members.Member",
        on_delete=models.PROTECT,
        related_name="purchases",
    )
    seller = models.ForeignKey(
        "members.Member",
        on_delete=models.PROTECT,
        related_name="sales",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    subtotal_cents = models.IntegerField(default=0)
    shipping_cost_cents = models.IntegerField(
        default=0,
        help_text="Shipping charged to the buyer and reimbursed to the seller",
    )
    total_cents = models.IntegerField(
        help_text="Amount the buyer paid, in cents",
    )
    currency = models.CharField(max_length=3, default="usd")

    # ==========================================================================
    # Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Processor References
    # ==========================================================================

    checkout_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Checkout Session ID (cs_xxx)",
    )
    payment_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    # ==========================================================================
    # Settlement Results
    # ==========================================================================

    platform_fee_cents = models.IntegerField(null=True, blank=True)
    seller_credit_cents = models.IntegerField(null=True, blank=True)
    points_awarded = models.IntegerField(default=0)

    needs_review = models.BooleanField(default=False, db_index=True)
    review_reason = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["buyer", "status"]),
            models.Index(fields=["seller", "status"]),
        ]

    def __str__(self) -> str:
        return f"Order({self.pk}, {self.status}, {self.total_cents} cents)"

    @property
    def is_settled(self) -> bool:
        """True once the order has been paid (or moved past paid)."""
        return self.status != OrderStatus.PENDING and self.status != OrderStatus.CANCELED


class LineItem(models.Model):
    """
    One purchased catalog item, priced at purchase time.

    Rows are immutable after creation: catalog edits must never change
    historical orders. catalog_item is nulled if the listing is deleted,
    which settlement treats as a data inconsistency.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="line_items",
    )
    catalog_item = models.ForeignKey(
        CatalogItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="line_items",
    )
    title = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    unit_price_cents = models.PositiveIntegerField(
        help_text="Price per unit at the time of purchase",
    )
    listing_type = models.CharField(
        max_length=20,
        choices=ListingType.choices,
        default=ListingType.STANDARD,
        help_text="Listing type at the time of purchase",
    )

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="line_item_quantity_positive",
            )
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.title}"

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ConflictError(
                "Line items cannot be modified after purchase",
                error_code="LINE_ITEM_IMMUTABLE",
                details={"line_item_id": self.pk},
            )
        super().save(*args, **kwargs)
