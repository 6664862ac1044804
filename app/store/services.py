"""
Inventory operations on catalog items.

Quantities are changed with single-statement conditional UPDATEs, never
read-modify-write, so concurrent purchases of the same item cannot lose
updates.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from store.models import CatalogItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryDecrement:
    """
    Outcome of a stock decrement.

    Attributes:
        catalog_item_id: Item that was decremented
        requested: Units the order asked for
        shortfall: Units that could not be taken from stock (0 normally)
    """

    catalog_item_id: uuid.UUID
    requested: int
    shortfall: int = 0

    @property
    def oversold(self) -> bool:
        return self.shortfall > 0


class InventoryService:
    """Stock level operations."""

    @staticmethod
    def decrement(catalog_item_id: uuid.UUID, quantity: int) -> InventoryDecrement:
        """
        Remove quantity units from an item's available stock.

        The common case is one conditional UPDATE. If stock is short, the
        row is locked and clamped to zero; the shortfall is reported back
        so the caller can flag the order for review.

        Raises:
            ValidationError: If quantity is not positive
            NotFoundError: If the catalog item does not exist
        """
        if quantity <= 0:
            raise ValidationError(
                "Decrement quantity must be positive",
                error_code="INVALID_QUANTITY",
                details={"quantity": quantity},
            )

        now = timezone.now()
        with transaction.atomic():
            updated = CatalogItem.objects.filter(
                pk=catalog_item_id,
                available_quantity__gte=quantity,
            ).update(
                available_quantity=F("available_quantity") - quantity,
                updated_at=now,
            )
            if updated:
                return InventoryDecrement(catalog_item_id, quantity)

            available = (
                CatalogItem.objects.select_for_update()
                .filter(pk=catalog_item_id)
                .values_list("available_quantity", flat=True)
                .first()
            )
            if available is None:
                raise NotFoundError(
                    f"Catalog item {catalog_item_id} not found",
                    error_code="CATALOG_ITEM_NOT_FOUND",
                    details={"catalog_item_id": str(catalog_item_id)},
                )

            CatalogItem.objects.filter(pk=catalog_item_id).update(
                available_quantity=Greatest(
                    F("available_quantity") - quantity, Value(0)
                ),
                updated_at=now,
            )

        shortfall = max(quantity - available, 0)
        if shortfall:
            logger.warning(
                "Catalog item oversold; stock clamped at zero",
                extra={
                    "catalog_item_id": str(catalog_item_id),
                    "requested": quantity,
                    "available": available,
                    "shortfall": shortfall,
                },
            )
        return InventoryDecrement(catalog_item_id, quantity, shortfall)
