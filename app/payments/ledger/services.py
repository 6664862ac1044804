"""
Ledger service layer for seller balances.

All ledger writes go through LedgerService so the materialized balance and
the append-only transaction log always move together.

Usage:
    from payments.ledger.services import ledger

    ledger.credit_sale(
        seller_id=order.seller_id,
        order_id=order.id,
        amount_cents=9500,
        description="Sale: Order #A1B2C3",
    )
    balance = ledger.get_balance(order.seller_id)  # Money(cents=9500)
"""

from __future__ import annotations

import logging
import uuid

from django.db import IntegrityError, transaction
from django.db.models import F, Sum

from .exceptions import BalanceMismatchError, InvalidAmountError
from .models import BalanceTransaction, SellerBalance, TransactionType
from .types import CreditParams, Money

logger = logging.getLogger(__name__)


def sale_idempotency_key(order_id: uuid.UUID) -> str:
    return f"sale:{order_id}"


class LedgerService:
    """
    Service class for seller ledger operations.

    Key features:
    - Log append and balance update in one transaction
    - Idempotency via unique keys (safe to retry)
    - Balance updates are F() increments, never read-modify-write

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def record_transaction(params: CreditParams) -> tuple[BalanceTransaction, bool]:
        """
        Append a balance transaction and apply it to the seller's balance.

        Idempotent: if a transaction with the same idempotency_key exists it
        is returned and the balance is left alone.

        Returns:
            (transaction, created)
        """
        with transaction.atomic():
            existing = BalanceTransaction.objects.filter(
                idempotency_key=params.idempotency_key
            ).first()
            if existing is not None:
                return existing, False

            # Append first, inside a savepoint, so a concurrent duplicate
            # fails here before the balance is touched.
            try:
                with transaction.atomic():
                    entry = BalanceTransaction.objects.create(
                        seller_id=params.seller_id,
                        type=params.transaction_type,
                        amount_cents=params.amount_cents,
                        order_id=params.order_id,
                        description=params.description,
                        idempotency_key=params.idempotency_key,
                    )
            except IntegrityError:
                entry = BalanceTransaction.objects.get(
                    idempotency_key=params.idempotency_key
                )
                return entry, False

            balance, _ = SellerBalance.objects.get_or_create(seller_id=params.seller_id)
            updates = {"balance_cents": F("balance_cents") + params.amount_cents}
            if params.transaction_type == TransactionType.SALE:
                updates["total_earned_cents"] = (
                    F("total_earned_cents") + params.amount_cents
                )
            SellerBalance.objects.filter(pk=balance.pk).update(**updates)

        logger.info(
            "Balance transaction recorded",
            extra={
                "seller_id": str(params.seller_id),
                "transaction_type": params.transaction_type,
                "amount_cents": params.amount_cents,
                "order_id": str(params.order_id) if params.order_id else None,
            },
        )
        return entry, True

    @staticmethod
    def credit_sale(
        seller_id: uuid.UUID,
        order_id: uuid.UUID,
        amount_cents: int,
        description: str = "",
    ) -> BalanceTransaction:
        """
        Credit a seller for a settled order.

        Raises:
            InvalidAmountError: If amount_cents is not positive
        """
        if amount_cents <= 0:
            raise InvalidAmountError(
                "Sale credits must be positive",
                details={"order_id": str(order_id), "amount_cents": amount_cents},
            )
        entry, _ = LedgerService.record_transaction(
            CreditParams(
                seller_id=seller_id,
                amount_cents=amount_cents,
                transaction_type=TransactionType.SALE,
                idempotency_key=sale_idempotency_key(order_id),
                order_id=order_id,
                description=description,
            )
        )
        return entry

    @staticmethod
    def get_balance(seller_id: uuid.UUID) -> Money:
        """Materialized balance for a seller (zero if they have never sold)."""
        balance = SellerBalance.objects.filter(seller_id=seller_id).first()
        if balance is None:
            return Money(cents=0)
        return Money(cents=balance.balance_cents, currency=balance.currency)

    @staticmethod
    def recompute_balance(seller_id: uuid.UUID) -> int:
        """Sum of the seller's transaction log, in cents."""
        return (
            BalanceTransaction.objects.filter(seller_id=seller_id).aggregate(
                total=Sum("amount_cents")
            )["total"]
            or 0
        )

    @staticmethod
    def verify_balance(seller_id: uuid.UUID) -> Money:
        """
        Check the materialized balance against the transaction log.

        Returns:
            The verified balance

        Raises:
            BalanceMismatchError: If the two disagree
        """
        materialized = LedgerService.get_balance(seller_id)
        computed = LedgerService.recompute_balance(seller_id)
        if materialized.cents != computed:
            raise BalanceMismatchError(seller_id, materialized.cents, computed)
        return materialized

    @staticmethod
    def get_transactions(seller_id: uuid.UUID, limit: int = 100):
        """Most recent transactions for a seller, newest first."""
        return BalanceTransaction.objects.filter(seller_id=seller_id).order_by(
            "-created_at"
        )[:limit]


# Singleton instance for convenience
ledger = LedgerService()
