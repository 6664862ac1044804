"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    ├── InvalidAmountError - Zero amounts or wrong sign for the type
    └── BalanceMismatchError - Materialized balance disagrees with the log

Usage:
    from payments.ledger.exceptions import BalanceMismatchError

    try:
        ledger.verify_balance(seller_id)
    except BalanceMismatchError as e:
        logger.error("Ledger drift", extra=e.details)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    import uuid


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class InvalidAmountError(LedgerError):
    default_error_code: str = "INVALID_LEDGER_AMOUNT"


class BalanceMismatchError(LedgerError):
    """
    Raised when SellerBalance.balance_cents differs from the transaction log.

    Attributes:
        seller_id: Seller whose balance drifted
        materialized: Stored balance_cents
        computed: Sum of the seller's transactions
    """

    default_error_code: str = "BALANCE_MISMATCH"

    def __init__(self, seller_id: uuid.UUID, materialized: int, computed: int):
        self.seller_id = seller_id
        self.materialized = materialized
        self.computed = computed
        super().__init__(
            f"Seller {seller_id} balance {materialized} does not match "
            f"transaction log total {computed}",
            details={
                "seller_id": str(seller_id),
                "materialized_cents": materialized,
                "computed_cents": computed,
                "difference_cents": materialized - computed,
            },
        )
