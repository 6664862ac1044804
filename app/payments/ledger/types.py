"""
Data types for ledger operations.

Types:
    Money: Represents a monetary amount in cents with currency
    CreditParams: Parameters for appending a balance transaction
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Money:
    """
    Represents a monetary amount.

    All amounts are stored in cents (smallest currency unit) to avoid
    floating-point precision issues.

    Example:
        amount = Money(cents=9500, currency='usd')
        print(amount)  # "$95.00 USD"
    """

    cents: int
    currency: str = "usd"

    def __str__(self) -> str:
        dollars = self.cents / 100
        return f"${dollars:.2f} {self.currency.upper()}"

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(cents=self.cents + other.cents, currency=self.currency)


@dataclass
class CreditParams:
    """
    Parameters for appending a balance transaction.

    Required Attributes:
        seller_id: Member whose balance changes
        amount_cents: Signed amount (must be non-zero)
        transaction_type: TransactionType value
        idempotency_key: Unique key to prevent duplicate transactions

    Optional Attributes:
        order_id: Order that caused the change
        description: Human-readable line
    """

    seller_id: uuid.UUID
    amount_cents: int
    transaction_type: str
    idempotency_key: str
    order_id: uuid.UUID | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.amount_cents == 0:
            raise ValueError("amount_cents must be non-zero")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
