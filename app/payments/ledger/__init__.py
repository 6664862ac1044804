"""
Ledger - seller balances backed by an append-only transaction log.

Public API:
    Models:
        SellerBalance - Materialized running balance per seller
        BalanceTransaction - Append-only log (source of truth)
        TransactionType - Enum of transaction types

    Service:
        ledger - Singleton instance of LedgerService
        LedgerService - Class with all ledger operations

    Types:
        Money - Monetary amount in cents
        CreditParams - Parameters for appending a transaction

    Exceptions:
        LedgerError - Base exception for ledger operations
        InvalidAmountError - Zero or wrongly-signed amounts
        BalanceMismatchError - Balance drifted from the log

Usage:
    from payments.ledger import ledger

    ledger.credit_sale(seller_id, order_id, 9500, "Sale: Order #A1B2C3")
    ledger.verify_balance(seller_id)
"""

from .exceptions import BalanceMismatchError, InvalidAmountError, LedgerError
from .models import BalanceTransaction, SellerBalance, TransactionType
from .services import LedgerService, ledger, sale_idempotency_key
from .types import CreditParams, Money

__all__ = [
    "BalanceMismatchError",
    "BalanceTransaction",
    "CreditParams",
    "InvalidAmountError",
    "LedgerError",
    "LedgerService",
    "Money",
    "SellerBalance",
    "TransactionType",
    "ledger",
    "sale_idempotency_key",
]
