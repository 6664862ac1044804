"""
Tests for LedgerService.

This module tests the seller ledger: sale credits, idempotency, and the
invariant that the materialized balance equals the transaction log.
"""

import pytest

from members.tests.factories import MemberFactory
from payments.ledger import (
    BalanceMismatchError,
    BalanceTransaction,
    CreditParams,
    InvalidAmountError,
    LedgerService,
    SellerBalance,
    TransactionType,
    ledger,
    sale_idempotency_key,
)
from store.tests.factories import OrderFactory


@pytest.fixture
def seller(db):
    return MemberFactory()


class TestCreditSale:
    """Tests for LedgerService.credit_sale()."""

    def test_credits_balance_and_appends_transaction(self, seller):
        """Should create the balance row and one SALE transaction."""
        order = OrderFactory(seller=seller)

        entry = ledger.credit_sale(seller.id, order.id, 9500, "Sale: Order #ABC123")

        balance = SellerBalance.objects.get(seller=seller)
        assert balance.balance_cents == 9500
        assert balance.total_earned_cents == 9500
        assert entry.type == TransactionType.SALE
        assert entry.amount_cents == 9500
        assert entry.order_id == order.id
        assert entry.description == "Sale: Order #ABC123"
        assert entry.idempotency_key == sale_idempotency_key(order.id)

    def test_is_idempotent_per_order(self, seller):
        """Should not credit the same order twice."""
        order = OrderFactory(seller=seller)

        first = ledger.credit_sale(seller.id, order.id, 9500)
        second = ledger.credit_sale(seller.id, order.id, 9500)

        assert first.pk == second.pk
        assert BalanceTransaction.objects.filter(seller=seller).count() == 1
        assert ledger.get_balance(seller.id).cents == 9500

    def test_accumulates_across_orders(self, seller):
        ledger.credit_sale(seller.id, OrderFactory(seller=seller).id, 9500)
        ledger.credit_sale(seller.id, OrderFactory(seller=seller).id, 450)

        assert ledger.get_balance(seller.id).cents == 9950

    @pytest.mark.parametrize("amount", [0, -100])
    def test_rejects_non_positive_amounts(self, seller, amount):
        with pytest.raises(InvalidAmountError):
            ledger.credit_sale(seller.id, OrderFactory(seller=seller).id, amount)

        assert not BalanceTransaction.objects.exists()


class TestRecordTransaction:
    def test_adjustment_does_not_count_as_earnings(self, seller):
        """Should change the balance but not lifetime earnings."""
        LedgerService.record_transaction(
            CreditParams(
                seller_id=seller.id,
                amount_cents=-300,
                transaction_type=TransactionType.ADJUSTMENT,
                idempotency_key="adjustment:1",
            )
        )

        balance = SellerBalance.objects.get(seller=seller)
        assert balance.balance_cents == -300
        assert balance.total_earned_cents == 0

    def test_reports_whether_created(self, seller):
        params = CreditParams(
            seller_id=seller.id,
            amount_cents=100,
            transaction_type=TransactionType.ADJUSTMENT,
            idempotency_key="adjustment:2",
        )

        _, created = LedgerService.record_transaction(params)
        _, created_again = LedgerService.record_transaction(params)

        assert created is True
        assert created_again is False

    def test_params_reject_zero_amount(self):
        with pytest.raises(ValueError, match="non-zero"):
            CreditParams(
                seller_id=None,
                amount_cents=0,
                transaction_type=TransactionType.ADJUSTMENT,
                idempotency_key="x",
            )


class TestVerifyBalance:
    def test_balance_matches_log(self, seller):
        ledger.credit_sale(seller.id, OrderFactory(seller=seller).id, 9500)

        assert ledger.verify_balance(seller.id).cents == 9500
        assert ledger.recompute_balance(seller.id) == 9500

    def test_detects_drift(self, seller):
        """Should raise when the cached balance was written outside the ledger."""
        ledger.credit_sale(seller.id, OrderFactory(seller=seller).id, 9500)
        SellerBalance.objects.filter(seller=seller).update(balance_cents=10_000)

        with pytest.raises(BalanceMismatchError) as exc_info:
            ledger.verify_balance(seller.id)

        assert exc_info.value.details["difference_cents"] == 500

    def test_seller_without_sales(self, seller):
        assert ledger.get_balance(seller.id).cents == 0
        assert ledger.verify_balance(seller.id).cents == 0
