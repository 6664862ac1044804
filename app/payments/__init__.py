"""
Payments app: settles orders from Stripe payment events.

This app handles:
- Webhook ingress, inbox and idempotent processing
- Order settlement (commission, points, inventory, seller ledger)
- Subscription lifecycle and sponsor signup
- Shipping payouts and post-commit side effects

Related apps:
    - store: Orders, line items and inventory
    - members: Loyalty points and badges
    - directory: Businesses created by sponsor signup

Usage:
    from payments.settlement import SettlementInput, settlement_engine

    result = settlement_engine.settle(SettlementInput(order_id=order.id))
"""
