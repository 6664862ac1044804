"""
Store app: catalog items, orders and their line items.

Orders are created by the checkout flow in Pending status. The payments
app moves them to Paid; later states belong to fulfilment tooling.
"""
