"""
Payments app configuration.

This app provides the payment settlement pipeline:
- Webhook inbox and processing
- Order settlement and seller ledger
- Shipping payouts and the side effect outbox
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
