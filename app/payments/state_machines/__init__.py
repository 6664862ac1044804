"""
State enums for payment models.
"""

from payments.state_machines.states import (
    PaymentEventKind,
    PayoutState,
    SideEffectKind,
    SideEffectStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    WebhookEventOutcome,
    WebhookEventStatus,
)

__all__ = [
    "PaymentEventKind",
    "PayoutState",
    "SideEffectKind",
    "SideEffectStatus",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "WebhookEventOutcome",
    "WebhookEventStatus",
]
