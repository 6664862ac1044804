"""
Order settlement: resolve payment events and apply them to orders.

Usage:
    from payments.settlement import OrderResolver, settlement_engine
"""

from payments.settlement.engine import SettlementEngine, settlement_engine
from payments.settlement.policy import (
    CommissionSplit,
    compute_buyer_points,
    compute_commission,
    compute_resale_seller_points,
)
from payments.settlement.resolver import (
    OrderResolver,
    OrderTarget,
    ResolvedTarget,
    TargetType,
)
from payments.settlement.types import (
    SettlementInput,
    SettlementResult,
    SettlementStatus,
)

__all__ = [
    "CommissionSplit",
    "OrderResolver",
    "OrderTarget",
    "ResolvedTarget",
    "SettlementEngine",
    "SettlementInput",
    "SettlementResult",
    "SettlementStatus",
    "TargetType",
    "compute_buyer_points",
    "compute_commission",
    "compute_resale_seller_points",
    "settlement_engine",
]
