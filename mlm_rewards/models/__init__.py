"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from mlm_rewards.models.base import Base
from mlm_rewards.models.binary_placement import BinaryPlacement
from mlm_rewards.models.commission_rate import CommissionRate
from mlm_rewards.models.enums import (
    CommissionType,
    LegPosition,
    PurchaseStatus,
    RebateStatus,
    RewardType,
    WalletTransactionType,
)
from mlm_rewards.models.monthly_performance import MonthlyPerformance
from mlm_rewards.models.product import Product
from mlm_rewards.models.purchase import Purchase
from mlm_rewards.models.rank import Rank
from mlm_rewards.models.rank_advancement import RankAdvancement
from mlm_rewards.models.rebate import Rebate
from mlm_rewards.models.rebate_config import RebateConfig
from mlm_rewards.models.user import User
from mlm_rewards.models.wallet_transaction import WalletTransaction

__all__ = [
    "Base",
    "BinaryPlacement",
    "CommissionRate",
    "CommissionType",
    "LegPosition",
    "MonthlyPerformance",
    "Product",
    "Purchase",
    "PurchaseStatus",
    "Rank",
    "RankAdvancement",
    "Rebate",
    "RebateConfig",
    "RebateStatus",
    "RewardType",
    "User",
    "WalletTransaction",
    "WalletTransactionType",
]
