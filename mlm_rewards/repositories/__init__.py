"""Data access layer."""

from mlm_rewards.repositories.base import BaseRepository
from mlm_rewards.repositories.binary_placement_repository import (
    BinaryPlacementRepository,
)
from mlm_rewards.repositories.commission_rate_repository import (
    CommissionRateRepository,
)
from mlm_rewards.repositories.monthly_performance_repository import (
    MonthlyPerformanceRepository,
)
from mlm_rewards.repositories.product_repository import ProductRepository
from mlm_rewards.repositories.purchase_repository import PurchaseRepository
from mlm_rewards.repositories.rank_advancement_repository import (
    RankAdvancementRepository,
)
from mlm_rewards.repositories.rank_repository import RankRepository
from mlm_rewards.repositories.rebate_config_repository import (
    RebateConfigRepository,
)
from mlm_rewards.repositories.rebate_repository import RebateRepository
from mlm_rewards.repositories.user_repository import UserRepository
from mlm_rewards.repositories.wallet_transaction_repository import (
    WalletTransactionRepository,
)

__all__ = [
    "BaseRepository",
    "BinaryPlacementRepository",
    "CommissionRateRepository",
    "MonthlyPerformanceRepository",
    "ProductRepository",
    "PurchaseRepository",
    "RankAdvancementRepository",
    "RankRepository",
    "RebateConfigRepository",
    "RebateRepository",
    "UserRepository",
    "WalletTransactionRepository",
]
