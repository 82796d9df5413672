"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from mlm_rewards.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# Rewards engines
from mlm_rewards.services.binary_service import BinaryService
from mlm_rewards.services.genealogy_service import GenealogyService
from mlm_rewards.services.rank_service import RankService
from mlm_rewards.services.rebate_service import RebateService

# Sponsor tree
from mlm_rewards.services.tree_service import TreeService


__all__ = [
    "BaseService",
    "BinaryService",
    "GenealogyService",
    "RankService",
    "RebateService",
    "TreeService",
    "log_operation",
    "transaction",
]
