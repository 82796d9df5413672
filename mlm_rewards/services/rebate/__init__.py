"""
Rebate services package.

Contains modular services for purchase rebates:
- config_manager: validated per-product, per-level rules
- calculator: purchase -> pending rebates
- processor: pending rebates -> wallet credits
"""

from mlm_rewards.services.rebate.calculator import (
    RebateCalculator,
    calculate_rebate_amount,
)
from mlm_rewards.services.rebate.config_manager import (
    RebateConfigManager,
    validate_rebate_config,
)
from mlm_rewards.services.rebate.processor import (
    ProcessSummary,
    RebateOutcome,
    RebateProcessor,
)


__all__ = [
    # Configuration
    "RebateConfigManager",
    "validate_rebate_config",
    # Calculation
    "RebateCalculator",
    "calculate_rebate_amount",
    # Processing
    "ProcessSummary",
    "RebateOutcome",
    "RebateProcessor",
]
