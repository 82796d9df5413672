"""
Rank services package.

- eligibility: next-rank requirement checks and ladder validation
- advancement: one-step promotions with audit rows
"""

from mlm_rewards.services.rank.advancement import (
    AdvancementResult,
    RankAdvancementManager,
)
from mlm_rewards.services.rank.eligibility import (
    EligibilityResult,
    RankEligibilityChecker,
    RequirementCheck,
    evaluate_requirements,
    validate_rank_ladder,
)


__all__ = [
    "AdvancementResult",
    "EligibilityResult",
    "RankAdvancementManager",
    "RankEligibilityChecker",
    "RequirementCheck",
    "evaluate_requirements",
    "validate_rank_ladder",
]
