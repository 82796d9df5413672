"""
Business constants.
Default rank ladder, activity score weights, traversal and job limits.
"""

from decimal import Decimal

PERCENT_BASE = Decimal("100")
MAX_PERCENTAGE = Decimal("100")

# Default rank ladder used by scripts/mlm_ops.py seed-ranks
DEFAULT_RANKS = (
    # level, name, min_direct_referrals, min_group_volume, min_personal_sales,
    # min_qualified_downline, qualified rank level
    (1, "Distributor", 0, Decimal("0"), Decimal("0"), 0, None),
    (2, "Silver", 2, Decimal("5000"), Decimal("1000"), 0, None),
    (3, "Gold", 5, Decimal("15000"), Decimal("2000"), 2, 2),
    (4, "Platinum", 10, Decimal("50000"), Decimal("3000"), 3, 3),
    (5, "Diamond", 15, Decimal("150000"), Decimal("5000"), 5, 4),
    (6, "Crown", 20, Decimal("500000"), Decimal("10000"), 5, 5),
)

# Activity score weights (recent purchases / recent sponsored users)
ACTIVITY_WINDOW_DAYS = 90
ACTIVITY_PURCHASE_WEIGHT = 10
ACTIVITY_REFERRAL_WEIGHT = 20
ACTIVITY_SCORE_MAX = 100

# Upper bound for full-ancestry walks (cycle checks)
MAX_TREE_DEPTH = 10_000

# Group volume tier size when a fixed group volume rate has no threshold
DEFAULT_GROUP_VOLUME_TIER_PV = Decimal("1000")

# Users handled per commit during monthly snapshots
SNAPSHOT_COMMIT_EVERY = 500

# Dramatiq job limits (milliseconds)
JOB_MAX_RETRIES = 3
JOB_TIME_LIMIT_STANDARD = 300_000  # 5 min
JOB_TIME_LIMIT_LONG = 3_600_000  # 1 hour
