"""
Dramatiq actors.

Importing this package registers the broker and every actor, so workers
start with ``dramatiq jobs.tasks``.
"""

from jobs.broker import broker  # noqa: F401
from jobs.tasks.monthly_snapshot import run_monthly_snapshot
from jobs.tasks.rank_advancement import process_rank_advancements
from jobs.tasks.rebate_processing import (
    compute_missing_rebates,
    compute_purchase_rebates,
    process_pending_rebates,
)

__all__ = [
    "compute_missing_rebates",
    "compute_purchase_rebates",
    "process_pending_rebates",
    "process_rank_advancements",
    "run_monthly_snapshot",
]
