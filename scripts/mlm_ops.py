#!/usr/bin/env python3
"""
Operator CLI for the rewards engines.

Usage:
    python scripts/mlm_ops.py init-db
    python scripts/mlm_ops.py seed-ranks
    python scripts/mlm_ops.py compute-rebates [--purchase-id ID]
    python scripts/mlm_ops.py process-rebates [--batch-size N] [--max-batches N]
    python scripts/mlm_ops.py retry-rebates [--ids 1 2 3]
    python scripts/mlm_ops.py rebate-stats
    python scripts/mlm_ops.py process-ranks
    python scripts/mlm_ops.py validate-ranks
    python scripts/mlm_ops.py snapshot YEAR MONTH

Every command prints its summary as JSON on stdout.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.config.constants import DEFAULT_RANKS
from mlm_rewards.config.database import create_engine, create_session_maker
from mlm_rewards.models import Base
from mlm_rewards.models.rank import Rank
from mlm_rewards.repositories.rank_repository import RankRepository
from mlm_rewards.services.binary_service import BinaryService
from mlm_rewards.services.rank_service import RankService
from mlm_rewards.services.rebate_service import RebateService
from mlm_rewards.utils.exceptions import MLMError
from mlm_rewards.utils.logging import setup_logging


async def init_db(engine) -> dict:
    """Create all tables (checkfirst)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    return {"tables": sorted(Base.metadata.tables)}


async def seed_ranks(session: AsyncSession) -> dict:
    """Insert the default ladder levels that are missing."""
    repo = RankRepository(session)
    existing = {rank.level for rank in await repo.get_ladder()}

    created = []
    qualified_levels = []
    for (
        level, name, direct, group_volume, personal, qualified_count, qualified_level
    ) in DEFAULT_RANKS:
        if level in existing:
            continue
        rank = Rank(
            level=level,
            name=name,
            min_direct_referrals=direct,
            min_group_volume=group_volume,
            min_personal_sales=personal,
            min_qualified_downline=qualified_count,
        )
        session.add(rank)
        qualified_levels.append((rank, qualified_level))
        created.append(level)

    # Qualified ranks are linked by ID once every level has one
    await session.flush()
    by_level = {rank.level: rank for rank in await repo.get_ladder()}
    for rank, qualified_level in qualified_levels:
        if qualified_level is not None:
            rank.qualified_rank_id = by_level[qualified_level].id

    await session.commit()
    return {"created_levels": created, "existing_levels": sorted(existing)}


async def run_command(args: argparse.Namespace, session: AsyncSession) -> dict:
    """Dispatch a session-bound command."""
    if args.command == "seed-ranks":
        return await seed_ranks(session)

    if args.command == "compute-rebates":
        rebate_service = RebateService(session)
        if args.purchase_id is not None:
            rebates = await rebate_service.compute_rebates_for_purchase(
                args.purchase_id
            )
            return {
                "purchase_id": args.purchase_id,
                "rebates_created": len(rebates),
            }
        return await rebate_service.compute_missing_rebates(args.batch_size)

    if args.command == "process-rebates":
        summary = await RebateService(session).process_pending_rebates(
            args.batch_size, args.max_batches
        )
        return summary.as_dict()

    if args.command == "retry-rebates":
        reset = await RebateService(session).retry_failed_rebates(args.ids)
        return {"reset": reset}

    if args.command == "rebate-stats":
        stats = await RebateService(session).get_rebate_stats()
        return {
            status: {key: str(value) for key, value in values.items()}
            for status, values in stats.items()
        }

    if args.command == "process-ranks":
        return await RankService(session).process_all_rank_advancements()

    if args.command == "validate-ranks":
        ranks = await RankService(session).validate_rank_ladder()
        return {"levels": [rank.level for rank in ranks]}

    if args.command == "snapshot":
        summary = await BinaryService(session).run_monthly_snapshot(
            args.year, args.month
        )
        return summary.as_dict()

    raise ValueError(f"Unknown command: {args.command}")


async def main_async(args: argparse.Namespace) -> int:
    """Run one command against the configured database."""
    engine = create_engine()
    try:
        if args.command == "init-db":
            result = await init_db(engine)
        else:
            async with create_session_maker(engine)() as session:
                result = await run_command(args, session)
    except MLMError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        await engine.dispose()

    print(json.dumps(result, indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Rewards engine operations"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("seed-ranks", help="Insert the default rank ladder")

    compute = subparsers.add_parser(
        "compute-rebates", help="Create pending rebates"
    )
    compute.add_argument(
        "--purchase-id", type=int, default=None,
        help="Single purchase (default: every completed purchase without rebates)"
    )
    compute.add_argument("--batch-size", type=int, default=100)

    process = subparsers.add_parser(
        "process-rebates", help="Credit pending rebates"
    )
    process.add_argument("--batch-size", type=int, default=None)
    process.add_argument("--max-batches", type=int, default=None)

    retry = subparsers.add_parser(
        "retry-rebates", help="Reset failed rebates to pending"
    )
    retry.add_argument("--ids", type=int, nargs="*", default=None)

    subparsers.add_parser("rebate-stats", help="Rebate counts per status")
    subparsers.add_parser("process-ranks", help="Evaluate rank advancement")
    subparsers.add_parser("validate-ranks", help="Check the rank ladder")

    snapshot = subparsers.add_parser(
        "snapshot", help="Store binary plan results for a month"
    )
    snapshot.add_argument("year", type=int)
    snapshot.add_argument("month", type=int, choices=range(1, 13))

    return parser


def main() -> None:
    args = build_parser().parse_args()
    setup_logging(f"mlm_ops {args.command}")
    sys.exit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    main()
