"""Tests for the operator CLI: argument parsing and command dispatch."""

import pytest

from scripts.mlm_ops import build_parser, run_command


class TestParser:
    """Argument parsing."""

    def test_snapshot_arguments(self):
        args = build_parser().parse_args(["snapshot", "2026", "3"])
        assert (args.command, args.year, args.month) == ("snapshot", 2026, 3)

    def test_snapshot_rejects_bad_month(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["snapshot", "2026", "13"])

    def test_retry_ids(self):
        args = build_parser().parse_args(["retry-rebates", "--ids", "4", "7"])
        assert args.ids == [4, 7]
        assert build_parser().parse_args(["retry-rebates"]).ids is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """Command dispatch against the test database."""

    @pytest.mark.asyncio
    async def test_seed_ranks_is_repeatable(self, session, factory):
        await factory.rank(1, "Starter")
        args = build_parser().parse_args(["seed-ranks"])

        first = await run_command(args, session)
        second = await run_command(args, session)

        assert first == {"created_levels": [2, 3, 4, 5, 6], "existing_levels": [1]}
        assert second["created_levels"] == []

        validated = await run_command(build_parser().parse_args(["validate-ranks"]), session)
        assert validated == {"levels": [1, 2, 3, 4, 5, 6]}

    @pytest.mark.asyncio
    async def test_rebate_stats_serializable(self, session):
        stats = await run_command(build_parser().parse_args(["rebate-stats"]), session)
        assert stats["pending"] == {"count": "0", "amount": "0"}
