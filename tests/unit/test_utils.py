"""
Unit tests for utility helpers.

Tests cover:
- Month bounds and previous month
- Activity score
- Error categories
- Database error translation and rollback decorators
- Service transaction and operation logging decorators
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.services.base_service import BaseService, log_operation, transaction
from mlm_rewards.services.genealogy.statistics import activity_score
from mlm_rewards.utils.datetime_utils import month_bounds, previous_month
from mlm_rewards.utils.db_decorators import (
    translate_db_errors,
    with_rollback_on_error,
)
from mlm_rewards.utils.exceptions import (
    ConcurrentConflictError,
    InvalidConfigError,
    MLMError,
    NotFoundError,
    TransientError,
    is_benign,
    is_retryable,
)


class TestMonthBounds:
    """Test calendar month ranges."""

    def test_regular_month(self):
        start, end = month_bounds(2026, 3)
        assert start == datetime(2026, 3, 1, tzinfo=UTC)
        assert end == datetime(2026, 4, 1, tzinfo=UTC)

    def test_december_rolls_year(self):
        start, end = month_bounds(2025, 12)
        assert start == datetime(2025, 12, 1, tzinfo=UTC)
        assert end == datetime(2026, 1, 1, tzinfo=UTC)

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            month_bounds(2026, month)

    def test_previous_month(self):
        assert previous_month(datetime(2026, 1, 15, tzinfo=UTC)) == (2025, 12)
        assert previous_month(datetime(2026, 7, 1, tzinfo=UTC)) == (2026, 6)


class TestActivityScore:
    """Test activity score weighting."""

    def test_weights(self):
        assert activity_score(0, 0) == 0
        assert activity_score(2, 1) == 40

    def test_capped_at_100(self):
        assert activity_score(10, 10) == 100


class TestErrorCategories:
    """Test error hierarchy and categories."""

    def test_hierarchy(self):
        for error in (
            NotFoundError("User", 1),
            InvalidConfigError("bad"),
            TransientError("down"),
            ConcurrentConflictError("lost"),
        ):
            assert isinstance(error, MLMError)

    def test_not_found_message(self):
        error = NotFoundError("Purchase", 42)
        assert error.entity == "Purchase"
        assert error.entity_id == 42
        assert str(error) == "Purchase 42 not found"

    def test_categories(self):
        assert is_retryable(TransientError("x"))
        assert not is_retryable(NotFoundError("User", 1))
        assert is_benign(ConcurrentConflictError("x"))
        assert not is_benign(TransientError("x"))


class TestDbDecorators:
    """Test error translation and rollback."""

    @pytest.mark.asyncio
    async def test_operational_error_becomes_transient(self):
        @translate_db_errors
        async def failing():
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        with pytest.raises(TransientError) as exc_info:
            await failing()
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_integrity_error_passes_through(self):
        @translate_db_errors
        async def failing():
            raise IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(IntegrityError):
            await failing()

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through(self):
        @translate_db_errors
        async def failing():
            raise NotFoundError("User", 5)

        with pytest.raises(NotFoundError):
            await failing()

    @pytest.mark.asyncio
    async def test_rollback_on_error(self):
        session = AsyncMock(spec=AsyncSession)

        class Worker:
            def __init__(self, session):
                self.session = session

            @with_rollback_on_error
            async def run(self):
                raise InvalidConfigError("bad")

        with pytest.raises(InvalidConfigError):
            await Worker(session).run()
        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_rollback_on_success(self):
        session = AsyncMock(spec=AsyncSession)

        @with_rollback_on_error
        async def run(session):
            return "ok"

        assert await run(session) == "ok"
        session.rollback.assert_not_awaited()


class TestServiceDecorators:
    """Test transaction and operation logging decorators."""

    @pytest.mark.asyncio
    async def test_transaction_commits_on_success(self):
        session = AsyncMock(spec=AsyncSession)

        class Service(BaseService):
            @transaction
            async def run(self):
                return 42

        assert await Service(session).run() == 42
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self):
        session = AsyncMock(spec=AsyncSession)

        class Service(BaseService):
            @transaction
            async def run(self):
                raise InvalidConfigError("bad")

        with pytest.raises(InvalidConfigError):
            await Service(session).run()
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_log_operation_returns_result(self):
        class Service(BaseService):
            @log_operation
            async def run(self, batch_size):
                return {"processed": batch_size}

        service = Service(AsyncMock(spec=AsyncSession))
        assert await service.run(5) == {"processed": 5}
        assert Service.run.__name__ == "run"
