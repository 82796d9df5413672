"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

# Minimal environment for settings before mlm_rewards is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from mlm_rewards.config.database import create_session_maker
from mlm_rewards.models import (
    Base,
    BinaryPlacement,
    CommissionRate,
    Product,
    Purchase,
    Rank,
    RebateConfig,
    User,
)
from mlm_rewards.models.enums import PurchaseStatus, RewardType


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine so several sessions can share the data."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'mlm_rewards.db'}",
        poolclass=NullPool,
    )

    # pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine."""
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    """Async session for one test."""
    async with session_maker() as session:
        yield session


class Factory:
    """Creates committed rows for tests."""

    def __init__(self, session) -> None:
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def rank(
        self,
        level: int,
        name: str | None = None,
        min_direct_referrals: int = 0,
        min_group_volume: Decimal | str = "0",
        min_personal_sales: Decimal | str = "0",
        min_qualified_downline: int = 0,
        qualified_rank: Rank | None = None,
    ) -> Rank:
        return await self._save(
            Rank(
                level=level,
                name=name or f"Rank {level}",
                min_direct_referrals=min_direct_referrals,
                min_group_volume=Decimal(str(min_group_volume)),
                min_personal_sales=Decimal(str(min_personal_sales)),
                min_qualified_downline=min_qualified_downline,
                qualified_rank_id=qualified_rank.id if qualified_rank else None,
            )
        )

    async def user(
        self,
        name: str,
        upline: User | None = None,
        rank: Rank | None = None,
        created_at: datetime | None = None,
    ) -> User:
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            upline_id=upline.id if upline else None,
            rank_id=rank.id if rank else None,
        )
        if created_at is not None:
            user.created_at = created_at
        return await self._save(user)

    async def chain(self, *names: str) -> list[User]:
        """Users where each one sponsors the next."""
        users: list[User] = []
        for name in names:
            users.append(await self.user(name, upline=users[-1] if users else None))
        return users

    async def product(
        self, name: str = "Starter Kit", price: str = "100", pv: str = "100"
    ) -> Product:
        return await self._save(
            Product(name=name, price=Decimal(price), pv=Decimal(pv))
        )

    async def purchase(
        self,
        user: User,
        product: Product,
        total_amount: Decimal | str = "100",
        total_pv: Decimal | str = "0",
        status: PurchaseStatus = PurchaseStatus.COMPLETED,
        created_at: datetime | None = None,
    ) -> Purchase:
        purchase = Purchase(
            user_id=user.id,
            product_id=product.id,
            total_amount=Decimal(str(total_amount)),
            total_pv=Decimal(str(total_pv)),
            status=status.value,
        )
        if created_at is not None:
            purchase.created_at = created_at
        return await self._save(purchase)

    async def rebate_config(
        self,
        product: Product,
        level: int,
        percentage: Decimal | str | None = None,
        fixed_amount: Decimal | str | None = None,
    ) -> RebateConfig:
        is_fixed = fixed_amount is not None
        return await self._save(
            RebateConfig(
                product_id=product.id,
                level=level,
                reward_type=(RewardType.FIXED if is_fixed else RewardType.PERCENTAGE).value,
                percentage=None if is_fixed else Decimal(str(percentage)),
                fixed_amount=Decimal(str(fixed_amount)) if is_fixed else None,
            )
        )

    async def placement(
        self, user: User, parent: User | None, position: str | None
    ) -> BinaryPlacement:
        return await self._save(
            BinaryPlacement(
                user_id=user.id,
                parent_id=parent.id if parent else None,
                position=position,
            )
        )

    async def commission_rate(
        self,
        type: str,
        level: int | None = None,
        percentage: Decimal | str | None = None,
        fixed_amount: Decimal | str | None = None,
        threshold_pv: Decimal | str | None = None,
        active: bool = True,
    ) -> CommissionRate:
        is_fixed = fixed_amount is not None
        return await self._save(
            CommissionRate(
                type=type,
                level=level,
                reward_type=(RewardType.FIXED if is_fixed else RewardType.PERCENTAGE).value,
                percentage=None if is_fixed else Decimal(str(percentage)),
                fixed_amount=Decimal(str(fixed_amount)) if is_fixed else None,
                threshold_pv=Decimal(str(threshold_pv)) if threshold_pv is not None else None,
                active=active,
            )
        )


@pytest.fixture
def factory(session):
    """Row factory bound to the test session."""
    return Factory(session)
