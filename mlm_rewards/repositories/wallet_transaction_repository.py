"""
Wallet transaction repository.

Data access layer for WalletTransaction model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.wallet_transaction import WalletTransaction
from mlm_rewards.repositories.base import BaseRepository


class WalletTransactionRepository(BaseRepository[WalletTransaction]):
    """Wallet transaction repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet transaction repository."""
        super().__init__(WalletTransaction, session)

    async def get_by_user(
        self, user_id: int, limit: int = 50
    ) -> list[WalletTransaction]:
        """
        Get latest ledger rows for a user.

        Args:
            user_id: User ID
            limit: Max rows

        Returns:
            Transactions, newest first
        """
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
