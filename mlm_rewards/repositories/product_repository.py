"""
Product repository.

Data access layer for Product model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_rewards.models.product import Product
from mlm_rewards.repositories.base import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """Product repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize product repository."""
        super().__init__(Product, session)
