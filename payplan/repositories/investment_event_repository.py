"""
Investment event repository.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.investment_event import InvestmentEvent
from payplan.repositories.base import BaseRepository


class InvestmentEventRepository(BaseRepository[InvestmentEvent]):
    """Investment event repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize investment event repository."""
        super().__init__(InvestmentEvent, session)

    async def get_by_key_for_update(
        self, idempotency_key: str
    ) -> InvestmentEvent | None:
        """
        Get event by idempotency key with row lock.

        Args:
            idempotency_key: Caller-supplied key

        Returns:
            Event or None
        """
        stmt = (
            select(InvestmentEvent)
            .where(InvestmentEvent.idempotency_key == idempotency_key)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_if_absent(
        self, idempotency_key: str, investor_id: int, amount: Decimal
    ) -> None:
        """
        Insert event unless the key is already known.

        Args:
            idempotency_key: Caller-supplied key
            investor_id: Investor user ID
            amount: Investment amount
        """
        stmt = (
            insert(InvestmentEvent)
            .values(
                idempotency_key=idempotency_key,
                investor_id=investor_id,
                amount=amount,
            )
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )
        await self.session.execute(stmt)
