"""
User repository.

Data access for accounts and the sponsor chain.
"""

from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import text, update
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.user import User
from payplan.repositories.base import BaseRepository


class SponsorLink(NamedTuple):
    """One ancestor on the sponsor chain."""

    user_id: int
    sponsor_id: int | None
    direct_count: int
    level: int  # 1 = direct sponsor


class UserRepository(BaseRepository[User]):
    """User repository with sponsor-chain queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_sponsor_chain(
        self, user_id: int, depth: int
    ) -> list[SponsorLink]:
        """
        Get sponsor chain (PostgreSQL recursive CTE).

        The recursion is bounded by depth, so a corrupted chain with a
        loop still terminates. Callers detect repeated ids.

        Args:
            user_id: Investor ID
            depth: Max number of ancestors

        Returns:
            Ancestors from direct sponsor upwards
        """
        query = text("""
            WITH RECURSIVE sponsor_chain AS (
                SELECT u.id, u.sponsor_id, u.direct_count, 0 AS level
                FROM users u
                WHERE u.id = :user_id

                UNION ALL

                SELECT u.id, u.sponsor_id, u.direct_count, sc.level + 1
                FROM users u
                INNER JOIN sponsor_chain sc ON u.id = sc.sponsor_id
                WHERE sc.level < :depth
            )
            SELECT id, sponsor_id, direct_count, level
            FROM sponsor_chain
            WHERE level > 0
            ORDER BY level ASC
        """)

        result = await self.session.execute(
            query, {"user_id": user_id, "depth": depth}
        )
        return [
            SponsorLink(
                user_id=row.id,
                sponsor_id=row.sponsor_id,
                direct_count=row.direct_count,
                level=row.level,
            )
            for row in result.all()
        ]

    async def increment_direct_count(self, user_id: int) -> None:
        """
        Atomically add one direct referral.

        Args:
            user_id: Sponsor ID
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(direct_count=User.direct_count + 1)
        )
        await self.session.execute(stmt)

    async def add_balance(self, user_id: int, amount: Decimal) -> int:
        """
        Atomically credit balance and lifetime earnings.

        Args:
            user_id: User ID
            amount: Amount to add

        Returns:
            Number of rows updated (0 if user is missing)
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                balance=User.balance + amount,
                total_earned=User.total_earned + amount,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount
