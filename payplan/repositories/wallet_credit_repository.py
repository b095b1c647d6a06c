"""
Wallet credit repository.
"""

from decimal import Decimal

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.wallet_credit import WalletCredit
from payplan.repositories.base import BaseRepository


class WalletCreditRepository(BaseRepository[WalletCredit]):
    """Wallet credit ledger repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet credit repository."""
        super().__init__(WalletCredit, session)

    async def insert_if_absent(
        self,
        user_id: int,
        amount: Decimal,
        reason: str,
        reference_id: str,
    ) -> bool:
        """
        Insert ledger entry unless the reference already exists.

        Args:
            user_id: Credited user
            amount: Credit amount
            reason: Credit reason
            reference_id: Idempotency reference

        Returns:
            True if inserted, False if reference was already applied
        """
        stmt = (
            insert(WalletCredit)
            .values(
                user_id=user_id,
                amount=amount,
                reason=reason,
                reference_id=reference_id,
            )
            .on_conflict_do_nothing(index_elements=["reference_id"])
            .returning(WalletCredit.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None
