"""
Ledger wallet client.

Default WalletClient backed by the wallet_credits table and the
users.balance column. Each credit runs in its own session.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payplan.repositories.user_repository import UserRepository
from payplan.repositories.wallet_credit_repository import (
    WalletCreditRepository,
)
from payplan.services.wallet.client import CreditResult


class LedgerWalletClient:
    """Credits balances through the local ledger."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize ledger client.

        Args:
            session_maker: Factory for independent sessions
        """
        self.session_maker = session_maker

    async def credit(
        self,
        user_id: int,
        amount: Decimal,
        reason: str,
        reference_id: str,
    ) -> CreditResult:
        """Credit balance once per reference_id."""
        if amount <= 0:
            return CreditResult(
                success=False, error=f"Non-positive amount {amount}"
            )

        async with self.session_maker() as session:
            try:
                credit_repo = WalletCreditRepository(session)
                inserted = await credit_repo.insert_if_absent(
                    user_id=user_id,
                    amount=amount,
                    reason=reason,
                    reference_id=reference_id,
                )
                if not inserted:
                    await session.rollback()
                    logger.info(
                        f"Wallet credit {reference_id} already applied"
                    )
                    return CreditResult(success=True, already_applied=True)

                updated = await UserRepository(session).add_balance(
                    user_id, amount
                )
                if not updated:
                    await session.rollback()
                    return CreditResult(
                        success=False, error=f"User {user_id} not found"
                    )

                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.exception(f"Wallet credit {reference_id} failed: {e}")
                return CreditResult(success=False, error=str(e))

        logger.info(
            "Wallet credited",
            extra={
                "user_id": user_id,
                "amount": str(amount),
                "reason": reason,
                "reference_id": reference_id,
            },
        )
        return CreditResult(success=True)
