"""
Level-income distributor.

Pays a percentage of an investment to each unlocked ancestor on the
sponsor chain, up to 30 levels. A locked level is forfeited: no record
is written and nobody else receives that share.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.config.plan import LevelIncomeConfig
from payplan.models.level_commission import LevelCommission
from payplan.repositories.level_commission_repository import (
    LevelCommissionRepository,
)
from payplan.repositories.user_repository import UserRepository
from payplan.services.level_income.unlock_evaluator import LevelUnlockEvaluator
from payplan.services.wallet.client import WalletClient
from payplan.services.wallet.recorder import credit_record

AMOUNT_QUANT = Decimal("0.00000001")


@dataclass
class DistributionResult:
    """Result of one level-income distribution."""

    commissions: list[LevelCommission] = field(default_factory=list)
    forfeited_levels: list[int] = field(default_factory=list)
    failed_levels: list[int] = field(default_factory=list)
    credit_failures: int = 0
    loop_detected: bool = False

    @property
    def total_paid(self) -> Decimal:
        """Sum of recorded commissions."""
        return sum(
            (c.commission_amount for c in self.commissions), Decimal("0")
        )


def calculate_commission(amount: Decimal, percentage: Decimal) -> Decimal:
    """
    Calculate commission, rounded down to 8 decimals.

    Args:
        amount: Investment amount
        percentage: Level percentage (10 = 10%)

    Returns:
        Commission amount
    """
    return (amount * percentage / Decimal("100")).quantize(
        AMOUNT_QUANT, rounding=ROUND_DOWN
    )


class LevelIncomeDistributor:
    """Walks the sponsor chain and records level commissions."""

    def __init__(
        self,
        session: AsyncSession,
        plan: LevelIncomeConfig,
        wallet: WalletClient,
        evaluator: LevelUnlockEvaluator | None = None,
    ) -> None:
        """
        Initialize distributor.

        Args:
            session: Async database session
            plan: Level income configuration
            wallet: Wallet client for credits
            evaluator: Unlock evaluator (built from plan milestones if omitted)
        """
        self.session = session
        self.plan = plan
        self.wallet = wallet
        self.evaluator = evaluator or LevelUnlockEvaluator(plan.milestones)
        self.user_repo = UserRepository(session)
        self.commission_repo = LevelCommissionRepository(session)

    async def distribute(
        self,
        investor_id: int,
        amount: Decimal,
        investment_event_id: int | None = None,
    ) -> DistributionResult:
        """
        Record commissions, commit them, then credit each payee.

        Args:
            investor_id: Investor user ID
            amount: Investment amount
            investment_event_id: Source investment event

        Returns:
            DistributionResult
        """
        result = await self.record_commissions(
            investor_id, amount, investment_event_id
        )
        await self.session.commit()
        await self.credit_commissions(result)
        return result

    async def record_commissions(
        self,
        investor_id: int,
        amount: Decimal,
        investment_event_id: int | None = None,
    ) -> DistributionResult:
        """
        Write commission records for unlocked ancestors.

        Each ancestor runs in its own savepoint. The caller commits.

        Args:
            investor_id: Investor user ID
            amount: Investment amount
            investment_event_id: Source investment event

        Returns:
            DistributionResult with uncommitted commissions
        """
        result = DistributionResult()
        chain = await self.user_repo.get_sponsor_chain(
            investor_id, self.plan.max_depth
        )
        seen = {investor_id}

        for link in chain:
            if link.user_id in seen:
                result.loop_detected = True
                logger.error(
                    "Sponsor loop detected, stopping level income walk",
                    extra={
                        "investor_id": investor_id,
                        "repeated_user_id": link.user_id,
                        "level": link.level,
                    },
                )
                break
            seen.add(link.user_id)

            percentage = self.plan.percentage_for(link.level)
            if percentage <= 0:
                continue

            if not self.evaluator.is_level_unlocked(
                link.level, link.direct_count
            ):
                result.forfeited_levels.append(link.level)
                logger.debug(
                    "Level income forfeited",
                    extra={
                        "recipient_id": link.user_id,
                        "level": link.level,
                        "direct_count": link.direct_count,
                    },
                )
                continue

            commission_amount = calculate_commission(amount, percentage)
            if commission_amount <= 0:
                continue

            try:
                async with self.session.begin_nested():
                    commission = await self.commission_repo.create(
                        recipient_id=link.user_id,
                        source_user_id=investor_id,
                        investment_event_id=investment_event_id,
                        level=link.level,
                        investment_amount=amount,
                        percentage_applied=percentage,
                        commission_amount=commission_amount,
                    )
            except Exception as e:
                result.failed_levels.append(link.level)
                logger.exception(
                    f"Failed to record level {link.level} commission for "
                    f"user {link.user_id}: {e}"
                )
                continue

            result.commissions.append(commission)

        logger.info(
            "Level income recorded",
            extra={
                "investor_id": investor_id,
                "amount": str(amount),
                "paid_levels": [c.level for c in result.commissions],
                "forfeited_levels": result.forfeited_levels,
                "failed_levels": result.failed_levels,
            },
        )
        return result

    async def credit_commissions(self, result: DistributionResult) -> None:
        """
        Credit committed commissions to the wallet.

        Args:
            result: Result of record_commissions after commit
        """
        for commission in result.commissions:
            if not await credit_record(self.session, self.wallet, commission):
                result.credit_failures += 1
