"""
Investment service.

Entry point for investment events. Validates the event, records it
under its idempotency key and feeds the binary volume accumulator and
the level-income distributor independently. A failure in one subsystem
is logged and never reaches the purchase flow.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from payplan.config.plan import CompensationPlan
from payplan.repositories.investment_event_repository import (
    InvestmentEventRepository,
)
from payplan.repositories.user_repository import UserRepository
from payplan.services.base_service import BaseService
from payplan.services.binary.volume_accumulator import (
    AccumulationResult,
    BinaryVolumeAccumulator,
)
from payplan.services.level_income.distributor import (
    AMOUNT_QUANT,
    DistributionResult,
    LevelIncomeDistributor,
)
from payplan.services.wallet.client import WalletClient
from payplan.utils.datetime_utils import utc_now
from payplan.utils.exceptions import ValidationError


@dataclass
class InvestmentResult:
    """What an investment event did to each subsystem."""

    event_id: int
    volume: AccumulationResult | None = None
    level_income: DistributionResult | None = None
    volume_replayed: bool = False
    level_income_replayed: bool = False
    errors: list[str] = field(default_factory=list)


class InvestmentService(BaseService):
    """Processes investment events for both compensation subsystems."""

    def __init__(
        self,
        session: AsyncSession,
        plan: CompensationPlan,
        wallet: WalletClient,
    ) -> None:
        """
        Initialize investment service.

        Args:
            session: Async database session
            plan: Compensation plan
            wallet: Wallet client for level income credits
        """
        super().__init__(session)
        self.plan = plan
        self.user_repo = UserRepository(session)
        self.event_repo = InvestmentEventRepository(session)
        self.accumulator = BinaryVolumeAccumulator(
            session, max_depth=plan.binary.max_tree_depth
        )
        self.distributor = LevelIncomeDistributor(
            session, plan.level_income, wallet
        )

    async def process_investment(
        self,
        investor_id: int,
        amount: Decimal,
        idempotency_key: str,
    ) -> InvestmentResult:
        """
        Apply an investment to the binary tree and the sponsor chain.

        Replaying the same idempotency key is a no-op for every
        subsystem that already completed.

        Args:
            investor_id: Investor user ID
            amount: Investment amount
            idempotency_key: Unique key of the investment

        Returns:
            InvestmentResult

        Raises:
            ValidationError: Bad amount or precision, unknown investor,
                or key reused for a different investment
        """
        if amount is None or amount <= 0:
            raise ValidationError(f"Investment amount must be positive: {amount}")
        if amount != amount.quantize(AMOUNT_QUANT):
            raise ValidationError(
                f"Investment amount has more than 8 decimal places: {amount}"
            )
        if not idempotency_key:
            raise ValidationError("Idempotency key is required")

        investor = await self.user_repo.get_by_id(investor_id)
        if investor is None:
            raise ValidationError(f"Investor {investor_id} not found")

        # Plain values only: rollback expires every ORM instance
        event_id = await self._record_event(investor_id, amount, idempotency_key)
        result = InvestmentResult(event_id=event_id)

        if self.plan.binary_enabled:
            await self._apply_volume(
                event_id, idempotency_key, investor_id, amount, result
            )
        if self.plan.level_income_enabled:
            await self._apply_level_income(
                event_id, idempotency_key, investor_id, amount, result
            )

        self.logger.info(
            "Investment processed",
            extra={
                "investor_id": investor_id,
                "amount": str(amount),
                "event_id": event_id,
                "volume_replayed": result.volume_replayed,
                "level_income_replayed": result.level_income_replayed,
                "errors": len(result.errors),
            },
        )
        return result

    async def _record_event(
        self, investor_id: int, amount: Decimal, idempotency_key: str
    ) -> int:
        await self.event_repo.insert_if_absent(
            idempotency_key, investor_id, amount
        )
        await self.commit()

        event = await self.event_repo.get_by(idempotency_key=idempotency_key)
        if event is None:
            raise ValidationError(f"Investment event {idempotency_key} missing")
        if event.investor_id != investor_id or event.amount != amount:
            raise ValidationError(
                f"Idempotency key {idempotency_key} reused for a different investment"
            )
        return event.id

    async def _apply_volume(
        self,
        event_id: int,
        idempotency_key: str,
        investor_id: int,
        amount: Decimal,
        result: InvestmentResult,
    ) -> None:
        try:
            locked = await self.event_repo.get_by_key_for_update(
                idempotency_key
            )
            if locked.volume_applied_at is not None:
                result.volume_replayed = True
                await self.rollback()
                return

            result.volume = await self.accumulator.accumulate(
                investor_id, amount
            )
            locked.volume_applied_at = utc_now()
            await self.commit()
        except Exception as e:
            await self.rollback()
            result.errors.append(f"binary_volume: {e}")
            self.logger.exception(
                f"Binary volume failed for event {event_id}: {e}"
            )

    async def _apply_level_income(
        self,
        event_id: int,
        idempotency_key: str,
        investor_id: int,
        amount: Decimal,
        result: InvestmentResult,
    ) -> None:
        try:
            locked = await self.event_repo.get_by_key_for_update(
                idempotency_key
            )
            if locked.level_income_applied_at is not None:
                result.level_income_replayed = True
                await self.rollback()
                return

            distribution = await self.distributor.record_commissions(
                investor_id, amount, investment_event_id=event_id
            )
            locked.level_income_applied_at = utc_now()
            await self.commit()
        except Exception as e:
            await self.rollback()
            result.errors.append(f"level_income: {e}")
            self.logger.exception(
                f"Level income failed for event {event_id}: {e}"
            )
            return

        result.level_income = distribution
        try:
            await self.distributor.credit_commissions(distribution)
        except Exception as e:
            # Commissions stay PENDING for the credit retry job
            result.errors.append(f"level_income_credit: {e}")
            self.logger.exception(
                f"Level income credit failed for event {event_id}: {e}"
            )
