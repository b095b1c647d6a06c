"""
Integration tests for the investment flow on a real async session.

Runs InvestmentService against an in-memory SQLite database so that
commit and rollback expire ORM state the way they do in production.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from payplan.config.plan import (
    BinaryMatchingConfig,
    CompensationPlan,
    LevelIncomeConfig,
)
from payplan.models import BinaryNode, InvestmentEvent, LevelCommission
from payplan.services.investment_service import InvestmentService

# Seeded by db_session_maker
SPONSOR_ID = 1
INVESTOR_ID = 2


def make_service(session, wallet):
    """Service whose event insert uses the SQLite upsert syntax."""
    plan = CompensationPlan(
        binary=BinaryMatchingConfig(payout_percentage=Decimal("10")),
        level_income=LevelIncomeConfig(),
    )
    service = InvestmentService(session, plan, wallet)

    async def insert_if_absent(idempotency_key, investor_id, amount):
        stmt = (
            sqlite_insert(InvestmentEvent)
            .values(
                idempotency_key=idempotency_key,
                investor_id=investor_id,
                amount=amount,
            )
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )
        await session.execute(stmt)

    service.event_repo.insert_if_absent = insert_if_absent
    return service


async def count_commissions(maker) -> int:
    async with maker() as session:
        result = await session.execute(select(func.count(LevelCommission.id)))
        return result.scalar_one()


async def load_event(maker, key: str) -> InvestmentEvent:
    async with maker() as session:
        result = await session.execute(
            select(InvestmentEvent).where(InvestmentEvent.idempotency_key == key)
        )
        return result.scalar_one()


async def load_node(maker, user_id: int) -> BinaryNode:
    async with maker() as session:
        result = await session.execute(
            select(BinaryNode).where(BinaryNode.user_id == user_id)
        )
        return result.scalar_one()


class TestInvestmentFlow:
    """Investment processing with real commit and rollback."""

    @pytest.mark.asyncio
    async def test_first_investment_applies_both_subsystems(
        self, db_session_maker, mock_wallet
    ):
        """Sponsor gets left volume and a level 1 commission."""
        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            result = await service.process_investment(
                INVESTOR_ID, Decimal("100"), "order-1"
            )

        assert result.errors == []
        assert result.volume.ancestors_updated == 1
        assert len(result.level_income.commissions) == 1
        mock_wallet.credit.assert_awaited_once()

        node = await load_node(db_session_maker, SPONSOR_ID)
        assert node.left_unmatched == Decimal("100")
        assert await count_commissions(db_session_maker) == 1

    @pytest.mark.asyncio
    async def test_replay_is_a_no_op(self, db_session_maker, mock_wallet):
        """Same key twice: second call is replayed by both subsystems."""
        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            await service.process_investment(INVESTOR_ID, Decimal("100"), "order-1")

        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            result = await service.process_investment(
                INVESTOR_ID, Decimal("100"), "order-1"
            )

        assert result.errors == []
        assert result.volume_replayed
        assert result.level_income_replayed
        assert await count_commissions(db_session_maker) == 1
        assert mock_wallet.credit.await_count == 1

        node = await load_node(db_session_maker, SPONSOR_ID)
        assert node.left_unmatched == Decimal("100")

    @pytest.mark.asyncio
    async def test_replay_in_same_session(self, db_session_maker, mock_wallet):
        """Replaying on one session does not touch expired instances."""
        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            first = await service.process_investment(
                INVESTOR_ID, Decimal("100"), "order-1"
            )
            second = await service.process_investment(
                INVESTOR_ID, Decimal("100"), "order-1"
            )

        assert first.errors == []
        assert second.errors == []
        assert second.event_id == first.event_id
        assert second.volume_replayed
        assert second.level_income_replayed

    @pytest.mark.asyncio
    async def test_volume_failure_keeps_level_income(
        self, db_session_maker, mock_wallet
    ):
        """Accumulator error is reported and commissions are still recorded."""
        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            service.accumulator.accumulate = AsyncMock(
                side_effect=RuntimeError("boom")
            )
            result = await service.process_investment(
                INVESTOR_ID, Decimal("100"), "order-1"
            )

        assert result.errors == ["binary_volume: boom"]
        assert result.level_income is not None
        assert await count_commissions(db_session_maker) == 1

        stored = await load_event(db_session_maker, "order-1")
        assert stored.volume_applied_at is None
        assert stored.level_income_applied_at is not None

    @pytest.mark.asyncio
    async def test_failed_volume_is_applied_on_replay(
        self, db_session_maker, mock_wallet
    ):
        """Replay after a volume error finishes only the volume step."""
        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            service.accumulator.accumulate = AsyncMock(
                side_effect=RuntimeError("boom")
            )
            await service.process_investment(INVESTOR_ID, Decimal("100"), "order-1")

        async with db_session_maker() as session:
            service = make_service(session, mock_wallet)
            result = await service.process_investment(
                INVESTOR_ID, Decimal("100"), "order-1"
            )

        assert result.errors == []
        assert not result.volume_replayed
        assert result.level_income_replayed
        assert await count_commissions(db_session_maker) == 1

        node = await load_node(db_session_maker, SPONSOR_ID)
        assert node.left_unmatched == Decimal("100")
