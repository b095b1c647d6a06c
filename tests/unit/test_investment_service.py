"""
Unit tests for the investment service.

Tests cover:
- Input validation
- Idempotent replay per subsystem
- Plan toggles
- Independence of binary volume and level income
"""

from datetime import UTC, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from payplan.config.plan import (
    BinaryMatchingConfig,
    CompensationPlan,
    LevelIncomeConfig,
)
from payplan.models.investment_event import InvestmentEvent
from payplan.services.binary.volume_accumulator import AccumulationResult
from payplan.services.investment_service import InvestmentService
from payplan.services.level_income.distributor import DistributionResult
from payplan.utils.exceptions import ValidationError


def make_plan(binary_enabled=True, level_income_enabled=True):
    return CompensationPlan(
        binary=BinaryMatchingConfig(payout_percentage=Decimal("10")),
        level_income=LevelIncomeConfig(),
        binary_enabled=binary_enabled,
        level_income_enabled=level_income_enabled,
    )


@pytest.fixture
def event():
    """Freshly recorded investment event."""
    return InvestmentEvent(
        id=5,
        idempotency_key="order-1",
        investor_id=1,
        amount=Decimal("1000"),
        volume_applied_at=None,
        level_income_applied_at=None,
    )


@pytest.fixture
def make_service(mock_session, mock_wallet, event):
    """Service with stubbed repositories and subsystems."""

    def _make(plan=None):
        service = InvestmentService(mock_session, plan or make_plan(), mock_wallet)
        service.user_repo.get_by_id = AsyncMock(
            return_value=SimpleNamespace(id=1)
        )
        service.event_repo.insert_if_absent = AsyncMock()
        service.event_repo.get_by = AsyncMock(return_value=event)
        service.event_repo.get_by_key_for_update = AsyncMock(return_value=event)
        service.accumulator.accumulate = AsyncMock(
            return_value=AccumulationResult(ancestors_updated=2)
        )
        service.distributor.record_commissions = AsyncMock(
            return_value=DistributionResult()
        )
        service.distributor.credit_commissions = AsyncMock()
        return service

    return _make


class TestValidation:
    """Test rejected investments."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), None])
    async def test_non_positive_amount(self, make_service, amount):
        """Zero, negative and missing amounts are rejected."""
        service = make_service()

        with pytest.raises(ValidationError):
            await service.process_investment(1, amount, "order-1")

    @pytest.mark.asyncio
    async def test_amount_beyond_stored_precision(self, make_service):
        """More than 8 decimals is rejected before anything is recorded."""
        service = make_service()

        with pytest.raises(ValidationError, match="8 decimal places"):
            await service.process_investment(1, Decimal("1.123456789"), "order-1")

        service.event_repo.insert_if_absent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_trailing_zero_decimals_accepted(self, make_service, event):
        """Extra zero digits do not change the amount."""
        service = make_service()

        result = await service.process_investment(
            1, Decimal("1000.000000000"), "order-1"
        )

        assert result.errors == []
        service.event_repo.insert_if_absent.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_key(self, make_service):
        """Idempotency key is mandatory."""
        service = make_service()

        with pytest.raises(ValidationError):
            await service.process_investment(1, Decimal("10"), "")

    @pytest.mark.asyncio
    async def test_unknown_investor(self, make_service):
        """Investor must exist."""
        service = make_service()
        service.user_repo.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(ValidationError):
            await service.process_investment(99, Decimal("10"), "order-1")

        service.event_repo.insert_if_absent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_key_reused_for_other_payload(self, make_service):
        """Same key with a different amount is an error."""
        service = make_service()

        with pytest.raises(ValidationError):
            await service.process_investment(1, Decimal("999"), "order-1")

        service.accumulator.accumulate.assert_not_awaited()


class TestProcessInvestment:
    """Test applying an investment."""

    @pytest.mark.asyncio
    async def test_both_subsystems_applied(self, make_service, event):
        """Volume and level income run and are marked applied."""
        service = make_service()

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        service.accumulator.accumulate.assert_awaited_once_with(1, Decimal("1000"))
        service.distributor.record_commissions.assert_awaited_once_with(
            1, Decimal("1000"), investment_event_id=5
        )
        service.distributor.credit_commissions.assert_awaited_once()
        assert result.event_id == 5
        assert result.volume.ancestors_updated == 2
        assert result.level_income is not None
        assert result.errors == []
        assert event.volume_applied_at is not None
        assert event.level_income_applied_at is not None

    @pytest.mark.asyncio
    async def test_replay_is_a_no_op(self, make_service, event):
        """Second call with the same key applies nothing."""
        service = make_service()
        await service.process_investment(1, Decimal("1000"), "order-1")

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        assert result.volume_replayed
        assert result.level_income_replayed
        assert service.accumulator.accumulate.await_count == 1
        assert service.distributor.record_commissions.await_count == 1

    @pytest.mark.asyncio
    async def test_partial_replay_finishes_missing_subsystem(
        self, make_service, event
    ):
        """Level income still runs when only volume was applied before."""
        event.volume_applied_at = datetime(2024, 1, 1, tzinfo=UTC)
        service = make_service()

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        assert result.volume_replayed
        assert not result.level_income_replayed
        service.accumulator.accumulate.assert_not_awaited()
        service.distributor.record_commissions.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disabled_binary_plan(self, make_service):
        """Binary toggle off skips volume."""
        service = make_service(make_plan(binary_enabled=False))

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        service.accumulator.accumulate.assert_not_awaited()
        assert result.volume is None
        assert result.level_income is not None

    @pytest.mark.asyncio
    async def test_disabled_level_income(self, make_service):
        """Level income toggle off skips distribution."""
        service = make_service(make_plan(level_income_enabled=False))

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        service.distributor.record_commissions.assert_not_awaited()
        assert result.level_income is None

    @pytest.mark.asyncio
    async def test_volume_failure_does_not_block_level_income(
        self, make_service, event, mock_session
    ):
        """Binary error is reported, level income still applied."""
        service = make_service()
        service.accumulator.accumulate = AsyncMock(side_effect=RuntimeError("boom"))

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        assert result.errors == ["binary_volume: boom"]
        mock_session.rollback.assert_awaited()
        service.distributor.record_commissions.assert_awaited_once()
        assert event.level_income_applied_at is not None

    @pytest.mark.asyncio
    async def test_level_income_failure_is_contained(self, make_service):
        """Distributor error never raises to the caller."""
        service = make_service()
        service.distributor.record_commissions = AsyncMock(
            side_effect=RuntimeError("chain broken")
        )

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        assert result.errors == ["level_income: chain broken"]
        assert result.level_income is None
        service.distributor.credit_commissions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_credit_failure_after_commit(self, make_service, event):
        """Crediting error keeps the distribution applied."""
        service = make_service()
        service.distributor.credit_commissions = AsyncMock(
            side_effect=ConnectionError("wallet")
        )

        result = await service.process_investment(1, Decimal("1000"), "order-1")

        assert result.errors == ["level_income_credit: wallet"]
        assert event.level_income_applied_at is not None
