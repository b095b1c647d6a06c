"""
Unit tests for the binary matching engine.

Tests cover:
- Matching arithmetic and carry-forward
- Minimum volume and daily cap
- Per-node isolation (errors, timeouts, failed credits)
- Stop requests and lost leases
"""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from payplan.config.plan import BinaryMatchingConfig
from payplan.models.binary_match import BinaryMatch
from payplan.models.enums import CreditStatus
from payplan.repositories.binary_match_repository import BinaryMatchRepository
from payplan.repositories.binary_node_repository import BinaryNodeRepository
from payplan.services.binary import matching_engine
from payplan.services.binary.matching_engine import (
    BinaryMatchingEngine,
    MatchOutcome,
    calculate_payout,
)
from payplan.services.wallet.client import CreditResult

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeNodeRepository(BinaryNodeRepository):
    """Node repository backed by a dict of detached nodes."""

    def __init__(self, session, nodes):
        super().__init__(session)
        self.nodes = nodes
        self.failing: set[int] = set()
        self.slow: set[int] = set()

    async def get_eligible_user_ids(self):
        return [n.user_id for n in self.nodes.values() if n.is_eligible]

    async def lock_by_user_id(self, user_id):
        if user_id in self.failing:
            raise RuntimeError("row lock failed")
        if user_id in self.slow:
            await asyncio.sleep(5)
        return self.nodes.get(user_id)


class FakeMatchRepository(BinaryMatchRepository):
    """Match repository keeping created matches in memory."""

    def __init__(self, session):
        super().__init__(session)
        self.matches: dict[int, BinaryMatch] = {}
        self.matched_today: dict[int, Decimal] = {}

    async def sum_matched_since(self, user_id, since):
        return self.matched_today.get(user_id, Decimal("0"))

    async def create(self, **data):
        match = BinaryMatch(id=len(self.matches) + 1, credit_attempts=0, **data)
        self.matches[match.id] = match
        return match


@pytest.fixture
def nodes(node_factory):
    """Three eligible nodes in processing order."""
    return {
        1: node_factory(1, left_unmatched="300", right_unmatched="150"),
        2: node_factory(2, left_unmatched="100", right_unmatched="400"),
        3: node_factory(3, left_unmatched="50", right_unmatched="50"),
    }


@pytest.fixture
def repos(monkeypatch, mock_session, nodes):
    """Patch engine repositories with in-memory fakes."""
    node_repo = FakeNodeRepository(mock_session, nodes)
    match_repo = FakeMatchRepository(mock_session)

    monkeypatch.setattr(
        matching_engine, "BinaryNodeRepository", lambda session: node_repo
    )
    monkeypatch.setattr(
        matching_engine, "BinaryMatchRepository", lambda session: match_repo
    )

    async def _get(model, match_id):
        return match_repo.matches.get(match_id)

    mock_session.get = AsyncMock(side_effect=_get)
    return node_repo, match_repo


def make_engine(session_maker, wallet, **plan_overrides):
    plan_values = {
        "payout_percentage": Decimal("10"),
        "min_match_volume": Decimal("0"),
        "max_daily_match": None,
        "node_timeout_seconds": 1.0,
    }
    plan_values.update(plan_overrides)
    return BinaryMatchingEngine(
        session_maker,
        BinaryMatchingConfig(**plan_values),
        wallet,
        clock=lambda: NOW,
    )


class TestCalculatePayout:
    """Test payout arithmetic."""

    def test_ten_percent(self):
        """150 matched at 10% pays 15."""
        assert calculate_payout(Decimal("150"), Decimal("10")) == Decimal("15")

    def test_rounds_down_to_eight_decimals(self):
        """Sub-unit remainders are truncated."""
        assert calculate_payout(
            Decimal("0.00000015"), Decimal("10")
        ) == Decimal("0.00000001")


class TestMatchNode:
    """Test single-node matching."""

    @pytest.mark.asyncio
    async def test_weaker_leg_is_matched(self, session_maker, mock_wallet, repos, nodes):
        """300/150 matches 150 and carries 150 on the left."""
        engine = make_engine(session_maker, mock_wallet)

        outcome, match_id = await engine.match_node(1, run_id=7)

        node = nodes[1]
        assert outcome == MatchOutcome.MATCHED
        assert node.left_unmatched == Decimal("150")
        assert node.right_unmatched == Decimal("0")
        assert node.matched_to_date == Decimal("15")
        assert node.last_matched_at == NOW

        match = repos[1].matches[match_id]
        assert match.matched_volume == Decimal("150")
        assert match.payout_amount == Decimal("15")
        assert match.left_volume_before == Decimal("300")
        assert match.left_volume_after == Decimal("150")
        assert match.right_volume_after == Decimal("0")
        assert match.run_id == 7
        assert match.credit_status == CreditStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_lifetime_volume_untouched(self, session_maker, mock_wallet, repos, nodes):
        """Matching only consumes carry-forward."""
        engine = make_engine(session_maker, mock_wallet)

        await engine.match_node(1)

        assert nodes[1].left_volume == Decimal("300")
        assert nodes[1].right_volume == Decimal("150")

    @pytest.mark.asyncio
    async def test_below_minimum_leaves_node_untouched(
        self, session_maker, mock_wallet, repos, nodes
    ):
        """Candidate under minimum is not matched."""
        engine = make_engine(
            session_maker, mock_wallet, min_match_volume=Decimal("200")
        )

        outcome, match_id = await engine.match_node(1)

        assert outcome == MatchOutcome.BELOW_MINIMUM
        assert match_id is None
        assert nodes[1].left_unmatched == Decimal("300")
        assert repos[1].matches == {}

    @pytest.mark.asyncio
    async def test_daily_limit_reached(self, session_maker, mock_wallet, repos, nodes):
        """No match once today's volume hits the cap."""
        repos[1].matched_today[1] = Decimal("1000")
        engine = make_engine(
            session_maker, mock_wallet, max_daily_match=Decimal("1000")
        )

        outcome, _ = await engine.match_node(1)

        assert outcome == MatchOutcome.DAILY_LIMIT_REACHED
        assert nodes[1].right_unmatched == Decimal("150")

    @pytest.mark.asyncio
    async def test_daily_limit_checked_before_minimum(
        self, session_maker, mock_wallet, repos
    ):
        """A capped node reports the cap, not the minimum."""
        repos[1].matched_today[1] = Decimal("1000")
        engine = make_engine(
            session_maker,
            mock_wallet,
            max_daily_match=Decimal("1000"),
            min_match_volume=Decimal("500"),
        )

        outcome, _ = await engine.match_node(1)

        assert outcome == MatchOutcome.DAILY_LIMIT_REACHED

    @pytest.mark.asyncio
    async def test_partial_match_up_to_remaining_cap(
        self, session_maker, mock_wallet, repos, nodes
    ):
        """Only the remaining cap is matched, the rest carries forward."""
        repos[1].matched_today[1] = Decimal("900")
        engine = make_engine(
            session_maker, mock_wallet, max_daily_match=Decimal("1000")
        )

        outcome, match_id = await engine.match_node(1)

        assert outcome == MatchOutcome.MATCHED
        assert repos[1].matches[match_id].matched_volume == Decimal("100")
        assert nodes[1].left_unmatched == Decimal("200")
        assert nodes[1].right_unmatched == Decimal("50")
        assert nodes[1].matched_to_date == Decimal("10")

    @pytest.mark.asyncio
    async def test_missing_node_is_skipped(self, session_maker, mock_wallet, repos):
        """Node deleted after selection."""
        engine = make_engine(session_maker, mock_wallet)

        outcome, match_id = await engine.match_node(99)

        assert outcome == MatchOutcome.SKIPPED
        assert match_id is None

    @pytest.mark.asyncio
    async def test_zero_payout_is_recorded_as_credited(
        self, session_maker, mock_wallet, repos
    ):
        """Zero payout writes a credited record and returns no match to credit."""
        engine = make_engine(
            session_maker, mock_wallet, payout_percentage=Decimal("0")
        )

        outcome, match_id = await engine.match_node(1)

        assert outcome == MatchOutcome.MATCHED
        assert match_id is None
        (match,) = repos[1].matches.values()
        assert match.credit_status == CreditStatus.CREDITED.value


class TestRun:
    """Test batch runs."""

    @pytest.mark.asyncio
    async def test_run_matches_and_credits_every_node(
        self, session_maker, mock_wallet, repos, nodes
    ):
        """All eligible nodes are matched and credited in order."""
        engine = make_engine(session_maker, mock_wallet)

        report = await engine.run(run_id=1)

        assert report.users_processed == 3
        assert report.users_matched == 3
        assert report.total_matched_volume == Decimal("300")
        assert report.total_payout == Decimal("30")
        assert report.credit_failures == 0
        assert not report.cancelled

        calls = mock_wallet.credit.await_args_list
        assert [c.kwargs["user_id"] for c in calls] == [1, 2, 3]
        assert calls[0].kwargs["reason"] == "binary_match"
        assert calls[0].kwargs["reference_id"] == "binary_match:1"
        assert calls[0].kwargs["amount"] == Decimal("15")
        assert all(
            m.credit_status == CreditStatus.CREDITED.value
            for m in repos[1].matches.values()
        )

    @pytest.mark.asyncio
    async def test_failed_credit_does_not_stop_batch(
        self, session_maker, mock_wallet, repos, nodes
    ):
        """A refused credit is recorded as FAILED and the run goes on."""

        async def _credit(user_id, amount, reason, reference_id):
            if user_id == 1:
                return CreditResult(success=False, error="wallet down")
            return CreditResult(success=True)

        mock_wallet.credit = AsyncMock(side_effect=_credit)
        engine = make_engine(session_maker, mock_wallet)

        report = await engine.run()

        assert report.users_matched == 3
        assert report.credit_failures == 1
        failed = repos[1].matches[1]
        assert failed.credit_status == CreditStatus.FAILED.value
        assert failed.credit_error == "wallet down"
        assert failed.credit_attempts == 1
        # Match stands even though the credit failed
        assert nodes[1].right_unmatched == Decimal("0")

    @pytest.mark.asyncio
    async def test_node_error_is_isolated(self, session_maker, mock_wallet, repos, nodes):
        """Exception on one node is counted, others still match."""
        repos[0].failing.add(2)
        engine = make_engine(session_maker, mock_wallet)

        report = await engine.run()

        assert report.errors == 1
        assert report.users_matched == 2
        assert nodes[2].left_unmatched == Decimal("100")

    @pytest.mark.asyncio
    async def test_node_timeout_is_isolated(self, session_maker, mock_wallet, repos):
        """Hung node is abandoned after the node timeout."""
        repos[0].slow.add(1)
        engine = make_engine(session_maker, mock_wallet, node_timeout_seconds=0.05)

        report = await engine.run()

        assert report.errors == 1
        assert report.users_matched == 2

    @pytest.mark.asyncio
    async def test_outcome_counters(self, session_maker, mock_wallet, repos):
        """Below-minimum and capped nodes are counted separately."""
        repos[1].matched_today[2] = Decimal("500")
        engine = make_engine(
            session_maker,
            mock_wallet,
            min_match_volume=Decimal("60"),
            max_daily_match=Decimal("500"),
        )

        report = await engine.run()

        assert report.users_matched == 1
        assert report.daily_limit_reached == 1
        assert report.below_minimum == 1
        assert report.skipped == 0

    @pytest.mark.asyncio
    async def test_request_stop_ends_after_current_node(
        self, session_maker, mock_wallet, repos
    ):
        """Stop request is honoured between nodes."""
        engine = make_engine(session_maker, mock_wallet)

        async def _credit(**kwargs):
            engine.request_stop()
            return CreditResult(success=True)

        mock_wallet.credit = AsyncMock(side_effect=_credit)

        report = await engine.run()

        assert report.users_processed == 1
        assert report.users_matched == 1
        assert report.cancelled

    @pytest.mark.asyncio
    async def test_lost_lease_stops_run(self, session_maker, mock_wallet, repos):
        """Run ends when the lock lease cannot be extended."""
        lease = AsyncMock()
        lease.extend = AsyncMock(return_value=False)
        engine = make_engine(session_maker, mock_wallet)
        engine.lease = lease

        report = await engine.run()

        assert report.users_processed == 0
        assert report.cancelled
        mock_wallet.credit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_report_to_dict(self, session_maker, mock_wallet, repos):
        """Amounts are serialized as strings."""
        engine = make_engine(session_maker, mock_wallet)

        data = (await engine.run()).to_dict()

        assert Decimal(data["total_payout"]) == Decimal("30")
        assert isinstance(data["total_matched_volume"], str)
        assert data["users_matched"] == 3
