"""
Binary matching engine.

Converts carry-forward volume into payouts. Eligible nodes are processed
one at a time, least-paid first, each in its own transaction under a
row lock. A failing node is logged and counted; the batch goes on.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payplan.config.plan import BinaryMatchingConfig
from payplan.models.binary_match import BinaryMatch
from payplan.models.enums import CreditStatus
from payplan.repositories.binary_match_repository import BinaryMatchRepository
from payplan.repositories.binary_node_repository import BinaryNodeRepository
from payplan.services.wallet.client import WalletClient
from payplan.services.wallet.recorder import credit_record
from payplan.utils.datetime_utils import daily_window_start, utc_now
from payplan.utils.distributed_lock import Lease

AMOUNT_QUANT = Decimal("0.00000001")


class MatchOutcome(str, Enum):
    """What happened to one node in a run."""

    MATCHED = "matched"
    BELOW_MINIMUM = "below_minimum"
    DAILY_LIMIT_REACHED = "daily_limit_reached"
    SKIPPED = "skipped"  # Node vanished or lost eligibility since selection


@dataclass
class MatchingReport:
    """Counters for one matching run."""

    users_processed: int = 0
    users_matched: int = 0
    below_minimum: int = 0
    daily_limit_reached: int = 0
    skipped: int = 0
    credit_failures: int = 0
    errors: int = 0
    total_matched_volume: Decimal = Decimal("0")
    total_payout: Decimal = Decimal("0")
    duration_seconds: float = 0.0
    cancelled: bool = False

    def to_dict(self) -> dict:
        """Convert to plain dict (amounts as strings)."""
        data = asdict(self)
        data["total_matched_volume"] = str(self.total_matched_volume)
        data["total_payout"] = str(self.total_payout)
        return data


def calculate_payout(matched_volume: Decimal, percentage: Decimal) -> Decimal:
    """
    Calculate binary payout, rounded down to 8 decimals.

    Args:
        matched_volume: Volume matched
        percentage: Payout percentage (10 = 10%)

    Returns:
        Payout amount
    """
    return (matched_volume * percentage / Decimal("100")).quantize(
        AMOUNT_QUANT, rounding=ROUND_DOWN
    )


class BinaryMatchingEngine:
    """
    Batch matcher over all eligible nodes.

    Example:
        engine = BinaryMatchingEngine(async_session_maker, plan.binary, wallet)
        report = await engine.run()
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        plan: BinaryMatchingConfig,
        wallet: WalletClient,
        lease: Lease | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize engine.

        Args:
            session_maker: Factory for per-node sessions
            plan: Binary matching configuration
            wallet: Wallet client for payouts
            lease: Run lease extended between nodes
            clock: Source of the current time
        """
        self.session_maker = session_maker
        self.plan = plan
        self.wallet = wallet
        self.lease = lease
        self.clock = clock
        self.report = MatchingReport()
        self._stop_requested = False

    def request_stop(self) -> None:
        """Stop after the node currently in progress."""
        self._stop_requested = True
        logger.info("Binary matching stop requested")

    async def run(self, run_id: int | None = None) -> MatchingReport:
        """
        Match every eligible node once.

        Args:
            run_id: MatchingRun the records belong to

        Returns:
            MatchingReport
        """
        started = time.monotonic()
        self.report = MatchingReport()
        report = self.report

        async with self.session_maker() as session:
            user_ids = await BinaryNodeRepository(session).get_eligible_user_ids()

        logger.info(
            f"Binary matching started: {len(user_ids)} eligible nodes",
            extra={"run_id": run_id},
        )

        try:
            for user_id in user_ids:
                if self._stop_requested:
                    report.cancelled = True
                    logger.warning(
                        f"Binary matching stopped after "
                        f"{report.users_processed} nodes"
                    )
                    break

                if self.lease is not None and not await self.lease.extend():
                    report.cancelled = True
                    logger.error("Run lease lost, stopping binary matching")
                    break

                report.users_processed += 1
                await self._process_node(user_id, run_id)

        except asyncio.CancelledError:
            report.cancelled = True
            logger.warning(
                f"Binary matching cancelled after {report.users_processed} nodes"
            )
            raise
        finally:
            report.duration_seconds = round(time.monotonic() - started, 3)

        logger.info(
            "Binary matching finished",
            extra={"run_id": run_id, **report.to_dict()},
        )
        return report

    async def _process_node(self, user_id: int, run_id: int | None) -> None:
        """Match one node and credit its payout. Never raises."""
        report = self.report

        try:
            outcome, match_id = await asyncio.wait_for(
                self.match_node(user_id, run_id),
                timeout=self.plan.node_timeout_seconds,
            )
        except TimeoutError:
            report.errors += 1
            logger.error(
                f"Binary matching timed out for user {user_id} "
                f"after {self.plan.node_timeout_seconds}s"
            )
            return
        except Exception as e:
            report.errors += 1
            logger.exception(f"Binary matching failed for user {user_id}: {e}")
            return

        if outcome == MatchOutcome.BELOW_MINIMUM:
            report.below_minimum += 1
            return
        if outcome == MatchOutcome.DAILY_LIMIT_REACHED:
            report.daily_limit_reached += 1
            return
        if outcome == MatchOutcome.SKIPPED:
            report.skipped += 1
            return

        if match_id is not None and not await self._credit_match(match_id):
            report.credit_failures += 1

    async def match_node(
        self, user_id: int, run_id: int | None = None
    ) -> tuple[MatchOutcome, int | None]:
        """
        Match one node in its own transaction.

        Args:
            user_id: Node owner
            run_id: MatchingRun ID

        Returns:
            (outcome, created match id or None)
        """
        async with self.session_maker() as session:
            node_repo = BinaryNodeRepository(session)
            match_repo = BinaryMatchRepository(session)

            node = await node_repo.lock_by_user_id(user_id)
            if node is None or not node.is_eligible:
                await session.rollback()
                return MatchOutcome.SKIPPED, None

            now = self.clock()
            candidate = min(node.left_unmatched, node.right_unmatched)

            remaining_cap = None
            if self.plan.max_daily_match is not None:
                since = daily_window_start(
                    now,
                    self.plan.daily_cap_window,
                    self.plan.daily_cap_timezone,
                )
                matched_today = await match_repo.sum_matched_since(user_id, since)
                if matched_today >= self.plan.max_daily_match:
                    await session.rollback()
                    logger.debug(
                        "Daily match limit reached",
                        extra={
                            "user_id": user_id,
                            "matched_today": str(matched_today),
                        },
                    )
                    return MatchOutcome.DAILY_LIMIT_REACHED, None
                remaining_cap = self.plan.max_daily_match - matched_today

            if candidate < self.plan.min_match_volume:
                await session.rollback()
                return MatchOutcome.BELOW_MINIMUM, None

            matched_volume = (
                candidate if remaining_cap is None else min(candidate, remaining_cap)
            )
            payout_amount = calculate_payout(
                matched_volume, self.plan.payout_percentage
            )

            left_before = node.left_unmatched
            right_before = node.right_unmatched
            await node_repo.apply_match(node, matched_volume, payout_amount, now)

            match = await match_repo.create(
                user_id=user_id,
                run_id=run_id,
                matched_volume=matched_volume,
                left_volume_before=left_before,
                left_volume_after=left_before - matched_volume,
                right_volume_before=right_before,
                right_volume_after=right_before - matched_volume,
                payout_amount=payout_amount,
                payout_percentage=self.plan.payout_percentage,
                # Nothing to send for a zero payout
                credit_status=(
                    CreditStatus.PENDING.value
                    if payout_amount > 0
                    else CreditStatus.CREDITED.value
                ),
                created_at=now,
            )
            await session.commit()

            report = self.report
            report.users_matched += 1
            report.total_matched_volume += matched_volume
            report.total_payout += payout_amount

            logger.info(
                "Binary match recorded",
                extra={
                    "user_id": user_id,
                    "match_id": match.id,
                    "matched_volume": str(matched_volume),
                    "payout_amount": str(payout_amount),
                },
            )

            if payout_amount <= 0:
                return MatchOutcome.MATCHED, None
            return MatchOutcome.MATCHED, match.id

    async def _credit_match(self, match_id: int) -> bool:
        """Credit a committed match in a fresh session."""
        try:
            async with self.session_maker() as session:
                match = await session.get(BinaryMatch, match_id)
                if match is None:
                    logger.error(f"Committed match {match_id} not found")
                    return False
                return await credit_record(
                    session,
                    self.wallet,
                    match,
                    timeout=self.plan.node_timeout_seconds,
                )
        except Exception as e:
            # Record stays PENDING, picked up by the credit retry job
            logger.exception(f"Failed to record credit for match {match_id}: {e}")
            return False
