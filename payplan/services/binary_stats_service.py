"""
Binary stats service.

Read-only views of a member's binary position, volumes and matches.
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from payplan.config.plan import BinaryMatchingConfig
from payplan.models.binary_match import BinaryMatch
from payplan.models.binary_node import BinaryNode
from payplan.repositories.binary_match_repository import BinaryMatchRepository
from payplan.repositories.binary_node_repository import BinaryNodeRepository
from payplan.services.base_service import BaseService
from payplan.services.binary.matching_engine import calculate_payout
from payplan.utils.datetime_utils import daily_window_start, utc_now


class BinaryStatsService(BaseService):
    """Binary plan queries."""

    def __init__(
        self,
        session: AsyncSession,
        plan: BinaryMatchingConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(session)
        self.plan = plan
        self.clock = clock
        self.node_repo = BinaryNodeRepository(session)
        self.match_repo = BinaryMatchRepository(session)

    async def get_user_binary_stats(self, user_id: int) -> dict | None:
        """
        Get binary stats of a member.

        Args:
            user_id: User ID

        Returns:
            Stats dict or None if member has no node
        """
        node = await self.node_repo.get_by_user_id(user_id)
        if node is None:
            return None

        since = daily_window_start(
            self.clock(), self.plan.daily_cap_window, self.plan.daily_cap_timezone
        )
        today_matched = await self.match_repo.sum_matched_since(user_id, since)
        total_matches, total_payout = await self.match_repo.get_totals(user_id)
        matchable = node.matchable_volume

        return {
            "user_id": user_id,
            "position": node.position,
            "level": node.level,
            "parent_id": node.parent_id,
            "left_volume": node.left_volume,
            "right_volume": node.right_volume,
            "left_unmatched": node.left_unmatched,
            "right_unmatched": node.right_unmatched,
            "matched_to_date": node.matched_to_date,
            "last_matched_at": node.last_matched_at,
            "today_matched": today_matched,
            "total_matches": total_matches,
            "total_payout": total_payout,
            "matchable_volume": matchable,
            "potential_payout": calculate_payout(
                matchable, self.plan.payout_percentage
            ),
        }

    async def get_match_history(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> list[dict]:
        """Match history, newest first."""
        matches = await self.match_repo.get_history(user_id, limit, offset)
        return [self._match_to_dict(m) for m in matches]

    async def get_binary_children(self, user_id: int) -> dict | None:
        """
        Get direct children summary.

        Args:
            user_id: User ID

        Returns:
            {"left": ..., "right": ...} or None if member has no node
        """
        node = await self.node_repo.get_by_user_id(user_id)
        if node is None:
            return None

        child_ids = [
            cid for cid in (node.left_child_id, node.right_child_id) if cid
        ]
        children = {
            c.user_id: c for c in await self.node_repo.get_by_user_ids(child_ids)
        }
        return {
            "left": self._child_to_dict(children.get(node.left_child_id)),
            "right": self._child_to_dict(children.get(node.right_child_id)),
        }

    @staticmethod
    def _child_to_dict(child: BinaryNode | None) -> dict | None:
        if child is None:
            return None
        return {
            "user_id": child.user_id,
            "left_volume": child.left_volume,
            "right_volume": child.right_volume,
            "has_left": child.left_child_id is not None,
            "has_right": child.right_child_id is not None,
        }

    @staticmethod
    def _match_to_dict(match: BinaryMatch) -> dict:
        return {
            "id": match.id,
            "matched_volume": match.matched_volume,
            "left_volume_before": match.left_volume_before,
            "left_volume_after": match.left_volume_after,
            "right_volume_before": match.right_volume_before,
            "right_volume_after": match.right_volume_after,
            "payout_amount": match.payout_amount,
            "payout_percentage": match.payout_percentage,
            "credit_status": match.credit_status,
            "created_at": match.created_at,
        }
