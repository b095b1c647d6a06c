"""
Level income status.

Read-only queries about unlocked levels and level income received.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from payplan.config.level_unlocks import get_unlock_threshold
from payplan.config.plan import LevelIncomeConfig
from payplan.repositories.level_commission_repository import (
    LevelCommissionRepository,
)
from payplan.repositories.user_repository import UserRepository
from payplan.services.base_service import BaseService
from payplan.services.level_income.unlock_evaluator import (
    LevelUnlockEvaluator,
    LevelUnlockState,
)


class LevelIncomeStatusService(BaseService):
    """Level unlock and level income queries."""

    def __init__(self, session: AsyncSession, plan: LevelIncomeConfig) -> None:
        super().__init__(session)
        self.plan = plan
        self.evaluator = LevelUnlockEvaluator(plan.milestones)
        self.user_repo = UserRepository(session)
        self.commission_repo = LevelCommissionRepository(session)

    async def get_level_unlock_status(
        self, user_id: int
    ) -> LevelUnlockState | None:
        """
        Get unlock state of a user.

        Args:
            user_id: User ID

        Returns:
            LevelUnlockState or None if user not found
        """
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            return None
        return self.evaluator.evaluate(user.direct_count)

    async def get_level_unlock_progress(self, user_id: int) -> dict | None:
        """Progress toward the next milestone."""
        state = await self.get_level_unlock_status(user_id)
        if state is None:
            return None
        return {
            "direct_count": state.direct_count,
            "max_unlocked_level": state.max_unlocked_level,
            "next_threshold": (
                state.next_milestone.threshold if state.next_milestone else None
            ),
            "directs_needed": state.directs_needed,
            "progress_percentage": state.progress_percentage,
            "is_max_level": state.is_max_level,
        }

    def get_level_percentages(self) -> list[dict]:
        """
        Get the level table.

        Returns:
            One entry per level with percentage and required directs
        """
        return [
            {
                "level": level,
                "percentage": self.plan.percentage_for(level),
                "required_directs": get_unlock_threshold(level),
            }
            for level in range(1, self.plan.max_depth + 1)
        ]

    async def get_my_levels(self, user_id: int) -> dict | None:
        """
        Get per-level unlocked flags for a user.

        Args:
            user_id: User ID

        Returns:
            Levels with unlocked flag and summed unlocked percentage
        """
        state = await self.get_level_unlock_status(user_id)
        if state is None:
            return None

        unlocked = set(state.unlocked_levels)
        levels = []
        total_percentage = Decimal("0")
        for entry in self.get_level_percentages():
            is_unlocked = entry["level"] in unlocked
            if is_unlocked:
                total_percentage += entry["percentage"]
            levels.append({**entry, "unlocked": is_unlocked})

        return {
            "direct_count": state.direct_count,
            "levels": levels,
            "unlocked_count": len(unlocked),
            "total_unlocked_percentage": total_percentage,
        }

    async def get_level_income_summary(self, user_id: int) -> dict:
        """
        Get commissions received grouped by level.

        Args:
            user_id: Recipient user ID

        Returns:
            Per-level counts and totals plus overall total
        """
        rows = await self.commission_repo.get_summary_by_level(user_id)
        by_level = [
            {"level": level, "count": count, "total": total}
            for level, count, total in rows
        ]
        return {
            "user_id": user_id,
            "by_level": by_level,
            "total_commissions": sum(r["count"] for r in by_level),
            "total_earned": sum((r["total"] for r in by_level), Decimal("0")),
        }
