"""
Level-unlock evaluator.

Pure function of a member's direct-referral count. No I/O.
"""

from dataclasses import dataclass

from payplan.config.level_unlocks import LEVEL_UNLOCK_MILESTONES, UnlockMilestone


@dataclass(frozen=True)
class NextMilestone:
    """Next milestone a member can reach."""

    threshold: int
    levels_to_unlock: tuple[int, ...]


@dataclass(frozen=True)
class LevelUnlockState:
    """Derived unlock state for one direct count."""

    direct_count: int
    unlocked_levels: tuple[int, ...]
    max_unlocked_level: int
    next_milestone: NextMilestone | None
    directs_needed: int
    progress_percentage: float
    is_max_level: bool

    def to_dict(self) -> dict:
        """Convert to plain dict for API responses."""
        return {
            "direct_count": self.direct_count,
            "unlocked_levels": list(self.unlocked_levels),
            "max_unlocked_level": self.max_unlocked_level,
            "next_milestone": (
                {
                    "threshold": self.next_milestone.threshold,
                    "levels_to_unlock": list(
                        self.next_milestone.levels_to_unlock
                    ),
                }
                if self.next_milestone
                else None
            ),
            "directs_needed": self.directs_needed,
            "progress_percentage": self.progress_percentage,
            "is_max_level": self.is_max_level,
        }


class LevelUnlockEvaluator:
    """Maps direct-referral counts to unlocked levels."""

    def __init__(
        self,
        milestones: tuple[UnlockMilestone, ...] = LEVEL_UNLOCK_MILESTONES,
    ) -> None:
        self.milestones = tuple(sorted(milestones, key=lambda m: m.threshold))
        self._thresholds = {
            level: m.threshold for m in self.milestones for level in m.levels
        }

    def unlocked_levels(self, direct_count: int) -> tuple[int, ...]:
        """
        Get levels unlocked for a direct count.

        Args:
            direct_count: Direct referrals (negative treated as 0)

        Returns:
            Unlocked levels, ascending
        """
        direct_count = max(direct_count, 0)
        return tuple(
            level
            for m in self.milestones
            if direct_count >= m.threshold
            for level in m.levels
        )

    def is_level_unlocked(self, level: int, direct_count: int) -> bool:
        """
        Check if a level pays for a direct count.

        Args:
            level: Level number
            direct_count: Direct referrals

        Returns:
            False for unknown levels
        """
        threshold = self._thresholds.get(level)
        if threshold is None:
            return False
        return max(direct_count, 0) >= threshold

    def evaluate(self, direct_count: int) -> LevelUnlockState:
        """
        Get full unlock state for a direct count.

        Progress runs from the last reached milestone to the next one.

        Args:
            direct_count: Direct referrals (negative treated as 0)

        Returns:
            LevelUnlockState
        """
        direct_count = max(direct_count, 0)
        unlocked = self.unlocked_levels(direct_count)

        previous_threshold = 0
        next_milestone = None
        for m in self.milestones:
            if direct_count >= m.threshold:
                previous_threshold = m.threshold
            else:
                next_milestone = m
                break

        if next_milestone is None:
            return LevelUnlockState(
                direct_count=direct_count,
                unlocked_levels=unlocked,
                max_unlocked_level=max(unlocked, default=0),
                next_milestone=None,
                directs_needed=0,
                progress_percentage=100.0,
                is_max_level=True,
            )

        span = next_milestone.threshold - previous_threshold
        progress = (direct_count - previous_threshold) / span * 100

        return LevelUnlockState(
            direct_count=direct_count,
            unlocked_levels=unlocked,
            max_unlocked_level=max(unlocked, default=0),
            next_milestone=NextMilestone(
                threshold=next_milestone.threshold,
                levels_to_unlock=next_milestone.levels,
            ),
            directs_needed=next_milestone.threshold - direct_count,
            progress_percentage=round(progress, 2),
            is_max_level=False,
        )
