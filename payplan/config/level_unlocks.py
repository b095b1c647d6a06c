"""
Single source of truth for the level-income unlock schedule.

Direct-referral milestones and the default 30-level commission table.
All other modules must import from this file.
"""

from decimal import Decimal
from typing import NamedTuple

# Levels of the sponsor chain that can pay level income
MAX_LEVEL = 30


class UnlockMilestone(NamedTuple):
    """Direct-referral milestone and the levels it opens."""

    threshold: int  # Direct referrals required
    levels: tuple[int, ...]  # Levels unlocked at this threshold


# Step function: levels 1-8 open one per direct, then in blocks
LEVEL_UNLOCK_MILESTONES: tuple[UnlockMilestone, ...] = (
    UnlockMilestone(threshold=1, levels=(1,)),
    UnlockMilestone(threshold=2, levels=(2,)),
    UnlockMilestone(threshold=3, levels=(3,)),
    UnlockMilestone(threshold=4, levels=(4,)),
    UnlockMilestone(threshold=5, levels=(5,)),
    UnlockMilestone(threshold=6, levels=(6,)),
    UnlockMilestone(threshold=7, levels=(7,)),
    UnlockMilestone(threshold=8, levels=(8,)),
    UnlockMilestone(threshold=9, levels=(9, 10)),
    UnlockMilestone(threshold=10, levels=(11, 12, 13, 14, 15)),
    UnlockMilestone(threshold=15, levels=(16, 17, 18, 19, 20)),
    UnlockMilestone(threshold=20, levels=(21, 22, 23, 24, 25)),
    UnlockMilestone(threshold=25, levels=(26, 27, 28, 29, 30)),
)

# Threshold that first grants each level
LEVEL_THRESHOLDS: dict[int, int] = {
    level: milestone.threshold
    for milestone in LEVEL_UNLOCK_MILESTONES
    for level in milestone.levels
}

# Default commission percentages for levels 1..30
DEFAULT_LEVEL_PERCENTAGES: tuple[Decimal, ...] = (
    Decimal("10"),  # Level 1 (direct sponsor)
    Decimal("9"),
    Decimal("8"),
    Decimal("7"),
    Decimal("6"),
    Decimal("5"),
    Decimal("4"),
    Decimal("4"),
    Decimal("3"),
    Decimal("3"),
    Decimal("3"),  # Level 11
    Decimal("2"),
    Decimal("2"),
    Decimal("2"),
    Decimal("2"),
    Decimal("2"),
    Decimal("1"),
    Decimal("1"),
    Decimal("1"),
    Decimal("1"),
    Decimal("1"),  # Level 21
    Decimal("1"),
    Decimal("1"),
    Decimal("1"),
    Decimal("1"),
    Decimal("0.5"),
    Decimal("0.5"),
    Decimal("0.5"),
    Decimal("0.5"),
    Decimal("0.5"),  # Level 30
)


def get_unlock_threshold(level: int) -> int | None:
    """
    Get direct-referral threshold that unlocks a level.

    Args:
        level: Level number (1-30)

    Returns:
        Threshold or None if level is outside 1..30
    """
    return LEVEL_THRESHOLDS.get(level)
