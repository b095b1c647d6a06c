"""
Level income services.

- unlock_evaluator: Direct-referral count to unlocked levels
- distributor: Pays level income along the sponsor chain
- status: Read-only unlock and income queries
"""

from payplan.services.level_income.distributor import (
    DistributionResult,
    LevelIncomeDistributor,
    calculate_commission,
)
from payplan.services.level_income.status import LevelIncomeStatusService
from payplan.services.level_income.unlock_evaluator import (
    LevelUnlockEvaluator,
    LevelUnlockState,
    NextMilestone,
)


__all__ = [
    "DistributionResult",
    "LevelIncomeDistributor",
    "LevelIncomeStatusService",
    "LevelUnlockEvaluator",
    "LevelUnlockState",
    "NextMilestone",
    "calculate_commission",
]
