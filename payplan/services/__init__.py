"""
Services.

Business logic layer.
"""

from payplan.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from payplan.services.binary import (
    BinaryMatchingEngine,
    BinaryPlacementService,
    BinaryVolumeAccumulator,
    MatchingReport,
    MatchOutcome,
)
from payplan.services.binary_stats_service import BinaryStatsService
from payplan.services.credit_retry_service import CreditRetryService
from payplan.services.investment_service import (
    InvestmentResult,
    InvestmentService,
)
from payplan.services.level_income import (
    LevelIncomeDistributor,
    LevelIncomeStatusService,
    LevelUnlockEvaluator,
)
from payplan.services.matching_run_service import MatchingRunService
from payplan.services.registration_service import RegistrationService
from payplan.services.wallet import CreditResult, LedgerWalletClient, WalletClient


__all__ = [
    "BaseService",
    "BinaryMatchingEngine",
    "BinaryPlacementService",
    "BinaryStatsService",
    "BinaryVolumeAccumulator",
    "CreditResult",
    "CreditRetryService",
    "InvestmentResult",
    "InvestmentService",
    "LedgerWalletClient",
    "LevelIncomeDistributor",
    "LevelIncomeStatusService",
    "LevelUnlockEvaluator",
    "MatchOutcome",
    "MatchingReport",
    "MatchingRunService",
    "RegistrationService",
    "WalletClient",
    "log_operation",
    "transaction",
]
