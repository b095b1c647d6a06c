"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from payplan.models.base import Base
from payplan.models.binary_match import BinaryMatch
from payplan.models.binary_node import BinaryNode
from payplan.models.enums import (
    CreditStatus,
    MatchingRunStatus,
    MatchingRunTrigger,
    NodePosition,
)
from payplan.models.investment_event import InvestmentEvent
from payplan.models.level_commission import LevelCommission
from payplan.models.matching_run import MatchingRun
from payplan.models.user import User
from payplan.models.wallet_credit import WalletCredit


__all__ = [
    "Base",
    "BinaryMatch",
    "BinaryNode",
    "CreditStatus",
    "InvestmentEvent",
    "LevelCommission",
    "MatchingRun",
    "MatchingRunStatus",
    "MatchingRunTrigger",
    "NodePosition",
    "User",
    "WalletCredit",
]
