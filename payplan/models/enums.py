"""
Enumerations shared by compensation models.
"""

from enum import Enum


class NodePosition(str, Enum):
    """Placement of a node under its binary parent."""

    LEFT = "left"
    RIGHT = "right"
    ROOT = "root"


class CreditStatus(str, Enum):
    """State of the wallet credit for a payout record."""

    PENDING = "pending"
    CREDITED = "credited"
    FAILED = "failed"


class MatchingRunStatus(str, Enum):
    """Lifecycle of a matching batch run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MatchingRunTrigger(str, Enum):
    """What started a matching run."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"
