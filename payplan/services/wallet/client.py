"""
Wallet client interface.

The compensation engine only ever credits. Implementations must be
idempotent per reference_id.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

# Credit reasons
REASON_BINARY_MATCH = "binary_match"
REASON_LEVEL_INCOME = "level_income"


@dataclass
class CreditResult:
    """Result of a wallet credit."""

    success: bool
    error: str | None = None
    already_applied: bool = False


class WalletClient(Protocol):
    """Anything that can credit a user's wallet."""

    async def credit(
        self,
        user_id: int,
        amount: Decimal,
        reason: str,
        reference_id: str,
    ) -> CreditResult:
        """
        Credit a user's wallet.

        Args:
            user_id: Credited user
            amount: Positive amount
            reason: Credit reason (binary_match / level_income)
            reference_id: Idempotency reference

        Returns:
            CreditResult
        """
        ...
