"""
Wallet collaborator.

- client: WalletClient protocol and CreditResult
- ledger_client: Default ledger-backed implementation
- recorder: Credits payout records and stores the outcome
"""

from payplan.services.wallet.client import (
    REASON_BINARY_MATCH,
    REASON_LEVEL_INCOME,
    CreditResult,
    WalletClient,
)
from payplan.services.wallet.ledger_client import LedgerWalletClient
from payplan.services.wallet.recorder import credit_record


__all__ = [
    "REASON_BINARY_MATCH",
    "REASON_LEVEL_INCOME",
    "CreditResult",
    "LedgerWalletClient",
    "WalletClient",
    "credit_record",
]
