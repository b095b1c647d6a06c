"""
Credit recorder.

Sends a payout record to the wallet and stores the outcome on the
record (credit_status / credit_attempts / credited_at).
"""

import asyncio
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.binary_match import BinaryMatch
from payplan.models.enums import CreditStatus
from payplan.models.level_commission import LevelCommission
from payplan.services.wallet.client import (
    REASON_BINARY_MATCH,
    REASON_LEVEL_INCOME,
    CreditResult,
    WalletClient,
)
from payplan.utils.datetime_utils import utc_now


def credit_target(
    record: BinaryMatch | LevelCommission,
) -> tuple[int, Decimal, str]:
    """
    Get (user_id, amount, reason) for a payout record.

    Args:
        record: BinaryMatch or LevelCommission

    Returns:
        Credit parameters
    """
    if isinstance(record, BinaryMatch):
        return record.user_id, record.payout_amount, REASON_BINARY_MATCH
    return record.recipient_id, record.commission_amount, REASON_LEVEL_INCOME


async def credit_record(
    session: AsyncSession,
    wallet: WalletClient,
    record: BinaryMatch | LevelCommission,
    timeout: float | None = None,
) -> bool:
    """
    Credit a committed payout record and persist the outcome.

    Wallet errors never propagate. A failed credit stays FAILED for
    the retry job.

    Args:
        session: Session the record belongs to
        wallet: Wallet client
        record: Committed payout record
        timeout: Optional wallet call timeout in seconds

    Returns:
        True if the wallet accepted the credit
    """
    user_id, amount, reason = credit_target(record)

    try:
        call = wallet.credit(
            user_id=user_id,
            amount=amount,
            reason=reason,
            reference_id=record.reference_id,
        )
        if timeout is not None:
            result = await asyncio.wait_for(call, timeout=timeout)
        else:
            result = await call
    except Exception as e:
        logger.exception(f"Wallet credit {record.reference_id} raised: {e}")
        result = CreditResult(success=False, error=str(e) or type(e).__name__)

    record.credit_attempts = (record.credit_attempts or 0) + 1
    if result.success:
        record.credit_status = CreditStatus.CREDITED.value
        record.credited_at = utc_now()
        record.credit_error = None
    else:
        record.credit_status = CreditStatus.FAILED.value
        record.credit_error = result.error
        logger.warning(
            f"Wallet credit {record.reference_id} for user {user_id} "
            f"({amount}) failed: {result.error}"
        )

    await session.commit()
    return result.success
