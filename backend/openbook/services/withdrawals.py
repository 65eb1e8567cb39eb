import logging
from decimal import Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import InsufficientFunds, ValidationError
from openbook.core.timeutil import iso
from openbook.models.user import User
from openbook.models.withdrawal import WithdrawRequest, WithdrawStatus
from openbook.services import ledger
from openbook.services.deposits import resolve_owner_admin

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 120


async def pending_total(db: AsyncSession, user_id: int, asset: str) -> Decimal:
    total = await db.scalar(
        select(func.coalesce(func.sum(WithdrawRequest.amount), 0)).where(
            WithdrawRequest.user_id == user_id,
            WithdrawRequest.asset == asset,
            WithdrawRequest.status == WithdrawStatus.PENDING,
        )
    )
    return ledger.quantize(total or 0)


async def withdrawable(db: AsyncSession, user_id: int, asset: str) -> Decimal:
    """Balance not already claimed by a pending withdraw request."""
    balance = await ledger.read_balance(db, user_id, asset)
    return max(balance - await pending_total(db, user_id, asset), Decimal("0"))


async def create_withdraw(db: AsyncSession, user: User, asset: str, amount, wallet_address: str) -> WithdrawRequest:
    asset = ledger.normalize_asset(asset or "USDT")
    amount = ledger.quantize(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    address = str(wallet_address or "").strip()
    if not address:
        raise ValidationError("Wallet address is required")
    if amount > await withdrawable(db, user.id, asset):
        raise InsufficientFunds(asset)

    owner = await resolve_owner_admin(db, user)
    row = WithdrawRequest(
        user_id=user.id,
        admin_id=owner.id if owner else None,
        asset=asset,
        amount=amount,
        wallet_address=address,
        status=WithdrawStatus.PENDING,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info("withdraw request #%s user=%s %s %s", row.id, user.id, amount, asset)
    return row


async def list_user_withdrawals(db: AsyncSession, user_id: int, limit: int = HISTORY_LIMIT) -> List[WithdrawRequest]:
    return list(await db.scalars(
        select(WithdrawRequest)
        .where(WithdrawRequest.user_id == user_id)
        .order_by(WithdrawRequest.created_at.desc(), WithdrawRequest.id.desc())
        .limit(limit)
    ))


def withdraw_to_dict(row: WithdrawRequest) -> dict:
    return {
        "id": row.id,
        "asset": row.asset,
        "amount": float(row.amount),
        "walletAddress": row.wallet_address,
        "status": row.status.value,
        "note": row.note,
        "createdAt": iso(row.created_at),
        "updatedAt": iso(row.updated_at),
    }
