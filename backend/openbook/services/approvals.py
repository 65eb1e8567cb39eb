"""
approvals.py
- admin scope: root roles manage everyone, a sub-admin only the users it manages
- deposit / withdraw request actions with their ledger effects
- manual top-ups

A request leaves PENDING through one guarded ``UPDATE ... WHERE status =
'PENDING'``; the ledger effect is written in the same transaction, so a
request can never be applied twice.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Type, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import AlreadyProcessed, Forbidden, InsufficientFunds, NotFound, ValidationError
from openbook.core.timeutil import iso
from openbook.models.deposit import DepositRequest, DepositStatus
from openbook.models.ledger import LedgerKind
from openbook.models.user import Admin, User
from openbook.models.withdrawal import WithdrawRequest, WithdrawStatus
from openbook.services import ledger

logger = logging.getLogger(__name__)

DEPOSIT_ACTIONS = {
    "APPROVE": DepositStatus.CONFIRMED,
    "CONFIRM": DepositStatus.CONFIRMED,
    "DECLINE": DepositStatus.REJECTED,
    "REJECT": DepositStatus.REJECTED,
}

WITHDRAW_ACTIONS = {
    "CONFIRM": WithdrawStatus.CONFIRMED,
    "CONFIRMED": WithdrawStatus.CONFIRMED,
    "APPROVE": WithdrawStatus.CONFIRMED,
    "FREEZE": WithdrawStatus.FROZEN,
    "FROZEN": WithdrawStatus.FROZEN,
    "DECLINE": WithdrawStatus.FROZEN,
    "REJECT": WithdrawStatus.FROZEN,
}

PENDING_STATUS = {DepositRequest: DepositStatus.PENDING, WithdrawRequest: WithdrawStatus.PENDING}
DEFAULT_LIST_LIMIT = {DepositRequest: 200, WithdrawRequest: 300}
MAX_LIST_LIMIT = 500

FundsRequest = Union[DepositRequest, WithdrawRequest]


def can_manage(admin: Admin, user: User) -> bool:
    return admin.is_root or user.managed_by == admin.id


async def ensure_user_scope(db: AsyncSession, admin: Admin, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if not can_manage(admin, user):
        raise Forbidden()
    return user


def scope_users(stmt, admin: Admin):
    """Restrict a statement that already joins ``users`` to the admin's scope."""
    if admin.is_root:
        return stmt
    return stmt.where(User.managed_by == admin.id)


async def _load_request(db: AsyncSession, admin: Admin, model: Type[FundsRequest], request_id: int) -> FundsRequest:
    row = await db.get(model, request_id, populate_existing=True)
    if row is None:
        raise NotFound("Request not found")
    await ensure_user_scope(db, admin, row.user_id)
    if not admin.is_root and row.admin_id is not None and row.admin_id != admin.id:
        raise Forbidden()
    return row


async def _transition(db: AsyncSession, model: Type[FundsRequest], request_id: int, pending, target, note: Optional[str]) -> None:
    values = {"status": target}
    if note:
        values["note"] = note[:500]
    res = await db.execute(
        update(model)
        .where(model.id == request_id, model.status == pending)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        await db.rollback()
        raise AlreadyProcessed()


def _parse_action(action: Optional[str], table: Dict) -> str:
    key = str(action or "").strip().upper()
    if key not in table:
        raise ValidationError("Invalid action")
    return key


async def process_deposit(
    db: AsyncSession,
    admin: Admin,
    request_id: int,
    action: str,
    note: Optional[str] = None,
) -> DepositRequest:
    target = DEPOSIT_ACTIONS[_parse_action(action, DEPOSIT_ACTIONS)]
    row = await _load_request(db, admin, DepositRequest, request_id)
    if row.status != DepositStatus.PENDING:
        raise AlreadyProcessed()

    await _transition(db, DepositRequest, row.id, DepositStatus.PENDING, target, note)
    if target == DepositStatus.CONFIRMED:
        await ledger.apply_delta(
            db, row.user_id, ledger.normalize_asset(row.asset), row.amount, LedgerKind.deposit,
            admin_id=admin.id, note=f"Deposit request #{row.id}",
        )
    await db.commit()
    await db.refresh(row)
    logger.info("deposit #%s -> %s by admin %s", row.id, target.value, admin.id)
    return row


async def process_withdraw(
    db: AsyncSession,
    admin: Admin,
    request_id: int,
    action: str,
    note: Optional[str] = None,
) -> WithdrawRequest:
    target = WITHDRAW_ACTIONS[_parse_action(action, WITHDRAW_ACTIONS)]
    row = await _load_request(db, admin, WithdrawRequest, request_id)
    if row.status == WithdrawStatus.CONFIRMED:
        raise AlreadyProcessed("Confirmed request cannot be changed")
    if row.status != WithdrawStatus.PENDING:
        raise AlreadyProcessed()

    await _transition(db, WithdrawRequest, row.id, WithdrawStatus.PENDING, target, note)
    if target == WithdrawStatus.CONFIRMED:
        try:
            await ledger.apply_delta(
                db, row.user_id, ledger.normalize_asset(row.asset), -ledger.quantize(row.amount),
                LedgerKind.withdraw, admin_id=admin.id, note=f"Withdraw request #{row.id}",
            )
        except InsufficientFunds:
            await db.rollback()
            raise
    await db.commit()
    await db.refresh(row)
    logger.info("withdraw #%s -> %s by admin %s", row.id, target.value, admin.id)
    return row


def _list_limit(model: Type[FundsRequest], limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIST_LIMIT[model]
    return max(1, min(MAX_LIST_LIMIT, int(limit)))


def _scoped_requests(model: Type[FundsRequest], admin: Admin):
    stmt = select(model, User).join(User, User.id == model.user_id)
    if not admin.is_root:
        stmt = stmt.where(model.admin_id == admin.id)
    return stmt


async def list_requests(
    db: AsyncSession,
    admin: Admin,
    model: Type[FundsRequest],
    status=None,
    user_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> Tuple[List[dict], int]:
    """Requests visible to ``admin`` plus the number still pending."""
    stmt = _scoped_requests(model, admin)
    if status is not None:
        stmt = stmt.where(model.status == status)
    if user_id is not None:
        stmt = stmt.where(model.user_id == user_id)
    stmt = stmt.order_by(model.created_at.desc(), model.id.desc()).limit(_list_limit(model, limit))
    rows = [request_to_dict(req, user) for req, user in await db.execute(stmt)]

    count_stmt = select(func.count()).select_from(model).where(model.status == PENDING_STATUS[model])
    if not admin.is_root:
        count_stmt = count_stmt.where(model.admin_id == admin.id)
    pending = await db.scalar(count_stmt)
    return rows, int(pending or 0)


def request_to_dict(row: FundsRequest, user: Optional[User] = None) -> dict:
    data = {
        "id": row.id,
        "userId": row.user_id,
        "adminId": row.admin_id,
        "asset": row.asset,
        "amount": float(row.amount),
        "walletAddress": row.wallet_address,
        "status": row.status.value,
        "note": row.note,
        "createdAt": iso(row.created_at),
        "updatedAt": iso(row.updated_at),
    }
    if user is not None:
        data["username"] = user.username
        data["email"] = user.email
    return data


TOPUP_MODES = {"ADD": 1, "SUBTRACT": -1, "DEDUCT": -1, "WITHDRAW": -1}


async def topup(
    db: AsyncSession,
    admin: Admin,
    user_id: int,
    asset: str,
    amount,
    mode: str = "ADD",
    note: Optional[str] = None,
) -> Decimal:
    """Manual balance correction by an admin, audited like any other movement."""
    sign = TOPUP_MODES.get(str(mode or "").strip().upper())
    if sign is None:
        raise ValidationError("Invalid mode")
    asset = ledger.normalize_asset(asset)
    amount = ledger.quantize(amount)
    if amount <= 0:
        raise ValidationError("Invalid amount")
    await ensure_user_scope(db, admin, user_id)

    balance = await ledger.apply_delta(
        db, user_id, asset, amount * sign, LedgerKind.topup,
        admin_id=admin.id, note=note or f"Admin {str(mode).upper()}",
    )
    await db.commit()
    logger.info("topup user=%s %s%s %s by admin %s", user_id, "+" if sign > 0 else "-", amount, asset, admin.id)
    return balance
