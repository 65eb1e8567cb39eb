"""
mining.py
- purchase: principal is escrowed (debited) while the order is PENDING
- admin approve / decline, user abort with the plan's abort fee
- completion of ACTIVE orders whose cycle has elapsed, run by the scheduler
  sweep and again by every read that returns orders

Every transition is a conditional UPDATE on the current status, committed
together with its ledger effect.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.config import settings
from openbook.core.errors import AlreadyProcessed, InsufficientFunds, NotFound, ValidationError
from openbook.core.timeutil import as_utc, iso, utcnow
from openbook.database import AsyncSessionLocal
from openbook.models.ledger import LedgerKind
from openbook.models.mining import TERMINAL_MINING_STATUSES, MiningOrder, MiningStatus
from openbook.models.user import Admin, User
from openbook.models.wallet import QUOTE_ASSET
from openbook.services import ledger
from openbook.services.access import require_mining_access
from openbook.services.approvals import ensure_user_scope, scope_users
from openbook.services.mining_plans import PLANS, MiningPlan, get_plan

logger = logging.getLogger(__name__)

ADMIN_LIST_LIMIT = 500


def ends_at(order: MiningOrder, plan: MiningPlan) -> Optional[datetime]:
    start = as_utc(order.activated_at)
    if start is None:
        return None
    return start + timedelta(days=plan.cycle_days)


def is_due(order: MiningOrder, now: datetime) -> bool:
    if order.status != MiningStatus.ACTIVE:
        return False
    plan = PLANS.get(order.plan_id)
    if plan is None:
        return False
    end = ends_at(order, plan)
    return end is not None and now >= end


async def _complete(db: AsyncSession, orders: Iterable[MiningOrder], now: datetime) -> int:
    due_ids = [o.id for o in orders if is_due(o, now)]
    if not due_ids:
        return 0
    res = await db.execute(
        update(MiningOrder)
        .where(MiningOrder.id.in_(due_ids), MiningOrder.status == MiningStatus.ACTIVE)
        .values(status=MiningStatus.COMPLETED, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount or 0


async def complete_due_orders(db: AsyncSession, user_id: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """Mark every ACTIVE order past its cycle end COMPLETED. No ledger effect."""
    now = now or utcnow()
    stmt = (
        select(MiningOrder)
        .where(MiningOrder.status == MiningStatus.ACTIVE)
        .execution_options(populate_existing=True)
    )
    if user_id is not None:
        stmt = stmt.where(MiningOrder.user_id == user_id)
    orders = list(await db.scalars(stmt))
    completed = await _complete(db, orders, now)
    if completed:
        logger.info("completed %s mining order(s)", completed)
    return completed


async def run_completion_sweep() -> None:
    """Scheduler entry point; owns its session."""
    async with AsyncSessionLocal() as db:
        await complete_due_orders(db)


async def purchase(db: AsyncSession, user_id: int, plan_id: str, amount) -> dict:
    await require_mining_access(db, user_id)
    plan = get_plan(plan_id)
    amount = ledger.quantize(amount)
    if amount <= 0:
        raise ValidationError("Invalid amount")
    if not plan.accepts(amount):
        raise ValidationError(f"Amount must be between {plan.min_amount:,} and {plan.max_amount:,}")

    try:
        balance = await ledger.apply_delta(
            db, user_id, QUOTE_ASSET, -amount, LedgerKind.mining_purchase, note=f"Mining {plan.id}",
        )
    except InsufficientFunds:
        raise InsufficientFunds(QUOTE_ASSET, "Insufficient USDT")

    order = MiningOrder(user_id=user_id, plan_id=plan.id, amount=amount, status=MiningStatus.PENDING)
    db.add(order)
    await db.commit()
    await db.refresh(order)
    logger.info("mining order #%s user=%s plan=%s amount=%s", order.id, user_id, plan.id, amount)
    return {"order": order, "balanceUSDT": balance}


async def _get_order(db: AsyncSession, order_id: int) -> MiningOrder:
    order = await db.get(MiningOrder, order_id, populate_existing=True)
    if order is None:
        raise NotFound("Order not found")
    return order


async def approve(db: AsyncSession, admin: Admin, order_id: int) -> MiningOrder:
    order = await _get_order(db, order_id)
    await ensure_user_scope(db, admin, order.user_id)
    res = await db.execute(
        update(MiningOrder)
        .where(MiningOrder.id == order.id, MiningOrder.status == MiningStatus.PENDING)
        .values(status=MiningStatus.ACTIVE, activated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise AlreadyProcessed()
    await db.commit()
    await db.refresh(order)
    logger.info("mining order #%s approved by admin %s", order.id, admin.id)
    return order


async def decline(db: AsyncSession, admin: Admin, order_id: int, note: Optional[str] = None) -> MiningOrder:
    order = await _get_order(db, order_id)
    await ensure_user_scope(db, admin, order.user_id)
    res = await db.execute(
        update(MiningOrder)
        .where(MiningOrder.id == order.id, MiningOrder.status == MiningStatus.PENDING)
        .values(status=MiningStatus.REJECTED, note=(note or "Declined by admin")[:500])
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise AlreadyProcessed()
    if settings.MINING_REFUND_ON_DECLINE:
        await ledger.apply_delta(
            db, order.user_id, QUOTE_ASSET, order.amount, LedgerKind.mining_refund,
            admin_id=admin.id, note=f"Mining order #{order.id} declined",
        )
    await db.commit()
    await db.refresh(order)
    logger.info("mining order #%s declined by admin %s", order.id, admin.id)
    return order


async def abort(db: AsyncSession, user_id: int, order_id: int) -> dict:
    await require_mining_access(db, user_id)
    order = await _get_order(db, order_id)
    if order.user_id != user_id:
        raise NotFound("Order not found")

    now = utcnow()
    if is_due(order, now):
        await _complete(db, [order], now)
        await db.refresh(order)
    if order.status in TERMINAL_MINING_STATUSES:
        raise AlreadyProcessed("Order can no longer be aborted")
    if order.status != MiningStatus.ACTIVE:
        raise ValidationError("Only active orders can be aborted")

    plan = get_plan(order.plan_id)
    refund = ledger.quantize(Decimal(order.amount) * (Decimal("1") - plan.abort_fee))
    res = await db.execute(
        update(MiningOrder)
        .where(MiningOrder.id == order.id, MiningOrder.user_id == user_id, MiningOrder.status == MiningStatus.ACTIVE)
        .values(status=MiningStatus.ABORTED, note="User aborted")
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise AlreadyProcessed("Order can no longer be aborted")
    balance = await ledger.apply_delta(
        db, user_id, QUOTE_ASSET, refund, LedgerKind.mining_refund, note=f"Mining order #{order.id} aborted",
    )
    await db.commit()
    logger.info("mining order #%s aborted user=%s refund=%s", order.id, user_id, refund)
    return {"refundUSDT": refund, "balanceUSDT": balance}


async def list_user_orders(db: AsyncSession, user_id: int) -> List[dict]:
    await require_mining_access(db, user_id)
    await complete_due_orders(db, user_id=user_id)
    orders = await db.scalars(
        select(MiningOrder)
        .where(MiningOrder.user_id == user_id)
        .order_by(MiningOrder.created_at.desc(), MiningOrder.id.desc())
        .execution_options(populate_existing=True)
    )
    now = utcnow()
    return [order_view(o, now) for o in orders]


async def _admin_rows(db: AsyncSession, admin: Admin, pending: bool) -> List[dict]:
    stmt = select(MiningOrder, User).join(User, User.id == MiningOrder.user_id)
    stmt = scope_users(stmt, admin)
    if pending:
        stmt = stmt.where(MiningOrder.status == MiningStatus.PENDING)
    else:
        stmt = stmt.where(MiningOrder.status != MiningStatus.PENDING)
    stmt = (
        stmt.order_by(MiningOrder.created_at.desc(), MiningOrder.id.desc())
        .limit(ADMIN_LIST_LIMIT)
        .execution_options(populate_existing=True)
    )
    now = utcnow()
    rows = []
    for order, user in await db.execute(stmt):
        row = order_view(order, now)
        row.update({"username": user.username, "email": user.email, "walletAddress": user.wallet_address})
        rows.append(row)
    return rows


async def list_pending(db: AsyncSession, admin: Admin) -> List[dict]:
    return await _admin_rows(db, admin, pending=True)


async def list_history(db: AsyncSession, admin: Admin) -> List[dict]:
    await complete_due_orders(db)
    return await _admin_rows(db, admin, pending=False)


def order_view(order: MiningOrder, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    plan = PLANS.get(order.plan_id)
    amount = Decimal(order.amount)
    view = {
        "id": order.id,
        "userId": order.user_id,
        "planId": order.plan_id,
        "amount": float(amount),
        "status": order.status.value,
        "createdAt": iso(order.created_at),
        "activatedAt": iso(order.activated_at),
        "completedAt": iso(order.completed_at),
        "note": order.note,
    }
    if plan is None:
        return view

    end = ends_at(order, plan)
    accrued = Decimal("0")
    start = as_utc(order.activated_at)
    if start is not None and order.status in (MiningStatus.ACTIVE, MiningStatus.COMPLETED):
        days = min(max((now - start).days, 0), plan.cycle_days)
        accrued = ledger.quantize(amount * plan.daily_rate * days)
    view.update({
        "planName": plan.name,
        "dailyRate": float(plan.daily_rate),
        "cycleDays": plan.cycle_days,
        "abortFee": float(plan.abort_fee),
        "endsAt": iso(end),
        "accruedUSDT": float(accrued),
    })
    return view
