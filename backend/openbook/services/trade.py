"""Simulated trade sessions.

A user's BUY/SELL permission does not gate order placement: it fixes the sign
of the session outcome. An enabled side can only win or break even, a
disabled side can only lose or break even. The proposed pnl comes from the
client's simulated chart and is clamped here before it touches the ledger.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import ValidationError
from openbook.core.timeutil import iso
from openbook.models.access import TradePermission
from openbook.models.ledger import LedgerKind
from openbook.models.trade import TradeOrder, TradeResult, TradeSide
from openbook.models.wallet import QUOTE_ASSET
from openbook.services import ledger
from openbook.services.access import require_trade_access

logger = logging.getLogger(__name__)


@dataclass
class Permission:
    buy_enabled: bool = True
    sell_enabled: bool = True
    source: str = "default"

    def allows(self, side: TradeSide) -> bool:
        return self.buy_enabled if side == TradeSide.BUY else self.sell_enabled

    def to_dict(self) -> dict:
        return {"buyEnabled": self.buy_enabled, "sellEnabled": self.sell_enabled, "source": self.source}


async def get_permission(db: AsyncSession, user_id: int) -> Permission:
    row = await db.get(TradePermission, user_id)
    if row is None:
        return Permission()
    return Permission(bool(row.buy_enabled), bool(row.sell_enabled), "db")


async def get_permissions(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, Permission]:
    ids = list(user_ids)
    if not ids:
        return {}
    rows = await db.scalars(select(TradePermission).where(TradePermission.user_id.in_(ids)))
    found = {r.user_id: Permission(bool(r.buy_enabled), bool(r.sell_enabled), "db") for r in rows}
    return {uid: found.get(uid, Permission()) for uid in ids}


async def set_permission(db: AsyncSession, user_id: int, buy_enabled: bool, sell_enabled: bool) -> Permission:
    row = await db.get(TradePermission, user_id)
    if row is None:
        row = TradePermission(user_id=user_id)
        db.add(row)
    row.buy_enabled = bool(buy_enabled)
    row.sell_enabled = bool(sell_enabled)
    await db.commit()
    return Permission(row.buy_enabled, row.sell_enabled, "db")


def clamp_outcome(permission: Permission, side: TradeSide, pnl: Decimal) -> Decimal:
    if permission.allows(side):
        return max(pnl, Decimal("0"))
    return min(pnl, Decimal("0"))


async def settle_session(
    db: AsyncSession,
    user_id: int,
    side: TradeSide,
    stake: Decimal,
    proposed_pnl: Decimal,
) -> dict:
    stake = ledger.quantize(stake)
    if stake <= 0:
        raise ValidationError("Invalid stake")
    await require_trade_access(db, user_id)

    permission = await get_permission(db, user_id)
    pnl = ledger.quantize(clamp_outcome(permission, side, ledger.quantize(proposed_pnl)))
    # a losing session can cost at most the stake
    pnl = max(pnl, -stake)

    if pnl != 0:
        balance = await ledger.apply_delta(
            db, user_id, QUOTE_ASSET, pnl, LedgerKind.trade,
            note=f"Trade {side.value} stake {stake}",
        )
    else:
        balance = await ledger.read_balance(db, user_id, QUOTE_ASSET)

    order = TradeOrder(
        user_id=user_id,
        side=side,
        stake=stake,
        pnl=pnl,
        result=TradeResult.WIN if pnl > 0 else TradeResult.LOSE,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    logger.info("trade session user=%s side=%s stake=%s pnl=%s", user_id, side.value, stake, pnl)
    return {"order": order, "balanceUSDT": balance}


async def adjust_usdt(db: AsyncSession, user_id: int, delta: Decimal) -> Decimal:
    """Client-driven USDT settlement for the trade screen."""
    await require_trade_access(db, user_id)
    delta = ledger.quantize(delta)
    if delta == 0:
        raise ValidationError("Invalid deltaUSDT")
    balance = await ledger.apply_delta(db, user_id, QUOTE_ASSET, delta, LedgerKind.trade, note="Wallet adjust")
    await db.commit()
    return balance


async def list_orders(db: AsyncSession, user_id: int, limit: int = 100) -> List[TradeOrder]:
    return list(await db.scalars(
        select(TradeOrder).where(TradeOrder.user_id == user_id)
        .order_by(TradeOrder.created_at.desc(), TradeOrder.id.desc()).limit(limit)
    ))


async def set_order_result(db: AsyncSession, user_id: int, result: TradeResult) -> int:
    """Relabel every session of a user. Balances are not touched."""
    res = await db.execute(
        update(TradeOrder).where(TradeOrder.user_id == user_id).values(result=result)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount or 0


def order_to_dict(order: TradeOrder) -> dict:
    return {
        "id": order.id,
        "side": order.side.value,
        "stake": float(order.stake),
        "pnl": float(order.pnl),
        "result": order.result.value,
        "createdAt": iso(order.created_at),
    }
