"""
ledger.py
- per-user, per-asset balances (``holdings``) with the USDT primary-balance
  mirror (``balances``) kept equal inside the same transaction
- append-only audit rows (``ledger_entries``)

Debits are a single compare-and-swap UPDATE guarded by ``balance >= amount``,
so two concurrent requests can never push a holding below zero. Credits are
an INSERT ... ON CONFLICT DO UPDATE, so the first credit of an asset needs no
existing row. Nothing here commits; the calling operation commits once so the
balance change, its status transition and its audit row land together.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import InsufficientFunds, ValidationError
from openbook.models.ledger import LedgerEntry
from openbook.models.wallet import ASSETS, QUOTE_ASSET, Balance, Holding

logger = logging.getLogger(__name__)

PRECISION = Decimal("0.00000001")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid amount")
    if not result.is_finite():
        raise ValidationError("Invalid amount")
    return result


def quantize(value: Number, rounding=ROUND_HALF_UP) -> Decimal:
    """Round to the ledger's 8 decimal places."""
    return to_decimal(value).quantize(PRECISION, rounding=rounding)


def quantize_down(value: Number) -> Decimal:
    return quantize(value, rounding=ROUND_DOWN)


def normalize_asset(value: Optional[str]) -> str:
    asset = str(value or "").strip().upper()
    if asset not in ASSETS:
        raise ValidationError("Invalid asset")
    return asset


async def read_balance(db: AsyncSession, user_id: int, asset: str) -> Decimal:
    """Current balance, or exactly 0 when the user never held the asset."""
    value = await db.scalar(
        select(Holding.balance).where(Holding.user_id == user_id, Holding.asset == asset)
    )
    return quantize(value) if value is not None else Decimal("0")


async def read_holdings(db: AsyncSession, user_id: int) -> Dict[str, Decimal]:
    holdings = {asset: Decimal("0") for asset in ASSETS}
    rows = await db.execute(
        select(Holding.asset, Holding.balance).where(Holding.user_id == user_id)
    )
    for asset, balance in rows:
        if asset in holdings:
            holdings[asset] = quantize(balance or 0)
    primary = await db.scalar(select(Balance.balance).where(Balance.user_id == user_id))
    if primary is not None:
        holdings[QUOTE_ASSET] = quantize(primary)
    return holdings


async def read_holdings_for_users(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, Dict[str, Decimal]]:
    ids = list(user_ids)
    result = {uid: {asset: Decimal("0") for asset in ASSETS} for uid in ids}
    if not ids:
        return result
    rows = await db.execute(
        select(Holding.user_id, Holding.asset, Holding.balance).where(Holding.user_id.in_(ids))
    )
    for uid, asset, balance in rows:
        if asset in result[uid]:
            result[uid][asset] = quantize(balance or 0)
    return result


def _insert(db: AsyncSession, model):
    """INSERT that supports ON CONFLICT for the bound dialect."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


async def _mirror_primary(db: AsyncSession, user_id: int, value: Decimal) -> None:
    stmt = _insert(db, Balance).values(user_id=user_id, balance=value)
    await db.execute(stmt.on_conflict_do_update(
        index_elements=[Balance.user_id],
        set_={"balance": value, "updated_at": func.now()},
    ))


async def _credit(db: AsyncSession, user_id: int, asset: str, delta: Decimal) -> Decimal:
    stmt = _insert(db, Holding).values(user_id=user_id, asset=asset, balance=delta)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Holding.user_id, Holding.asset],
        set_={"balance": Holding.balance + delta},
    ).returning(Holding.balance)
    return (await db.execute(stmt)).scalar_one()


async def _debit(db: AsyncSession, user_id: int, asset: str, delta: Decimal) -> Decimal:
    new_balance = (await db.execute(
        update(Holding)
        .where(Holding.user_id == user_id, Holding.asset == asset, Holding.balance >= -delta)
        .values(balance=Holding.balance + delta)
        .returning(Holding.balance)
        .execution_options(synchronize_session=False)
    )).scalar_one_or_none()
    if new_balance is None:
        raise InsufficientFunds(asset)
    return new_balance


async def write_audit(
    db: AsyncSession,
    user_id: int,
    admin_id: Optional[int],
    amount: Decimal,
    asset: str,
    kind: str,
    note: Optional[str] = None,
    balance_after: Optional[Decimal] = None,
) -> LedgerEntry:
    entry = LedgerEntry(
        user_id=user_id,
        admin_id=admin_id,
        amount=amount,
        asset=asset,
        kind=kind,
        note=note[:500] if note else None,
        balance_after=balance_after,
    )
    db.add(entry)
    return entry


async def apply_delta(
    db: AsyncSession,
    user_id: int,
    asset: str,
    delta: Number,
    kind: str,
    admin_id: Optional[int] = None,
    note: Optional[str] = None,
) -> Decimal:
    """Add ``delta`` (signed) to a holding and return the new balance.

    Raises ``InsufficientFunds`` when a debit would leave the holding negative.
    """
    delta = quantize(delta)
    if delta == 0:
        raise ValidationError("Amount must not be zero")

    if delta < 0:
        new_balance = await _debit(db, user_id, asset, delta)
    else:
        new_balance = await _credit(db, user_id, asset, delta)
    new_balance = quantize(new_balance)

    if asset == QUOTE_ASSET:
        await _mirror_primary(db, user_id, new_balance)

    await write_audit(db, user_id, admin_id, delta, asset, kind, note, balance_after=new_balance)
    logger.info("ledger user=%s asset=%s delta=%s balance=%s kind=%s", user_id, asset, delta, new_balance, kind)
    return new_balance


async def ensure_account(db: AsyncSession, user_id: int) -> None:
    """Create the zero USDT rows a fresh account starts with."""
    existing = await db.scalar(
        select(Holding.id).where(Holding.user_id == user_id, Holding.asset == QUOTE_ASSET)
    )
    if existing is None:
        db.add(Holding(user_id=user_id, asset=QUOTE_ASSET, balance=Decimal("0")))
    if await db.get(Balance, user_id) is None:
        db.add(Balance(user_id=user_id, balance=Decimal("0")))
    await db.flush()
