import logging
from decimal import Decimal
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import PriceUnavailable, ValidationError
from openbook.models.ledger import LedgerKind
from openbook.models.wallet import QUOTE_ASSET
from openbook.services import ledger

logger = logging.getLogger(__name__)


def _price(prices: Mapping[str, Optional[float]], asset: str) -> Decimal:
    if asset == QUOTE_ASSET:
        return Decimal("1")
    raw = prices.get(asset)
    if raw is None:
        raise PriceUnavailable("Price unavailable for selected asset")
    price = Decimal(str(raw))
    if not price.is_finite() or price <= 0:
        raise PriceUnavailable("Price unavailable for selected asset")
    return price


def quote(from_asset: str, to_asset: str, amount: Decimal, prices: Mapping[str, Optional[float]]) -> Decimal:
    """Amount of ``to_asset`` received for ``amount`` of ``from_asset``.

    Both the USDT value and the received amount round down, so converting
    back and forth can only lose dust.
    """
    from_price = _price(prices, from_asset)
    to_price = _price(prices, to_asset)
    value = amount if from_asset == QUOTE_ASSET else ledger.quantize_down(amount * from_price)
    if to_asset == QUOTE_ASSET:
        return value
    return ledger.quantize_down(value / to_price)


async def exchange(
    db: AsyncSession,
    user_id: int,
    from_asset: str,
    to_asset: str,
    amount,
    prices: Mapping[str, Optional[float]],
) -> dict:
    from_asset = ledger.normalize_asset(from_asset)
    to_asset = ledger.normalize_asset(to_asset)
    if from_asset == to_asset:
        raise ValidationError("From/To assets must be different")
    spend = ledger.quantize(amount)
    if spend <= 0:
        raise ValidationError("Invalid amount")

    received = quote(from_asset, to_asset, spend, prices)
    if received <= 0:
        raise ValidationError("Amount too small")

    note = f"Exchange {spend} {from_asset} -> {received} {to_asset}"
    await ledger.apply_delta(db, user_id, from_asset, -spend, LedgerKind.exchange, note=note)
    await ledger.apply_delta(db, user_id, to_asset, received, LedgerKind.exchange, note=note)
    await db.commit()

    holdings = await ledger.read_holdings(db, user_id)
    logger.info("exchange user=%s %s %s -> %s %s", user_id, spend, from_asset, received, to_asset)
    return {
        "fromAsset": from_asset,
        "toAsset": to_asset,
        "spentAmount": spend,
        "receivedAmount": received,
        "holdings": holdings,
    }
