from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.core.errors import PriceUnavailable
from openbook.models.user import User
from openbook.schemas.wallet import AdjustRequest, ExchangeRequest
from openbook.services import exchange as exchange_service
from openbook.services import ledger, price_feed, trade

router = APIRouter(prefix="/api/wallet", tags=["wallet"])

def _floats(holdings: dict) -> dict:
    return {asset: float(value) for asset, value in holdings.items()}

@router.get("/state")
async def get_state(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    holdings = await ledger.read_holdings(db, user.id)
    return {"ok": True, "balanceUSDT": float(holdings["USDT"]), "holdings": _floats(holdings)}

@router.post("/adjust")
async def adjust(
    body: AdjustRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    balance = await trade.adjust_usdt(db, user.id, body.delta_usdt)
    return {"ok": True, "balanceUSDT": float(balance)}

@router.post("/exchange")
async def exchange(
    body: ExchangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    feed = await price_feed.get_prices()
    if not feed["ok"]:
        raise PriceUnavailable()
    result = await exchange_service.exchange(
        db, user.id, body.from_asset, body.to_asset, body.amount, feed["prices"],
    )
    return {
        "ok": True,
        "fromAsset": result["fromAsset"],
        "toAsset": result["toAsset"],
        "spentAmount": float(result["spentAmount"]),
        "receivedAmount": float(result["receivedAmount"]),
        "holdings": _floats(result["holdings"]),
    }
