from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.models.user import User
from openbook.schemas.trade import SessionRequest
from openbook.services import trade
from openbook.services.access import RESTRICTED_MESSAGE, check_access

router = APIRouter(prefix="/api/trade", tags=["trade"])

@router.get("/permission")
async def get_permission(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    access = await check_access(db, user.id)
    if access.trade_restricted:
        return JSONResponse(
            {"ok": False, "restricted": True, "error": RESTRICTED_MESSAGE},
            status_code=403,
        )
    permission = await trade.get_permission(db, user.id)
    return {"ok": True, "restricted": False, **permission.to_dict()}

@router.post("/sessions")
async def settle_session(
    body: SessionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await trade.settle_session(db, user.id, body.side, body.stake, body.pnl)
    return {
        "ok": True,
        "order": trade.order_to_dict(result["order"]),
        "balanceUSDT": float(result["balanceUSDT"]),
    }

@router.get("/orders")
async def get_orders(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await trade.list_orders(db, user.id)
    return {"ok": True, "rows": [trade.order_to_dict(o) for o in rows]}
