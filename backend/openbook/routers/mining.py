from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.models.user import User
from openbook.schemas.mining import AbortRequest, PurchaseRequest
from openbook.services import mining
from openbook.services.mining_plans import list_plans

router = APIRouter(prefix="/api/mining", tags=["mining"])

@router.get("/plans")
async def get_plans():
    return {"ok": True, "plans": [p.to_dict() for p in list_plans()]}

@router.get("/orders")
async def get_orders(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "rows": await mining.list_user_orders(db, user.id)}

@router.post("/purchase")
async def purchase(
    body: PurchaseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await mining.purchase(db, user.id, body.plan_id, body.amount)
    return {
        "ok": True,
        "balanceUSDT": float(result["balanceUSDT"]),
        "order": mining.order_view(result["order"]),
    }

@router.post("/abort")
async def abort(
    body: AbortRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await mining.abort(db, user.id, body.order_id)
    return {
        "ok": True,
        "refundUSDT": float(result["refundUSDT"]),
        "balanceUSDT": float(result["balanceUSDT"]),
    }
