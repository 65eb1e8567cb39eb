from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.models.user import User
from openbook.schemas.wallet import WithdrawCreateRequest
from openbook.services import ledger, withdrawals

router = APIRouter(prefix="/api/withdraw", tags=["withdraw"])

@router.get("/history")
async def get_history(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await withdrawals.list_user_withdrawals(db, user.id)
    return {"ok": True, "rows": [withdrawals.withdraw_to_dict(r) for r in rows]}

@router.post("/history")
async def create_request(
    body: WithdrawCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    row = await withdrawals.create_withdraw(db, user, body.asset, body.amount, body.wallet_address)
    return {"ok": True, "row": withdrawals.withdraw_to_dict(row)}

@router.get("/withdrawable")
async def get_withdrawable(asset: str = "USDT", user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    asset = ledger.normalize_asset(asset)
    return {"ok": True, "asset": asset, "withdrawable": float(await withdrawals.withdrawable(db, user.id, asset))}
