from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.models.user import User
from openbook.schemas.wallet import DepositCreateRequest
from openbook.services import deposits

router = APIRouter(prefix="/api/deposit", tags=["deposit"])

@router.get("/state")
async def get_state(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return {"ok": True, **await deposits.deposit_state(db, user)}

@router.get("/history")
async def get_history(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await deposits.list_user_deposits(db, user.id)
    return {"ok": True, "history": [deposits.deposit_to_dict(r) for r in rows]}

@router.post("/history")
async def create_request(
    body: DepositCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    row = await deposits.create_deposit(db, user, body.asset, body.amount)
    return {"ok": True, "request": deposits.deposit_to_dict(row)}
