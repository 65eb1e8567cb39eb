from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.models.user import User
from openbook.services import notifications

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class ReadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notification_id: int = Field(alias="notificationId")


@router.get("")
async def get_feed(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "items": await notifications.user_feed(db, user.id)}

@router.post("/read")
async def mark_read(
    body: ReadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await notifications.mark_read(db, user.id, body.notification_id)
    return {"ok": True, "updated": updated}
