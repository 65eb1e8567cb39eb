from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.core.deps import get_current_user
from openbook.models.user import User
from openbook.services import subadmins

router = APIRouter(prefix="/api/invite", tags=["invite"])


class InviteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invitation_code: str = Field(alias="invitationCode")


@router.post("")
async def check_code(body: InviteRequest, db: AsyncSession = Depends(get_db)):
    sub = await subadmins.resolve_invite(db, body.invitation_code)
    return {"ok": True, "subAdminId": sub.id, "username": sub.username}

@router.post("/accept")
async def accept(
    body: InviteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sub = await subadmins.accept_invite(db, user, body.invitation_code)
    return {"ok": True, "managedBy": sub.id}
