from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from openbook.database import get_db
from openbook.models.user import Admin, AdminStatus, User
from openbook.core.errors import Forbidden, Unauthorized
from openbook.core.security import ADMIN_TOKEN, USER_TOKEN, decode_token

bearer = HTTPBearer(auto_error=False)

ADMIN_DISABLED_MESSAGE = "Admin account is disabled"

def _token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if not credentials or not credentials.credentials:
        raise Unauthorized()
    return credentials.credentials

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = decode_token(_token(credentials), USER_TOKEN)
    if not user_id:
        raise Unauthorized("Invalid token")
    user = await db.get(User, user_id)
    if not user:
        raise Unauthorized("User not found")
    return user

async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    admin_id = decode_token(_token(credentials), ADMIN_TOKEN)
    if not admin_id:
        raise Unauthorized("Invalid token")
    admin = await db.get(Admin, admin_id)
    if not admin:
        raise Unauthorized("Admin not found")
    if admin.status == AdminStatus.REJECTED:
        raise Forbidden(ADMIN_DISABLED_MESSAGE)
    return admin
