from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from openbook.config import settings

USER_TOKEN = "user"
ADMIN_TOKEN = "admin"

def create_access_token(user_id: int, kind: str = USER_TOKEN, role: Optional[str] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": str(user_id), "kind": kind, "exp": expire}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.SECRET_KEY, settings.ALGORITHM)

def create_admin_token(admin_id: int, role: str) -> str:
    return create_access_token(admin_id, kind=ADMIN_TOKEN, role=role)

def decode_claims(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        payload["sub"] = int(payload["sub"])
        return payload
    except (JWTError, KeyError, ValueError):
        return None

def decode_token(token: str, kind: str = USER_TOKEN) -> Optional[int]:
    payload = decode_claims(token)
    if not payload or payload.get("kind", USER_TOKEN) != kind:
        return None
    return payload["sub"]
