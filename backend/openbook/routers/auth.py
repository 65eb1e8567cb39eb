import secrets
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from eth_account.messages import encode_defunct
from eth_account import Account
from openbook.database import get_db
from openbook.core.deps import ADMIN_DISABLED_MESSAGE, get_current_user
from openbook.core.errors import Forbidden, Unauthorized
from openbook.core.redis import get_redis
from openbook.models.user import Admin, AdminStatus, User
from openbook.schemas.auth import NonceResponse, VerifyRequest, TokenResponse
from openbook.core.security import create_access_token, create_admin_token
from openbook.services import ledger, subadmins

router = APIRouter(prefix="/api/auth", tags=["auth"])

NONCE_TTL = 300  # 5 minutes

def login_message(nonce: str) -> str:
    return f"OpenBook Login\nNonce: {nonce}"

async def _consume_signature(body: VerifyRequest) -> str:
    """Check the signed login message and return the lower-cased address."""
    address = body.address.lower()
    redis = await get_redis()
    stored_nonce = await redis.get(f"nonce:{address}")
    if not stored_nonce:
        raise Unauthorized("Nonce expired or not found")

    msg = encode_defunct(text=login_message(stored_nonce))
    try:
        sig_bytes = bytes.fromhex(body.signature.removeprefix("0x"))
        recovered = Account.recover_message(msg, signature=sig_bytes)
    except Exception:
        raise Unauthorized("Invalid signature")

    if recovered.lower() != address:
        raise Unauthorized("Signature mismatch")

    await redis.delete(f"nonce:{address}")
    return address

@router.get("/nonce", response_model=NonceResponse)
async def get_nonce(address: str = Query(..., min_length=42, max_length=42)):
    redis = await get_redis()
    nonce = secrets.token_hex(16)
    await redis.set(f"nonce:{address.lower()}", nonce, ex=NONCE_TTL)
    return NonceResponse(nonce=nonce, message=login_message(nonce))

@router.post("/verify", response_model=TokenResponse)
async def verify_signature(body: VerifyRequest, db: AsyncSession = Depends(get_db)):
    # checked before the nonce is spent
    inviter = await subadmins.resolve_invite(db, body.invitation_code) if body.invitation_code else None
    address = await _consume_signature(body)

    user = await db.scalar(select(User).where(User.wallet_address == address))
    if not user:
        user = User(wallet_address=address, managed_by=inviter.id if inviter else None)
        db.add(user)
        await db.flush()
        await ledger.ensure_account(db, user.id)
        await db.commit()
        await db.refresh(user)

    return TokenResponse(access_token=create_access_token(user.id))

@router.post("/admin/verify", response_model=TokenResponse)
async def verify_admin_signature(body: VerifyRequest, db: AsyncSession = Depends(get_db)):
    address = await _consume_signature(body)
    admin = await db.scalar(select(Admin).where(Admin.wallet_address == address))
    if not admin:
        raise Unauthorized("Admin not found")
    if admin.status == AdminStatus.REJECTED:
        raise Forbidden(ADMIN_DISABLED_MESSAGE)
    return TokenResponse(access_token=create_admin_token(admin.id, admin.role.value))

@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return {
        "ok": True,
        "id": user.id,
        "wallet_address": user.wallet_address,
        "username": user.username,
        "email": user.email,
        "managed_by": user.managed_by,
    }
