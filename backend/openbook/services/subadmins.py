"""
subadmins.py
- root admins create, list, approve and reject sub-admins
- every sub-admin gets an invitation code; a user who presents it (at first
  login or later) is linked to that sub-admin through ``users.managed_by``
"""
import logging
import re
import secrets
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import Forbidden, NotFound, ValidationError
from openbook.core.timeutil import iso
from openbook.models.deposit import AdminDepositAddress
from openbook.models.user import Admin, AdminRole, AdminStatus, User
from openbook.models.wallet import ASSETS

logger = logging.getLogger(__name__)

WALLET_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
INVITE_CODE_BYTES = 6
USERNAME_MAX = 64

STATUS_ACTIONS = {
    "APPROVE": AdminStatus.APPROVED,
    "APPROVED": AdminStatus.APPROVED,
    "REJECT": AdminStatus.REJECTED,
    "REJECTED": AdminStatus.REJECTED,
}


def require_root(admin: Admin) -> None:
    if not admin.is_root:
        raise Forbidden("Root admin required")


def new_invitation_code() -> str:
    return secrets.token_hex(INVITE_CODE_BYTES).upper()


def normalize_code(code: Optional[str]) -> str:
    return str(code or "").strip().upper()


async def _unused_code(db: AsyncSession) -> str:
    while True:
        code = new_invitation_code()
        taken = await db.scalar(select(Admin.id).where(Admin.invitation_code == code))
        if taken is None:
            return code


async def create_subadmin(
    db: AsyncSession,
    admin: Admin,
    wallet_address: str,
    username: Optional[str] = None,
) -> Admin:
    require_root(admin)
    address = str(wallet_address or "").strip()
    if not WALLET_RE.match(address):
        raise ValidationError("Invalid wallet address")
    address = address.lower()
    username = str(username or "").strip() or None
    if username and len(username) > USERNAME_MAX:
        raise ValidationError(f"Username is too long (max {USERNAME_MAX})")

    existing = await db.scalar(select(Admin.id).where(Admin.wallet_address == address))
    if existing is not None:
        raise ValidationError("Admin already exists for this wallet")

    row = Admin(
        wallet_address=address,
        username=username,
        role=AdminRole.subadmin,
        managed_by=admin.id,
        status=AdminStatus.APPROVED,
        invitation_code=await _unused_code(db),
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info("sub-admin #%s created by admin %s", row.id, admin.id)
    return row


async def _get_subadmin(db: AsyncSession, subadmin_id: int) -> Admin:
    row = await db.get(Admin, subadmin_id, populate_existing=True)
    if row is None or row.role != AdminRole.subadmin:
        raise NotFound("Sub-admin not found")
    return row


async def set_status(db: AsyncSession, admin: Admin, subadmin_id: int, action: str) -> Admin:
    require_root(admin)
    status = STATUS_ACTIONS.get(str(action or "").strip().upper())
    if status is None:
        raise ValidationError("Invalid action")
    row = await _get_subadmin(db, subadmin_id)
    row.status = status
    await db.commit()
    await db.refresh(row)
    logger.info("sub-admin #%s -> %s by admin %s", row.id, status.value, admin.id)
    return row


def subadmin_to_dict(row: Admin, addresses: Optional[Dict[str, str]] = None, user_count: int = 0) -> dict:
    return {
        "id": row.id,
        "walletAddress": row.wallet_address,
        "username": row.username,
        "role": row.role.value,
        "status": row.status.value,
        "invitationCode": row.invitation_code,
        "managedBy": row.managed_by,
        "createdAt": iso(row.created_at),
        "depositAddresses": addresses or {asset: "" for asset in ASSETS},
        "userCount": user_count,
    }


async def list_subadmins(db: AsyncSession, admin: Admin) -> List[dict]:
    require_root(admin)
    rows = list(await db.scalars(
        select(Admin)
        .where(Admin.role == AdminRole.subadmin)
        .order_by(Admin.created_at.desc(), Admin.id.desc())
    ))
    ids = [row.id for row in rows]
    addresses = defaultdict(lambda: {asset: "" for asset in ASSETS})
    counts = {}
    if ids:
        for admin_id, asset, address in await db.execute(
            select(AdminDepositAddress.admin_id, AdminDepositAddress.asset, AdminDepositAddress.address)
            .where(AdminDepositAddress.admin_id.in_(ids))
        ):
            if asset in ASSETS:
                addresses[admin_id][asset] = address or ""
        counts = dict((await db.execute(
            select(User.managed_by, func.count(User.id))
            .where(User.managed_by.in_(ids))
            .group_by(User.managed_by)
        )).all())
    return [subadmin_to_dict(row, addresses[row.id], int(counts.get(row.id, 0))) for row in rows]


async def resolve_invite(db: AsyncSession, code: Optional[str]) -> Admin:
    """The approved sub-admin that owns ``code``."""
    code = normalize_code(code)
    if not code:
        raise ValidationError("Invitation code required")
    row = await db.scalar(
        select(Admin).where(Admin.invitation_code == code).execution_options(populate_existing=True)
    )
    if row is None or row.status != AdminStatus.APPROVED:
        raise ValidationError("Invalid invitation code")
    if row.role != AdminRole.subadmin:
        raise ValidationError("Invitation code is not for sub-admin")
    return row


async def accept_invite(db: AsyncSession, user: User, code: Optional[str]) -> Admin:
    """Link ``user`` to the code's sub-admin. A user already linked elsewhere keeps its admin."""
    sub = await resolve_invite(db, code)
    if user.managed_by == sub.id:
        return sub
    if user.managed_by is not None:
        raise ValidationError("Account is already linked to an admin")
    user.managed_by = sub.id
    await db.commit()
    logger.info("user %s joined sub-admin %s by invitation", user.id, sub.id)
    return sub


async def assign_user(db: AsyncSession, admin: Admin, user_id: int, code: Optional[str]) -> User:
    """Root override: move a user under the code's sub-admin."""
    require_root(admin)
    sub = await resolve_invite(db, code)
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    user.managed_by = sub.id
    await db.commit()
    await db.refresh(user)
    logger.info("user %s assigned to sub-admin %s by admin %s", user.id, sub.id, admin.id)
    return user
