import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import ValidationError
from openbook.core.timeutil import iso
from openbook.models.deposit import AdminDepositAddress, DepositRequest, DepositStatus
from openbook.models.user import ROOT_ROLES, Admin, User
from openbook.models.wallet import ASSETS
from openbook.services import ledger

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


async def resolve_owner_admin(db: AsyncSession, user: User) -> Optional[Admin]:
    """The admin whose addresses receive this user's deposits."""
    if user.managed_by:
        owner = await db.get(Admin, user.managed_by)
        if owner is not None:
            return owner
    return await db.scalar(
        select(Admin)
        .where(Admin.role.in_(ROOT_ROLES), Admin.managed_by.is_(None))
        .order_by(Admin.created_at.asc(), Admin.id.asc())
        .limit(1)
    )


async def address_map(db: AsyncSession, admin_id: int) -> Dict[str, str]:
    addresses = {asset: "" for asset in ASSETS}
    rows = await db.execute(
        select(AdminDepositAddress.asset, AdminDepositAddress.address)
        .where(AdminDepositAddress.admin_id == admin_id)
    )
    for asset, address in rows:
        if asset in addresses:
            addresses[asset] = address or ""
    return addresses


async def save_addresses(db: AsyncSession, admin_id: int, addresses: Dict[str, str]) -> Dict[str, str]:
    existing = {
        row.asset: row
        for row in await db.scalars(select(AdminDepositAddress).where(AdminDepositAddress.admin_id == admin_id))
    }
    for raw_asset, address in addresses.items():
        asset = ledger.normalize_asset(raw_asset)
        value = str(address or "").strip()
        row = existing.get(asset)
        if row is None:
            db.add(AdminDepositAddress(admin_id=admin_id, asset=asset, address=value))
        else:
            row.address = value
    await db.commit()
    return await address_map(db, admin_id)


async def deposit_state(db: AsyncSession, user: User) -> dict:
    owner = await resolve_owner_admin(db, user)
    addresses = await address_map(db, owner.id) if owner else {asset: "" for asset in ASSETS}
    history = await list_user_deposits(db, user.id)
    return {
        "ownerAdmin": {"id": owner.id, "username": owner.username, "role": owner.role.value} if owner else None,
        "addresses": addresses,
        "history": [deposit_to_dict(row) for row in history],
    }


async def create_deposit(db: AsyncSession, user: User, asset: str, amount) -> DepositRequest:
    asset = ledger.normalize_asset(asset)
    amount = ledger.quantize(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    owner = await resolve_owner_admin(db, user)
    if owner is None:
        raise ValidationError("No deposit address owner configured for this account")
    address = (await address_map(db, owner.id)).get(asset)
    if not address:
        raise ValidationError(f"{asset} deposit address is not configured yet")

    row = DepositRequest(
        user_id=user.id,
        admin_id=owner.id,
        asset=asset,
        amount=amount,
        wallet_address=address,
        status=DepositStatus.PENDING,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info("deposit request #%s user=%s %s %s", row.id, user.id, amount, asset)
    return row


def deposit_to_dict(row: DepositRequest) -> dict:
    return {
        "id": row.id,
        "asset": row.asset,
        "amount": float(row.amount),
        "walletAddress": row.wallet_address,
        "status": row.status.value,
        "createdAt": iso(row.created_at),
    }


async def list_user_deposits(db: AsyncSession, user_id: int, limit: int = HISTORY_LIMIT) -> List[DepositRequest]:
    return list(await db.scalars(
        select(DepositRequest)
        .where(DepositRequest.user_id == user_id)
        .order_by(DepositRequest.created_at.desc(), DepositRequest.id.desc())
        .limit(limit)
    ))
