"""Per-user restriction flags consulted before trade and mining mutations.

A flag is tri-state: an explicit row value, or ``unknown`` when the user has
no row (or the column is NULL). ``settings.ACCESS_UNKNOWN_POLICY`` decides how
``unknown`` is enforced.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.config import settings
from openbook.core.errors import Forbidden
from openbook.models.access import UserAccessControl

RESTRICTED_MESSAGE = "Your account is restricted"


class Restriction(str, enum.Enum):
    restricted = "restricted"
    unrestricted = "unrestricted"
    unknown = "unknown"

    @classmethod
    def from_flag(cls, flag: Optional[bool]) -> "Restriction":
        if flag is None:
            return cls.unknown
        return cls.restricted if flag else cls.unrestricted

    def enforced(self) -> bool:
        if self is Restriction.unknown:
            return settings.ACCESS_UNKNOWN_POLICY == "restricted"
        return self is Restriction.restricted


@dataclass
class AccessState:
    trade: Restriction
    mining: Restriction
    source: str

    @property
    def trade_restricted(self) -> bool:
        return self.trade.enforced()

    @property
    def mining_restricted(self) -> bool:
        return self.mining.enforced()

    def to_dict(self) -> dict:
        return {
            "tradeRestricted": self.trade_restricted,
            "miningRestricted": self.mining_restricted,
            "restricted": self.trade_restricted or self.mining_restricted,
            "source": self.source,
        }


def _state(row: Optional[UserAccessControl]) -> AccessState:
    if row is None:
        return AccessState(Restriction.unknown, Restriction.unknown, "default")
    return AccessState(
        Restriction.from_flag(row.trade_restricted),
        Restriction.from_flag(row.mining_restricted),
        "db",
    )


async def check_access(db: AsyncSession, user_id: int) -> AccessState:
    row = await db.get(UserAccessControl, user_id)
    return _state(row)


async def check_access_for_users(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, AccessState]:
    ids = list(user_ids)
    if not ids:
        return {}
    rows = await db.scalars(select(UserAccessControl).where(UserAccessControl.user_id.in_(ids)))
    by_user = {row.user_id: row for row in rows}
    return {uid: _state(by_user.get(uid)) for uid in ids}


async def require_trade_access(db: AsyncSession, user_id: int) -> AccessState:
    access = await check_access(db, user_id)
    if access.trade_restricted:
        raise Forbidden(RESTRICTED_MESSAGE)
    return access


async def require_mining_access(db: AsyncSession, user_id: int) -> AccessState:
    access = await check_access(db, user_id)
    if access.mining_restricted:
        raise Forbidden(RESTRICTED_MESSAGE)
    return access


async def set_access(
    db: AsyncSession,
    user_id: int,
    trade_restricted: bool,
    mining_restricted: bool,
) -> AccessState:
    row = await db.get(UserAccessControl, user_id)
    if row is None:
        row = UserAccessControl(user_id=user_id)
        db.add(row)
    row.trade_restricted = bool(trade_restricted)
    row.mining_restricted = bool(mining_restricted)
    await db.commit()
    return _state(row)
