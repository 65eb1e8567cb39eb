"""
notifications.py
- user feed: deposit, mining and withdraw requests plus admin messages, merged
  newest first with one normalized status vocabulary
- admin messages: send, list, mark read
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from openbook.core.errors import ValidationError
from openbook.core.timeutil import as_utc, iso
from openbook.models.deposit import DepositRequest, DepositStatus
from openbook.models.mining import MiningOrder, MiningStatus
from openbook.models.notification import NotificationStatus, UserNotification
from openbook.models.user import Admin, User
from openbook.models.withdrawal import WithdrawRequest, WithdrawStatus
from openbook.services.approvals import ensure_user_scope

logger = logging.getLogger(__name__)

FEED_LIMIT = 120
SOURCE_LIMIT = 40
MESSAGE_SOURCE_LIMIT = 80
PREVIEW_CHARS = 120
SUBJECT_MAX = 180
MESSAGE_MAX = 10000
ADMIN_LIST_DEFAULT = 300
ADMIN_LIST_MAX = 500

PENDING, CONFIRMED, REJECTED, FROZEN = "PENDING", "CONFIRMED", "REJECTED", "FROZEN"

LABELS = {PENDING: "Pending", CONFIRMED: "Confirmed", REJECTED: "Rejected", FROZEN: "Frozen"}

MINING_FEED_STATUS = {
    MiningStatus.PENDING: PENDING,
    MiningStatus.ACTIVE: CONFIRMED,
    MiningStatus.COMPLETED: CONFIRMED,
    MiningStatus.REJECTED: REJECTED,
    MiningStatus.ABORTED: REJECTED,
}

MINING_PHRASES = {
    MiningStatus.PENDING: "is pending approval",
    MiningStatus.ACTIVE: "is now active",
    MiningStatus.COMPLETED: "completed successfully",
    MiningStatus.ABORTED: "was aborted",
    MiningStatus.REJECTED: "was rejected",
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    clean = str(text or "").strip()
    if len(clean) <= limit:
        return clean
    return f"{clean[:limit]}..."


def fmt_amount(amount, places: int = 8) -> str:
    value = Decimal(amount).quantize(Decimal(1).scaleb(-places))
    text = f"{value:,.{places}f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def short_address(address: Optional[str]) -> str:
    address = str(address or "")
    if not address:
        return "-"
    return f"{address[:8]}...{address[-6:]}"


def _item(row_id: int, source: str, status: str, title: str, full_text: str, created_at, raw_status: str) -> dict:
    return {
        "id": row_id,
        "source": source,
        "status": status,
        "title": title,
        "detail": preview(full_text),
        "fullText": full_text,
        "createdAt": iso(created_at),
        "rawStatus": raw_status,
        "_ts": as_utc(created_at) or _EPOCH,
    }


def deposit_item(row: DepositRequest) -> dict:
    status = {DepositStatus.CONFIRMED: CONFIRMED, DepositStatus.REJECTED: REJECTED}.get(row.status, PENDING)
    what = f"Your deposit request for {fmt_amount(row.amount)} {row.asset}"
    text = {
        CONFIRMED: f"{what} has been confirmed.",
        REJECTED: f"{what} has been rejected.",
    }.get(status, f"{what} is still pending approval.")
    return _item(row.id, "DEPOSIT", status, f"Deposit {LABELS[status]}", text, row.created_at, row.status.value)


def mining_item(row: MiningOrder) -> dict:
    status = MINING_FEED_STATUS.get(row.status, PENDING)
    text = f"Mining plan {row.plan_id} ({fmt_amount(row.amount, 2)} USDT) {MINING_PHRASES.get(row.status, 'is pending approval')}."
    return _item(
        row.id, "MINING", status, f"Mining {LABELS[status]}", text,
        row.created_at or row.activated_at, row.status.value,
    )


def withdraw_item(row: WithdrawRequest) -> dict:
    status = {WithdrawStatus.CONFIRMED: CONFIRMED, WithdrawStatus.FROZEN: FROZEN}.get(row.status, PENDING)
    what = f"Your withdraw request ({fmt_amount(row.amount)} {row.asset}) to {short_address(row.wallet_address)}"
    text = {
        CONFIRMED: f"{what} has been confirmed.",
        FROZEN: f"{what} is frozen.",
    }.get(status, f"{what} is pending.")
    return _item(
        row.id, "WITHDRAW", status, f"Withdraw {LABELS[status]}", text,
        row.updated_at or row.created_at, row.status.value,
    )


def message_item(row: UserNotification) -> dict:
    status = CONFIRMED if row.status == NotificationStatus.READ else PENDING
    subject = row.subject or "Notification"
    return _item(
        row.id, "NOTIFY", status, subject, row.message or subject,
        row.updated_at or row.created_at, row.status.value,
    )


async def _recent(db: AsyncSession, model, user_id: int, limit: int):
    return await db.scalars(
        select(model)
        .where(model.user_id == user_id)
        .order_by(model.created_at.desc(), model.id.desc())
        .limit(limit)
    )


async def user_feed(db: AsyncSession, user_id: int) -> List[dict]:
    items = []
    items += [deposit_item(r) for r in await _recent(db, DepositRequest, user_id, SOURCE_LIMIT)]
    items += [mining_item(r) for r in await _recent(db, MiningOrder, user_id, SOURCE_LIMIT)]
    items += [withdraw_item(r) for r in await _recent(db, WithdrawRequest, user_id, SOURCE_LIMIT)]
    items += [message_item(r) for r in await _recent(db, UserNotification, user_id, MESSAGE_SOURCE_LIMIT)]
    items.sort(key=lambda item: item["_ts"], reverse=True)
    for item in items:
        del item["_ts"]
    return items[:FEED_LIMIT]


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    res = await db.execute(
        update(UserNotification)
        .where(
            UserNotification.id == notification_id,
            UserNotification.user_id == user_id,
            UserNotification.status == NotificationStatus.PENDING,
        )
        .values(status=NotificationStatus.READ)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return bool(res.rowcount)


async def send(db: AsyncSession, admin: Admin, user_id: int, subject: str, message: str) -> UserNotification:
    subject = str(subject or "").strip()
    message = str(message or "").strip()
    if not subject:
        raise ValidationError("Subject is required")
    if not message:
        raise ValidationError("Message is required")
    if len(subject) > SUBJECT_MAX:
        raise ValidationError(f"Subject is too long (max {SUBJECT_MAX})")
    if len(message) > MESSAGE_MAX:
        raise ValidationError(f"Message is too long (max {MESSAGE_MAX})")
    await ensure_user_scope(db, admin, user_id)

    row = UserNotification(user_id=user_id, admin_id=admin.id, subject=subject, message=message)
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info("notification #%s sent to user %s by admin %s", row.id, user_id, admin.id)
    return row


async def list_sent(
    db: AsyncSession,
    admin: Admin,
    user_id: Optional[int] = None,
    status: Optional[NotificationStatus] = None,
    limit: Optional[int] = None,
) -> Tuple[List[dict], int]:
    limit = ADMIN_LIST_DEFAULT if limit is None else max(1, min(ADMIN_LIST_MAX, int(limit)))
    stmt = select(UserNotification, User).join(User, User.id == UserNotification.user_id)
    count_stmt = select(func.count()).select_from(UserNotification).where(
        UserNotification.status == NotificationStatus.PENDING
    )
    if not admin.is_root:
        stmt = stmt.where(UserNotification.admin_id == admin.id)
        count_stmt = count_stmt.where(UserNotification.admin_id == admin.id)
    if user_id is not None:
        await ensure_user_scope(db, admin, user_id)
        stmt = stmt.where(UserNotification.user_id == user_id)
    if status is not None:
        stmt = stmt.where(UserNotification.status == status)
    stmt = stmt.order_by(UserNotification.created_at.desc(), UserNotification.id.desc()).limit(limit)

    rows = [
        {
            "id": row.id,
            "userId": row.user_id,
            "adminId": row.admin_id,
            "subject": row.subject,
            "message": row.message,
            "status": row.status.value,
            "createdAt": iso(row.created_at),
            "updatedAt": iso(row.updated_at),
            "username": user.username,
            "email": user.email,
        }
        for row, user in await db.execute(stmt)
    ]
    pending = await db.scalar(count_stmt)
    return rows, int(pending or 0)
