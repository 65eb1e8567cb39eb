from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from openbook.database import get_db
from openbook.core.deps import get_current_admin
from openbook.core.errors import ValidationError
from openbook.core.timeutil import iso
from openbook.models.deposit import DepositRequest, DepositStatus
from openbook.models.notification import NotificationStatus
from openbook.models.trade import TradeResult
from openbook.models.user import Admin, User
from openbook.models.withdrawal import WithdrawRequest, WithdrawStatus
from openbook.schemas.admin import (
    AssignInviteRequest, DepositAddressesRequest, MiningActionRequest, NotifyRequest, OrderResultRequest,
    RequestActionRequest, SubAdminCreateRequest, SubAdminStatusRequest, TopupRequest,
    TradePermissionRequest, UserRestrictionsRequest,
)
from openbook.services import access, approvals, deposits, ledger, mining, notifications, subadmins, trade

router = APIRouter(prefix="/api/admin", tags=["admin"])

USERS_LIMIT = 500


def _status_filter(raw: Optional[str], enum_cls, default):
    """``None`` for ALL, the default status when omitted."""
    value = str(raw or "").strip().upper()
    if not value:
        return default
    if value == "ALL":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError("Invalid status")


@router.get("/me")
async def me(admin: Admin = Depends(get_current_admin)):
    return {
        "ok": True,
        "id": admin.id,
        "username": admin.username,
        "role": admin.role.value,
        "status": admin.status.value,
        "invitationCode": admin.invitation_code,
    }


@router.get("/users")
async def list_users(admin: Admin = Depends(get_current_admin), db: AsyncSession = Depends(get_db)):
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc()).limit(USERS_LIMIT)
    users = list(await db.scalars(approvals.scope_users(stmt, admin)))
    ids = [u.id for u in users]
    holdings = await ledger.read_holdings_for_users(db, ids)
    flags = await access.check_access_for_users(db, ids)
    permissions = await trade.get_permissions(db, ids)
    return {
        "ok": True,
        "users": [
            {
                "id": u.id,
                "walletAddress": u.wallet_address,
                "username": u.username,
                "email": u.email,
                "managedBy": u.managed_by,
                "createdAt": iso(u.created_at),
                "balanceUSDT": float(holdings[u.id]["USDT"]),
                "holdings": {asset: float(v) for asset, v in holdings[u.id].items()},
                **flags[u.id].to_dict(),
                "tradePermission": permissions[u.id].to_dict(),
            }
            for u in users
        ],
    }


@router.post("/topup")
async def topup(body: TopupRequest, admin: Admin = Depends(get_current_admin), db: AsyncSession = Depends(get_db)):
    balance = await approvals.topup(db, admin, body.user_id, body.asset, body.amount, body.mode, body.note)
    return {"ok": True, "asset": ledger.normalize_asset(body.asset), "balance": float(balance)}


@router.get("/deposit-addresses")
async def get_deposit_addresses(admin: Admin = Depends(get_current_admin), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "addresses": await deposits.address_map(db, admin.id)}


@router.put("/deposit-addresses")
async def put_deposit_addresses(
    body: DepositAddressesRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"ok": True, "addresses": await deposits.save_addresses(db, admin.id, body.addresses)}


@router.get("/deposit-requests")
async def list_deposit_requests(
    status: Optional[str] = None,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    limit: Optional[int] = None,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    status_filter = _status_filter(status, DepositStatus, DepositStatus.PENDING)
    rows, pending = await approvals.list_requests(db, admin, DepositRequest, status_filter, user_id, limit)
    return {"ok": True, "pendingCount": pending, "requests": rows}


@router.post("/deposit-requests")
async def act_on_deposit(
    body: RequestActionRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    row = await approvals.process_deposit(db, admin, body.request_id, body.action, body.note)
    return {"ok": True, "request": approvals.request_to_dict(row)}


@router.get("/withdraw-requests")
async def list_withdraw_requests(
    status: Optional[str] = None,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    limit: Optional[int] = None,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    status_filter = _status_filter(status, WithdrawStatus, None)
    rows, pending = await approvals.list_requests(db, admin, WithdrawRequest, status_filter, user_id, limit)
    return {"ok": True, "pendingCount": pending, "rows": rows}


@router.post("/withdraw-requests")
async def act_on_withdraw(
    body: RequestActionRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    row = await approvals.process_withdraw(db, admin, body.request_id, body.action, body.note)
    return {"ok": True, "row": approvals.request_to_dict(row)}


@router.get("/mining/pending")
async def mining_pending(admin: Admin = Depends(get_current_admin), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "rows": await mining.list_pending(db, admin)}


@router.get("/mining/history")
async def mining_history(admin: Admin = Depends(get_current_admin), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "rows": await mining.list_history(db, admin)}


@router.post("/mining/approve")
async def mining_approve(
    body: MiningActionRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await mining.approve(db, admin, body.mining_id)
    return {"ok": True, "order": mining.order_view(order)}


@router.post("/mining/decline")
async def mining_decline(
    body: MiningActionRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await mining.decline(db, admin, body.mining_id, body.note)
    return {"ok": True, "order": mining.order_view(order)}


@router.get("/trade-permission")
async def get_trade_permission(
    user_id: int = Query(alias="userId"),
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await approvals.ensure_user_scope(db, admin, user_id)
    permission = await trade.get_permission(db, user_id)
    return {"ok": True, "userId": user_id, **permission.to_dict()}


@router.post("/trade-permission")
async def set_trade_permission(
    body: TradePermissionRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await approvals.ensure_user_scope(db, admin, body.user_id)
    permission = await trade.set_permission(db, body.user_id, body.buy_enabled, body.sell_enabled)
    return {"ok": True, "userId": body.user_id, **permission.to_dict()}


@router.post("/order-result")
async def set_order_result(
    body: OrderResultRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    if body.result == TradeResult.PENDING:
        raise ValidationError("Invalid result")
    await approvals.ensure_user_scope(db, admin, body.user_id)
    updated = await trade.set_order_result(db, body.user_id, body.result)
    return {"ok": True, "userId": body.user_id, "result": body.result.value, "updated": updated}


@router.get("/user-restrictions")
async def get_user_restrictions(
    user_id: int = Query(alias="userId"),
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await approvals.ensure_user_scope(db, admin, user_id)
    state = await access.check_access(db, user_id)
    return {"ok": True, "userId": user_id, **state.to_dict()}


@router.post("/user-restrictions")
async def set_user_restrictions(
    body: UserRestrictionsRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await approvals.ensure_user_scope(db, admin, body.user_id)
    state = await access.set_access(db, body.user_id, body.trade_restricted, body.mining_restricted)
    return {"ok": True, "userId": body.user_id, **state.to_dict()}


@router.get("/notify")
async def list_notifications(
    status: Optional[str] = None,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    limit: Optional[int] = None,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    status_filter = _status_filter(status, NotificationStatus, None)
    rows, pending = await notifications.list_sent(db, admin, user_id, status_filter, limit)
    return {"ok": True, "pendingCount": pending, "rows": rows}


@router.post("/notify")
async def send_notification(
    body: NotifyRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    row = await notifications.send(db, admin, body.user_id, body.subject, body.message)
    return {"ok": True, "id": row.id, "status": row.status.value}


@router.get("/subadmins")
async def list_subadmins(admin: Admin = Depends(get_current_admin), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "subadmins": await subadmins.list_subadmins(db, admin)}


@router.post("/subadmins")
async def create_subadmin(
    body: SubAdminCreateRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    row = await subadmins.create_subadmin(db, admin, body.wallet_address, body.username)
    return {"ok": True, "subadmin": subadmins.subadmin_to_dict(row)}


@router.post("/subadmins/status")
async def set_subadmin_status(
    body: SubAdminStatusRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    row = await subadmins.set_status(db, admin, body.subadmin_id, body.action)
    return {"ok": True, "id": row.id, "status": row.status.value}


@router.post("/assign-invite")
async def assign_invite(
    body: AssignInviteRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await subadmins.assign_user(db, admin, body.user_id, body.invitation_code)
    return {"ok": True, "userId": user.id, "managedBy": user.managed_by}
