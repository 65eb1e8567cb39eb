import pytest
from decimal import Decimal
from openbook.core.errors import Forbidden, ValidationError
from openbook.models.deposit import DepositRequest, DepositStatus
from openbook.models.mining import MiningOrder, MiningStatus
from openbook.models.user import AdminRole
from openbook.models.withdrawal import WithdrawRequest, WithdrawStatus
from openbook.services import notifications
from conftest import admin_headers, make_admin, make_user, user_headers


def test_preview_truncates():
    assert notifications.preview("x" * 130) == "x" * 120 + "..."
    assert notifications.preview("  short  ") == "short"


def test_fmt_amount():
    assert notifications.fmt_amount(Decimal("1000")) == "1,000"
    assert notifications.fmt_amount(Decimal("0.00100000")) == "0.001"
    assert notifications.fmt_amount(Decimal("1234.5"), 2) == "1,234.5"


@pytest.mark.asyncio
async def test_feed_merges_sources(db):
    admin = await make_admin(db, AdminRole.admin)
    user = await make_user(db)
    db.add_all([
        DepositRequest(user_id=user.id, admin_id=admin.id, asset="USDT", amount=Decimal("100"),
                       wallet_address="0xrecv", status=DepositStatus.CONFIRMED),
        MiningOrder(user_id=user.id, plan_id="m5", amount=Decimal("3000"), status=MiningStatus.ABORTED),
        WithdrawRequest(user_id=user.id, admin_id=admin.id, asset="BTC", amount=Decimal("0.1"),
                        wallet_address="bc1qexampleaddress000", status=WithdrawStatus.FROZEN),
    ])
    await db.commit()
    await notifications.send(db, admin, user.id, "Welcome", "Hello there")

    items = await notifications.user_feed(db, user.id)
    by_source = {item["source"]: item for item in items}
    assert set(by_source) == {"DEPOSIT", "MINING", "WITHDRAW", "NOTIFY"}
    assert by_source["DEPOSIT"]["status"] == "CONFIRMED"
    assert by_source["DEPOSIT"]["title"] == "Deposit Confirmed"
    assert by_source["MINING"]["status"] == "REJECTED"
    assert by_source["MINING"]["fullText"] == "Mining plan m5 (3,000 USDT) was aborted."
    assert by_source["WITHDRAW"]["status"] == "FROZEN"
    assert "bc1qexam...ess000" in by_source["WITHDRAW"]["fullText"]
    assert by_source["NOTIFY"]["title"] == "Welcome"
    assert by_source["NOTIFY"]["status"] == "PENDING"
    assert all("_ts" not in item for item in items)


@pytest.mark.asyncio
async def test_send_validates_and_scopes(db):
    root = await make_admin(db, AdminRole.admin)
    sub = await make_admin(db, AdminRole.subadmin, managed_by=root.id)
    user = await make_user(db, managed_by=root.id)
    with pytest.raises(ValidationError):
        await notifications.send(db, root, user.id, "x" * 181, "body")
    with pytest.raises(ValidationError):
        await notifications.send(db, root, user.id, "subject", "")
    with pytest.raises(Forbidden):
        await notifications.send(db, sub, user.id, "subject", "body")


@pytest.mark.asyncio
async def test_notify_and_read_over_http(client, db):
    admin = await make_admin(db, AdminRole.admin)
    user = await make_user(db)

    r = await client.post(
        "/api/admin/notify",
        json={"userId": user.id, "subject": "Maintenance", "message": "Back soon"},
        headers=admin_headers(admin),
    )
    assert r.status_code == 200, r.text
    note_id = r.json()["id"]

    r = await client.get("/api/admin/notify", headers=admin_headers(admin))
    assert r.json()["pendingCount"] == 1

    r = await client.post("/api/notifications/read", json={"notificationId": note_id}, headers=user_headers(user))
    assert r.json() == {"ok": True, "updated": True}
    r = await client.post("/api/notifications/read", json={"notificationId": note_id}, headers=user_headers(user))
    assert r.json()["updated"] is False

    r = await client.get("/api/notifications", headers=user_headers(user))
    item = r.json()["items"][0]
    assert item["source"] == "NOTIFY"
    assert item["status"] == "CONFIRMED"
    assert item["rawStatus"] == "READ"


@pytest.mark.asyncio
async def test_read_only_marks_own_messages(db):
    admin = await make_admin(db, AdminRole.admin)
    owner = await make_user(db)
    stranger = await make_user(db)
    row = await notifications.send(db, admin, owner.id, "Hi", "Only for you")
    assert await notifications.mark_read(db, stranger.id, row.id) is False
    assert await notifications.mark_read(db, owner.id, row.id) is True
