import pytest
import pytest_asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy import update
from openbook.core.errors import AlreadyProcessed, Forbidden, InsufficientFunds, PlanNotFound, ValidationError
from openbook.core.timeutil import utcnow
from openbook.models.mining import MiningOrder, MiningStatus
from openbook.models.user import AdminRole
from openbook.services import access, ledger, mining, mining_plans
from conftest import admin_headers, make_admin, make_user, user_headers


@pytest.fixture(autouse=True)
def test_plan(monkeypatch):
    plan = mining_plans.MiningPlan("t1", "Test Vault", 5, Decimal("100"), Decimal("5000"), Decimal("0.01"))
    monkeypatch.setitem(mining_plans.PLANS, "t1", plan)
    return plan


@pytest_asyncio.fixture
async def root_admin(db):
    return await make_admin(db, AdminRole.admin)


async def _backdate(db, order_id, days):
    await db.execute(
        update(MiningOrder)
        .where(MiningOrder.id == order_id)
        .values(activated_at=utcnow() - timedelta(days=days))
    )
    await db.commit()


@pytest.mark.asyncio
async def test_plans_endpoint_lists_catalog(client):
    r = await client.get("/api/mining/plans")
    assert r.status_code == 200
    ids = [p["id"] for p in r.json()["plans"]]
    assert ids[:5] == ["m1", "m2", "m3", "m4", "m5"]
    assert r.json()["plans"][4]["abortFee"] == 0.05


def test_get_plan_unknown():
    with pytest.raises(PlanNotFound):
        mining_plans.get_plan("nope")


@pytest.mark.asyncio
async def test_purchase_escrows_principal(db):
    user = await make_user(db, usdt=Decimal("1000"))
    result = await mining.purchase(db, user.id, "t1", Decimal("500"))
    assert result["balanceUSDT"] == Decimal("500")
    assert result["order"].status == MiningStatus.PENDING
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("500")


@pytest.mark.asyncio
async def test_purchase_out_of_range_leaves_balance(db):
    user = await make_user(db, usdt=Decimal("1000"))
    with pytest.raises(ValidationError) as exc:
        await mining.purchase(db, user.id, "t1", Decimal("50"))
    assert "between" in exc.value.message
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("1000")


@pytest.mark.asyncio
async def test_purchase_insufficient_usdt(db):
    user = await make_user(db, usdt=Decimal("200"))
    with pytest.raises(InsufficientFunds) as exc:
        await mining.purchase(db, user.id, "t1", Decimal("300"))
    assert exc.value.message == "Insufficient USDT"


@pytest.mark.asyncio
async def test_purchase_blocked_when_mining_restricted(db):
    user = await make_user(db, usdt=Decimal("1000"))
    await access.set_access(db, user.id, trade_restricted=False, mining_restricted=True)
    with pytest.raises(Forbidden):
        await mining.purchase(db, user.id, "t1", Decimal("500"))


@pytest.mark.asyncio
async def test_lifecycle_scenario_over_http(client, db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))

    r = await client.post("/api/mining/purchase", json={"planId": "t1", "amount": 500}, headers=user_headers(user))
    assert r.status_code == 200, r.text
    assert r.json()["balanceUSDT"] == 500.0
    order_id = r.json()["order"]["id"]
    assert r.json()["order"]["status"] == "PENDING"

    r = await client.get("/api/admin/mining/pending", headers=admin_headers(root_admin))
    assert [row["id"] for row in r.json()["rows"]] == [order_id]

    r = await client.post("/api/admin/mining/approve", json={"miningId": order_id}, headers=admin_headers(root_admin))
    assert r.status_code == 200, r.text
    assert r.json()["order"]["status"] == "ACTIVE"

    r = await client.get("/api/wallet/state", headers=user_headers(user))
    assert r.json()["balanceUSDT"] == 500.0

    await _backdate(db, order_id, days=6)
    r = await client.get("/api/mining/orders", headers=user_headers(user))
    assert r.status_code == 200
    row = r.json()["rows"][0]
    assert row["status"] == "COMPLETED"
    assert row["completedAt"] is not None


@pytest.mark.asyncio
async def test_abort_refunds_principal_minus_fee_once(client, db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("1000")))["order"]
    await mining.approve(db, root_admin, order.id)

    r = await client.post("/api/mining/abort", json={"orderId": order.id}, headers=user_headers(user))
    assert r.status_code == 200, r.text
    assert r.json()["refundUSDT"] == 950.0
    assert r.json()["balanceUSDT"] == 950.0

    r = await client.post("/api/mining/abort", json={"orderId": order.id}, headers=user_headers(user))
    assert r.status_code == 409
    assert r.json() == {"ok": False, "error": "Order can no longer be aborted"}
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("950")


@pytest.mark.asyncio
async def test_abort_pending_order_rejected(db):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    with pytest.raises(ValidationError) as exc:
        await mining.abort(db, user.id, order.id)
    assert exc.value.message == "Only active orders can be aborted"


@pytest.mark.asyncio
async def test_abort_after_cycle_end_is_too_late(db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    await mining.approve(db, root_admin, order.id)
    await _backdate(db, order.id, days=10)
    with pytest.raises(AlreadyProcessed):
        await mining.abort(db, user.id, order.id)
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("500")


@pytest.mark.asyncio
async def test_abort_someone_elses_order_not_found(client, db, root_admin):
    owner = await make_user(db, usdt=Decimal("1000"))
    other = await make_user(db)
    order = (await mining.purchase(db, owner.id, "t1", Decimal("500")))["order"]
    await mining.approve(db, root_admin, order.id)
    r = await client.post("/api/mining/abort", json={"orderId": order.id}, headers=user_headers(other))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_decline_refunds_escrow(db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("400")))["order"]
    declined = await mining.decline(db, root_admin, order.id)
    assert declined.status == MiningStatus.REJECTED
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("1000")


@pytest.mark.asyncio
async def test_decline_without_refund_when_disabled(db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("400")))["order"]
    with patch.object(mining.settings, "MINING_REFUND_ON_DECLINE", False):
        await mining.decline(db, root_admin, order.id)
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("600")


@pytest.mark.asyncio
async def test_approve_twice_is_already_processed(db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("400")))["order"]
    await mining.approve(db, root_admin, order.id)
    with pytest.raises(AlreadyProcessed):
        await mining.approve(db, root_admin, order.id)
    with pytest.raises(AlreadyProcessed):
        await mining.decline(db, root_admin, order.id)
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("600")


@pytest.mark.asyncio
async def test_subadmin_scope(db, root_admin):
    sub = await make_admin(db, AdminRole.subadmin, managed_by=root_admin.id)
    other_sub = await make_admin(db, AdminRole.subadmin, managed_by=root_admin.id)
    user = await make_user(db, usdt=Decimal("1000"), managed_by=sub.id)
    order = (await mining.purchase(db, user.id, "t1", Decimal("400")))["order"]

    with pytest.raises(Forbidden):
        await mining.approve(db, other_sub, order.id)
    assert await mining.list_pending(db, other_sub) == []

    assert [r["id"] for r in await mining.list_pending(db, sub)] == [order.id]
    approved = await mining.approve(db, sub, order.id)
    assert approved.status == MiningStatus.ACTIVE


@pytest.mark.asyncio
async def test_sweep_completes_only_due_orders(db, root_admin):
    user = await make_user(db, usdt=Decimal("2000"))
    due = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    running = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    await mining.approve(db, root_admin, due.id)
    await mining.approve(db, root_admin, running.id)
    await _backdate(db, due.id, days=5)

    assert await mining.complete_due_orders(db) == 1
    await db.refresh(due)
    await db.refresh(running)
    assert due.status == MiningStatus.COMPLETED
    assert running.status == MiningStatus.ACTIVE
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("1000")


@pytest.mark.asyncio
async def test_scheduler_entry_point_uses_own_session(session_factory, db, root_admin):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    await mining.approve(db, root_admin, order.id)
    await _backdate(db, order.id, days=7)

    with patch("openbook.services.mining.AsyncSessionLocal", session_factory):
        await mining.run_completion_sweep()
    await db.refresh(order)
    assert order.status == MiningStatus.COMPLETED


@pytest.mark.asyncio
async def test_order_view_projects_accrual(db, root_admin, test_plan):
    user = await make_user(db, usdt=Decimal("1000"))
    order = (await mining.purchase(db, user.id, "t1", Decimal("1000")))["order"]
    await mining.approve(db, root_admin, order.id)
    await _backdate(db, order.id, days=2)
    await db.refresh(order)

    view = mining.order_view(order)
    assert view["planName"] == test_plan.name
    assert view["cycleDays"] == 5
    assert view["accruedUSDT"] == 20.0
    assert view["endsAt"] is not None


@pytest.mark.asyncio
async def test_admin_history_excludes_pending(client, db, root_admin):
    user = await make_user(db, usdt=Decimal("2000"))
    pending = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    active = (await mining.purchase(db, user.id, "t1", Decimal("500")))["order"]
    await mining.approve(db, root_admin, active.id)

    r = await client.get("/api/admin/mining/history", headers=admin_headers(root_admin))
    assert r.status_code == 200
    ids = [row["id"] for row in r.json()["rows"]]
    assert active.id in ids
    assert pending.id not in ids
