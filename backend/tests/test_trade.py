import pytest
from decimal import Decimal
from openbook.models.trade import TradeResult, TradeSide
from openbook.models.user import AdminRole
from openbook.services import ledger, trade
from conftest import admin_headers, make_admin, make_user, user_headers


def test_clamp_outcome():
    both = trade.Permission()
    no_buy = trade.Permission(buy_enabled=False)
    assert trade.clamp_outcome(both, TradeSide.BUY, Decimal("-5")) == Decimal("0")
    assert trade.clamp_outcome(both, TradeSide.SELL, Decimal("7")) == Decimal("7")
    assert trade.clamp_outcome(no_buy, TradeSide.BUY, Decimal("7")) == Decimal("0")
    assert trade.clamp_outcome(no_buy, TradeSide.BUY, Decimal("-3")) == Decimal("-3")


@pytest.mark.asyncio
async def test_default_permission(db):
    user = await make_user(db)
    permission = await trade.get_permission(db, user.id)
    assert permission.to_dict() == {"buyEnabled": True, "sellEnabled": True, "source": "default"}


@pytest.mark.asyncio
async def test_enabled_side_wins(db):
    user = await make_user(db, usdt=Decimal("100"))
    result = await trade.settle_session(db, user.id, TradeSide.BUY, Decimal("10"), Decimal("4"))
    assert result["order"].result == TradeResult.WIN
    assert result["balanceUSDT"] == Decimal("104")


@pytest.mark.asyncio
async def test_disabled_side_loses_at_most_the_stake(db):
    user = await make_user(db, usdt=Decimal("100"))
    await trade.set_permission(db, user.id, buy_enabled=True, sell_enabled=False)
    result = await trade.settle_session(db, user.id, TradeSide.SELL, Decimal("10"), Decimal("-25"))
    assert result["order"].result == TradeResult.LOSE
    assert Decimal(result["order"].pnl) == Decimal("-10")
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("90")


@pytest.mark.asyncio
async def test_session_routes(client, db):
    user = await make_user(db, usdt=Decimal("50"))
    r = await client.post(
        "/api/trade/sessions",
        json={"side": "BUY", "stake": 10, "proposedPnl": 2.5},
        headers=user_headers(user),
    )
    assert r.status_code == 200, r.text
    assert r.json()["balanceUSDT"] == 52.5

    r = await client.get("/api/trade/orders", headers=user_headers(user))
    assert r.json()["rows"][0]["result"] == "WIN"


@pytest.mark.asyncio
async def test_admin_permission_and_order_result(client, db):
    admin = await make_admin(db, AdminRole.admin)
    user = await make_user(db, usdt=Decimal("50"))
    await trade.settle_session(db, user.id, TradeSide.BUY, Decimal("5"), Decimal("1"))
    headers = admin_headers(admin)

    r = await client.post(
        "/api/admin/trade-permission",
        json={"userId": user.id, "buyEnabled": False, "sellEnabled": True},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    r = await client.get("/api/admin/trade-permission", params={"userId": user.id}, headers=headers)
    assert r.json()["buyEnabled"] is False
    assert r.json()["source"] == "db"

    r = await client.post("/api/admin/order-result", json={"userId": user.id, "result": "LOSE"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["updated"] == 1
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("51")

    r = await client.post("/api/admin/order-result", json={"userId": user.id, "result": "PENDING"}, headers=headers)
    assert r.status_code == 400
