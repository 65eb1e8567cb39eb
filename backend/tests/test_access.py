import pytest
from decimal import Decimal
from unittest.mock import patch
from openbook.core.errors import Forbidden
from openbook.models.user import AdminRole
from openbook.services import access
from openbook.services.access import Restriction
from conftest import admin_headers, make_admin, make_user, user_headers


@pytest.mark.asyncio
async def test_no_row_is_unknown_and_follows_policy(db):
    user = await make_user(db)
    state = await access.check_access(db, user.id)
    assert state.trade == Restriction.unknown
    assert state.source == "default"
    assert state.trade_restricted is False

    with patch.object(access.settings, "ACCESS_UNKNOWN_POLICY", "restricted"):
        assert state.trade_restricted is True
        with pytest.raises(Forbidden):
            await access.require_mining_access(db, user.id)


@pytest.mark.asyncio
async def test_explicit_flags_ignore_policy(db):
    user = await make_user(db)
    await access.set_access(db, user.id, trade_restricted=True, mining_restricted=False)
    with patch.object(access.settings, "ACCESS_UNKNOWN_POLICY", "restricted"):
        state = await access.check_access(db, user.id)
        assert state.trade_restricted is True
        assert state.mining_restricted is False
        assert state.source == "db"
    with pytest.raises(Forbidden) as exc:
        await access.require_trade_access(db, user.id)
    assert exc.value.message == "Your account is restricted"


@pytest.mark.asyncio
async def test_bulk_lookup(db):
    a = await make_user(db)
    b = await make_user(db)
    await access.set_access(db, a.id, trade_restricted=False, mining_restricted=True)
    states = await access.check_access_for_users(db, [a.id, b.id])
    assert states[a.id].mining_restricted is True
    assert states[b.id].source == "default"


@pytest.mark.asyncio
async def test_restricted_user_cannot_adjust_wallet(client, db):
    admin = await make_admin(db, AdminRole.admin)
    user = await make_user(db, usdt=Decimal("100"))

    r = await client.post(
        "/api/admin/user-restrictions",
        json={"userId": user.id, "tradeRestricted": True, "miningRestricted": False},
        headers=admin_headers(admin),
    )
    assert r.status_code == 200, r.text
    assert r.json()["tradeRestricted"] is True

    r = await client.post("/api/wallet/adjust", json={"deltaUSDT": -10}, headers=user_headers(user))
    assert r.status_code == 403
    assert r.json() == {"ok": False, "error": "Your account is restricted"}

    r = await client.get("/api/trade/permission", headers=user_headers(user))
    assert r.status_code == 403
    assert r.json()["restricted"] is True


@pytest.mark.asyncio
async def test_wallet_adjust_moves_usdt(client, db):
    user = await make_user(db, usdt=Decimal("100"))
    r = await client.post("/api/wallet/adjust", json={"deltaUSDT": "-25.5"}, headers=user_headers(user))
    assert r.status_code == 200, r.text
    assert r.json()["balanceUSDT"] == 74.5

    r = await client.post("/api/wallet/adjust", json={"deltaUSDT": -1000}, headers=user_headers(user))
    assert r.status_code == 400
    assert r.json()["error"] == "Insufficient USDT balance"

    r = await client.post("/api/wallet/adjust", json={"deltaUSDT": 0}, headers=user_headers(user))
    assert r.status_code == 400
