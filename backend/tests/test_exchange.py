import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from openbook.core.errors import InsufficientFunds, PriceUnavailable, ValidationError
from openbook.services import exchange, ledger
from conftest import make_user, user_headers

PRICES = {"USDT": 1.0, "BTC": 50000.0, "ETH": 2500.0, "SOL": 150.0, "XRP": None}


@pytest.mark.asyncio
async def test_usdt_to_btc_scenario(db):
    user = await make_user(db, usdt=Decimal("100"))
    result = await exchange.exchange(db, user.id, "USDT", "BTC", Decimal("50"), PRICES)
    assert result["receivedAmount"] == Decimal("0.001")
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("50")
    assert await ledger.read_balance(db, user.id, "BTC") == Decimal("0.001")


@pytest.mark.asyncio
async def test_round_trip_never_gains(db):
    user = await make_user(db, usdt=Decimal("100"))
    prices = {"USDT": 1.0, "BTC": 43123.77}
    there = await exchange.exchange(db, user.id, "USDT", "BTC", Decimal("37.45"), prices)
    back = await exchange.exchange(db, user.id, "BTC", "USDT", there["receivedAmount"], prices)
    assert back["receivedAmount"] <= Decimal("37.45")
    assert Decimal("37.45") - back["receivedAmount"] < Decimal("0.01")
    assert await ledger.read_balance(db, user.id, "USDT") <= Decimal("100")


@pytest.mark.asyncio
async def test_round_trip_of_cheap_asset_never_gains(db):
    user = await make_user(db, XRP=Decimal("0.00000005"))
    prices = {"USDT": 1.0, "XRP": 0.5}
    there = await exchange.exchange(db, user.id, "XRP", "USDT", Decimal("0.00000005"), prices)
    assert there["receivedAmount"] == Decimal("0.00000002")
    back = await exchange.exchange(db, user.id, "USDT", "XRP", there["receivedAmount"], prices)
    assert back["receivedAmount"] <= Decimal("0.00000005")
    assert await ledger.read_balance(db, user.id, "XRP") <= Decimal("0.00000005")


def test_quote_rounds_usdt_value_down():
    assert exchange.quote("XRP", "USDT", Decimal("0.00000005"), {"XRP": 0.5}) == Decimal("0.00000002")
    assert exchange.quote("XRP", "USDT", Decimal("1.33333333"), {"XRP": 0.61}) == Decimal("0.81333333")


def test_quote_rounds_received_down():
    received = exchange.quote("USDT", "ETH", Decimal("10"), {"ETH": 3.0})
    assert received == Decimal("3.33333333")


@pytest.mark.asyncio
async def test_same_asset_rejected(db):
    user = await make_user(db, usdt=Decimal("100"))
    with pytest.raises(ValidationError) as exc:
        await exchange.exchange(db, user.id, "usdt", "USDT", Decimal("1"), PRICES)
    assert exc.value.message == "From/To assets must be different"


@pytest.mark.asyncio
async def test_missing_price_is_unavailable(db):
    user = await make_user(db, usdt=Decimal("100"))
    with pytest.raises(PriceUnavailable):
        await exchange.exchange(db, user.id, "USDT", "XRP", Decimal("10"), PRICES)
    assert await ledger.read_balance(db, user.id, "USDT") == Decimal("100")


@pytest.mark.asyncio
async def test_insufficient_source_balance(db):
    user = await make_user(db, usdt=Decimal("10"))
    user_id = user.id
    with pytest.raises(InsufficientFunds):
        await exchange.exchange(db, user_id, "USDT", "BTC", Decimal("20"), PRICES)
    await db.rollback()
    assert await ledger.read_balance(db, user_id, "BTC") == Decimal("0")
    assert await ledger.read_balance(db, user_id, "USDT") == Decimal("10")


@pytest.mark.asyncio
async def test_exchange_route_uses_price_feed(client, db):
    user = await make_user(db, usdt=Decimal("100"))
    feed = {"ok": True, "prices": PRICES, "ts": 0, "stale": False, "source": "test"}
    with patch("openbook.routers.wallet.price_feed.get_prices", AsyncMock(return_value=feed)):
        r = await client.post(
            "/api/wallet/exchange",
            json={"fromAsset": "USDT", "toAsset": "BTC", "amount": 50},
            headers=user_headers(user),
        )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["receivedAmount"] == 0.001
    assert body["holdings"]["USDT"] == 50.0


@pytest.mark.asyncio
async def test_exchange_route_without_prices_is_503(client, db):
    user = await make_user(db, usdt=Decimal("100"))
    feed = {"ok": False, "prices": {"USDT": 1.0}, "ts": 0, "stale": True, "source": "empty"}
    with patch("openbook.routers.wallet.price_feed.get_prices", AsyncMock(return_value=feed)):
        r = await client.post(
            "/api/wallet/exchange",
            json={"fromAsset": "USDT", "toAsset": "BTC", "amount": 50},
            headers=user_headers(user),
        )
    assert r.status_code == 503
    assert r.json()["ok"] is False
