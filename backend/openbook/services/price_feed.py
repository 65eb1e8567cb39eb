"""
price_feed.py
- spot USDT prices for the listed assets, on demand (no background polling)
- Redis keeps the last good snapshot; a snapshot younger than
  PRICE_PREFER_CACHE_SEC is served without touching the network
- sources tried in order: CoinGecko (usdt), CoinGecko (usd), Binance ticker,
  then a stale snapshot up to PRICE_MAX_STALE_SEC old
"""
import json
import logging
import time
from typing import Dict, List, Optional

import httpx

from openbook.config import settings
from openbook.core.redis import get_redis

logger = logging.getLogger(__name__)

CACHE_KEY = "prices:usdt"

COIN_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
}

BINANCE_SYMBOLS = {
    "BTCUSDT": "BTC",
    "ETHUSDT": "ETH",
    "SOLUSDT": "SOL",
    "XRPUSDT": "XRP",
}

Prices = Dict[str, Optional[float]]


def empty_prices() -> Prices:
    prices: Prices = {"USDT": 1.0}
    prices.update({asset: None for asset in COIN_IDS})
    return prices


def _to_float(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _usable(prices: Prices) -> bool:
    return any(prices.get(asset) is not None for asset in COIN_IDS)


async def _get_json(client: httpx.AsyncClient, url: str, params: dict):
    try:
        r = await client.get(url, params=params, headers={"accept": "application/json"})
    except httpx.HTTPError as e:
        logger.warning("price request %s failed: %s", url, e)
        return None
    if r.status_code != 200:
        logger.warning("price request %s returned %s", url, r.status_code)
        return None
    try:
        return r.json()
    except ValueError:
        return None


async def fetch_coingecko(client: httpx.AsyncClient, vs: str) -> Optional[Prices]:
    data = await _get_json(
        client,
        settings.COINGECKO_URL,
        {"ids": ",".join(COIN_IDS.values()), "vs_currencies": vs},
    )
    if not isinstance(data, dict):
        return None
    prices = empty_prices()
    for asset, coin_id in COIN_IDS.items():
        row = data.get(coin_id) or {}
        prices[asset] = _to_float(row.get(vs)) if isinstance(row, dict) else None
    return prices if _usable(prices) else None


async def fetch_binance(client: httpx.AsyncClient) -> Optional[Prices]:
    data = await _get_json(
        client,
        f"{settings.BINANCE_BASE_URL}/api/v3/ticker/price",
        {"symbols": json.dumps(list(BINANCE_SYMBOLS), separators=(",", ":"))},
    )
    if not isinstance(data, list) or not data:
        return None
    prices = empty_prices()
    for row in data:
        asset = BINANCE_SYMBOLS.get(str(row.get("symbol", ""))) if isinstance(row, dict) else None
        if asset:
            prices[asset] = _to_float(row.get("price"))
    return prices if _usable(prices) else None


async def _read_cache() -> Optional[dict]:
    redis = await get_redis()
    raw = await redis.get(CACHE_KEY)
    if not raw:
        return None
    try:
        row = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(row, dict) or "prices" not in row or "ts" not in row:
        return None
    return row


async def _write_cache(prices: Prices, ts: float, source: str) -> None:
    redis = await get_redis()
    await redis.set(
        CACHE_KEY,
        json.dumps({"prices": prices, "ts": ts, "source": source}),
        ex=settings.PRICE_MAX_STALE_SEC,
    )


def _result(ok: bool, prices: Prices, ts: float, stale: bool, source: str, error: Optional[str] = None) -> dict:
    result = {"ok": ok, "prices": prices, "ts": int(ts * 1000), "stale": stale, "source": source}
    if error:
        result["error"] = error
    return result


async def get_prices() -> dict:
    now = time.time()
    cached = await _read_cache()
    if cached and now - cached["ts"] <= settings.PRICE_PREFER_CACHE_SEC:
        return _result(True, cached["prices"], cached["ts"], False, f"{cached.get('source', 'unknown')}:cache")

    failed: List[str] = []
    async with httpx.AsyncClient(timeout=settings.PRICE_REQUEST_TIMEOUT_SEC) as client:
        sources = (
            ("coingecko-usdt", lambda: fetch_coingecko(client, "usdt")),
            ("coingecko-usd", lambda: fetch_coingecko(client, "usd")),
            ("binance", lambda: fetch_binance(client)),
        )
        for name, fetch in sources:
            prices = await fetch()
            if prices:
                await _write_cache(prices, now, name)
                return _result(True, prices, now, False, name)
            failed.append(name)

    message = f"Live price fetch failed ({', '.join(failed)})"
    if cached and now - cached["ts"] <= settings.PRICE_MAX_STALE_SEC:
        logger.warning("%s; serving cached prices from %s", message, cached.get("source"))
        return _result(
            True, cached["prices"], cached["ts"], True,
            f"{cached.get('source', 'unknown')}:stale-cache",
            f"{message}. Using cached price.",
        )

    logger.warning(message)
    return _result(False, empty_prices(), now, True, "empty", message)
