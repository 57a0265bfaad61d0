"""Per-token insights from the Birdeye API: holder concentration, longer-range change, trade flow.

Requires BIRDEYE_API_KEY; without it every lookup reports the feature as unavailable.
"""
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from engine.cache import TTLCache

logger = logging.getLogger(__name__)

BIRDEYE_API_KEY = os.getenv("BIRDEYE_API_KEY", "")
BASE_URL = "https://public-api.birdeye.so"
ENDPOINTS = {
    "token_overview": "/defi/token_overview?address={address}",
    "holders": "/v1/token/holder?address={address}&offset=0&limit=10",
}
CACHE_TTL_SECONDS = 5 * 60

# Program/pool accounts that show up as "holders" but are liquidity, not people.
DEX_ADDRESSES = {
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
}

_cache = TTLCache(CACHE_TTL_SECONDS)


def is_configured() -> bool:
    return bool(BIRDEYE_API_KEY)


async def _fetch_birdeye(client: httpx.AsyncClient, endpoint: str, address: str) -> Optional[Dict]:
    key = (endpoint, address)
    cached = _cache.get(key)
    if cached is not None:
        return cached

    url = BASE_URL + ENDPOINTS[endpoint].format(address=address)
    try:
        resp = await client.get(url, headers={
            "Accept": "application/json",
            "X-API-KEY": BIRDEYE_API_KEY,
            "x-chain": "solana",
        })
        if resp.status_code != 200:
            logger.warning("Birdeye %s returned %s for %s", endpoint, resp.status_code, address)
            return None
        payload = resp.json()
    except httpx.TimeoutException:
        logger.warning("Birdeye API timeout: %s %s", endpoint, address)
        return None
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Birdeye %s failed for %s: %s", endpoint, address, e)
        return None

    data = payload.get("data") if isinstance(payload, dict) and "data" in payload else payload
    if data:
        _cache.set(key, data)
    return data or None


def concentration_risk(holders: Any) -> Optional[Dict]:
    """Top-3 / top-10 share of real holders; HIGH above 50%, MED above 30%."""
    if not isinstance(holders, dict):
        return None
    items: List[Dict] = holders.get("items") or []
    if not items:
        return None
    real = [h for h in items if h.get("owner") not in DEX_ADDRESSES]
    top10 = sum(h.get("percentage") or 0 for h in real[:10])
    top3 = sum(h.get("percentage") or 0 for h in real[:3])
    if top10 > 50:
        risk = "HIGH"
    elif top10 > 30:
        risk = "MED"
    else:
        risk = "LOW"
    return {"top10_pct": round(top10, 2), "top3_pct": round(top3, 2), "risk": risk}


def _first_present(data: Dict, *keys):
    for k in keys:
        if data.get(k) is not None:
            return data[k]
    return None


def build_insights(overview: Optional[Dict], holders: Optional[Dict]) -> Dict:
    overview = overview or {}
    buys = overview.get("buy24h")
    sells = overview.get("sell24h")
    holder_total = holders.get("total") if isinstance(holders, dict) else None
    return {
        "has_data": bool(overview or holders),
        "change_7d": _first_present(overview, "priceChange7dPercent", "price7dChangePercent"),
        "change_30d": _first_present(overview, "priceChange30dPercent", "price30dChangePercent"),
        "volume_7d": overview.get("v7dUSD"),
        "trade_count_24h": overview.get("trade24h"),
        "buy_count_24h": buys,
        "sell_count_24h": sells,
        "buy_ratio": buys / (buys + sells) if buys and sells else None,
        "holder_count": holder_total if holder_total is not None else overview.get("holder"),
        "concentration": concentration_risk(holders),
        "unique_makers_24h": overview.get("uniqueWallet24h"),
        "price_usd": overview.get("price"),
        "market_cap": overview.get("mc"),
    }


async def fetch_token_insights(address: str, client: Optional[httpx.AsyncClient] = None) -> Optional[Dict]:
    """Insights for one token, or None when Birdeye is not configured."""
    if not is_configured():
        return None

    async def _run(c: httpx.AsyncClient) -> Dict:
        overview, holders = await asyncio.gather(
            _fetch_birdeye(c, "token_overview", address),
            _fetch_birdeye(c, "holders", address),
        )
        return build_insights(overview, holders)

    if client is not None:
        return await _run(client)
    async with httpx.AsyncClient(timeout=15) as c:
        return await _run(c)
