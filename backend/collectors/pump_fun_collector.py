"""Collect recent and top bonding-curve coins from Pump.fun"""
import logging
import os
from typing import Dict, List, Optional

import httpx

from engine.models import Token, TokenSource

logger = logging.getLogger(__name__)

BASE_URL = "https://frontend-api-v2.pump.fun"
HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Accept": "application/json",
}

LAMPORTS_PER_SOL = 1_000_000_000
# Rough SOL/USD used to turn virtual reserves into a liquidity estimate.
SOL_PRICE_USD = float(os.getenv("SOL_PRICE_USD", "150"))


async def _fetch_json(client: httpx.AsyncClient, url: str) -> Optional[list | dict]:
    try:
        resp = await client.get(url, headers=HEADERS)
        if resp.status_code != 200:
            logger.warning("Pump.fun %s returned %s", url, resp.status_code)
            return None
        return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Pump.fun fetch error for %s: %s", url, e)
        return None


def _created_seconds(created) -> Optional[float]:
    if not created:
        return None
    try:
        created = float(created)
    except (TypeError, ValueError):
        return None
    # Could be ms or seconds
    return created / 1000 if created > 1e12 else created


def coin_to_token(coin: Dict, sol_price: float = SOL_PRICE_USD) -> Token:
    """Convert a Pump.fun coin to a canonical Token."""
    mint = coin.get("mint", "")
    reserves = coin.get("virtual_sol_reserves") or 0
    try:
        liquidity = float(reserves) / LAMPORTS_PER_SOL * sol_price
    except (TypeError, ValueError):
        liquidity = 0.0

    market_cap = coin.get("usd_market_cap")
    if not market_cap:
        # market_cap is quoted in SOL
        try:
            market_cap = float(coin.get("market_cap") or 0) * sol_price
        except (TypeError, ValueError):
            market_cap = 0.0

    return Token(
        address=mint,
        symbol=coin.get("symbol") or "???",
        name=coin.get("name") or "Unknown",
        description=coin.get("description") or "",
        price_usd=0,
        price_change_24h=0,
        volume_24h=coin.get("volume") or 0,
        market_cap=market_cap,
        liquidity=liquidity,
        logo_url=coin.get("image_uri") or None,
        created_at=_created_seconds(coin.get("created_timestamp")),
        source=TokenSource.BONDING_CURVE if coin.get("complete") else TokenSource.BONDING_CURVE_PRE_GRADUATION,
        pair_address=coin.get("raydium_pool") or coin.get("pool_address") or "",
        url=f"https://pump.fun/{mint}" if mint else "",
    )


async def collect_recent_coins(client: httpx.AsyncClient, limit: int = 50) -> List[Token]:
    """Recently traded and top market-cap coins, deduplicated by mint."""
    recently_traded = await _fetch_json(
        client, f"{BASE_URL}/coins?sort=last_trade_timestamp&order=DESC&limit={limit}"
    )
    top_mcap = await _fetch_json(
        client, f"{BASE_URL}/coins?sort=market_cap&order=DESC&limit={limit}"
    )

    tokens: List[Token] = []
    seen_mints = set()
    for source_coins in [recently_traded, top_mcap]:
        if not isinstance(source_coins, list):
            continue
        for coin in source_coins:
            if not isinstance(coin, dict):
                continue
            mint = coin.get("mint")
            if mint and mint not in seen_mints:
                seen_mints.add(mint)
                tokens.append(coin_to_token(coin))

    if not tokens:
        logger.warning("Pump.fun: no coins collected")
    else:
        logger.info("Pump.fun: %d coins collected", len(tokens))
    return tokens
