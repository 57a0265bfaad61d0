"""Collect freshly created Solana pools from GeckoTerminal (free, no auth)"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from engine.models import Token, TokenSource

logger = logging.getLogger(__name__)

NEW_POOLS_URL = "https://api.geckoterminal.com/api/v2/networks/solana/new_pools"
HEADERS = {"Accept": "application/json;version=20230302"}


async def _fetch_json(client: httpx.AsyncClient, url: str) -> Any:
    try:
        resp = await client.get(url, headers=HEADERS)
        if resp.status_code != 200:
            logger.warning("GeckoTerminal %s returned %s", url, resp.status_code)
            return None
        return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("GeckoTerminal fetch error for %s: %s", url, e)
        return None


def _strip_network(token_id: str) -> str:
    # Relationship ids look like "solana_<mint>"
    return token_id.split("_", 1)[1] if token_id.startswith("solana_") else token_id


def _parse_iso(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def pool_to_token(pool: Dict, included: Optional[Dict[str, Dict]] = None) -> Optional[Token]:
    """Convert a GeckoTerminal pool resource into a Token for its base asset."""
    attrs = pool.get("attributes") or {}
    rel = pool.get("relationships") or {}
    base_id = ((rel.get("base_token") or {}).get("data") or {}).get("id", "")
    quote_id = ((rel.get("quote_token") or {}).get("data") or {}).get("id", "")
    address = _strip_network(base_id)
    if not address:
        return None

    base_attrs = ((included or {}).get(base_id) or {}).get("attributes") or {}
    pool_name = attrs.get("name") or ""
    fallback_symbol = pool_name.split("/")[0].strip() if "/" in pool_name else pool_name

    return Token(
        address=address,
        symbol=base_attrs.get("symbol") or fallback_symbol or "???",
        name=base_attrs.get("name") or fallback_symbol or "Unknown",
        price_usd=attrs.get("base_token_price_usd") or 0,
        price_change_24h=(attrs.get("price_change_percentage") or {}).get("h24", 0),
        volume_24h=(attrs.get("volume_usd") or {}).get("h24", 0),
        market_cap=attrs.get("market_cap_usd") or attrs.get("fdv_usd") or 0,
        liquidity=attrs.get("reserve_in_usd") or 0,
        logo_url=base_attrs.get("image_url") or None,
        created_at=_parse_iso(attrs.get("pool_created_at")),
        source=TokenSource.NEW_PAIR,
        pair_address=attrs.get("address", ""),
        quote_address=_strip_network(quote_id),
        url=f"https://www.geckoterminal.com/solana/pools/{attrs.get('address', '')}",
    )


async def collect_new_pairs(client: httpx.AsyncClient, pages: int = 1) -> List[Token]:
    tokens: List[Token] = []
    for page in range(1, pages + 1):
        payload = await _fetch_json(client, f"{NEW_POOLS_URL}?include=base_token&page={page}")
        if not isinstance(payload, dict):
            continue
        included = {
            item.get("id"): item
            for item in (payload.get("included") or [])
            if isinstance(item, dict)
        }
        for pool in payload.get("data") or []:
            if not isinstance(pool, dict):
                continue
            token = pool_to_token(pool, included)
            if token:
                tokens.append(token)

    logger.info("GeckoTerminal: %d new Solana pairs", len(tokens))
    return tokens
