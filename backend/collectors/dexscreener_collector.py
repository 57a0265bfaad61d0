"""Search, lookup and trending feeds from DexScreener API (free, no auth)."""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from engine.models import Token, TokenSource

logger = logging.getLogger(__name__)

BOOSTED_URL = "https://api.dexscreener.com/token-boosts/top/v1"
TOKEN_PROFILES_URL = "https://api.dexscreener.com/token-profiles/latest/v1"
SEARCH_URL = "https://api.dexscreener.com/latest/dex/search"
TOKENS_URL = "https://api.dexscreener.com/latest/dex/tokens"

CHAIN_ID = "solana"
MAX_ADDRESSES_PER_LOOKUP = 30
MAX_FEED_TOKENS = 20


async def _fetch_json(client: httpx.AsyncClient, url: str) -> Any:
    try:
        resp = await client.get(url, headers={"Accept": "application/json"})
        if resp.status_code == 200:
            return resp.json()
        logger.warning("DexScreener %s returned %s", url, resp.status_code)
    except httpx.TimeoutException:
        logger.warning("DexScreener timeout: %s", url)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("DexScreener error for %s: %s", url, e)
    return None


def pair_to_token(pair: Dict, source: Optional[TokenSource] = None) -> Token:
    """Convert a DexScreener pair to a canonical Token."""
    base = pair.get("baseToken") or {}
    quote_token = pair.get("quoteToken") or {}
    info = pair.get("info") or {}
    pair_address = pair.get("pairAddress", "")
    created_ms = pair.get("pairCreatedAt")

    return Token(
        address=base.get("address", ""),
        symbol=base.get("symbol") or "???",
        name=base.get("name") or "Unknown",
        description=info.get("description") or "",
        price_usd=pair.get("priceUsd") or 0,
        price_change_24h=(pair.get("priceChange") or {}).get("h24", 0),
        volume_24h=(pair.get("volume") or {}).get("h24", 0),
        market_cap=pair.get("marketCap") or pair.get("fdv") or 0,
        liquidity=(pair.get("liquidity") or {}).get("usd", 0),
        logo_url=info.get("imageUrl") or None,
        created_at=created_ms / 1000 if created_ms else None,
        source=source,
        pair_address=pair_address,
        quote_address=quote_token.get("address", ""),
        chain_id=pair.get("chainId", CHAIN_ID),
        url=pair.get("url") or (f"https://dexscreener.com/solana/{pair_address}" if pair_address else ""),
    )


def _solana_pairs(data: Any) -> List[Dict]:
    if not isinstance(data, dict):
        return []
    pairs = data.get("pairs") or []
    return [p for p in pairs if isinstance(p, dict) and p.get("chainId") == CHAIN_ID]


def best_pair_per_token(pairs: List[Dict]) -> List[Dict]:
    """Deduplicate by base token, keeping the highest-volume pair."""
    best_by_token: Dict[str, Dict] = {}
    for p in pairs:
        base = (p.get("baseToken") or {}).get("address", "")
        vol = (p.get("volume") or {}).get("h24", 0) or 0
        if base not in best_by_token or vol > ((best_by_token[base].get("volume") or {}).get("h24", 0) or 0):
            best_by_token[base] = p
    return list(best_by_token.values())


async def search_pairs(client: httpx.AsyncClient, query: str) -> List[Token]:
    """Free-text pair search, Solana only. Each pair becomes one Token."""
    if not query:
        return []
    data = await _fetch_json(client, f"{SEARCH_URL}?q={quote(query)}")
    return [pair_to_token(p) for p in _solana_pairs(data)]


async def get_token_pairs(client: httpx.AsyncClient, addresses: List[str]) -> List[Token]:
    """All Solana pairs that involve any of the given token addresses."""
    tokens: List[Token] = []
    for i in range(0, len(addresses), MAX_ADDRESSES_PER_LOOKUP):
        addr_str = ",".join(addresses[i:i + MAX_ADDRESSES_PER_LOOKUP])
        data = await _fetch_json(client, f"{TOKENS_URL}/{addr_str}")
        tokens.extend(pair_to_token(p) for p in _solana_pairs(data))
    return tokens


async def _feed_tokens(client: httpx.AsyncClient, url: str, source: TokenSource) -> List[Token]:
    data = await _fetch_json(client, url)
    if not isinstance(data, list):
        return []
    entries = [e for e in data if isinstance(e, dict) and e.get("chainId") == CHAIN_ID]
    addresses = list(dict.fromkeys(e["tokenAddress"] for e in entries if e.get("tokenAddress")))
    addresses = addresses[:MAX_FEED_TOKENS]
    if not addresses:
        return []

    descriptions = {e.get("tokenAddress"): e.get("description") or "" for e in entries}
    pairs: List[Dict] = []
    for i in range(0, len(addresses), MAX_ADDRESSES_PER_LOOKUP):
        addr_str = ",".join(addresses[i:i + MAX_ADDRESSES_PER_LOOKUP])
        pairs.extend(_solana_pairs(await _fetch_json(client, f"{TOKENS_URL}/{addr_str}")))

    wanted = set(addresses)
    tokens = []
    for pair in best_pair_per_token(pairs):
        token = pair_to_token(pair, source)
        if token.address not in wanted:
            continue
        if not token.description:
            token.description = descriptions.get(token.address, "")
        tokens.append(token)
    return tokens


async def collect_boosted_tokens(client: httpx.AsyncClient) -> List[Token]:
    """Top boosted Solana tokens with their best pair."""
    tokens = await _feed_tokens(client, BOOSTED_URL, TokenSource.BOOSTED)
    logger.info("DexScreener: %d boosted Solana tokens", len(tokens))
    return tokens


async def collect_profile_tokens(client: httpx.AsyncClient) -> List[Token]:
    """Latest token profiles on Solana with their best pair."""
    tokens = await _feed_tokens(client, TOKEN_PROFILES_URL, TokenSource.PROFILE)
    logger.info("DexScreener: %d profile Solana tokens", len(tokens))
    return tokens
