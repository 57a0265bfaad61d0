"""Market data gateway: one object the engine talks to for every feed."""
import base64
import logging
from typing import Dict, List, Optional, Tuple

import httpx

from collectors import birdeye_collector, dexscreener_collector, geckoterminal_collector, pump_fun_collector
from engine.fanout import settle_all, successful
from engine.models import Token, merge_tokens

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20
IMAGE_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class MarketDataGateway:
    """Normalizes DexScreener, Pump.fun and GeckoTerminal into canonical Tokens.

    Feed failures are logged by the collectors and surface here as empty lists.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = DEFAULT_TIMEOUT):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "MarketDataGateway":
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def search(self, query: str) -> List[Token]:
        return await dexscreener_collector.search_pairs(self.client, query)

    async def token_pairs(self, addresses: List[str]) -> List[Token]:
        if not addresses:
            return []
        return await dexscreener_collector.get_token_pairs(self.client, addresses)

    async def boosted(self) -> List[Token]:
        return await dexscreener_collector.collect_boosted_tokens(self.client)

    async def profiles(self) -> List[Token]:
        return await dexscreener_collector.collect_profile_tokens(self.client)

    async def bonding_curve(self) -> List[Token]:
        return await pump_fun_collector.collect_recent_coins(self.client)

    async def new_pairs(self) -> List[Token]:
        return await geckoterminal_collector.collect_new_pairs(self.client)

    async def insights(self, address: str) -> Optional[Dict]:
        return await birdeye_collector.fetch_token_insights(address, client=self.client)

    async def live_feed(self) -> List[Token]:
        """All trending feeds combined, duplicates merged by address."""
        results = await settle_all({
            "boosted-feed": self.boosted(),
            "profile-feed": self.profiles(),
            "bonding-curve": self.bonding_curve(),
            "new-pair-feed": self.new_pairs(),
        })
        tokens: List[Token] = []
        for batch in successful(results):
            tokens.extend(batch)
        merged = merge_tokens(tokens)
        logger.info("Live feed: %d tokens (%d before merge)", len(merged), len(tokens))
        return merged

    async def fetch_image(self, url: Optional[str]) -> Optional[Tuple[str, str]]:
        """Download a logo as (base64 data, media type); None when unusable."""
        if not url:
            return None
        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.debug("Image fetch failed for %s: %s", url, e)
            return None
        if resp.status_code != 200:
            return None
        media_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
        if media_type == "image/jpg":
            media_type = "image/jpeg"
        if media_type not in IMAGE_MEDIA_TYPES or len(resp.content) > MAX_IMAGE_BYTES:
            return None
        return base64.b64encode(resp.content).decode("ascii"), media_type
