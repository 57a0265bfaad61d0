"""Radar service: poll feeds -> lifecycle -> szn clusters, plus on-demand betas and parents"""
import asyncio
import logging
import time
from collections import OrderedDict
from typing import List, Optional, Set

from collectors.market_data import MarketDataGateway
from engine.ai_client import AnthropicClient
from engine.ai_scoring import AIBetaScorer
from engine.beta_engine import BetaEngine, DetectionResult
from engine.history_store import HistoryStore, get_store
from engine.image_analysis import LogoAnalyzer
from engine.lifecycle import LifecycleConfig, LifecycleManager, LifecycleSnapshot
from engine.models import NarrativeCluster, Token
from engine.narrative_szn import NarrativeSznEngine
from engine.parent_resolver import ParentMatch, ParentResolver

logger = logging.getLogger(__name__)

MAX_BETA_RESULTS = 50


class Radar:
    def __init__(self, gateway: Optional[MarketDataGateway] = None,
                 store: Optional[HistoryStore] = None,
                 config: Optional[LifecycleConfig] = None,
                 ai_client: Optional[AnthropicClient] = None):
        self.gateway = gateway or MarketDataGateway()
        self.ai = ai_client or AnthropicClient()
        analyzer = LogoAnalyzer(self.ai, self.gateway)

        self.lifecycle = LifecycleManager(store if store is not None else get_store(),
                                          config or LifecycleConfig.from_env())
        self.szn_engine = NarrativeSznEngine(self.ai, analyzer)
        self.beta_engine = BetaEngine(self.gateway, AIBetaScorer(self.ai), analyzer)
        self.parent_resolver = ParentResolver(self.gateway, self.lifecycle)

        self.snapshot = LifecycleSnapshot()
        self.clusters: List[NarrativeCluster] = []
        self.beta_results: "OrderedDict[str, DetectionResult]" = OrderedDict()
        self.last_refresh: Optional[float] = None
        self.last_error: Optional[str] = None
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

    @property
    def poll_interval(self) -> float:
        return self.lifecycle.config.poll_interval_seconds

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ── Polling ──

    async def refresh(self) -> LifecycleSnapshot:
        """One poll: ingest the feed, classify, rebuild keyword clusters, schedule enrichment."""
        start = time.time()
        self._generation += 1
        generation = self._generation

        snapshot = await self.lifecycle.refresh(self.gateway)
        self.snapshot = snapshot
        live_tokens = [v.token for v in snapshot.live]
        self.clusters = self.szn_engine.keyword_clusters(live_tokens)
        if self.ai.available:
            self._spawn(self._enrich_szn(live_tokens, generation))

        self.last_refresh = time.time()
        self.last_error = None
        logger.info("Refresh done in %.1fs: %d live, %d cooling, %d positioning, %d dumped, %d szn",
                    time.time() - start, len(snapshot.live), len(snapshot.cooling),
                    len(snapshot.positioning), len(snapshot.dumped), len(self.clusters))
        return snapshot

    async def _enrich_szn(self, tokens: List[Token], generation: int):
        try:
            clusters = await self.szn_engine.enrich(tokens)
        except Exception as e:
            logger.error("Szn enrichment error: %s", e, exc_info=True)
            return
        # A newer poll already replaced the keyword clusters.
        if generation == self._generation:
            self.clusters = clusters

    async def run(self, stop: Optional[asyncio.Event] = None):
        """Poll forever (or until `stop` is set); errors are logged, never fatal."""
        while stop is None or not stop.is_set():
            try:
                await self.refresh()
            except Exception as e:
                self.last_error = str(e)
                logger.error("Refresh error: %s", e, exc_info=True)
            if stop is None:
                await asyncio.sleep(self.poll_interval)
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def aclose(self):
        for task in list(self._tasks):
            task.cancel()
        await self.gateway.aclose()

    # ── On demand ──

    async def find_token(self, address: str) -> Optional[Token]:
        """Latest known snapshot of a token: lifecycle views, history, then a pair lookup."""
        for group in (self.snapshot.live, self.snapshot.cooling, self.snapshot.positioning,
                      self.snapshot.dumped, self.snapshot.legends):
            for view in group:
                if view.token.address == address:
                    return view.token
        record = self.lifecycle.store.get(address)
        if record is not None:
            return record.token
        pairs = [t for t in await self.gateway.token_pairs([address]) if t.address == address]
        if not pairs:
            return None
        return max(pairs, key=lambda t: t.volume_24h)

    async def _enrich_betas(self, alpha: Token, first: DetectionResult):
        try:
            enriched = await self.beta_engine.enrich(alpha, first)
        except Exception as e:
            logger.error("Beta enrichment error for $%s: %s", alpha.symbol, e, exc_info=True)
            return
        if enriched is not None:
            self._keep_result(alpha.address, enriched)

    def _keep_result(self, address: str, result: DetectionResult):
        # most recently requested alphas only
        self.beta_results[address] = result
        self.beta_results.move_to_end(address)
        while len(self.beta_results) > MAX_BETA_RESULTS:
            self.beta_results.popitem(last=False)

    async def detect_betas(self, address: str, wait: bool = False) -> Optional[DetectionResult]:
        """Heuristic betas now; AI/vision enrichment lands in `beta_results` later.

        With wait=True the enriched result is returned directly.
        """
        alpha = await self.find_token(address)
        if alpha is None:
            return None
        self.beta_engine.select(alpha)
        first = await self.beta_engine.detect(alpha)
        if not self.beta_engine.is_current(alpha):
            return first
        self._keep_result(address, first)

        if wait:
            await self._enrich_betas(alpha, first)
            return self.beta_results.get(address, first)
        if first.betas:
            self._spawn(self._enrich_betas(alpha, first))
        return first

    async def find_parent(self, address: str) -> Optional[ParentMatch]:
        alpha = await self.find_token(address)
        if alpha is None:
            return None
        return await self.parent_resolver.find_parent(alpha)

    def szn(self) -> List[NarrativeCluster]:
        return self.clusters
