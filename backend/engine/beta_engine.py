"""Beta detection orchestrator: heuristic fan-out first, AI and vision enrichment after."""
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional

from engine.ai_scoring import AIBetaScorer
from engine.classifier import merge_and_classify, text_confidence
from engine.detectors import HEURISTIC_DETECTORS
from engine.errors import RadarError
from engine.fanout import failed, settle_all, successful
from engine.image_analysis import LogoAnalyzer, should_run_vision
from engine.models import Beta, RawCandidate, Token

logger = logging.getLogger(__name__)

NO_BETAS_MESSAGE = "No beta plays detected yet."


@dataclass
class DetectionResult:
    alpha: Token
    betas: List[Beta]
    failed_sources: List[str] = field(default_factory=list)
    message: Optional[str] = None
    raw: List[RawCandidate] = field(default_factory=list)
    enriched: bool = False

    def to_dict(self) -> Dict:
        return {
            "alpha": self.alpha.to_dict(),
            "betas": [b.to_dict() for b in self.betas],
            "failed_sources": self.failed_sources,
            "message": self.message,
            "enriched": self.enriched,
        }


class BetaEngine:
    """Runs detection for one selected alpha at a time.

    Selecting a new alpha supersedes any enrichment still in flight for the old one;
    those results are discarded when they land.
    """

    def __init__(self, gateway, scorer: Optional[AIBetaScorer] = None,
                 analyzer: Optional[LogoAnalyzer] = None,
                 detectors: Optional[Dict[str, Callable]] = None,
                 clock: Callable[[], float] = time.time):
        self.gateway = gateway
        self.scorer = scorer
        self.analyzer = analyzer
        self.detectors = detectors if detectors is not None else dict(HEURISTIC_DETECTORS)
        self._clock = clock
        self.current_alpha: Optional[str] = None

    def select(self, alpha: Token) -> None:
        self.current_alpha = alpha.address

    def is_current(self, alpha: Token) -> bool:
        return self.current_alpha == alpha.address

    def _result(self, alpha: Token, raw: List[RawCandidate], failed_sources: List[str],
                enriched: bool = False) -> DetectionResult:
        betas = merge_and_classify(raw, alpha, now=self._clock())
        message = NO_BETAS_MESSAGE if not betas else None
        return DetectionResult(alpha=alpha, betas=betas, failed_sources=failed_sources,
                               message=message, raw=raw, enriched=enriched)

    async def detect(self, alpha: Token) -> DetectionResult:
        """First renderable result from the heuristic detectors."""
        results = await settle_all({name: fn(alpha, self.gateway) for name, fn in self.detectors.items()})
        raw: List[RawCandidate] = []
        for batch in successful(results):
            raw.extend(batch)
        failed_sources = failed(results)
        result = self._result(alpha, raw, failed_sources)
        logger.info("Detected %d betas for $%s (%d raw, failed: %s)",
                    len(result.betas), alpha.symbol, len(raw), failed_sources or "none")
        return result

    async def _ai_candidates(self, alpha: Token, betas: List[Beta]) -> List[RawCandidate]:
        if self.scorer is None:
            return []
        try:
            return await self.scorer.score(alpha, [b.token for b in betas])
        except RadarError as e:
            logger.warning("AI scoring failed for $%s: %s", alpha.symbol, e)
            return []

    async def _visual_candidates(self, alpha: Token, betas: List[Beta]) -> List[RawCandidate]:
        if self.analyzer is None:
            return []
        weak = [b.token for b in betas if should_run_vision(b.token, text_confidence(b))]
        if not weak:
            return []
        try:
            return await self.analyzer.compare_logos(alpha, weak)
        except RadarError as e:
            logger.warning("Vision compare failed for $%s: %s", alpha.symbol, e)
            return []

    async def enrich(self, alpha: Token, result: DetectionResult) -> Optional[DetectionResult]:
        """Fold AI and visual matches into an earlier result.

        Returns None when the alpha was superseded while enrichment ran.
        """
        if not result.betas:
            return result

        ai_raw = await self._ai_candidates(alpha, result.betas)
        if not self.is_current(alpha):
            logger.info("Discarding AI enrichment for superseded alpha $%s", alpha.symbol)
            return None

        # Re-rank with AI scores first so vision only looks at what is still weak.
        interim = self._result(alpha, result.raw + ai_raw, result.failed_sources)
        visual_raw = await self._visual_candidates(alpha, interim.betas)
        if not self.is_current(alpha):
            logger.info("Discarding vision enrichment for superseded alpha $%s", alpha.symbol)
            return None

        return self._result(alpha, result.raw + ai_raw + visual_raw, result.failed_sources, enriched=True)

    async def stream(self, alpha: Token) -> AsyncIterator[DetectionResult]:
        """Yield the heuristic result, then the enriched one if still current."""
        self.select(alpha)
        first = await self.detect(alpha)
        if not self.is_current(alpha):
            return
        yield first
        enriched = await self.enrich(alpha, first)
        if enriched is not None and enriched is not first:
            yield enriched
