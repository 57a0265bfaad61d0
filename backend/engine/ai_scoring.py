"""AI semantic scoring of beta candidates.

Closes the gap pattern matching can't: $DARWIN and $EVOLUTION share no characters
but live in the same narrative universe.
"""
import logging
from typing import Dict, List, Optional

from engine.ai_client import AnthropicClient
from engine.cache import TTLCache
from engine.fanout import settle_all, successful
from engine.models import RawCandidate, SignalSource, Token

logger = logging.getLogger(__name__)

AI_SCORE_THRESHOLD = 0.65
BATCH_SIZE = 8
CACHE_TTL_SECONDS = 5 * 60


def build_scoring_prompt(alpha: Token, candidates: List[Token]) -> str:
    alpha_lines = [f"Symbol: ${alpha.symbol}"]
    if alpha.name:
        alpha_lines.append(f"Name: {alpha.name}")
    if alpha.description:
        alpha_lines.append(f"Description: {alpha.description}")
    if alpha.market_cap:
        alpha_lines.append(f"Market Cap: ${alpha.market_cap:,.0f}")

    blocks = []
    for i, c in enumerate(candidates):
        lines = [f"[{i}] Symbol: ${c.symbol}"]
        if c.name:
            lines.append(f"    Name: {c.name}")
        if c.description:
            lines.append(f"    Description: {c.description}")
        blocks.append("\n".join(lines))

    alpha_context = "\n".join(alpha_lines)
    candidate_list = "\n\n".join(blocks)
    return f"""You are analyzing Solana meme tokens to identify which ones are narrative derivatives or beta plays of a given alpha token.

ALPHA TOKEN (the runner we're analyzing):
{alpha_context}

CANDIDATE TOKENS (potential beta plays):
{candidate_list}

For each candidate, score how likely it is to be a beta/derivative of the alpha token (0.0 to 1.0).

Scoring criteria:
- 0.9-1.0: Direct derivative (same character, event, or meme, e.g. PIPPKIN of PIPPIN)
- 0.7-0.89: Strong narrative connection (same universe, concept, or cultural moment)
- 0.5-0.69: Possible connection but ambiguous
- 0.0-0.49: Likely unrelated despite surface similarity

Consider: shared characters, shared events (Trump alien disclosure -> ALIEN tokens), shared cultural references, shared meme formats, prefix/suffix derivatives, thematic overlap.

Respond ONLY with a JSON array. No explanation, no markdown, no preamble. Example format:
[{{"index":0,"score":0.95,"reason":"Direct derivative"}},{{"index":1,"score":0.2,"reason":"Unrelated"}}]"""


def _as_score(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class AIBetaScorer:
    def __init__(self, client: AnthropicClient, cache: Optional[TTLCache] = None,
                 threshold: float = AI_SCORE_THRESHOLD, batch_size: int = BATCH_SIZE):
        self.client = client
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS)
        self.threshold = threshold
        self.batch_size = batch_size

    @staticmethod
    def cache_key(alpha: Token, candidates: List[Token]):
        return alpha.address, tuple(sorted(c.address for c in candidates))

    async def _score_batch(self, alpha: Token, batch: List[Token]) -> List[RawCandidate]:
        rows = await self.client.complete_json(build_scoring_prompt(alpha, batch))
        scored = []
        for row in rows:
            index = row.get("index")
            score = _as_score(row.get("score"))
            if not isinstance(index, int) or not 0 <= index < len(batch) or score is None:
                continue
            if score >= self.threshold:
                scored.append(RawCandidate(
                    token=batch[index],
                    source=SignalSource.AI_MATCH,
                    ai_score=score,
                    ai_reason=str(row.get("reason") or ""),
                ))
        return scored

    async def score(self, alpha: Token, candidates: List[Token]) -> List[RawCandidate]:
        """Candidates scoring at or above the threshold, best first.

        A batch that fails or answers with anything but an array is dropped; the
        other batches still count.
        """
        if not candidates or not self.client.available:
            return []

        key = self.cache_key(alpha, candidates)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("AI scoring cache hit for $%s (%d matches)", alpha.symbol, len(cached))
            return cached

        logger.info("AI scoring %d candidates for $%s", len(candidates), alpha.symbol)
        tasks: Dict[str, object] = {}
        for i in range(0, len(candidates), self.batch_size):
            tasks[f"ai-batch-{i // self.batch_size}"] = self._score_batch(alpha, candidates[i:i + self.batch_size])
        results = await settle_all(tasks)

        scored: List[RawCandidate] = []
        for batch in successful(results):
            scored.extend(batch)
        scored.sort(key=lambda r: r.ai_score or 0, reverse=True)

        self.cache.set(key, scored)
        logger.info("AI scoring found %d matches for $%s", len(scored), alpha.symbol)
        return scored
