"""Reverse search from a derivative token back to its probable higher-cap origin.

"Dark Pippin" trading as $DIPPIN with the description "alter ego of $PIPPIN"
should resolve to PIPPIN, not to whatever shares the most letters with DIPPIN.
Textual evidence (description tickers, description words, name words) carries a
score boost and a relaxed similarity floor; bare symbol slices carry neither.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from engine.lore_map import NAME_STOP_WORDS, camel_case_parts, extract_keywords, extract_tickers
from engine.models import Token

logger = logging.getLogger(__name__)

TICKER_BOOST = 0.40
DESCRIPTION_BOOST = 0.25
NAME_BOOST = 0.10
SYMBOL_BOOST = 0.0

MIN_SIMILARITY_WITH_TEXT = 0.30
MIN_SIMILARITY_SYMBOL_ONLY = 0.65
MIN_PARENT_MCAP_SHARE = 0.5
MIN_LIQUIDITY = 5000
MAX_QUERIES = 10
MAX_DESCRIPTION_WORDS = 4

STRIP_SUFFIXES = [
    "SCOPE", "COIN", "TOKEN", "SWAP", "PLAY", "GAME",
    "KIN", "KY", "LY", "ISH", "INU", "WIF", "HAT", "CAT",
    "DOG", "AI", "DAO", "MOON", "PUMP", "WIFHAT",
]
STRIP_PREFIXES = [
    "BABY", "MINI", "MICRO", "GIGA", "MEGA", "SUPER",
    "REAL", "OG", "TURBO", "CHAD", "FAT", "TINY",
    "MEAN", "DARK", "EVIL", "BASED", "LITTLE", "BIG",
    "GOOD", "BAD", "MAD", "SAD", "GLAD", "WILD",
    "HOLY", "DEGEN", "ALPHA", "PURE",
]


@dataclass
class ParentMatch:
    token: Token
    score: float
    similarity: float
    query: str
    boost: float

    def to_dict(self) -> Dict:
        return {
            "parent": self.token.to_dict(),
            "score": round(self.score, 4),
            "similarity": round(self.similarity, 4),
            "query": self.query,
            "boost": self.boost,
        }


def edit_distance(a: str, b: str) -> int:
    prev = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        cur = [i] + [0] * len(b)
        for j in range(1, len(b) + 1):
            if a[i - 1] == b[j - 1]:
                cur[j] = prev[j - 1]
            else:
                cur[j] = 1 + min(prev[j], cur[j - 1], prev[j - 1])
        prev = cur
    return prev[len(b)]


def similarity(runner: str, candidate: str) -> float:
    a = (runner or "").upper()
    b = (candidate or "").upper()
    if a == b:
        return 1.0

    # PIPPIN is a prefix of PIPPINS
    if a.startswith(b) and len(b) >= 3:
        return 0.75 + (len(b) / len(a)) * 0.2
    # ALIEN is a prefix of ALIENSCOPE
    if b.startswith(a) and len(a) >= 3:
        return 0.80

    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    shared = 0
    for x, y in zip(shorter, longer):
        if x != y:
            break
        shared += 1
    if shared >= 4 and shared / len(shorter) >= 0.75:
        return 0.65 + (shared / len(shorter)) * 0.15

    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1 - edit_distance(a, b) / max_len


def extract_root_candidates(symbol: str) -> List[str]:
    """Prefix slices, stripped affixes and CamelCase parts of a symbol."""
    s = symbol.upper()
    parts: List[str] = []

    def add(p: str):
        if p and p != s and p not in parts:
            parts.append(p)

    for length in range(min(len(s) - 1, 8), 3, -1):
        add(s[:length])
    for suffix in STRIP_SUFFIXES:
        if s.endswith(suffix) and len(s) > len(suffix) + 2:
            add(s[: len(s) - len(suffix)])
    for prefix in STRIP_PREFIXES:
        if s.startswith(prefix) and len(s) > len(prefix) + 2:
            add(s[len(prefix):])
    for p in camel_case_parts(symbol):
        add(p)
    return parts


def build_queries(alpha: Token) -> List[Tuple[str, float]]:
    """(query, boost) pairs, strongest tier first; a query keeps its best tier."""
    tiers: List[Tuple[float, List[str]]] = [
        (TICKER_BOOST, extract_tickers(alpha.description)),
        (DESCRIPTION_BOOST, [w.upper() for w in extract_keywords(
            alpha.description, min_len=5, stop_words=NAME_STOP_WORDS)][:MAX_DESCRIPTION_WORDS]),
        (NAME_BOOST, [w.upper() for w in extract_keywords(
            alpha.name, min_len=4, stop_words=NAME_STOP_WORDS)]),
        (SYMBOL_BOOST, extract_root_candidates(alpha.symbol)),
    ]
    alpha_symbol = alpha.symbol.upper()
    seen: Dict[str, float] = {}
    for boost, queries in tiers:
        for q in queries:
            if q and q != alpha_symbol and q not in seen:
                seen[q] = boost
    return list(seen.items())[:MAX_QUERIES]


def _name_word(name: str) -> str:
    for w in (name or "").upper().split():
        if len(w) >= 4:
            return w
    return ""


class ParentResolver:
    def __init__(self, gateway, lifecycle=None):
        self.gateway = gateway
        self.lifecycle = lifecycle

    def _eligible(self, alpha: Token, candidate: Token) -> bool:
        return (
            candidate.chain_id == "solana"
            and candidate.market_cap >= alpha.market_cap * MIN_PARENT_MCAP_SHARE
            and candidate.liquidity >= MIN_LIQUIDITY
            and candidate.address != alpha.address
            and (candidate.symbol or "").upper() != alpha.symbol.upper()
        )

    def score_candidates(self, alpha: Token, searches: List[Tuple[str, float, List[Token]]]) -> Optional[ParentMatch]:
        """Best candidate above its similarity floor; ties keep the first seen."""
        symbol = alpha.symbol.upper()
        best: Optional[ParentMatch] = None
        for query, boost, tokens in searches:
            floor = MIN_SIMILARITY_WITH_TEXT if boost > 0 else MIN_SIMILARITY_SYMBOL_ONLY
            for candidate in tokens:
                if not self._eligible(alpha, candidate):
                    continue
                sim = max(
                    similarity(symbol, candidate.symbol),
                    similarity(symbol, _name_word(candidate.name)),
                )
                if sim < floor:
                    continue
                score = sim + boost
                if best is None or score > best.score:
                    best = ParentMatch(token=candidate, score=score, similarity=sim, query=query, boost=boost)
        return best

    async def find_parent(self, alpha: Token) -> Optional[ParentMatch]:
        queries = build_queries(alpha)
        if not queries:
            return None

        # gather keeps query order, so tie-breaking does not depend on network timing
        outcomes = await asyncio.gather(*(self.gateway.search(q) for q, _ in queries), return_exceptions=True)
        searches = []
        for (query, boost), outcome in zip(queries, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning("Parent search failed for %r: %s", query, outcome)
                continue
            searches.append((query, boost, outcome))

        match = self.score_candidates(alpha, searches)
        if match is None:
            logger.info("No parent found for $%s", alpha.symbol)
            return None

        logger.info("Parent of $%s is $%s (score %.2f via %r)",
                    alpha.symbol, match.token.symbol, match.score, match.query)
        if self.lifecycle is not None:
            self.lifecycle.record_parent(match.token, alpha)
        return match
