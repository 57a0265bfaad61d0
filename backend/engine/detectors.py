"""Heuristic beta detectors.

Each detector takes the alpha Token and a MarketDataGateway and returns a list of
RawCandidate proposals tagged with its SignalSource. Detectors may raise; the
orchestrator fans them out with settle-all semantics so one failure only empties
that detector's contribution.
"""
import asyncio
import logging
from typing import Iterable, List

from engine.lore_map import (
    decompose_symbol,
    extract_keywords,
    extract_tickers,
    generate_ticker_variants,
    get_concepts,
    get_search_terms,
)
from engine.models import RawCandidate, SignalSource, Token

logger = logging.getLogger(__name__)

MIN_LIQUIDITY = 5000
EXCLUDED_SYMBOLS = frozenset({"SOL", "WSOL", "USDC", "USDT"})
CHAIN_ID = "solana"

MAX_KEYWORD_QUERIES = 8
MAX_CONCEPT_QUERIES = 3
MAX_MORPH_QUERIES = 25
MORPH_BATCH_SIZE = 5
MAX_DESCRIPTION_QUERIES = 6
MAX_PUMPFUN_RESULTS = 10


def is_excluded_asset(token: Token) -> bool:
    return (token.symbol or "").upper() in EXCLUDED_SYMBOLS


def passes_filters(token: Token, min_liquidity: float = MIN_LIQUIDITY) -> bool:
    return (
        bool(token.address)
        and token.chain_id == CHAIN_ID
        and token.liquidity >= min_liquidity
        and not is_excluded_asset(token)
    )


def _dedupe(terms: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for t in terms:
        key = t.lower()
        if t and key not in (s.lower() for s in seen):
            seen.append(t)
    return seen


async def _search_each(gateway, queries: List[str], source: SignalSource) -> List[RawCandidate]:
    results: List[RawCandidate] = []
    for query in queries:
        for token in await gateway.search(query):
            if passes_filters(token):
                results.append(RawCandidate(token=token, source=source))
    return results


def keyword_terms(alpha: Token) -> List[str]:
    return _dedupe(get_search_terms(alpha.symbol) + decompose_symbol(alpha.symbol))[:MAX_KEYWORD_QUERIES]


async def detect_keyword(alpha: Token, gateway) -> List[RawCandidate]:
    """Lore search terms plus compound-decomposition parts of the symbol."""
    return await _search_each(gateway, keyword_terms(alpha), SignalSource.KEYWORD)


async def detect_lore(alpha: Token, gateway) -> List[RawCandidate]:
    concepts = get_concepts(alpha.symbol)[:MAX_CONCEPT_QUERIES]
    return await _search_each(gateway, concepts, SignalSource.LORE)


async def detect_morphology(alpha: Token, gateway) -> List[RawCandidate]:
    """Search generated derivative tickers; only exact symbol hits count."""
    variants = generate_ticker_variants(alpha.symbol)[:MAX_MORPH_QUERIES]
    results: List[RawCandidate] = []

    async def _one(variant: str) -> List[RawCandidate]:
        hits = await gateway.search(variant)
        return [
            RawCandidate(token=t, source=SignalSource.MORPHOLOGY)
            for t in hits
            if passes_filters(t) and (t.symbol or "").upper() == variant.upper()
        ]

    for i in range(0, len(variants), MORPH_BATCH_SIZE):
        batch = variants[i:i + MORPH_BATCH_SIZE]
        outcomes = await asyncio.gather(*(_one(v) for v in batch), return_exceptions=True)
        for variant, outcome in zip(batch, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.debug("Morphology search failed for %s: %s", variant, outcome)
                continue
            results.extend(outcome)
    return results


def description_terms(alpha: Token) -> List[str]:
    tickers = [t for t in extract_tickers(alpha.description) if t != alpha.symbol.upper()]
    words = extract_keywords(alpha.description, min_len=4)
    return _dedupe(tickers + words)[:MAX_DESCRIPTION_QUERIES]


async def detect_description(alpha: Token, gateway) -> List[RawCandidate]:
    """$TICKERs and salient words from the alpha's own description."""
    terms = description_terms(alpha)
    if not terms:
        return []
    return await _search_each(gateway, terms, SignalSource.DESCRIPTION)


async def detect_lp_pair(alpha: Token, gateway) -> List[RawCandidate]:
    """Pairs quoted directly in the alpha token."""
    if not alpha.address:
        return []
    pairs = await gateway.token_pairs([alpha.address])
    return [
        RawCandidate(token=t, source=SignalSource.LP_PAIR)
        for t in pairs
        if t.quote_address == alpha.address and t.address != alpha.address and passes_filters(t)
    ]


def pumpfun_terms(alpha: Token) -> List[str]:
    return _dedupe(get_concepts(alpha.symbol) + [d.lower() for d in decompose_symbol(alpha.symbol)])


async def detect_pumpfun(alpha: Token, gateway) -> List[RawCandidate]:
    """Recent bonding-curve coins mentioning a lore concept or symbol sub-word.

    Liquidity on the curve is an estimate, so the liquidity floor does not apply.
    """
    terms = [t.lower() for t in pumpfun_terms(alpha)]
    results: List[RawCandidate] = []
    for coin in await gateway.bonding_curve():
        if is_excluded_asset(coin) or coin.address == alpha.address:
            continue
        haystacks = ((coin.name or "").lower(), (coin.symbol or "").lower(), (coin.description or "").lower())
        if any(term in h for term in terms for h in haystacks):
            results.append(RawCandidate(token=coin, source=SignalSource.PUMPFUN))
            if len(results) >= MAX_PUMPFUN_RESULTS:
                break
    return results


HEURISTIC_DETECTORS = {
    SignalSource.KEYWORD.value: detect_keyword,
    SignalSource.LORE.value: detect_lore,
    SignalSource.MORPHOLOGY.value: detect_morphology,
    SignalSource.DESCRIPTION.value: detect_description,
    SignalSource.LP_PAIR.value: detect_lp_pair,
    SignalSource.PUMPFUN.value: detect_pumpfun,
}
