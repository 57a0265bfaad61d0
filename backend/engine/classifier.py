"""Merge raw detector output into ranked, classified Beta records."""
import math
import time
from collections import OrderedDict
from typing import Dict, FrozenSet, Iterable, List, Optional

from engine.detectors import EXCLUDED_SYMBOLS
from engine.models import (
    Beta,
    RawCandidate,
    RelationshipTier,
    SignalSource,
    SignalStrength,
    Token,
    TokenClass,
    WavePhase,
)

MAX_BETAS = 30
RIVAL_MCAP_SHARE = 0.8
MIN_MCAP_RATIO = 2

S = SignalSource

# First match wins. Rank is what orders candidates; tier is what gets displayed.
PRECEDENCE = [
    ({S.LP_PAIR}, RelationshipTier.CABAL, "LP PAIR"),
    ({S.AI_MATCH, S.KEYWORD}, RelationshipTier.CABAL, "CABAL"),
    ({S.PUMPFUN, S.KEYWORD}, RelationshipTier.CABAL, "CABAL"),
    ({S.MORPHOLOGY, S.KEYWORD}, RelationshipTier.CABAL, "CABAL"),
    ({S.DESCRIPTION, S.KEYWORD}, RelationshipTier.STRONG, "STRONG"),
    ({S.PUMPFUN}, RelationshipTier.TRENDING, "TRENDING"),
    ({S.AI_MATCH}, RelationshipTier.AI, "AI"),
    ({S.DESCRIPTION}, RelationshipTier.STRONG, "STRONG"),
    ({S.MORPHOLOGY}, RelationshipTier.STRONG, "STRONG"),
    ({S.KEYWORD}, RelationshipTier.STRONG, "STRONG"),
    ({S.LORE}, RelationshipTier.LORE, "LORE"),
]
WEAK_SIGNAL = SignalStrength(rank=0, tier=RelationshipTier.WEAK, label="WEAK")

# How much a tier alone says about relatedness; gates the vision comparator.
TIER_CONFIDENCE = {
    RelationshipTier.WEAK: 0.0,
    RelationshipTier.LORE: 0.3,
    RelationshipTier.STRONG: 0.6,
    RelationshipTier.TRENDING: 0.7,
    RelationshipTier.AI: 0.8,
    RelationshipTier.CABAL: 0.95,
}


def resolve_signal(sources: Iterable[SignalSource]) -> SignalStrength:
    present = set(sources)
    for i, (required, tier, label) in enumerate(PRECEDENCE):
        if required <= present:
            return SignalStrength(rank=len(PRECEDENCE) - i, tier=tier, label=label)
    return WEAK_SIGNAL


def text_confidence(beta: Beta) -> float:
    return max(beta.ai_score or 0.0, TIER_CONFIDENCE[beta.signal.tier])


def wave_phase(token: Token, now: Optional[float] = None) -> WavePhase:
    age = token.age_hours(time.time() if now is None else now)
    if age is None:
        return WavePhase.UNKNOWN
    if age < 6:
        return WavePhase.WAVE
    if age < 24:
        return WavePhase.SECOND_LEG
    if age < 168:
        return WavePhase.LATE
    return WavePhase.COLD


def mcap_ratio(alpha_mcap: float, beta_mcap: float) -> Optional[int]:
    """Alpha mcap / beta mcap, rounded half up; None below 2x."""
    if not alpha_mcap or not beta_mcap:
        return None
    ratio = int(math.floor(alpha_mcap / beta_mcap + 0.5))
    return ratio if ratio >= MIN_MCAP_RATIO else None


class _Merged:
    __slots__ = ("token", "sources", "ai_score", "ai_reason", "visual_score", "visual_reason")

    def __init__(self, token: Token):
        self.token = token
        self.sources = set()
        self.ai_score = None
        self.ai_reason = ""
        self.visual_score = None
        self.visual_reason = ""

    def absorb(self, raw: RawCandidate):
        self.sources.add(raw.source)
        if raw.token.volume_24h > self.token.volume_24h:
            self.token = raw.token
        if raw.ai_score is not None and (self.ai_score is None or raw.ai_score > self.ai_score):
            self.ai_score, self.ai_reason = raw.ai_score, raw.ai_reason
        if raw.visual_score is not None and (self.visual_score is None or raw.visual_score > self.visual_score):
            self.visual_score, self.visual_reason = raw.visual_score, raw.visual_reason


def merge_candidates(raw: Iterable[RawCandidate], alpha: Token) -> List[_Merged]:
    """Dedupe by address, union sources, drop the alpha and native/stable assets."""
    merged: "OrderedDict[str, _Merged]" = OrderedDict()
    for r in raw:
        address = r.token.address
        if not address or address == alpha.address:
            continue
        if (r.token.symbol or "").upper() in EXCLUDED_SYMBOLS:
            continue
        if address not in merged:
            merged[address] = _Merged(r.token)
        merged[address].absorb(r)
    return list(merged.values())


def classify_token_classes(betas: List[Beta]) -> None:
    """OG / RIVAL / SPIN within groups sharing an uppercase symbol."""
    groups: Dict[str, List[Beta]] = OrderedDict()
    for b in betas:
        groups.setdefault((b.token.symbol or "").upper(), []).append(b)

    for group in groups.values():
        if len(group) == 1:
            group[0].token_class = None
            continue
        ordered = sorted(group, key=lambda b: b.token.created_at if b.token.created_at else math.inf)
        og = ordered[0]
        og.token_class = TokenClass.OG
        for b in ordered[1:]:
            is_rival = (
                b.token.market_cap >= (og.token.market_cap or 1) * RIVAL_MCAP_SHARE
                or b.token.volume_24h > (og.token.volume_24h or 1)
            )
            b.token_class = TokenClass.RIVAL if is_rival else TokenClass.SPIN


def rank_betas(betas: List[Beta], limit: int = MAX_BETAS) -> List[Beta]:
    """LP-paired first, then 24h change descending."""
    ranked = sorted(betas, key=lambda b: (not b.is_lp_paired, -b.token.price_change_24h))
    return ranked[:limit]


def merge_and_classify(raw: Iterable[RawCandidate], alpha: Token, now: Optional[float] = None) -> List[Beta]:
    now = time.time() if now is None else now
    betas: List[Beta] = []
    for m in merge_candidates(raw, alpha):
        sources: FrozenSet[SignalSource] = frozenset(m.sources)
        betas.append(Beta(
            token=m.token,
            sources=sources,
            signal=resolve_signal(sources),
            wave_phase=wave_phase(m.token, now),
            mcap_ratio=mcap_ratio(alpha.market_cap, m.token.market_cap),
            ai_score=m.ai_score,
            ai_reason=m.ai_reason,
            visual_score=m.visual_score,
            visual_reason=m.visual_reason,
        ))
    classify_token_classes(betas)
    return rank_betas(betas)
