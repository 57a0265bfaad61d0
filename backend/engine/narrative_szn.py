"""Narrative season ("Szn") detection over the live token set.

Pass 1 assigns categories from a priority-ordered keyword table. Pass 2 (AI text)
and pass 3 (logo vision) look at what pass 1 missed, run concurrently, and only
ever add members. A category needs at least two members to become a cluster.
"""
import logging
import math
import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from engine.ai_client import AnthropicClient
from engine.errors import RadarError
from engine.fanout import Ok, settle_all, successful
from engine.image_analysis import LogoAnalyzer
from engine.lore_map import CATEGORY_LABELS, NARRATIVE_CATEGORIES
from engine.models import ClusterSource, Heat, NarrativeCluster, Token

logger = logging.getLogger(__name__)

MIN_TOKENS_FOR_SZN = 2
AI_BATCH_SIZE = 12
SHORT_KEYWORD_LEN = 2

_TAG_PATTERNS: List[Tuple[str, List[re.Pattern]]] = []
_WORD_PATTERNS: List[Tuple[str, List[re.Pattern]]] = []
for _key, _label, _keywords in NARRATIVE_CATEGORIES:
    _TAG_PATTERNS.append((_key, [
        re.compile(rf"\b{re.escape(kw)}\b") if len(kw) <= SHORT_KEYWORD_LEN else re.compile(re.escape(kw))
        for kw in _keywords
    ]))
    # free text: whole words only, plurals allowed ("continue" is not "inu")
    _WORD_PATTERNS.append((_key, [re.compile(rf"\b{re.escape(kw)}(?:s|es)?\b") for kw in _keywords]))


def _first_match(patterns: List[Tuple[str, List[re.Pattern]]], text: str) -> Optional[str]:
    haystack = (text or "").lower()
    if not haystack.strip():
        return None
    for key, compiled in patterns:
        if any(p.search(haystack) for p in compiled):
            return key
    return None


def match_category(text: str) -> Optional[str]:
    """First category (in priority order) with a keyword in a ticker or name.

    Tickers glue words together (DOGWIFHAT, POPCAT), so this matches inside words.
    """
    return _first_match(_TAG_PATTERNS, text)


def match_description(text: str) -> Optional[str]:
    """First category whose keyword appears as a whole word in free text."""
    return _first_match(_WORD_PATTERNS, text)


def detect_category(token: Token) -> Optional[str]:
    """Symbol and name first, then the description as a fallback."""
    key = match_category(f"{token.symbol} {token.name}")
    if key:
        return key
    return match_description(token.description)


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


def heat_for(score: int) -> Heat:
    if score >= 80:
        return Heat.NUCLEAR
    if score >= 60:
        return Heat.HOT
    if score >= 40:
        return Heat.WARM
    return Heat.MILD


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def szn_score(tokens: List[Token]) -> Tuple[int, int]:
    """(szn_score, momentum) for a cluster's members."""
    total_volume = sum(t.volume_24h for t in tokens)
    green = sum(1 for t in tokens if t.price_change_24h > 0)
    momentum = round(green / len(tokens) * 100) if tokens else 0

    # $10K -> 0, $100M -> 100
    volume_score = _clamp((math.log10(total_volume) - 4) / 4 * 100) if total_volume > 0 else 0.0
    leader_gain = max((t.price_change_24h for t in tokens), default=0)
    leader_score = _clamp(leader_gain / 300 * 100)
    depth_score = _clamp(len(tokens) / 10 * 100)

    score = round(0.35 * volume_score + 0.30 * momentum + 0.20 * leader_score + 0.15 * depth_score)
    return int(score), int(momentum)


@dataclass
class Assignment:
    token: Token
    key: str
    label: str
    source: ClusterSource


def build_clusters(assignments: List[Assignment]) -> List[NarrativeCluster]:
    groups: "OrderedDict[str, List[Assignment]]" = OrderedDict()
    for a in assignments:
        groups.setdefault(a.key, []).append(a)

    clusters = []
    for key, members in groups.items():
        if len(members) < MIN_TOKENS_FOR_SZN:
            continue
        tokens = sorted((m.token for m in members), key=lambda t: t.price_change_24h, reverse=True)
        sources = {m.source for m in members}
        if sources == {ClusterSource.KEYWORD}:
            source = ClusterSource.KEYWORD
        elif ClusterSource.KEYWORD not in sources:
            source = ClusterSource.AI
        else:
            source = ClusterSource.MIXED
        score, momentum = szn_score(tokens)
        clusters.append(NarrativeCluster(
            key=key,
            label=members[0].label,
            tokens=tokens,
            total_volume=sum(t.volume_24h for t in tokens),
            avg_change=sum(t.price_change_24h for t in tokens) / len(tokens),
            momentum=momentum,
            szn_score=score,
            heat=heat_for(score),
            source=source,
            leader=tokens[0],
            ai_enriched=sum(1 for m in members if m.source != ClusterSource.KEYWORD),
        ))
    clusters.sort(key=lambda c: c.szn_score, reverse=True)
    return clusters


def build_classify_prompt(tokens: List[Token]) -> str:
    categories = "\n".join(f"- {key}: {label}" for key, label in CATEGORY_LABELS.items())
    lines = []
    for i, t in enumerate(tokens):
        line = f"[{i}] ${t.symbol} ({t.name or 'unknown name'})"
        if t.description:
            line += f": {t.description[:200]}"
        lines.append(line)
    token_list = "\n".join(lines)
    return f"""You are classifying Solana meme tokens into narrative categories ("seasons").

KNOWN CATEGORIES:
{categories}

TOKENS:
{token_list}

For each token, pick the known category it belongs to. If it clearly belongs to a narrative that is not listed, propose a short new category key and a human label and set "novel" to true. If there is no clear narrative, use null for category.

Respond ONLY with a JSON array. No markdown. Example:
[{{"index":0,"category":"cats","label":"Cats","novel":false}},{{"index":1,"category":"robots","label":"Robots","novel":true}},{{"index":2,"category":null,"label":null,"novel":false}}]"""


class NarrativeSznEngine:
    def __init__(self, client: Optional[AnthropicClient] = None, analyzer: Optional[LogoAnalyzer] = None):
        self.client = client
        self.analyzer = analyzer
        self.clusters: List[NarrativeCluster] = []

    # ── Pass 1 ──

    def keyword_pass(self, tokens: List[Token]) -> Tuple[List[Assignment], List[Token]]:
        assigned: List[Assignment] = []
        unmatched: List[Token] = []
        for t in tokens:
            key = detect_category(t)
            if key:
                assigned.append(Assignment(t, key, CATEGORY_LABELS[key], ClusterSource.KEYWORD))
            else:
                unmatched.append(t)
        return assigned, unmatched

    def keyword_clusters(self, tokens: List[Token]) -> List[NarrativeCluster]:
        assigned, _ = self.keyword_pass(tokens)
        self.clusters = build_clusters(assigned)
        return self.clusters

    # ── Pass 2 ──

    def _resolve(self, category: str, label: Optional[str]) -> Tuple[str, str]:
        key = slugify(category)
        if key in CATEGORY_LABELS:
            return key, CATEGORY_LABELS[key]
        # "political-figure" -> political
        for part in key.split("-"):
            if part in CATEGORY_LABELS:
                return part, CATEGORY_LABELS[part]
        known = match_category(category)
        if known:
            return known, CATEGORY_LABELS[known]
        return key, label or category.strip().title()

    async def _classify_batch(self, batch: List[Token]) -> List[Assignment]:
        rows = await self.client.complete_json(build_classify_prompt(batch))
        out = []
        for row in rows:
            index = row.get("index")
            category = row.get("category")
            if not isinstance(index, int) or not 0 <= index < len(batch) or not category:
                continue
            key, label = self._resolve(str(category), row.get("label"))
            if key:
                out.append(Assignment(batch[index], key, label, ClusterSource.AI))
        return out

    async def ai_pass(self, tokens: List[Token]) -> List[Assignment]:
        if not tokens or self.client is None or not self.client.available:
            return []
        tasks = {
            f"szn-ai-batch-{i // AI_BATCH_SIZE}": self._classify_batch(tokens[i:i + AI_BATCH_SIZE])
            for i in range(0, len(tokens), AI_BATCH_SIZE)
        }
        assigned: List[Assignment] = []
        for batch in successful(await settle_all(tasks)):
            assigned.extend(batch)
        return assigned

    # ── Pass 3 ──

    async def vision_pass(self, tokens: List[Token]) -> List[Assignment]:
        with_logos = [t for t in tokens if t.logo_url]
        if not with_logos or self.analyzer is None:
            return []
        try:
            classified = await self.analyzer.classify_logos(with_logos)
        except RadarError as e:
            logger.warning("Szn vision pass failed: %s", e)
            return []
        assigned = []
        for c in classified:
            if not c.category:
                continue
            key, label = self._resolve(c.category, None)
            if key:
                assigned.append(Assignment(c.token, key, label, ClusterSource.AI))
        return assigned

    async def enrich(self, tokens: List[Token]) -> List[NarrativeCluster]:
        """All three passes; later passes only add tokens pass 1 left unassigned."""
        assigned, unmatched = self.keyword_pass(tokens)
        if unmatched:
            results = await settle_all({
                "ai": self.ai_pass(unmatched),
                "vision": self.vision_pass(unmatched),
            })
            taken = {a.token.address for a in assigned}
            for name in ("ai", "vision"):
                result = results[name]
                if not isinstance(result, Ok):
                    continue
                for a in result.value:
                    if a.token.address not in taken:
                        taken.add(a.token.address)
                        assigned.append(a)

        self.clusters = build_clusters(assigned)
        logger.info("Szn: %d clusters from %d tokens", len(self.clusters), len(tokens))
        return self.clusters
