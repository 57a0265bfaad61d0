"""Vision analysis of token logos.

Meme identity often lives in the image, not the ticker: an abstract $NIRE with a cat
logo belongs to the cats narrative. Two modes:
  compare: is a candidate logo visually derived from the alpha logo?
  classify: what narrative does a logo depict? (used by the Szn engine)

Vision tokens cost several times text tokens, so compare only runs on candidates
whose text signals were weak.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from engine.ai_client import AnthropicClient
from engine.cache import TTLCache
from engine.errors import RadarError
from engine.models import RawCandidate, SignalSource, Token

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 10 * 60
VISION_BATCH_SIZE = 6
VISUAL_SCORE_THRESHOLD = 0.5
MIN_TEXT_CONFIDENCE = 0.5

COMPARE_INSTRUCTIONS = """For each candidate, score visual relatedness to the ALPHA (0.0 to 1.0):

- 0.9-1.0: Directly derived: same character/art, recolored, wearing something, or obvious copy
- 0.7-0.89: Same visual universe: same meme format, same cultural reference, clearly same narrative
- 0.5-0.69: Loosely related: similar style or theme but not obviously the same
- 0.0-0.49: Unrelated visually

Also note what you see in each candidate image.

Respond ONLY with a JSON array. No markdown. Example:
[
  {"index":0,"visualScore":0.92,"visualReason":"Same frog character, recolored green"},
  {"index":1,"visualScore":0.3,"visualReason":"Different animal entirely, unrelated"}
]"""

CLASSIFY_INSTRUCTIONS = """For each token image above, identify:
1. What narrative/theme does this image represent? (e.g. cats, dogs, frogs, aliens, political figure, anime, space, gaming, food, memes, etc.)
2. A brief description of what you see (1 sentence max)

Respond ONLY with a JSON array. No markdown. Example:
[
  {"index":0,"category":"cats","description":"Orange cat with glowing eyes"},
  {"index":1,"category":"aliens","description":"Green alien holding a sign"},
  {"index":2,"category":null,"description":"Abstract geometric logo, unclear theme"}
]"""


@dataclass
class LogoClassification:
    token: Token
    category: Optional[str]
    description: str = ""


def should_run_vision(token: Token, text_confidence: float = 0.0) -> bool:
    if not token.logo_url:
        return False
    return text_confidence < MIN_TEXT_CONFIDENCE


def _image_block(image: Tuple[str, str]) -> Dict:
    data, media_type = image
    return {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}}


def _text_block(text: str) -> Dict:
    return {"type": "text", "text": text}


def _as_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class LogoAnalyzer:
    def __init__(self, client: AnthropicClient, gateway, cache: Optional[TTLCache] = None):
        self.client = client
        self.gateway = gateway
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS)

    async def _with_images(self, tokens: List[Token]) -> List[Tuple[Token, Tuple[str, str]]]:
        images = await asyncio.gather(*(self.gateway.fetch_image(t.logo_url) for t in tokens))
        return [(t, img) for t, img in zip(tokens, images) if img]

    async def compare_logos(self, alpha: Token, candidates: List[Token]) -> List[RawCandidate]:
        """Candidates whose logo scores >= 0.5 against the alpha logo."""
        if not self.client.available or not alpha.logo_url:
            return []
        with_logos = [c for c in candidates if c.logo_url]
        if not with_logos:
            return []

        key = ("compare", alpha.address, tuple(sorted(c.address for c in with_logos)))
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Vision cache hit for $%s comparison", alpha.symbol)
            return cached

        alpha_image = await self.gateway.fetch_image(alpha.logo_url)
        if not alpha_image:
            return []

        results: List[RawCandidate] = []
        for i in range(0, len(with_logos), VISION_BATCH_SIZE):
            batch = await self._with_images(with_logos[i:i + VISION_BATCH_SIZE])
            if not batch:
                continue
            content = [
                _text_block(f"ALPHA TOKEN: ${alpha.symbol}. This is the token we're analyzing for beta plays."),
                _image_block(alpha_image),
                _text_block("CANDIDATE TOKENS: are any of these visually derived from the alpha above?"),
            ]
            for idx, (c, img) in enumerate(batch):
                content.append(_text_block(f"[{idx}] ${c.symbol} ({c.name or ''})"))
                content.append(_image_block(img))
            content.append(_text_block(COMPARE_INSTRUCTIONS))

            try:
                rows = await self.client.complete_vision(content)
            except RadarError as e:
                logger.warning("Vision compare batch failed: %s", e)
                continue

            for row in rows:
                index = row.get("index")
                score = _as_float(row.get("visualScore"))
                if not isinstance(index, int) or not 0 <= index < len(batch) or score is None:
                    continue
                if score >= VISUAL_SCORE_THRESHOLD:
                    results.append(RawCandidate(
                        token=batch[index][0],
                        source=SignalSource.VISUAL_MATCH,
                        visual_score=score,
                        visual_reason=str(row.get("visualReason") or ""),
                    ))

        self.cache.set(key, results)
        logger.info("Vision found %d visual matches for $%s", len(results), alpha.symbol)
        return results

    async def classify_logos(self, tokens: List[Token]) -> List[LogoClassification]:
        """What each logo depicts, as a narrative category (or None)."""
        with_logos = [t for t in tokens if t.logo_url]
        if not with_logos or not self.client.available:
            return []

        results: List[LogoClassification] = []
        for i in range(0, len(with_logos), VISION_BATCH_SIZE):
            uncached: List[Token] = []
            for t in with_logos[i:i + VISION_BATCH_SIZE]:
                hit = self.cache.get(("classify", t.address, t.logo_url))
                if hit is not None:
                    results.append(LogoClassification(token=t, category=hit[0], description=hit[1]))
                else:
                    uncached.append(t)
            if not uncached:
                continue

            batch = await self._with_images(uncached)
            if not batch:
                continue
            content: List[Dict] = []
            for idx, (t, img) in enumerate(batch):
                content.append(_text_block(f"[{idx}] Token: ${t.symbol} ({t.name or 'unknown name'})"))
                content.append(_image_block(img))
            content.append(_text_block(CLASSIFY_INSTRUCTIONS))

            try:
                rows = await self.client.complete_vision(content)
            except RadarError as e:
                logger.warning("Vision classify batch failed: %s", e)
                continue

            for row in rows:
                index = row.get("index")
                if not isinstance(index, int) or not 0 <= index < len(batch):
                    continue
                token = batch[index][0]
                category = row.get("category")
                category = str(category).strip().lower() if category else None
                description = str(row.get("description") or "")
                self.cache.set(("classify", token.address, token.logo_url), (category, description))
                results.append(LogoClassification(token=token, category=category, description=description))
        return results
