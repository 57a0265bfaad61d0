"""Thin async wrapper around the Anthropic Messages API returning parsed JSON."""
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import anthropic

from engine.errors import AIUnavailableError, MalformedResponseError, SourceUnavailableError

logger = logging.getLogger(__name__)

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TIMEOUT = 30.0

_FENCE = re.compile(r"```(?:json)?")


def parse_json_array(text: str) -> List[Dict]:
    """Strip markdown fences and parse; anything but a JSON array is malformed."""
    clean = _FENCE.sub("", text or "").strip()
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"AI response is not JSON: {clean[:100]!r}") from e
    if not isinstance(data, list):
        raise MalformedResponseError(f"Unexpected response shape: {clean[:100]!r}")
    return [item for item in data if isinstance(item, dict)]


class AnthropicClient:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 max_tokens: int = DEFAULT_MAX_TOKENS, client: Any = None):
        self.api_key = ANTHROPIC_API_KEY if api_key is None else api_key
        self.model = model or ANTHROPIC_MODEL
        self.max_tokens = max_tokens
        self._client = client
        if self._client is None and self.api_key:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=DEFAULT_TIMEOUT)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def _create(self, content) -> str:
        if not self.available:
            raise AIUnavailableError("ANTHROPIC_API_KEY not set")
        try:
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.APIError as e:
            raise SourceUnavailableError(f"Anthropic request failed: {e}") from e
        return "".join(getattr(block, "text", "") or "" for block in message.content)

    async def complete_json(self, prompt: str) -> List[Dict]:
        return parse_json_array(await self._create(prompt))

    async def complete_vision(self, content_blocks: List[Dict]) -> List[Dict]:
        """content_blocks mixes {"type": "image", ...} and {"type": "text", ...} blocks."""
        return parse_json_array(await self._create(content_blocks))
