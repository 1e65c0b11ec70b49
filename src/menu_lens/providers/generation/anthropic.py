from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ...domain.constants import LLM_ANTHROPIC
from ...domain.models import ProviderDescriptor
from ..base import SYSTEM_MESSAGE
from .http import HttpGenerationProvider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(HttpGenerationProvider):
    descriptor = ProviderDescriptor(
        id=LLM_ANTHROPIC,
        name="Anthropic Claude",
        requires_api_key=True,
        average_processing_ms=15000,
        accuracy="high",
    )

    def __init__(self, *, api_key: str, endpoint: str, **kwargs: Any) -> None:
        if not api_key:
            raise ValueError("Anthropic API key not configured")
        super().__init__(**kwargs)
        self.api_key = api_key
        self.endpoint = endpoint

    async def _complete(self, prompt: str) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": SYSTEM_MESSAGE,
            "messages": [{"role": "user", "content": prompt}],
        }
        data = await self._post_json(self.endpoint, body, headers=headers)
        blocks = data.get("content") or [{}]
        content = (blocks[0] or {}).get("text")
        meta = data.get("usage") or {}
        usage = None
        if meta:
            prompt_tokens = int(meta.get("input_tokens") or 0)
            completion_tokens = int(meta.get("output_tokens") or 0)
            usage = {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            }
        return content, usage
