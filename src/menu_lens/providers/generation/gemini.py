from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ...domain.constants import LLM_GOOGLE
from ...domain.models import ProviderDescriptor
from ..base import SYSTEM_MESSAGE
from .http import HttpGenerationProvider


class GeminiProvider(HttpGenerationProvider):
    descriptor = ProviderDescriptor(
        id=LLM_GOOGLE,
        name="Google Gemini",
        requires_api_key=True,
        average_processing_ms=12000,
        accuracy="high",
    )

    def __init__(self, *, api_key: str, endpoint: str, **kwargs: Any) -> None:
        if not api_key:
            raise ValueError("Google API key not configured")
        super().__init__(**kwargs)
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")

    async def _complete(self, prompt: str) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
        url = f"{self.endpoint}/models/{self.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": f"{SYSTEM_MESSAGE}\n\n{prompt}"}]}],
            "generationConfig": {"maxOutputTokens": self.max_tokens, "temperature": self.temperature},
        }
        data = await self._post_json(url, body, params={"key": self.api_key})
        candidates = data.get("candidates") or [{}]
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or [{}]
        content = (parts[0] or {}).get("text")
        meta = data.get("usageMetadata") or {}
        usage = None
        if meta:
            usage = {
                "prompt_tokens": int(meta.get("promptTokenCount") or 0),
                "completion_tokens": int(meta.get("candidatesTokenCount") or 0),
                "total_tokens": int(meta.get("totalTokenCount") or 0),
            }
        return content, usage
