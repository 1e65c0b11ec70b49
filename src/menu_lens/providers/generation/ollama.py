from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ...domain.constants import LLM_OLLAMA
from ...domain.models import ProviderDescriptor
from ..base import SYSTEM_MESSAGE
from .http import HttpGenerationProvider


class OllamaProvider(HttpGenerationProvider):
    """Local Ollama server via /api/chat (non-streaming)."""

    descriptor = ProviderDescriptor(
        id=LLM_OLLAMA,
        name="Ollama",
        requires_api_key=False,
        average_processing_ms=30000,
        accuracy="medium",
        offline=True,
    )

    def __init__(self, *, base_url: str, **kwargs: Any) -> None:
        if not base_url:
            raise ValueError("OLLAMA_URL not configured")
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    async def _complete(self, prompt: str) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
        body = {
            "model": self.model,
            "stream": False,
            "format": "json",
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        data = await self._post_json(f"{self.base_url}/api/chat", body)
        content = (data.get("message") or {}).get("content")
        usage = None
        if "prompt_eval_count" in data or "eval_count" in data:
            prompt_tokens = int(data.get("prompt_eval_count") or 0)
            completion_tokens = int(data.get("eval_count") or 0)
            usage = {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            }
        return content, usage
