from __future__ import annotations

from typing import Dict, Optional, Tuple

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, OpenAIError

from ...domain.constants import LLM_GROQ, LLM_OPENAI
from ...domain.models import ProviderDescriptor
from ...logging import get_logger
from ..base import SYSTEM_MESSAGE, GenerationProvider, short_body

LOG = get_logger("llm-openai")


class OpenAICompatibleProvider(GenerationProvider):
    """Chat Completions through the OpenAI SDK.

    Groq exposes the same API, so it is this class with a different base URL.
    SDK retries are disabled; the fallback chain decides what happens next.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        *,
        api_key: str,
        base_url: str,
        model: str,
        max_tokens: int,
        temperature: float,
        timeout_s: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError(f"{descriptor.name} API key not configured")
        super().__init__(model=model, max_tokens=max_tokens, temperature=temperature, timeout_s=timeout_s)
        self.descriptor = descriptor
        self.api_key = api_key
        self.base_url = base_url
        self.transport = transport

    def _client(self) -> AsyncOpenAI:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_s, connect=10.0),
            transport=self.transport,
        )
        return AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            http_client=http_client,
            max_retries=0,
        )

    async def _complete(self, prompt: str) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
        name = self.descriptor.name
        try:
            async with self._client() as client:
                resp = await client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_MESSAGE},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
        except APIStatusError as exc:
            LOG.warning("%s HTTP %s: %s", name, exc.status_code, short_body(str(exc)))
            raise self._fail(f"{name} API error: HTTP {exc.status_code}") from exc
        except (APITimeoutError, APIConnectionError) as exc:
            raise self._fail(f"{name} request failed: {exc}") from exc
        except OpenAIError as exc:
            raise self._fail(f"{name} error: {exc}") from exc

        choices = resp.choices or []
        content = choices[0].message.content if choices else None
        usage = None
        if resp.usage is not None:
            usage = {
                "prompt_tokens": resp.usage.prompt_tokens,
                "completion_tokens": resp.usage.completion_tokens,
                "total_tokens": resp.usage.total_tokens,
            }
        return content, usage


OPENAI_DESCRIPTOR = ProviderDescriptor(
    id=LLM_OPENAI,
    name="OpenAI",
    requires_api_key=True,
    average_processing_ms=15000,
    accuracy="high",
)

GROQ_DESCRIPTOR = ProviderDescriptor(
    id=LLM_GROQ,
    name="Groq",
    requires_api_key=True,
    average_processing_ms=5000,
    accuracy="medium",
)
