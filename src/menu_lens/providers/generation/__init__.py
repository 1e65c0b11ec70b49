"""Generation (LLM) providers and their registry wiring."""

from __future__ import annotations

from typing import Optional

import httpx

from ...config import GenerationSettings
from ..registry import ProviderRegistry
from .anthropic import AnthropicProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai_compat import GROQ_DESCRIPTOR, OPENAI_DESCRIPTOR, OpenAICompatibleProvider


def build_generation_registry(
    settings: GenerationSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """Register every generation provider; construction happens on first use."""
    common = {
        "max_tokens": settings.max_tokens,
        "temperature": settings.temperature,
        "timeout_s": settings.timeout_s,
        "transport": transport,
    }
    registry = ProviderRegistry("llm")
    registry.register(
        OPENAI_DESCRIPTOR,
        lambda: OpenAICompatibleProvider(
            OPENAI_DESCRIPTOR,
            api_key=settings.openai_api_key or "",
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            **common,
        ),
        configured=bool(settings.openai_api_key),
    )
    registry.register(
        GeminiProvider.descriptor,
        lambda: GeminiProvider(
            api_key=settings.google_api_key or "",
            endpoint=settings.google_endpoint,
            model=settings.google_model,
            **common,
        ),
        configured=bool(settings.google_api_key),
    )
    registry.register(
        GROQ_DESCRIPTOR,
        lambda: OpenAICompatibleProvider(
            GROQ_DESCRIPTOR,
            api_key=settings.groq_api_key or "",
            base_url=settings.groq_base_url,
            model=settings.groq_model,
            **common,
        ),
        configured=bool(settings.groq_api_key),
    )
    registry.register(
        AnthropicProvider.descriptor,
        lambda: AnthropicProvider(
            api_key=settings.anthropic_api_key or "",
            endpoint=settings.anthropic_endpoint,
            model=settings.anthropic_model,
            **common,
        ),
        configured=bool(settings.anthropic_api_key),
    )
    registry.register(
        OllamaProvider.descriptor,
        lambda: OllamaProvider(
            base_url=settings.ollama_url or "",
            model=settings.ollama_model or "",
            **common,
        ),
        configured=bool(settings.ollama_url and settings.ollama_model),
    )
    return registry


__all__ = [
    "AnthropicProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "build_generation_registry",
]
