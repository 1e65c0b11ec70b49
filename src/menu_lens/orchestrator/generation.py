from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..config import GenerationSettings, with_overrides
from ..domain.constants import STAGE_INITIALIZING
from ..domain.models import GenerationResult, ProcessedMenu, ProgressCallback
from ..errors import ConfigurationError, ParseError
from ..logging import get_logger
from ..providers.generation import build_generation_registry
from ..providers.registry import ProviderRegistry
from .normalizer import parse_menu_response
from .planner import plan_attempts
from .prompts import build_menu_prompt
from .recognition import available_providers, check_preferred
from .runner import AttemptRunner, CancellationToken

LOG = get_logger("llm-pipeline")


class GenerationPipeline:
    """Prompt in, model text out; ``process_menu`` adds prompt and normalization."""

    def __init__(
        self,
        settings: Optional[GenerationSettings] = None,
        registry: Optional[ProviderRegistry] = None,
    ) -> None:
        self.settings = settings or GenerationSettings()
        self.registry = registry or build_generation_registry(self.settings)

    def plan(self, preferred: Optional[str] = None, fallbacks: Optional[Sequence[str]] = None) -> List[str]:
        return plan_attempts(
            check_preferred(self.registry, preferred),
            self.settings.default_provider,
            self.settings.fallback_providers if fallbacks is None else fallbacks,
            self.registry.usable_ids(),
        )

    def available_providers(self) -> List[Dict[str, Any]]:
        return available_providers(self.registry)

    async def generate(
        self,
        prompt: str,
        *,
        preferred: Optional[str] = None,
        timeout_s: Optional[float] = None,
        fallbacks: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        settings = with_overrides(self.settings, timeout_s=timeout_s, fallback_providers=fallbacks)
        plan = self.plan(preferred, settings.fallback_providers)
        if not plan:
            raise ConfigurationError(
                "No LLM providers are configured. Set OPENAI_API_KEY, GOOGLE_LLM_API_KEY, "
                "GROQ_API_KEY, ANTHROPIC_API_KEY or OLLAMA_URL/OLLAMA_MODEL."
            )
        LOG.info("LLM plan: %s", plan)
        runner = AttemptRunner(
            self.registry,
            label="LLM",
            start_stage=STAGE_INITIALIZING,
            timeout_s=settings.timeout_s,
        )
        result = await runner.run(
            plan,
            lambda provider, report: provider.generate(prompt, report),
            on_progress=on_progress,
            token=token,
        )
        LOG.info("LLM succeeded with %s (%s) in %d ms", result.provider, result.model, result.elapsed_ms)
        return result

    async def process_menu(
        self,
        menu_text: str,
        target_language: str,
        *,
        preferred: Optional[str] = None,
        timeout_s: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> ProcessedMenu:
        """Ask a model to structure ``menu_text`` and normalize its reply.

        A reply that cannot be parsed fails the request; it does not move on
        to the next provider.
        """
        result = await self.generate(
            build_menu_prompt(menu_text, target_language),
            preferred=preferred,
            timeout_s=timeout_s,
            on_progress=on_progress,
            token=token,
        )
        try:
            menu = parse_menu_response(result.content, target_language)
        except ParseError as exc:
            LOG.error("Could not parse %s reply: %s (first 300 chars: %r)", result.provider, exc, result.content[:300])
            raise
        menu.llm_provider = result.provider
        return menu
