from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..config import RecognitionSettings, with_overrides
from ..domain.constants import OCR_TESSERACT, STAGE_PREPROCESSING
from ..domain.models import ImagePayload, ProgressCallback, RecognitionResult
from ..errors import ConfigurationError
from ..logging import get_logger
from ..providers.recognition import build_recognition_registry
from ..providers.registry import ProviderRegistry
from .planner import plan_attempts
from .runner import AttemptRunner, CancellationToken

LOG = get_logger("ocr-pipeline")


def available_providers(registry: ProviderRegistry) -> List[Dict[str, Any]]:
    out = []
    for descriptor in registry.all_known():
        entry = descriptor.as_dict()
        entry["configured"] = registry.configured(descriptor.id)
        entry["usable"] = registry.usable(descriptor.id)
        out.append(entry)
    return out


def check_preferred(registry: ProviderRegistry, preferred: Optional[str]) -> Optional[str]:
    """Reject unknown ids; an unconfigured but known id is only a hint."""
    if not preferred:
        return None
    preferred = preferred.strip().lower()
    if not registry.known(preferred):
        raise ConfigurationError(f"Unknown {registry.family} provider: {preferred}")
    if not registry.usable(preferred):
        LOG.info("Preferred %s provider '%s' is not usable; ignoring", registry.family, preferred)
    return preferred


class RecognitionPipeline:
    """Image in, text out, with the offline engine as the last resort."""

    def __init__(
        self,
        settings: Optional[RecognitionSettings] = None,
        registry: Optional[ProviderRegistry] = None,
    ) -> None:
        self.settings = settings or RecognitionSettings()
        self.registry = registry or build_recognition_registry(self.settings)

    def plan(self, preferred: Optional[str] = None, fallbacks: Optional[Sequence[str]] = None) -> List[str]:
        return plan_attempts(
            check_preferred(self.registry, preferred),
            self.settings.default_provider,
            self.settings.fallback_providers if fallbacks is None else fallbacks,
            self.registry.usable_ids(),
            guaranteed=OCR_TESSERACT,
        )

    def available_providers(self) -> List[Dict[str, Any]]:
        return available_providers(self.registry)

    async def recognize(
        self,
        payload: ImagePayload,
        *,
        preferred: Optional[str] = None,
        timeout_s: Optional[float] = None,
        fallbacks: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> RecognitionResult:
        settings = with_overrides(self.settings, timeout_s=timeout_s, fallback_providers=fallbacks)
        plan = self.plan(preferred, settings.fallback_providers)
        LOG.info("OCR plan for %s (%s bytes): %s", payload.filename or "upload", payload.byte_size, plan)
        runner = AttemptRunner(
            self.registry,
            label="OCR",
            start_stage=STAGE_PREPROCESSING,
            timeout_s=settings.timeout_s,
        )
        result = await runner.run(
            plan,
            lambda provider, report: provider.recognize(payload, report),
            on_progress=on_progress,
            token=token,
        )
        LOG.info(
            "OCR succeeded with %s: %d chars, confidence %.1f, %d ms",
            result.provider,
            len(result.text),
            result.confidence,
            result.elapsed_ms,
        )
        return result
