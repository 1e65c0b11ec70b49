"""Provider orchestration: planning, attempts, normalization and enrichment."""

from .enrichment import BatchEnrichmentRunner, EnrichmentResult, EnrichmentTask
from .flow import MenuFlow
from .generation import GenerationPipeline
from .normalizer import parse_menu_response
from .planner import plan_attempts
from .prompts import build_menu_prompt
from .recognition import RecognitionPipeline
from .runner import AttemptRunner, CancellationToken, rescale

__all__ = [
    "AttemptRunner",
    "BatchEnrichmentRunner",
    "CancellationToken",
    "EnrichmentResult",
    "EnrichmentTask",
    "GenerationPipeline",
    "MenuFlow",
    "RecognitionPipeline",
    "build_menu_prompt",
    "parse_menu_response",
    "plan_attempts",
    "rescale",
]
