from __future__ import annotations

import time
from typing import Iterable, List, Optional, Sequence

from ..config import Settings
from ..domain.constants import (
    MEAT_TYPES,
    STAGE_COMPLETE,
    STAGE_ERROR,
    STAGE_GENERATING_IMAGES,
    STAGE_OCR,
    STAGE_PARSING,
)
from ..domain.models import ImagePayload, MenuItem, ProcessedMenu, ProgressCallback, ProgressEvent
from ..errors import ConfigurationError, MenuLensError
from ..logging import get_logger
from ..providers.enrichment import PexelsProvider
from .enrichment import BatchEnrichmentRunner, EnrichmentTask
from .generation import GenerationPipeline
from .recognition import RecognitionPipeline
from .runner import CancellationToken, scaled

LOG = get_logger("menu-flow")

# Slices of the overall 0-100 scale owned by each stage
OCR_SLICE = (10, 40)
LLM_SLICE = (45, 80)
IMAGES_SLICE = (80, 95)


def check_meat_filters(filters: Iterable[str]) -> List[str]:
    cleaned = [f.strip().lower() for f in filters if f and f.strip()]
    unknown = [f for f in cleaned if f not in MEAT_TYPES]
    if unknown:
        raise ConfigurationError(f"Unknown meat filter(s): {', '.join(unknown)}; expected one of {', '.join(MEAT_TYPES)}")
    return cleaned


def item_matches(item: MenuItem, filters: Sequence[str]) -> bool:
    """True when the item satisfies every filter."""
    for f in filters:
        if f == "vegetarian":
            ok = item.dietary_info.vegetarian
        elif f == "vegan":
            ok = item.dietary_info.vegan
        else:
            ok = f in item.meat_types
        if not ok:
            return False
    return True


def select_items(menu: ProcessedMenu, filters: Sequence[str]) -> List[MenuItem]:
    items = list(menu.iter_items())
    if not filters:
        return items
    return [i for i in items if item_matches(i, filters)]


class MenuFlow:
    """End-to-end: image -> text -> structured menu -> images.

    Progress is reported on one 0-100 scale: OCR 10-40, analysis 45-80,
    image lookup 80-95, then 100. Any failure emits an ``error`` event at 0
    before the exception propagates.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        recognition: Optional[RecognitionPipeline] = None,
        generation: Optional[GenerationPipeline] = None,
        enrichment: Optional[BatchEnrichmentRunner] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.recognition = recognition or RecognitionPipeline(self.settings.recognition)
        self.generation = generation or GenerationPipeline(self.settings.generation)
        if enrichment is None:
            e = self.settings.enrichment
            provider = PexelsProvider(api_key=e.pexels_api_key, endpoint=e.pexels_endpoint, timeout_s=e.timeout_s)
            enrichment = BatchEnrichmentRunner(provider, group_size=e.group_size, pacing_s=e.pacing_s)
        self.enrichment = enrichment

    @staticmethod
    def _emit(on_progress: Optional[ProgressCallback], stage: str, progress: int, message: str) -> None:
        if on_progress is not None:
            on_progress(ProgressEvent(stage=stage, progress=progress, message=message))

    async def process_menu(
        self,
        image: ImagePayload,
        target_language: str = "English",
        *,
        meat_filters: Iterable[str] = (),
        ocr_provider: Optional[str] = None,
        llm_provider: Optional[str] = None,
        parse_only: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> ProcessedMenu:
        t0 = time.perf_counter()
        token = token or CancellationToken()
        try:
            filters = check_meat_filters(meat_filters)

            self._emit(on_progress, STAGE_OCR, OCR_SLICE[0], "Extracting text from image...")
            ocr = await self.recognition.recognize(
                image,
                preferred=ocr_provider,
                on_progress=scaled(on_progress, *OCR_SLICE, stage=STAGE_OCR),
                token=token,
            )

            token.raise_if_cancelled()
            self._emit(on_progress, STAGE_PARSING, LLM_SLICE[0], "Analyzing menu with AI...")
            menu = await self.generation.process_menu(
                ocr.text,
                target_language,
                preferred=llm_provider,
                on_progress=scaled(on_progress, *LLM_SLICE, stage=STAGE_PARSING),
                token=token,
            )
            menu.ocr_provider = ocr.provider
            menu.ocr_confidence = ocr.confidence

            if not parse_only:
                token.raise_if_cancelled()
                self._emit(on_progress, STAGE_GENERATING_IMAGES, IMAGES_SLICE[0], "Finding dish images...")
                await self._attach_images(menu, filters, on_progress, token)

            menu.processing_time_ms = int((time.perf_counter() - t0) * 1000)
            self._emit(on_progress, STAGE_COMPLETE, 100, "Menu processing complete!")
            LOG.info(
                "Processed menu %s: %d item(s) via %s + %s in %d ms",
                menu.id,
                menu.total_items,
                menu.ocr_provider,
                menu.llm_provider,
                menu.processing_time_ms,
            )
            return menu
        except MenuLensError as exc:
            self._emit(on_progress, STAGE_ERROR, 0, str(exc))
            raise

    async def _attach_images(
        self,
        menu: ProcessedMenu,
        filters: Sequence[str],
        on_progress: Optional[ProgressCallback],
        token: CancellationToken,
    ) -> None:
        selected = select_items(menu, filters)
        if filters:
            LOG.info("Meat filters %s select %d/%d item(s) for images", filters, len(selected), menu.total_items)
        tasks = [EnrichmentTask(key=item.id, query=f"{item.name} food") for item in selected]
        results = await self.enrichment.run(
            tasks,
            on_progress=scaled(on_progress, *IMAGES_SLICE, stage=STAGE_GENERATING_IMAGES),
            token=token,
        )
        by_id = {r.key: r.image_url for r in results if r.image_url}
        for item in menu.iter_items():
            if item.id in by_id:
                item.image_url = by_id[item.id]
