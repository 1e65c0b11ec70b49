from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..domain.constants import STAGE_GENERATING_IMAGES
from ..domain.models import ProgressCallback, ProgressEvent
from ..logging import get_logger
from ..providers.enrichment import PexelsProvider
from .runner import CancellationToken

LOG = get_logger("image-enrichment")


@dataclass(frozen=True)
class EnrichmentTask:
    key: str
    query: str


@dataclass(frozen=True)
class EnrichmentResult:
    key: str
    image_url: Optional[str] = None


class BatchEnrichmentRunner:
    """Looks up one image per task in small concurrent groups.

    Groups of ``group_size`` run concurrently, with ``pacing_s`` of sleep
    before every group after the first. A failed lookup is recorded as "no
    image"; results always come back in task order.
    """

    def __init__(
        self,
        provider: PexelsProvider,
        *,
        group_size: int = 3,
        pacing_s: float = 0.2,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if group_size < 1:
            raise ValueError("group_size must be >= 1")
        self.provider = provider
        self.group_size = group_size
        self.pacing_s = pacing_s
        self.sleep = sleep

    def _emit(self, on_progress: Optional[ProgressCallback], done: int, total: int, message: str) -> None:
        if on_progress is None:
            return
        progress = 100 if total == 0 else int(round(100 * done / total))
        on_progress(ProgressEvent(stage=STAGE_GENERATING_IMAGES, progress=progress, message=message, provider=self.provider.id))

    async def run(
        self,
        tasks: Sequence[EnrichmentTask],
        *,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[EnrichmentResult]:
        total = len(tasks)
        if not self.provider.is_configured():
            LOG.info("Image lookup not configured; skipping %d item(s)", total)
            self._emit(on_progress, total, total, "Image lookup not configured; skipping images")
            return [EnrichmentResult(t.key) for t in tasks]
        if total == 0:
            self._emit(on_progress, 0, 0, "No items need images")
            return []

        results: List[EnrichmentResult] = []
        for start in range(0, total, self.group_size):
            if start:
                await self.sleep(self.pacing_s)
            if token is not None:
                token.raise_if_cancelled()
            group = tasks[start : start + self.group_size]
            found = await asyncio.gather(*(self.provider.search(t.query) for t in group), return_exceptions=True)
            for task, outcome in zip(group, found):
                if isinstance(outcome, BaseException):
                    LOG.debug("Image lookup failed for %r: %s", task.query, outcome)
                    outcome = None
                results.append(EnrichmentResult(task.key, outcome))
            done = len(results)
            self._emit(on_progress, done, total, f"Generating images... ({done}/{total})")

        hits = sum(1 for r in results if r.image_url)
        LOG.info("Image lookup finished: %d/%d item(s) with images", hits, total)
        return results
