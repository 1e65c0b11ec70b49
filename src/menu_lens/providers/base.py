from __future__ import annotations

import time
from typing import Any, Dict, Optional, Tuple

from ..domain.models import (
    GenerationResult,
    ImagePayload,
    ProgressCallback,
    ProgressEvent,
    ProviderDescriptor,
    RecognitionResult,
)
from ..domain.constants import (
    STAGE_COMPLETE,
    STAGE_INITIALIZING,
    STAGE_PARSING,
    STAGE_PROCESSING,
)
from ..errors import ProviderFailure

SYSTEM_MESSAGE = "You are an expert menu analyst and translator. Always return valid JSON responses."

_FORMAT_ALIASES = {"jpg": "jpeg", "tif": "tiff", "x-ms-bmp": "bmp"}


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


class Provider:
    """Common surface of every provider handle held by a registry."""

    descriptor: ProviderDescriptor

    @property
    def id(self) -> str:
        return self.descriptor.id

    def is_configured(self) -> bool:
        return True

    def abort(self) -> None:
        """Best-effort hook called when the runner gives up on an attempt."""

    async def aclose(self) -> None:
        """Release long-lived clients; called when a registry is closed."""

    def _emit(
        self,
        on_progress: Optional[ProgressCallback],
        stage: str,
        progress: int,
        message: str,
        estimated_remaining_ms: Optional[int] = None,
    ) -> None:
        if on_progress is None:
            return
        on_progress(
            ProgressEvent(
                stage=stage,
                progress=progress,
                message=message,
                provider=self.id,
                estimated_remaining_ms=estimated_remaining_ms,
            )
        )

    def _fail(self, message: str) -> ProviderFailure:
        return ProviderFailure(self.id, message)


class RecognitionProvider(Provider):
    """Turns an image payload into text."""

    def check_payload(self, payload: ImagePayload) -> None:
        fmt = payload.format
        fmt = _FORMAT_ALIASES.get(fmt or "", fmt)
        if fmt not in self.descriptor.supported_formats:
            raise self._fail(f"Unsupported file format: {payload.mime_type or 'unknown'}")
        limit = self.descriptor.max_file_size
        if limit is not None and payload.byte_size > limit:
            raise self._fail(
                f"File too large: {payload.byte_size} bytes (limit {limit} bytes)"
            )

    async def recognize(self, payload: ImagePayload, on_progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        raise NotImplementedError


class GenerationProvider(Provider):
    """Sends a prompt to a chat model and returns the raw text content.

    Subclasses implement ``_complete``; this class owns the shared progress
    sequence (initializing 10, processing 50, parsing 80, complete 100).
    """

    def __init__(self, *, model: str, max_tokens: int, temperature: float, timeout_s: float) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_s = timeout_s

    async def _complete(self, prompt: str) -> Tuple[Optional[str], Optional[Dict[str, int]]]:
        raise NotImplementedError

    async def generate(self, prompt: str, on_progress: Optional[ProgressCallback] = None) -> GenerationResult:
        name = self.descriptor.name
        t0 = time.perf_counter()
        self._emit(on_progress, STAGE_INITIALIZING, 10, f"Initializing {name}...")
        self._emit(on_progress, STAGE_PROCESSING, 50, f"Processing with {name}...")
        content, usage = await self._complete(prompt)
        self._emit(on_progress, STAGE_PARSING, 80, "Parsing response...")
        if not content or not content.strip():
            raise self._fail(f"No content received from {name}")
        self._emit(on_progress, STAGE_COMPLETE, 100, "Processing complete")
        return GenerationResult(
            content=content,
            elapsed_ms=_elapsed_ms(t0),
            provider=self.id,
            model=self.model,
            usage=usage,
        )


def short_body(body: Any, limit: int = 300) -> str:
    text = body if isinstance(body, str) else repr(body)
    return text[:limit]
