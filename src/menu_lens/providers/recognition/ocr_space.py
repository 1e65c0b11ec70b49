from __future__ import annotations

import time
from typing import Optional

import httpx

from ...domain.constants import (
    OCR_SPACE,
    STAGE_COMPLETE,
    STAGE_POSTPROCESSING,
    STAGE_PREPROCESSING,
    STAGE_PROCESSING,
    STAGE_UPLOADING,
    SUPPORTED_IMAGE_FORMATS,
)
from ...domain.models import ImagePayload, ProgressCallback, ProviderDescriptor, RecognitionResult
from ...logging import get_logger
from ..base import RecognitionProvider, _elapsed_ms, short_body

LOG = get_logger("ocr-space")

# OCR.space does not report a usable confidence
OCR_SPACE_CONFIDENCE = 85.0


class OcrSpaceProvider(RecognitionProvider):
    descriptor = ProviderDescriptor(
        id=OCR_SPACE,
        name="OCR.space",
        requires_api_key=True,
        supported_formats=SUPPORTED_IMAGE_FORMATS,
        max_file_size=5 * 1024 * 1024,
        average_processing_ms=4000,
        accuracy="high",
        offline=False,
    )

    def __init__(
        self,
        *,
        api_key: str,
        endpoint: str,
        language: str = "eng",
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("OCR.space API key not configured")
        self.api_key = api_key
        self.endpoint = endpoint
        self.language = language
        self.timeout_s = timeout_s
        self.transport = transport

    async def recognize(self, payload: ImagePayload, on_progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        self.check_payload(payload)
        t0 = time.perf_counter()
        self._emit(on_progress, STAGE_PREPROCESSING, 10, "Preparing image for OCR.space...")
        files = {"file": (payload.filename or "menu", payload.data, payload.mime_type or "application/octet-stream")}
        form = {
            "language": self.language,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "scale": "true",
        }
        self._emit(on_progress, STAGE_UPLOADING, 30, "Uploading to OCR.space...")
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                self._emit(on_progress, STAGE_PROCESSING, 50, "Processing with OCR.space...")
                resp = await client.post(self.endpoint, headers={"apikey": self.api_key}, data=form, files=files)
        except httpx.HTTPError as exc:
            raise self._fail(f"OCR.space request failed: {exc}") from exc

        if resp.status_code >= 400:
            LOG.warning("OCR.space HTTP %s: %s", resp.status_code, short_body(resp.text))
            raise self._fail(f"OCR.space API error: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise self._fail("OCR.space returned invalid JSON") from exc

        self._emit(on_progress, STAGE_POSTPROCESSING, 90, "Processing results...")
        if data.get("IsErroredOnProcessing"):
            message = data.get("ErrorMessage") or "OCR processing failed"
            if isinstance(message, list):
                message = "; ".join(str(m) for m in message)
            raise self._fail(f"OCR.space error: {message}")
        results = data.get("ParsedResults") or [{}]
        text = ((results[0] or {}).get("ParsedText") or "").strip()
        if not text:
            raise self._fail("No text detected in the image")

        self._emit(on_progress, STAGE_COMPLETE, 100, "OCR complete")
        return RecognitionResult(
            text=text, confidence=OCR_SPACE_CONFIDENCE, elapsed_ms=_elapsed_ms(t0), provider=self.id
        )
