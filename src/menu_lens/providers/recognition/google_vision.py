from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from ...domain.constants import (
    OCR_GOOGLE_VISION,
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

LOG = get_logger("ocr-google-vision")


class GoogleVisionProvider(RecognitionProvider):
    """Google Cloud Vision TEXT_DETECTION over the REST API."""

    descriptor = ProviderDescriptor(
        id=OCR_GOOGLE_VISION,
        name="Google Cloud Vision",
        requires_api_key=True,
        supported_formats=SUPPORTED_IMAGE_FORMATS,
        max_file_size=20 * 1024 * 1024,
        average_processing_ms=3000,
        accuracy="high",
        offline=False,
    )

    def __init__(
        self,
        *,
        api_key: str,
        endpoint: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Google Vision API key not configured")
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout_s = timeout_s
        self.transport = transport

    @staticmethod
    def _body(payload: ImagePayload) -> Dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"content": payload.b64()},
                    "features": [{"type": "TEXT_DETECTION"}],
                }
            ]
        }

    async def recognize(self, payload: ImagePayload, on_progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        self.check_payload(payload)
        t0 = time.perf_counter()
        self._emit(on_progress, STAGE_PREPROCESSING, 10, "Preparing image for Google Vision...")
        body = self._body(payload)
        self._emit(on_progress, STAGE_UPLOADING, 30, "Uploading to Google Vision...")
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                self._emit(on_progress, STAGE_PROCESSING, 50, "Processing with Google Vision...")
                resp = await client.post(self.endpoint, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            raise self._fail(f"Google Vision request failed: {exc}") from exc

        if resp.status_code >= 400:
            LOG.warning("Google Vision HTTP %s: %s", resp.status_code, short_body(resp.text))
            raise self._fail(f"Google Vision API error: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise self._fail("Google Vision returned invalid JSON") from exc

        self._emit(on_progress, STAGE_POSTPROCESSING, 90, "Processing results...")
        responses = data.get("responses") or [{}]
        first = responses[0] or {}
        if first.get("error"):
            message = (first["error"] or {}).get("message") or "unknown error"
            raise self._fail(f"Google Vision API error: {message}")
        annotation = first.get("fullTextAnnotation") or {}
        text = (annotation.get("text") or "").strip()
        if not text:
            raise self._fail("No text detected in the image")
        pages = annotation.get("pages") or []
        page_conf = pages[0].get("confidence") if pages else None
        confidence = round(float(page_conf) * 100, 2) if page_conf is not None else 95.0

        self._emit(on_progress, STAGE_COMPLETE, 100, "OCR complete")
        return RecognitionResult(text=text, confidence=confidence, elapsed_ms=_elapsed_ms(t0), provider=self.id)
