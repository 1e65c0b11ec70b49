from __future__ import annotations

import asyncio
import io
import time
from typing import List, Optional

import fitz  # PyMuPDF
import pytesseract
from PIL import Image, UnidentifiedImageError

from ...domain.constants import (
    OCR_TESSERACT,
    STAGE_COMPLETE,
    STAGE_POSTPROCESSING,
    STAGE_PREPROCESSING,
    STAGE_PROCESSING,
    SUPPORTED_IMAGE_FORMATS,
)
from ...domain.models import ImagePayload, ProgressCallback, ProviderDescriptor, RecognitionResult
from ...logging import get_logger
from ..base import RecognitionProvider, _elapsed_ms

LOG = get_logger("ocr-tesseract")

PDF_RENDER_DPI = 200


def _open_image(payload: ImagePayload) -> Image.Image:
    """Decode the payload; PDFs are rasterized from their first page."""
    if payload.format == "pdf":
        with fitz.open(stream=payload.data, filetype="pdf") as doc:
            if doc.page_count == 0:
                raise ValueError("PDF has no pages")
            pix = doc.load_page(0).get_pixmap(dpi=PDF_RENDER_DPI)
            return Image.open(io.BytesIO(pix.tobytes("png")))
    return Image.open(io.BytesIO(payload.data))


def _text_from_data(data: dict) -> str:
    """Rebuild line-broken text from ``image_to_data`` word boxes."""
    lines: List[str] = []
    current = None
    words: List[str] = []
    keys = zip(
        data.get("page_num", []),
        data.get("block_num", []),
        data.get("par_num", []),
        data.get("line_num", []),
        data.get("text", []),
    )
    for page, block, par, line, word in keys:
        word = (word or "").strip()
        if not word:
            continue
        key = (page, block, par, line)
        if key != current and words:
            lines.append(" ".join(words))
            words = []
        current = key
        words.append(word)
    if words:
        lines.append(" ".join(words))
    return "\n".join(lines)


def _mean_confidence(data: dict) -> float:
    values: List[float] = []
    for raw in data.get("conf", []):
        try:
            c = float(raw)
        except (TypeError, ValueError):
            continue
        if c >= 0:
            values.append(c)
    return round(sum(values) / len(values), 2) if values else 0.0


class TesseractProvider(RecognitionProvider):
    """Local Tesseract engine via pytesseract; works without network access."""

    descriptor = ProviderDescriptor(
        id=OCR_TESSERACT,
        name="Tesseract OCR",
        requires_api_key=False,
        supported_formats=SUPPORTED_IMAGE_FORMATS + ("pdf",),
        max_file_size=10 * 1024 * 1024,
        average_processing_ms=8000,
        accuracy="medium",
        offline=True,
    )

    def __init__(self, *, cmd: Optional[str] = None, lang: str = "eng", timeout_s: float = 30.0) -> None:
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd
        # Raises TesseractNotFoundError when the binary is missing
        self.version = str(pytesseract.get_tesseract_version())
        self.lang = lang
        self.timeout_s = timeout_s
        LOG.debug("Tesseract %s ready (lang=%s)", self.version, lang)

    def _read(self, image: Image.Image) -> dict:
        return pytesseract.image_to_data(
            image, lang=self.lang, output_type=pytesseract.Output.DICT, timeout=self.timeout_s
        )

    async def recognize(self, payload: ImagePayload, on_progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        self.check_payload(payload)
        t0 = time.perf_counter()
        self._emit(on_progress, STAGE_PREPROCESSING, 10, "Preprocessing image...")
        try:
            image = await asyncio.to_thread(_open_image, payload)
        except (UnidentifiedImageError, ValueError, RuntimeError) as exc:
            raise self._fail(f"Could not decode image: {exc}") from exc

        # The decoded image is scoped to this call and closed on every path
        with image:
            self._emit(on_progress, STAGE_PROCESSING, 20, "Initializing Tesseract engine...")
            try:
                self._emit(on_progress, STAGE_PROCESSING, 25, "Recognizing text...")
                data = await asyncio.to_thread(self._read, image)
                self._emit(on_progress, STAGE_PROCESSING, 60, "Assembling text...")
                text = _text_from_data(data)
                confidence = _mean_confidence(data)
                self._emit(on_progress, STAGE_PROCESSING, 80, "Text recognized")
            except pytesseract.TesseractError as exc:
                raise self._fail(f"Tesseract failed: {exc.message}") from exc
            except RuntimeError as exc:
                # pytesseract reports its own timeout as a bare RuntimeError
                raise self._fail(f"Tesseract failed: {exc}") from exc

        self._emit(on_progress, STAGE_POSTPROCESSING, 90, "Processing results...")
        text = text.strip()
        if not text:
            raise self._fail("No text detected in the image")
        self._emit(on_progress, STAGE_COMPLETE, 100, "OCR complete")
        return RecognitionResult(text=text, confidence=confidence, elapsed_ms=_elapsed_ms(t0), provider=self.id)
