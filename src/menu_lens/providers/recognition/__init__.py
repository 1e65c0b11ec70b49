"""Text recognition providers and their registry wiring."""

from __future__ import annotations

from typing import Optional

import httpx

from ...config import RecognitionSettings
from ..registry import ProviderRegistry
from .google_vision import GoogleVisionProvider
from .ocr_space import OcrSpaceProvider
from .tesseract import TesseractProvider


def build_recognition_registry(
    settings: RecognitionSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """Register every recognition provider; nothing is constructed yet."""
    registry = ProviderRegistry("ocr")
    registry.register(
        TesseractProvider.descriptor,
        lambda: TesseractProvider(
            cmd=settings.tesseract_cmd, lang=settings.tesseract_lang, timeout_s=settings.timeout_s
        ),
    )
    registry.register(
        GoogleVisionProvider.descriptor,
        lambda: GoogleVisionProvider(
            api_key=settings.google_vision_api_key or "",
            endpoint=settings.google_vision_endpoint,
            timeout_s=settings.timeout_s,
            transport=transport,
        ),
        configured=bool(settings.google_vision_api_key),
    )
    registry.register(
        OcrSpaceProvider.descriptor,
        lambda: OcrSpaceProvider(
            api_key=settings.ocr_space_api_key or "",
            endpoint=settings.ocr_space_endpoint,
            timeout_s=settings.timeout_s,
            transport=transport,
        ),
        configured=bool(settings.ocr_space_api_key),
    )
    return registry


__all__ = [
    "GoogleVisionProvider",
    "OcrSpaceProvider",
    "TesseractProvider",
    "build_recognition_registry",
]
