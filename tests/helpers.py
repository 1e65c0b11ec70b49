from __future__ import annotations

import asyncio
import io
import json
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from PIL import Image

from menu_lens.domain.constants import STAGE_PROCESSING
from menu_lens.domain.models import (
    ImagePayload,
    ProgressEvent,
    ProviderDescriptor,
    RecognitionResult,
)
from menu_lens.errors import ProviderFailure
from menu_lens.providers.base import GenerationProvider, RecognitionProvider
from menu_lens.providers.registry import ProviderRegistry


def png_payload(name: str = "menu.png", size=(32, 16)) -> ImagePayload:
    buf = io.BytesIO()
    Image.new("RGB", size, "white").save(buf, format="PNG")
    return ImagePayload.from_bytes(buf.getvalue(), filename=name)


def descriptor(pid: str, name: Optional[str] = None, **kwargs: Any) -> ProviderDescriptor:
    defaults = dict(
        requires_api_key=False,
        supported_formats=("jpeg", "png"),
        average_processing_ms=1000,
    )
    defaults.update(kwargs)
    return ProviderDescriptor(id=pid, name=name or pid.title(), **defaults)


class FakeRecognizer(RecognitionProvider):
    def __init__(
        self,
        desc: ProviderDescriptor,
        *,
        text: str = "SOUP 5.00",
        fail: Optional[str] = None,
        retryable: bool = True,
        delay: float = 0.0,
        steps: Sequence[int] = (30, 60),
        on_call: Any = None,
    ) -> None:
        self.descriptor = desc
        self.text = text
        self.fail = fail
        self.retryable = retryable
        self.delay = delay
        self.steps = steps
        self.on_call = on_call
        self.calls = 0
        self.spans: List[Tuple[float, float]] = []
        self.aborted = False

    def abort(self) -> None:
        self.aborted = True

    async def recognize(self, payload, on_progress=None):
        self.calls += 1
        started = time.perf_counter()
        try:
            if self.on_call is not None:
                self.on_call()
            for p in self.steps:
                self._emit(on_progress, STAGE_PROCESSING, p, "working")
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise ProviderFailure(self.id, self.fail, retryable=self.retryable)
            return RecognitionResult(text=self.text, confidence=90.0, elapsed_ms=1, provider=self.id)
        finally:
            self.spans.append((started, time.perf_counter()))


class FakeGenerator(GenerationProvider):
    def __init__(self, desc: ProviderDescriptor, *, content: Optional[str] = None, fail: Optional[str] = None, delay: float = 0.0) -> None:
        super().__init__(model=f"{desc.id}-model", max_tokens=100, temperature=0.1, timeout_s=5)
        self.descriptor = desc
        self.content = content
        self.fail = fail
        self.delay = delay
        self.calls = 0
        self.prompts: List[str] = []

    async def _complete(self, prompt):
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise self._fail(self.fail)
        return self.content, None


def registry_of(family: str, providers: Sequence[Any], configured: Optional[Dict[str, bool]] = None) -> ProviderRegistry:
    registry = ProviderRegistry(family)
    for provider in providers:
        registry.register(
            provider.descriptor,
            (lambda p=provider: p),
            configured=(configured or {}).get(provider.id, True),
        )
    return registry


class Recorder:
    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def messages(self) -> List[str]:
        return [e.message for e in self.events]

    def progress(self) -> List[int]:
        return [e.progress for e in self.events]


class FakeImages:
    id = "pexels"

    def __init__(self, configured: bool = True, fail_on: Sequence[str] = ()) -> None:
        self.configured = configured
        self.fail_on = set(fail_on)
        self.queries: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def search(self, query: str) -> Optional[str]:
        self.queries.append(query)
        if query in self.fail_on:
            raise RuntimeError("boom")
        return f"https://img.example/{query.replace(' ', '_')}.jpg"


MENU_JSON = {
    "originalLanguage": "fr",
    "sections": [
        {
            "name": "Plats Principaux",
            "items": [
                {
                    "name": "Beef Stew",
                    "originalName": "Boeuf Bourguignon",
                    "price": "24",
                    "currency": "€",
                    "confidence": 92,
                    "meatTypes": ["beef"],
                    "dietaryInfo": {"glutenFree": True},
                },
                {
                    "name": "Vegetable Tart",
                    "dietaryInfo": {"vegetarian": True},
                },
            ],
        }
    ],
}


def menu_reply(data: Optional[Dict[str, Any]] = None) -> str:
    return "```json\n" + json.dumps(data or MENU_JSON) + "\n```"
