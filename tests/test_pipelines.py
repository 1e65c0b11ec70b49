import asyncio

import pytest

from menu_lens.config import GenerationSettings, RecognitionSettings, Settings
from menu_lens.domain.constants import STAGE_COMPLETE, STAGE_ERROR
from menu_lens.errors import ConfigurationError, ExhaustionError, ParseError
from menu_lens.orchestrator import (
    BatchEnrichmentRunner,
    GenerationPipeline,
    MenuFlow,
    RecognitionPipeline,
)
from menu_lens.providers.generation import build_generation_registry
from menu_lens.providers.recognition import TesseractProvider

from helpers import FakeGenerator, FakeImages, FakeRecognizer, Recorder, descriptor, menu_reply, png_payload, registry_of


async def _no_sleep(_):
    return None


def _ocr(*providers, configured=None, **settings):
    registry = registry_of("ocr", providers, configured)
    return RecognitionPipeline(RecognitionSettings(**settings), registry)


def _llm(*providers, configured=None, **settings):
    registry = registry_of("llm", providers, configured)
    return GenerationPipeline(GenerationSettings(**settings), registry)


def test_tesseract_is_always_the_last_resort():
    tess = FakeRecognizer(TesseractProvider.descriptor)
    cloud = FakeRecognizer(descriptor("google-vision"))
    space = FakeRecognizer(descriptor("ocr-space"))
    pipeline = _ocr(
        tess,
        cloud,
        space,
        configured={"google-vision": True, "ocr-space": False},
        default_provider="google-vision",
        fallback_providers=("google-vision",),
    )

    assert pipeline.plan() == ["google-vision", "tesseract"]
    assert pipeline.plan(preferred="ocr-space") == ["google-vision", "tesseract"]


def test_unknown_preferred_provider_is_rejected():
    pipeline = _ocr(FakeRecognizer(TesseractProvider.descriptor))
    with pytest.raises(ConfigurationError):
        pipeline.plan(preferred="abbyy")


def test_recognition_falls_back_to_tesseract():
    tess = FakeRecognizer(TesseractProvider.descriptor, text="from tesseract")
    cloud = FakeRecognizer(descriptor("google-vision"), fail="HTTP 403")
    pipeline = _ocr(tess, cloud, default_provider="google-vision", fallback_providers=())

    result = asyncio.run(pipeline.recognize(png_payload()))

    assert result.provider == "tesseract"
    assert result.text == "from tesseract"


def test_generation_without_configured_providers_fails_before_any_call():
    pipeline = GenerationPipeline(GenerationSettings())

    with pytest.raises(ConfigurationError):
        asyncio.run(pipeline.generate("hello"))


def test_real_generation_registry_knows_every_provider_but_needs_keys():
    registry = build_generation_registry(GenerationSettings(groq_api_key="gsk-test"))
    assert [d.id for d in registry.all_known()] == ["openai", "google", "groq", "anthropic", "ollama"]
    assert registry.usable_ids() == ["groq"]


def test_parse_error_does_not_trigger_fallback():
    first = FakeGenerator(descriptor("openai"), content="sorry, no JSON today")
    second = FakeGenerator(descriptor("groq"), content=menu_reply())
    pipeline = _llm(first, second, default_provider="openai", fallback_providers=("openai", "groq"))

    with pytest.raises(ParseError):
        asyncio.run(pipeline.process_menu("SOUP 5", "English"))
    assert (first.calls, second.calls) == (1, 0)


def test_generation_fallback_and_prompt_contents():
    first = FakeGenerator(descriptor("openai"), fail="HTTP 500")
    second = FakeGenerator(descriptor("groq"), content=menu_reply())
    pipeline = _llm(first, second, default_provider="openai", fallback_providers=("groq",))

    menu = asyncio.run(pipeline.process_menu("SOUPE 5", "Spanish"))

    assert menu.llm_provider == "groq"
    assert menu.total_items == 2
    assert "SOUPE 5" in second.prompts[0]
    assert "TARGET LANGUAGE: Spanish" in second.prompts[0]


def test_generation_exhaustion_surfaces_last_provider():
    first = FakeGenerator(descriptor("openai"), content="")
    pipeline = _llm(first, default_provider="openai", fallback_providers=())

    with pytest.raises(ExhaustionError) as info:
        asyncio.run(pipeline.generate("prompt"))
    assert info.value.last_provider == "openai"
    assert "No content received" in str(info.value)


def _flow(ocr, llm, images=None):
    images = images or FakeImages()
    return MenuFlow(
        Settings(),
        recognition=ocr,
        generation=llm,
        enrichment=BatchEnrichmentRunner(images, sleep=_no_sleep),
    ), images


def test_end_to_end_with_one_ocr_fallback():
    cloud = FakeRecognizer(descriptor("google-vision", "Google Cloud Vision"), fail="quota exceeded")
    tess = FakeRecognizer(TesseractProvider.descriptor, text="BOEUF BOURGUIGNON 24")
    llm = FakeGenerator(descriptor("openai"), content=menu_reply())
    flow, images = _flow(
        _ocr(tess, cloud, default_provider="google-vision", fallback_providers=("google-vision", "tesseract")),
        _llm(llm, default_provider="openai", fallback_providers=()),
    )
    rec = Recorder()

    menu = asyncio.run(flow.process_menu(png_payload(), "English", on_progress=rec))

    assert menu.ocr_provider == "tesseract"
    assert menu.ocr_confidence == 90.0
    assert menu.llm_provider == "openai"
    assert all(item.image_url for item in menu.iter_items())
    assert images.queries == ["Beef Stew food", "Vegetable Tart food"]
    assert sum("trying next provider" in m for m in rec.messages()) == 1

    stages = [e.stage for e in rec.events]
    assert stages[0] == "ocr" and rec.events[0].progress == 10
    assert "parsing" in stages and "generating-images" in stages
    assert rec.events[-1].stage == STAGE_COMPLETE and rec.events[-1].progress == 100
    for e in rec.events:
        if e.stage == "ocr":
            assert 10 <= e.progress <= 40
        elif e.stage == "parsing":
            assert 45 <= e.progress <= 80
        elif e.stage == "generating-images":
            assert 80 <= e.progress <= 95
    assert menu.as_dict()["ocrProvider"] == "tesseract"


def test_end_to_end_with_one_llm_fallback():
    tess = FakeRecognizer(TesseractProvider.descriptor, text="BOEUF BOURGUIGNON 24")
    first = FakeGenerator(descriptor("openai", "OpenAI GPT"), fail="HTTP 429")
    second = FakeGenerator(descriptor("groq", "Groq"), content=menu_reply())
    flow, _ = _flow(
        _ocr(tess),
        _llm(first, second, default_provider="openai", fallback_providers=("openai", "groq")),
    )
    rec = Recorder()

    menu = asyncio.run(flow.process_menu(png_payload(), "English", on_progress=rec))

    assert menu.ocr_provider == "tesseract"
    assert menu.llm_provider == "groq"
    switching = [e for e in rec.events if "trying next provider" in e.message]
    assert [e.message for e in switching] == ["OpenAI GPT failed, trying next provider (Groq)..."]
    assert switching[0].stage == "parsing"
    assert switching[0].provider == "groq"
    assert rec.events[-1].stage == STAGE_COMPLETE


def test_meat_filters_limit_image_lookups_but_keep_items():
    tess = FakeRecognizer(TesseractProvider.descriptor)
    llm = FakeGenerator(descriptor("openai"), content=menu_reply())
    flow, images = _flow(_ocr(tess), _llm(llm, fallback_providers=()))

    menu = asyncio.run(flow.process_menu(png_payload(), meat_filters=["vegetarian"]))

    assert images.queries == ["Vegetable Tart food"]
    assert menu.total_items == 2
    stew, tart = menu.sections[0].items
    assert stew.image_url == ""
    assert tart.image_url


def test_parse_only_skips_images():
    tess = FakeRecognizer(TesseractProvider.descriptor)
    llm = FakeGenerator(descriptor("openai"), content=menu_reply())
    flow, images = _flow(_ocr(tess), _llm(llm, fallback_providers=()))

    asyncio.run(flow.process_menu(png_payload(), parse_only=True))
    assert images.queries == []


def test_flow_failure_emits_error_event_at_zero():
    tess = FakeRecognizer(TesseractProvider.descriptor, fail="No text detected in the image")
    flow, _ = _flow(_ocr(tess), _llm(FakeGenerator(descriptor("openai"), content="{}")))
    rec = Recorder()

    with pytest.raises(ExhaustionError):
        asyncio.run(flow.process_menu(png_payload(), on_progress=rec))
    assert (rec.events[-1].stage, rec.events[-1].progress) == (STAGE_ERROR, 0)


def test_unknown_meat_filter_is_a_configuration_error():
    flow, _ = _flow(_ocr(FakeRecognizer(TesseractProvider.descriptor)), _llm())
    with pytest.raises(ConfigurationError):
        asyncio.run(flow.process_menu(png_payload(), meat_filters=["unicorn"]))
