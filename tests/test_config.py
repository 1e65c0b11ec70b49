import pytest

from menu_lens.config import is_placeholder, load_settings, with_overrides
from menu_lens.errors import ConfigurationError


def test_defaults_without_env(tmp_path):
    settings = load_settings(str(tmp_path), environ={})

    r, g, e = settings.recognition, settings.generation, settings.enrichment
    assert r.default_provider == "tesseract"
    assert r.fallback_providers == ("google-vision", "ocr-space", "tesseract")
    assert (r.timeout_s, r.retry_attempts) == (30.0, 2)
    assert g.default_provider == "openai"
    assert g.fallback_providers == ("openai", "google", "groq", "anthropic")
    assert (g.max_tokens, g.temperature) == (8000, 0.1)
    assert g.openai_model == "gpt-4o"
    assert (e.group_size, e.pacing_s) == (3, 0.2)


def test_dotenv_is_found_upwards_and_environment_wins(tmp_path):
    (tmp_path / ".env").write_text(
        "OPENAI_API_KEY=sk-from-file\n"
        "GROQ_API_KEY='gsk-file'\n"
        "OCR_TIMEOUT=12\n"
        "LLM_FALLBACK_PROVIDERS=groq, openai\n",
        encoding="utf-8",
    )
    nested = tmp_path / "src" / "pkg"
    nested.mkdir(parents=True)

    settings = load_settings(str(nested), environ={"OPENAI_API_KEY": "sk-from-env"})

    assert settings.generation.openai_api_key == "sk-from-env"
    assert settings.generation.groq_api_key == "gsk-file"
    assert settings.recognition.timeout_s == 12.0
    assert settings.generation.fallback_providers == ("groq", "openai")


def test_placeholder_keys_count_as_unset(tmp_path):
    env = {"GOOGLE_VISION_API_KEY": "YOUR_GOOGLE_VISION_API_KEY_HERE", "PEXELS_API_KEY": "  "}
    settings = load_settings(str(tmp_path), environ=env)
    assert settings.recognition.google_vision_api_key is None
    assert settings.enrichment.pexels_api_key is None
    assert is_placeholder("YOUR_API_KEY_HERE")
    assert not is_placeholder("sk-live")


def test_bad_numbers_are_configuration_errors(tmp_path):
    with pytest.raises(ConfigurationError, match="LLM_TIMEOUT"):
        load_settings(str(tmp_path), environ={"LLM_TIMEOUT": "soon"})
    with pytest.raises(ConfigurationError):
        load_settings(str(tmp_path), environ={"OCR_TIMEOUT": "-3"})


def test_summary_never_contains_secrets(tmp_path):
    settings = load_settings(str(tmp_path), environ={"ANTHROPIC_API_KEY": "sk-ant-secret"})
    summary = settings.summary()
    assert summary["llm"]["anthropic_key"] is True
    assert "sk-ant-secret" not in repr(summary)


def test_with_overrides_ignores_none(tmp_path):
    r = load_settings(str(tmp_path), environ={}).recognition
    assert with_overrides(r, timeout_s=None) is r
    changed = with_overrides(r, timeout_s=5, fallback_providers=["ocr-space"])
    assert (changed.timeout_s, changed.fallback_providers) == (5, ("ocr-space",))
