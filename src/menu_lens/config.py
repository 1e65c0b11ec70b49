from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from dotenv import dotenv_values

from .errors import ConfigurationError
from .logging import get_logger

log = get_logger("config")

_PLACEHOLDER_RE = re.compile(r"^YOUR_[A-Z0-9_]*_HERE$", re.IGNORECASE)

DEFAULT_OCR_FALLBACKS: Tuple[str, ...] = ("google-vision", "ocr-space", "tesseract")
DEFAULT_LLM_FALLBACKS: Tuple[str, ...] = ("openai", "google", "groq", "anthropic")


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    Running the CLI from a subdirectory (e.g. ``src/``) still finds the
    repository-level ``.env``.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(start_dir: str) -> Dict[str, str]:
    path = _find_upwards(start_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(start_dir)}")
        return {}
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


def is_placeholder(value: Optional[str]) -> bool:
    """True for empty values and template keys like ``YOUR_OPENAI_API_KEY_HERE``."""
    if value is None:
        return True
    v = value.strip()
    return not v or bool(_PLACEHOLDER_RE.match(v))


class _Source:
    """Environment first, then .env, then the caller's default."""

    def __init__(self, environ: Mapping[str, str], dotenv: Mapping[str, str]) -> None:
        self.environ = environ
        self.dotenv = dotenv

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for source in (self.environ, self.dotenv):
            v = source.get(key)
            if v is not None and v.strip():
                return v.strip()
        return default

    def secret(self, key: str) -> Optional[str]:
        v = self.get(key)
        if is_placeholder(v):
            return None
        return v

    def number(self, key: str, default: float) -> float:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
        if value <= 0:
            raise ConfigurationError(f"{key} must be positive, got {raw!r}")
        return value

    def integer(self, key: str, default: int) -> int:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc

    def id_list(self, key: str, default: Sequence[str]) -> Tuple[str, ...]:
        raw = self.get(key)
        if raw is None:
            return tuple(default)
        return tuple(p.strip().lower() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class RecognitionSettings:
    default_provider: str = "tesseract"
    fallback_providers: Tuple[str, ...] = DEFAULT_OCR_FALLBACKS
    timeout_s: float = 30.0
    retry_attempts: int = 2
    google_vision_api_key: Optional[str] = None
    google_vision_endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    ocr_space_api_key: Optional[str] = None
    ocr_space_endpoint: str = "https://api.ocr.space/parse/image"
    tesseract_cmd: Optional[str] = None
    tesseract_lang: str = "eng"


@dataclass(frozen=True)
class GenerationSettings:
    default_provider: str = "openai"
    fallback_providers: Tuple[str, ...] = DEFAULT_LLM_FALLBACKS
    timeout_s: float = 30.0
    retry_attempts: int = 2
    max_tokens: int = 8000
    temperature: float = 0.1
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_base_url: str = "https://api.openai.com/v1"
    google_api_key: Optional[str] = None
    google_model: str = "gemini-1.5-pro"
    google_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.1-70b-versatile"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_endpoint: str = "https://api.anthropic.com/v1/messages"
    ollama_url: Optional[str] = None
    ollama_model: Optional[str] = None


@dataclass(frozen=True)
class EnrichmentSettings:
    pexels_api_key: Optional[str] = None
    pexels_endpoint: str = "https://api.pexels.com/v1/search"
    group_size: int = 3
    pacing_s: float = 0.2
    timeout_s: float = 10.0


@dataclass(frozen=True)
class Settings:
    recognition: RecognitionSettings = field(default_factory=RecognitionSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)

    def summary(self) -> Dict[str, Any]:
        """Configuration overview that is safe to log (no secrets)."""
        r, g, e = self.recognition, self.generation, self.enrichment
        return {
            "ocr": {
                "default": r.default_provider,
                "fallbacks": list(r.fallback_providers),
                "timeout_s": r.timeout_s,
                "retry_attempts": r.retry_attempts,
                "google_vision_key": bool(r.google_vision_api_key),
                "ocr_space_key": bool(r.ocr_space_api_key),
                "tesseract_lang": r.tesseract_lang,
            },
            "llm": {
                "default": g.default_provider,
                "fallbacks": list(g.fallback_providers),
                "timeout_s": g.timeout_s,
                "retry_attempts": g.retry_attempts,
                "max_tokens": g.max_tokens,
                "temperature": g.temperature,
                "openai_key": bool(g.openai_api_key),
                "google_key": bool(g.google_api_key),
                "groq_key": bool(g.groq_api_key),
                "anthropic_key": bool(g.anthropic_api_key),
                "ollama": bool(g.ollama_url and g.ollama_model),
            },
            "images": {
                "pexels_key": bool(e.pexels_api_key),
                "group_size": e.group_size,
                "pacing_s": e.pacing_s,
            },
        }


def load_recognition(src: _Source) -> RecognitionSettings:
    return RecognitionSettings(
        default_provider=(src.get("OCR_DEFAULT_PROVIDER") or "tesseract").lower(),
        fallback_providers=src.id_list("OCR_FALLBACK_PROVIDERS", DEFAULT_OCR_FALLBACKS),
        timeout_s=src.number("OCR_TIMEOUT", 30.0),
        retry_attempts=src.integer("OCR_RETRY_ATTEMPTS", 2),
        google_vision_api_key=src.secret("GOOGLE_VISION_API_KEY"),
        ocr_space_api_key=src.secret("OCR_SPACE_API_KEY"),
        tesseract_cmd=src.get("TESSERACT_CMD"),
        tesseract_lang=src.get("TESSERACT_LANG", "eng") or "eng",
    )


def load_generation(src: _Source) -> GenerationSettings:
    base = GenerationSettings()
    return GenerationSettings(
        default_provider=(src.get("LLM_DEFAULT_PROVIDER") or "openai").lower(),
        fallback_providers=src.id_list("LLM_FALLBACK_PROVIDERS", DEFAULT_LLM_FALLBACKS),
        timeout_s=src.number("LLM_TIMEOUT", 30.0),
        retry_attempts=src.integer("LLM_RETRY_ATTEMPTS", 2),
        max_tokens=src.integer("LLM_MAX_TOKENS", 8000),
        temperature=src.number("LLM_TEMPERATURE", 0.1),
        openai_api_key=src.secret("OPENAI_API_KEY"),
        openai_model=src.get("OPENAI_MODEL", base.openai_model) or base.openai_model,
        google_api_key=src.secret("GOOGLE_LLM_API_KEY"),
        google_model=src.get("GOOGLE_LLM_MODEL", base.google_model) or base.google_model,
        groq_api_key=src.secret("GROQ_API_KEY"),
        groq_model=src.get("GROQ_MODEL", base.groq_model) or base.groq_model,
        anthropic_api_key=src.secret("ANTHROPIC_API_KEY"),
        anthropic_model=src.get("ANTHROPIC_MODEL", base.anthropic_model) or base.anthropic_model,
        ollama_url=src.get("OLLAMA_URL"),
        ollama_model=src.get("OLLAMA_MODEL"),
    )


def load_enrichment(src: _Source) -> EnrichmentSettings:
    return EnrichmentSettings(pexels_api_key=src.secret("PEXELS_API_KEY"))


def load_settings(start_dir: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment and the nearest ``.env``.

    Process environment wins over ``.env``; placeholder keys count as unset.
    """
    env = os.environ if environ is None else environ
    src = _Source(env, _read_dotenv(start_dir or os.getcwd()))
    settings = Settings(
        recognition=load_recognition(src),
        generation=load_generation(src),
        enrichment=load_enrichment(src),
    )
    log.debug(f"Settings summary: {settings.summary()}")
    return settings


def with_overrides(settings: Any, **overrides: Any) -> Any:
    """Copy a family settings record with non-None overrides applied."""
    clean = {k: v for k, v in overrides.items() if v is not None}
    if "fallback_providers" in clean:
        clean["fallback_providers"] = tuple(clean["fallback_providers"])
    return replace(settings, **clean) if clean else settings
