"""Provider contract, registry and concrete provider implementations."""

from .base import GenerationProvider, Provider, RecognitionProvider
from .registry import ProviderRegistry

__all__ = ["GenerationProvider", "Provider", "ProviderRegistry", "RecognitionProvider"]
