from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..domain.models import ProviderDescriptor
from ..errors import ConfigurationError, ProviderUnavailable
from ..logging import get_logger
from .base import Provider

LOG = get_logger("registry")

ProviderFactory = Callable[[], Provider]


@dataclass
class _Entry:
    descriptor: ProviderDescriptor
    factory: ProviderFactory
    configured: bool


class ProviderRegistry:
    """Lazily constructs and caches one provider handle per id.

    A handle is built on first ``get`` and reused afterwards. A construction
    failure is logged once and remembered, so later ``get`` calls raise
    ProviderUnavailable without trying again.
    """

    def __init__(self, family: str) -> None:
        self.family = family
        self._entries: Dict[str, _Entry] = {}
        self._instances: Dict[str, Provider] = {}
        self._unusable: Dict[str, str] = {}

    def register(self, descriptor: ProviderDescriptor, factory: ProviderFactory, *, configured: bool = True) -> None:
        if descriptor.id in self._entries:
            raise ConfigurationError(f"{self.family} provider '{descriptor.id}' registered twice")
        self._entries[descriptor.id] = _Entry(descriptor, factory, configured)

    def known(self, provider_id: str) -> bool:
        return provider_id in self._entries

    def descriptor(self, provider_id: str) -> ProviderDescriptor:
        try:
            return self._entries[provider_id].descriptor
        except KeyError:
            raise ConfigurationError(f"Unknown {self.family} provider: {provider_id}") from None

    def configured(self, provider_id: str) -> bool:
        """Whether the provider has everything it needs (keys, endpoints)."""
        entry = self._entries.get(provider_id)
        return bool(entry and entry.configured)

    def usable(self, provider_id: str) -> bool:
        return self.configured(provider_id) and provider_id not in self._unusable

    def usable_ids(self) -> List[str]:
        return [pid for pid in self._entries if self.usable(pid)]

    def all_known(self) -> List[ProviderDescriptor]:
        return [e.descriptor for e in self._entries.values()]

    def unusable_reason(self, provider_id: str) -> Optional[str]:
        return self._unusable.get(provider_id)

    def get(self, provider_id: str) -> Provider:
        cached = self._instances.get(provider_id)
        if cached is not None:
            return cached
        if provider_id in self._unusable:
            raise ProviderUnavailable(provider_id, self._unusable[provider_id])
        entry = self._entries.get(provider_id)
        if entry is None:
            raise ConfigurationError(f"Unknown {self.family} provider: {provider_id}")
        try:
            instance = entry.factory()
        except Exception as exc:
            reason = f"{entry.descriptor.name} is unavailable: {exc}"
            self._unusable[provider_id] = reason
            LOG.warning("Marking %s provider '%s' unusable: %s", self.family, provider_id, exc)
            raise ProviderUnavailable(provider_id, reason) from exc
        self._instances[provider_id] = instance
        LOG.debug("Constructed %s provider '%s'", self.family, provider_id)
        return instance

    async def aclose(self) -> None:
        for provider in list(self._instances.values()):
            await provider.aclose()
        self._instances.clear()
