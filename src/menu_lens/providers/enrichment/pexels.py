from __future__ import annotations

from typing import Optional

import httpx

from ...domain.models import ProviderDescriptor
from ...logging import get_logger
from ..base import Provider, short_body

LOG = get_logger("images-pexels")


class PexelsProvider(Provider):
    """Stock photo lookup; a miss of any kind is ``None``, never an error."""

    descriptor = ProviderDescriptor(
        id="pexels",
        name="Pexels",
        requires_api_key=True,
        average_processing_ms=800,
        accuracy="medium",
    )

    def __init__(
        self,
        *,
        api_key: Optional[str],
        endpoint: str,
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout_s = timeout_s
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> Optional[str]:
        if not self.api_key:
            return None
        params = {"query": query, "per_page": "1", "orientation": "landscape"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                resp = await client.get(self.endpoint, params=params, headers={"Authorization": self.api_key})
        except httpx.HTTPError as exc:
            raise self._fail(f"Pexels request failed: {exc}") from exc
        if resp.status_code == 429:
            LOG.info("Pexels rate limit reached while searching %r", query)
            return None
        if resp.status_code >= 400:
            LOG.warning("Pexels HTTP %s for %r: %s", resp.status_code, query, short_body(resp.text))
            return None
        photos = (resp.json() or {}).get("photos") or []
        if not photos:
            LOG.debug("No Pexels photo for %r", query)
            return None
        return ((photos[0] or {}).get("src") or {}).get("medium")
