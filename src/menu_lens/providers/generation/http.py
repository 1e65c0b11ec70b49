from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ...logging import get_logger
from ..base import GenerationProvider, short_body

LOG = get_logger("llm-http")


class HttpGenerationProvider(GenerationProvider):
    """Generation provider speaking plain JSON over httpx."""

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.transport = transport

    async def _post_json(
        self,
        url: str,
        body: Dict[str, Any],
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        name = self.descriptor.name
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                resp = await client.post(url, json=body, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise self._fail(f"{name} request failed: {exc}") from exc
        if resp.status_code >= 400:
            LOG.warning("%s HTTP %s: %s", name, resp.status_code, short_body(resp.text))
            raise self._fail(f"{name} API error: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise self._fail(f"{name} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise self._fail(f"{name} returned an unexpected response")
        return data
