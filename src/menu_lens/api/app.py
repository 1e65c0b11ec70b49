from __future__ import annotations

from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .. import __version__
from ..config import Settings, load_settings
from ..domain.models import ImagePayload
from ..errors import CancellationError, ConfigurationError, ExhaustionError, MenuLensError, ParseError
from ..logging import get_logger
from ..orchestrator import MenuFlow
from ..orchestrator.flow import check_meat_filters
from ..providers.registry import ProviderRegistry

LOG = get_logger("api")

MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def _error(status_code: int, detail: str, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"detail": detail}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(body, status_code=status_code)


def _error_for(exc: MenuLensError) -> JSONResponse:
    if isinstance(exc, ConfigurationError):
        return _error(503, str(exc))
    if isinstance(exc, ExhaustionError):
        return _error(502, str(exc), provider=exc.last_provider)
    if isinstance(exc, ParseError):
        return _error(502, f"Failed to parse model response: {exc}")
    if isinstance(exc, CancellationError):
        return _error(409, str(exc))
    return _error(500, str(exc))


def _meat_filters(request: Request) -> List[str]:
    out: List[str] = []
    for raw in request.query_params.getlist("meat"):
        out.extend(p.strip() for p in raw.split(",") if p.strip())
    return out


def _unknown_provider(family: str, registry: ProviderRegistry, provider_id: Optional[str]) -> Optional[str]:
    if provider_id and not registry.known(provider_id):
        return f"Unknown {family} provider: {provider_id}"
    return None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def create_app(
    settings: Optional[Settings] = None,
    *,
    flow: Optional[MenuFlow] = None,
    allow_origins: Optional[List[str]] = None,
    root_dir: Optional[str] = None,
) -> Starlette:
    """Create a Starlette app exposing menu processing as a JSON API."""

    if flow is None:
        flow = MenuFlow(settings or load_settings(root_dir))

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__})

    async def providers(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "ocr": flow.recognition.available_providers(),
                "llm": flow.generation.available_providers(),
                "images": {
                    "id": flow.enrichment.provider.id,
                    "configured": flow.enrichment.provider.is_configured(),
                },
            }
        )

    async def process_menu(request: Request) -> JSONResponse:
        body = await request.body()
        if not body:
            return _error(400, "Request body must contain the menu image")
        if len(body) > MAX_UPLOAD_BYTES:
            return _error(413, f"Upload exceeds {MAX_UPLOAD_BYTES} bytes")
        payload = ImagePayload.from_bytes(body, filename=request.headers.get("x-filename"))
        qp = request.query_params
        try:
            meat_filters = check_meat_filters(_meat_filters(request))
        except ConfigurationError as exc:
            return _error(400, str(exc))
        ocr_provider = (qp.get("ocr_provider") or "").strip().lower() or None
        llm_provider = (qp.get("llm_provider") or "").strip().lower() or None
        unknown = _unknown_provider("OCR", flow.recognition.registry, ocr_provider) or _unknown_provider(
            "LLM", flow.generation.registry, llm_provider
        )
        if unknown:
            return _error(400, unknown)
        LOG.info("POST /api/menu: %s (%d bytes, %s)", payload.filename or "upload", payload.byte_size, payload.mime_type)
        try:
            menu = await flow.process_menu(
                payload,
                qp.get("target_language") or "English",
                meat_filters=meat_filters,
                ocr_provider=ocr_provider,
                llm_provider=llm_provider,
                parse_only=_flag(qp.get("parse_only")),
            )
        except MenuLensError as exc:
            LOG.warning("Menu processing failed: %s", exc)
            return _error_for(exc)
        return JSONResponse(menu.as_dict())

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/providers", providers, methods=["GET"]),
        Route("/api/menu", process_menu, methods=["POST"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


__all__ = ["create_app"]
