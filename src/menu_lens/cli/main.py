from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, Sequence

from ..config import Settings, load_settings
from ..domain.constants import MEAT_TYPES
from ..domain.models import ImagePayload, ProgressEvent
from ..errors import ConfigurationError, MenuLensError
from ..logging import get_logger
from ..orchestrator import MenuFlow, RecognitionPipeline
from ..paths import expand_abs

LOG = get_logger("cli-main")


def _log_progress(event: ProgressEvent) -> None:
    provider = f" [{event.provider}]" if event.provider else ""
    LOG.info(f"{event.progress:3d}% {event.stage}{provider}: {event.message}")


def _load_image(path: str) -> ImagePayload:
    full = expand_abs(path)
    if not os.path.isfile(full):
        raise FileNotFoundError(full)
    return ImagePayload.from_path(full)


def _write_json(data: Dict[str, Any], output: str | None) -> None:
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if output:
        out = expand_abs(output)
        os.makedirs(os.path.dirname(out) or ".", exist_ok=True)
        with open(out, "w", encoding="utf-8") as f:
            f.write(text + "\n")
        LOG.info(f"Wrote: {out}")
    else:
        print(text)


def _run(coro: Any) -> int:
    """Run a coroutine, mapping the package's errors to exit codes."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        LOG.warning("Interrupted by user; request cancelled.")
        return 130
    except ConfigurationError as exc:
        LOG.error(f"Configuration error: {exc}")
        return 2
    except MenuLensError as exc:
        LOG.error(str(exc))
        return 1
    return 0


def _handle_process(ns: argparse.Namespace, settings: Settings) -> int:
    try:
        image = _load_image(ns.image)
    except FileNotFoundError as exc:
        LOG.error(f"Image not found: {exc}")
        return 2

    async def _go() -> None:
        flow = MenuFlow(settings)
        menu = await flow.process_menu(
            image,
            ns.target_language,
            meat_filters=ns.meat or (),
            ocr_provider=ns.ocr_provider,
            llm_provider=ns.llm_provider,
            parse_only=ns.parse_only,
            on_progress=_log_progress,
        )
        _write_json(menu.as_dict(), ns.output)

    return _run(_go())


def _handle_ocr(ns: argparse.Namespace, settings: Settings) -> int:
    try:
        image = _load_image(ns.image)
    except FileNotFoundError as exc:
        LOG.error(f"Image not found: {exc}")
        return 2

    async def _go() -> None:
        pipeline = RecognitionPipeline(settings.recognition)
        result = await pipeline.recognize(image, preferred=ns.provider, on_progress=_log_progress)
        LOG.info(f"Recognized with {result.provider} (confidence {result.confidence:.1f})")
        print(result.text)

    return _run(_go())


def _handle_providers(_: argparse.Namespace, settings: Settings) -> int:
    flow = MenuFlow(settings)
    _write_json(
        {
            "ocr": flow.recognition.available_providers(),
            "llm": flow.generation.available_providers(),
            "settings": settings.summary(),
        },
        None,
    )
    return 0


def _handle_serve(ns: argparse.Namespace, settings: Settings) -> int:
    from ..api import create_app
    import uvicorn

    app = create_app(settings, allow_origins=ns.allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="menu-lens",
        description="Turn menu photos into structured, translated menus using OCR and LLM providers.",
    )
    parser.add_argument("--env-dir", default=None, help="Directory to start the upward .env search from (default: cwd)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser("process", help="OCR, analyze and translate a menu image; print JSON.")
    process.add_argument("--image", required=True, help="Path to the menu image or PDF")
    process.add_argument("--target-language", default="English")
    process.add_argument("--ocr-provider", help="Preferred OCR provider id")
    process.add_argument("--llm-provider", help="Preferred LLM provider id")
    process.add_argument(
        "--meat",
        action="append",
        choices=MEAT_TYPES,
        help="Only fetch images for items matching this filter (repeatable)",
    )
    process.add_argument("--parse-only", action="store_true", help="Skip the image lookup step")
    process.add_argument("--output", help="Write JSON here instead of stdout")
    process.set_defaults(handler=_handle_process)

    ocr = subparsers.add_parser("ocr", help="Only extract text from an image.")
    ocr.add_argument("--image", required=True)
    ocr.add_argument("--provider", help="Preferred OCR provider id")
    ocr.set_defaults(handler=_handle_ocr)

    providers = subparsers.add_parser("providers", help="List providers and whether they are configured.")
    providers.set_defaults(handler=_handle_providers)

    serve = subparsers.add_parser("serve", help="Run the JSON API server.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)
    try:
        settings = load_settings(args.env_dir or os.getcwd())
    except ConfigurationError as exc:
        LOG.error(f"Configuration error: {exc}")
        return 2
    code = args.handler(args, settings)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
