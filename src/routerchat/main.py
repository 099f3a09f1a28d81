# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Main application entry point for the RouterChat proxy server."""

from __future__ import annotations

import argparse
from typing import Optional
import os

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from routerchat.core.config import ProxyConfig, load_proxy_config, CONFIG_DIR
from routerchat.api.http_responses import error_text
from routerchat.models.chat import ERROR_KIND_HEADER
from routerchat.services.chat.chat_proxy_ops import ChatProxy
from routerchat.services.exceptions import ServiceError
from routerchat.services.llm.provider import CompletionProvider

from routerchat.api.chat import build_router as build_chat_router
from routerchat.api.debug import router as debug_router


def create_app(
    config: ProxyConfig | None = None,
    provider: CompletionProvider | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    ``config`` defaults to ``resources/config/proxy.json`` merged with the
    environment. ``provider`` defaults to the OpenRouter adapter; tests pass a
    fake one.
    """
    if config is None:
        config = load_proxy_config(
            os.getenv("ROUTERCHAT_CONFIG") or CONFIG_DIR / "proxy.json"
        )

    app = FastAPI(title="RouterChat")
    app.state.chat_proxy = ChatProxy(config, provider)

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[ERROR_KIND_HEADER],
    )

    api_router = APIRouter(prefix="/api")
    api_router.include_router(build_chat_router(config.chat_path))
    api_router.include_router(debug_router)
    api_router.add_api_route(
        "/health", endpoint=lambda: {"status": "ok"}, methods=["GET"]
    )
    app.include_router(api_router)

    # --------------- global exception handler ---------------
    @app.exception_handler(ServiceError)
    async def _service_error_handler(
        _request: Request, exc: ServiceError
    ) -> PlainTextResponse:
        return error_text(exc.detail, exc.status_code, exc.kind)

    return app


app = create_app()


def build_arg_parser() -> argparse.ArgumentParser:
    """Build Arg Parser."""
    parser = argparse.ArgumentParser(
        prog="routerchat",
        description="Run the RouterChat proxy server",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload (development only)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker processes (overrides reload)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level for the server (default: info)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a proxy.json config file",
    )
    parser.add_argument(
        "--llm-dump",
        action="store_true",
        help="Dump raw upstream request/response data to a file",
    )
    parser.add_argument(
        "--llm-dump-path",
        default=None,
        help="Path for raw LLM dump file (overrides default)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entrypoint to run the server via a normal Python invocation.

    Examples:
      python -m routerchat.main --help
      python -m routerchat.main --host 0.0.0.0 --port 8000 --reload
    """
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.llm_dump:
        os.environ["ROUTERCHAT_LLM_DUMP"] = "1"
    if args.llm_dump_path:
        os.environ["ROUTERCHAT_LLM_DUMP_PATH"] = args.llm_dump_path
    if args.config:
        os.environ["ROUTERCHAT_CONFIG"] = args.config

    # Import uvicorn lazily so that importing this module doesn't require it for tests/tools
    import uvicorn  # type: ignore

    # Uvicorn's reload/multi-worker modes require an import string.
    use_import_string = bool(args.reload) or (
        isinstance(args.workers, int) and args.workers > 1
    )
    if use_import_string:
        app_target = "routerchat.main:create_app"
        factory = True
    else:
        app_target = create_app() if args.config else app
        factory = False

    uvicorn.run(
        app_target,
        host=args.host,
        port=args.port,
        reload=bool(args.reload) if args.workers in (None, 0) else False,
        workers=args.workers,
        log_level=args.log_level,
        factory=factory,
    )


if __name__ == "__main__":
    main()
