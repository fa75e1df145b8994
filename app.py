"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from api.handlers import handle_forward
from core.config import Config
from core.headers import HeaderBuilder
from core.protocols import RequestLogger
from services.upstream import MAX_REDIRECTS, UPSTREAM_TIMEOUT, Forwarder


def create_app(
    config: Config,
    logger: RequestLogger,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        limits = httpx.Limits(
            max_connections=config.limits.max_connections,
            max_keepalive_connections=config.limits.max_keepalive_connections,
        )
        client = httpx.AsyncClient(
            timeout=UPSTREAM_TIMEOUT,
            limits=limits,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            transport=transport,
        )
        app.state.forwarder = Forwarder(
            client,
            config.upstream.target_url,
            config.upstream.user_agent,
            HeaderBuilder(),
            forward_headers=config.upstream.forward_request_headers,
            forward_body=config.upstream.forward_request_body,
        )
        try:
            yield
        finally:
            await client.aclose()

    # Docs routes are disabled so every path reaches the forwarder
    app = FastAPI(
        title="Relay Proxy",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    async def relay(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await WebSocketClose()(scope, receive, send)
            return
        response = await handle_forward(Request(scope, receive), logger)
        await response(scope, receive, send)

    # Mounted rather than routed: routes only accept the methods they list
    app.mount("/", relay)

    return app
