"""Edge router: single entry point forwarding to the two services.

Stateless.  ``/auth/*`` goes to identity, ``/users*`` goes to profile.
No aggregation, no retries; an unreachable upstream is a 502.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import Response

from usersync.core.config import GatewayConfig
from usersync.observability.logger import get_trace_id

from .responses import TRACE_HEADER, fail, install_common

logger = logging.getLogger(__name__)

# Connection-specific headers, plus the ones the gateway sets itself.
_NOT_FORWARDED = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "content-encoding",
    "x-trace-id",
})


def _forward_headers(headers) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in _NOT_FORWARDED}


def create_gateway_app(
    config: GatewayConfig,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create the gateway app.

    Args:
        config: Upstream URLs and timeout.
        client: Shared HTTP client; one is created (and closed on
            shutdown) when omitted.
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_client:
            await http.aclose()

    app = FastAPI(
        title="usersync gateway", docs_url=None, redoc_url=None, lifespan=lifespan,
    )
    app.state.http = http
    install_common(app, "gateway")

    async def forward(base_url: str, request: Request) -> Response:
        url = base_url.rstrip("/") + request.url.path
        headers = _forward_headers(request.headers)
        headers[TRACE_HEADER] = get_trace_id()
        try:
            upstream = await http.request(
                request.method,
                url,
                params=request.query_params,
                content=await request.body(),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("Upstream %s unreachable: %s", base_url, exc)
            return fail("Upstream service unavailable", 502)

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers=_forward_headers(upstream.headers),
        )

    methods = ["GET", "POST", "PUT", "PATCH", "DELETE"]

    @app.api_route("/auth/{path:path}", methods=methods)
    async def to_identity(path: str, request: Request) -> Response:
        return await forward(config.identity_url, request)

    @app.api_route("/users", methods=methods)
    async def to_profile_root(request: Request) -> Response:
        return await forward(config.profile_url, request)

    @app.api_route("/users/{path:path}", methods=methods)
    async def to_profile(path: str, request: Request) -> Response:
        return await forward(config.profile_url, request)

    return app
