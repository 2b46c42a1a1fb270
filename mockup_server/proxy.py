"""Proxy interception: which requests go upstream and how upstream JSON is rewritten."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence

import httpx
import structlog
from starlette.responses import Response

from .dispatcher import route_matches
from .models import CompiledRoute, RequestContext, RouteTable, ServerConfig
from .resolver import maybe_await

LOGGER = structlog.get_logger("mockup_server")

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
_SKIPPED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}
_SKIPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}

DEFAULT_PROXY_TIMEOUT = 30.0


def resolve_proxy_target(
    server: str | Sequence[str] | None,
    chooser: Callable[[list[str]], str | None] | None = None,
) -> str | None:
    """Reduce the configured proxy server(s) to a single target URL or None.

    With more than one candidate the ``chooser`` decides; without one the
    first candidate is used.
    """

    if not server:
        return None
    if isinstance(server, str):
        return server
    candidates = [item for item in server if isinstance(item, str) and item]
    if not candidates:
        return None
    if len(candidates) == 1 or chooser is None:
        return candidates[0]
    return chooser(candidates)


class ProxyFilter:
    """Decides per request whether it is forwarded upstream and by which interceptor.

    Mock routes claim their requests away from the upstream; interceptor
    routes let the request through and rewrite the upstream JSON. While
    mocking is suspended only interceptor routes keep their claims.
    """

    def __init__(self, table: RouteTable, config: ServerConfig) -> None:
        self._target = config.proxy_target
        self._encoding = config.encoding
        if config.suspended:
            self._routes = table.interceptor_routes()
        else:
            self._routes = table.routes

    @property
    def target(self) -> str | None:
        return self._target

    @property
    def enabled(self) -> bool:
        return bool(self._target)

    def claim(self, request: RequestContext) -> CompiledRoute | None:
        for route in self._routes:
            if route_matches(route, request) is not None:
                return route
        return None

    def route_upstream(self, request: RequestContext) -> tuple[bool, CompiledRoute | None]:
        """Return ``(forward, interceptor)`` for one request.

        Requests go upstream when a target is set and no mock route claims
        them; an interceptor claim is forwarded and rewrites the answer.
        """

        if not self.enabled:
            return False, None
        route = self.claim(request)
        if route is None:
            return True, None
        if route.is_interceptor:
            return True, route
        return False, None

    def should_forward(self, request: RequestContext) -> bool:
        return self.route_upstream(request)[0]

    async def rewrite_upstream_response(
        self,
        request: RequestContext,
        upstream: httpx.Response,
        body: bytes,
        route: CompiledRoute,
    ) -> bytes:
        """Run the interceptor callback over a JSON upstream body; keep the body on failure."""

        content_type = upstream.headers.get("content-type", "")
        if "application/json" not in content_type or route.callback is None:
            return body
        try:
            parsed = json.loads(body.decode(self._encoding))
            req = request.raw if request.raw is not None else request
            modified = await maybe_await(route.callback(req, upstream, parsed))
            rewritten = json.dumps(modified).encode(self._encoding)
        except Exception:
            LOGGER.exception(
                "response_processing_failed",
                method=request.method,
                path=request.url,
            )
            return body
        LOGGER.info("response_modified", method=request.method, path=request.url)
        return rewritten


class UpstreamForwarder:
    """Relays requests to the proxy target with ``httpx`` and applies interceptors."""

    def __init__(
        self,
        target: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_PROXY_TIMEOUT,
    ) -> None:
        self._target = target.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)
        self._owns_client = client is None

    @property
    def target(self) -> str:
        return self._target

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def forward(
        self,
        request: RequestContext,
        proxy_filter: ProxyFilter,
        interceptor: CompiledRoute | None = None,
    ) -> Response:
        """Send ``request`` upstream; ``interceptor`` rewrites a JSON answer before relaying it."""

        url = f"{self._target}{request.url}"
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in _SKIPPED_REQUEST_HEADERS
        }
        try:
            upstream = await self._client.request(
                request.method,
                url,
                content=request.raw_body or None,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            LOGGER.error("proxy_failed", method=request.method, url=url, error=str(exc))
            return Response(
                content=json.dumps({"error": "Proxy target unreachable", "target": self._target}),
                status_code=502,
                media_type="application/json",
            )

        body = upstream.content
        if interceptor is not None:
            body = await proxy_filter.rewrite_upstream_response(request, upstream, body, interceptor)
            LOGGER.debug(
                "proxy_callback_served",
                method=request.method,
                status=upstream.status_code,
                key=interceptor.key or "-",
                path=request.url,
            )

        response = Response(content=body, status_code=upstream.status_code)
        response.raw_headers.extend(
            (name, value)
            for name, value in upstream.headers.raw
            if name.decode("latin-1").lower() not in _SKIPPED_RESPONSE_HEADERS
        )
        LOGGER.debug("request_proxied", method=request.method, url=url, status=upstream.status_code)
        return response

