"""First-match dispatch of incoming requests to compiled mock routes."""

from __future__ import annotations

import asyncio
import random
import time

import structlog
from starlette.responses import Response

from .matcher import get_pathname
from .models import CompiledRoute, DelayRange, RequestContext, RouteTable, ServerConfig
from .resolver import resolve

LOGGER = structlog.get_logger("mockup_server")

MOCK_HEADER_NAME = "X-Mock-Response"


def pick_delay(route_delay: int | None, delay_range: DelayRange) -> int:
    """Route delay when set, otherwise a random integer from ``[min, max)``."""

    if route_delay is not None:
        return route_delay
    if delay_range.max > delay_range.min:
        return random.randrange(delay_range.min, delay_range.max)
    return delay_range.min


def route_matches(route: CompiledRoute, request: RequestContext) -> dict[str, str] | None:
    """Return the path parameters when ``route`` matches ``request``, else None.

    A route matches on method, on the pathname without query string and, when
    present, on its ``apply_if`` predicate. A predicate that raises does not
    match.
    """

    if route.method != request.method.upper():
        return None
    params = route.pattern.match(get_pathname(request.path))
    if params is None:
        return None
    if route.apply_if is None:
        return params
    try:
        applies = route.apply_if(request.raw if request.raw is not None else request, params, request.body)
    except Exception:
        LOGGER.exception("apply_if_failed", method=route.method, path=route.full_path)
        return None
    return params if applies else None


class MockDispatcher:
    """Serves requests from the mock routes of one route table snapshot."""

    def __init__(self, table: RouteTable, config: ServerConfig) -> None:
        self._config = config
        self._routes = () if config.suspended else table.mock_routes()

    def match(self, request: RequestContext) -> tuple[CompiledRoute, dict[str, str]] | None:
        for route in self._routes:
            params = route_matches(route, request)
            if params is not None:
                return route, params
        return None

    async def dispatch(self, request: RequestContext) -> Response | None:
        """Return the mocked response, or None when the request must fall through."""

        started = time.perf_counter()
        matched = self.match(request)
        if matched is None:
            return None
        route, params = matched

        delay_ms = pick_delay(route.delay, self._config.delay)
        resolved = await resolve(route, request, self._config, params)

        headers: dict[str, str] = {}
        if self._config.mock_header:
            headers[MOCK_HEADER_NAME] = ",".join([*resolved.header_tags, f"{delay_ms}ms"])

        if delay_ms:
            await asyncio.sleep(delay_ms / 1000)

        elapsed_ms = round((time.perf_counter() - started) * 1000)
        LOGGER.info(
            "route_called",
            method=route.method,
            status=resolved.status,
            key=route.key or "-",
            path=request.url,
            elapsed_ms=elapsed_ms,
            empty=resolved.is_empty,
        )
        if route.callback is not None:
            LOGGER.debug(
                "route_callback_served",
                method=request.method,
                status=resolved.status,
                key=route.key or "-",
                source=resolved.source_tag,
            )
        return Response(
            content=resolved.render(),
            status_code=resolved.status,
            media_type="application/json",
            headers=headers,
        )
