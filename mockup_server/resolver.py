"""Resolve the response payload of a matched route."""

from __future__ import annotations

import asyncio
import copy
import inspect
from dataclasses import dataclass
from typing import Any

import structlog

from .files import data_file_paths, find_data_file, read_json
from .models import (
    CompiledRoute,
    PayloadSource,
    RequestContext,
    ResolvedResponse,
    ServerConfig,
    SourceTag,
)

LOGGER = structlog.get_logger("mockup_server")


@dataclass
class CallbackContext:
    """Argument passed to a route ``callback``; ``data`` is the base payload."""

    params: dict[str, str]
    query: dict[str, str]
    body: Any
    data: Any
    req: Any


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def resolve(
    route: CompiledRoute,
    request: RequestContext,
    config: ServerConfig,
    params: dict[str, str] | None = None,
) -> ResolvedResponse:
    """Build the response for ``route``.

    Base payload precedence is inline data, then ``<key>.<status>.json``,
    then ``<key>.json``, then empty. A callback, when present, receives the
    base payload and its result replaces it; if it fails the base payload is
    kept. The status is always the declared one.
    """

    tags = ["mocked"]
    source: SourceTag
    if route.payload_source is PayloadSource.INLINE:
        payload = copy.deepcopy(route.data)
        source = "inline"
        tags.append("inline")
    else:
        payload = await _read_data_file(route, config)
        source = "file" if payload is not None else "empty"
        tags.append("file")

    if route.callback is not None:
        callback_context = CallbackContext(
            params=dict(params or {}),
            query=dict(request.query),
            body=request.body,
            data=copy.deepcopy(payload),
            req=request.raw if request.raw is not None else request,
        )
        try:
            payload = await maybe_await(route.callback(callback_context))
            source = "callback"
            tags.append("dynamic")
        except Exception:
            LOGGER.exception(
                "callback_failed",
                key=route.key or "-",
                method=route.method,
                path=route.full_path,
            )
            tags.append("static")
    else:
        tags.append("static")

    return ResolvedResponse(
        status=route.status,
        body=payload,
        source_tag=source,
        is_empty=_is_empty(payload),
        header_tags=tags,
    )


def _is_empty(payload: Any) -> bool:
    # Empty objects and arrays are real payloads; only scalar blanks count.
    return payload is None or payload is False or payload in ("", 0)


async def _read_data_file(route: CompiledRoute, config: ServerConfig) -> Any:
    if not route.key:
        if route.payload_source is PayloadSource.EMPTY:
            LOGGER.debug("route_without_data", path=route.full_path)
        return None

    data_file = await asyncio.to_thread(find_data_file, config.database, route.key, route.status)
    if data_file is None:
        with_status, default = data_file_paths(config.database, route.key, route.status)
        LOGGER.warning(
            "data_file_missing",
            key=route.key,
            file_with_status=str(with_status),
            file_default=str(default),
            path=route.full_path,
        )
        return None

    try:
        return await asyncio.to_thread(read_json, data_file, config.encoding)
    except (OSError, ValueError, LookupError) as exc:
        LOGGER.error(
            "data_file_invalid",
            key=route.key,
            file=str(data_file),
            path=route.full_path,
            error=str(exc),
        )
        return None
