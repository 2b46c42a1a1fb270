"""Compile raw route definitions into an ordered route table."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from . import methods
from .files import load_route_definitions
from .matcher import PathPattern
from .models import (
    CompiledRoute,
    CompileSummary,
    PayloadSource,
    RouteDefinition,
    RouteTable,
    ServerConfig,
)

LOGGER = structlog.get_logger("mockup_server")


def _field(raw: Any, name: str, default: Any = None) -> Any:
    if isinstance(raw, RouteDefinition):
        return getattr(raw, name, default)
    if isinstance(raw, dict):
        return raw.get(name, default)
    return default


def is_active(raw: Any) -> bool:
    return _field(raw, "active") is True


def is_proxy_interceptor(definition: RouteDefinition, proxy_target: str | None) -> bool:
    """A route with a callback but neither key nor inline data only rewrites upstream responses."""

    return bool(proxy_target) and not definition.key and definition.data is None and definition.callback is not None


def compile_routes(source: Any, config: ServerConfig, *, strict: bool = False) -> RouteTable:
    """Compile ``source`` (a sequence or a definitions file path) into a ``RouteTable``.

    Inactive definitions are dropped. Each invalid definition is logged and
    skipped on its own; compilation of the others continues. With
    ``strict=True`` an unreadable source raises ``RouteSourceError``.
    """

    all_definitions = load_route_definitions(source, strict=strict)
    active_definitions = [raw for raw in all_definitions if is_active(raw)]

    compiled: list[CompiledRoute] = []
    for position, raw in enumerate(active_definitions):
        route = _compile_one(raw, position, config)
        if route is not None:
            compiled.append(route)

    summary = CompileSummary(
        accepted=len(compiled),
        total=len(all_definitions),
        active=len(active_definitions),
    )
    LOGGER.info(
        "routes_registered",
        active=summary.accepted,
        all=summary.total,
        invalid=summary.rejected,
    )
    if not active_definitions:
        LOGGER.warning("routes_missing", proxy_active=bool(config.proxy_target))
    return RouteTable(routes=tuple(compiled), summary=summary)


def _compile_one(raw: Any, position: int, config: ServerConfig) -> CompiledRoute | None:
    path = _field(raw, "path")
    if not path:
        _reject(position, "missing_path", key=_field(raw, "key"))
        return None

    method = _field(raw, "method", "GET")
    if not methods.is_valid(method):
        _reject(position, "invalid_method", path=path, method=method, available=methods.list_methods())
        return None

    try:
        definition = raw if isinstance(raw, RouteDefinition) else RouteDefinition.model_validate(raw)
    except ValidationError as exc:
        _reject(position, "invalid_definition", path=path, error=str(exc))
        return None

    route_prefix = definition.prefix if definition.prefix is not None else config.prefix
    full_path = f"{route_prefix}{definition.path}"
    try:
        pattern = PathPattern(full_path)
    except ValueError as exc:
        _reject(position, "invalid_path", path=full_path, error=str(exc))
        return None

    if definition.data is not None:
        payload_source = PayloadSource.INLINE
    elif definition.key:
        payload_source = PayloadSource.FILE
    else:
        payload_source = PayloadSource.EMPTY

    return CompiledRoute(
        method=definition.method.upper(),
        pattern=pattern,
        status=definition.status,
        key=definition.key,
        data=definition.data,
        payload_source=payload_source,
        delay=definition.delay,
        apply_if=definition.apply_if,
        callback=definition.callback,
        is_interceptor=is_proxy_interceptor(definition, config.proxy_target),
        full_path=full_path,
    )


def _reject(position: int, reason: str, **context: Any) -> None:
    LOGGER.warning("route_rejected", reason=reason, position=position, **context)
