"""Reading route definition sources and JSON response data files."""

from __future__ import annotations

import json
import runpy
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog
import yaml

LOGGER = structlog.get_logger("mockup_server")

ROUTE_VARIABLES = ("routes", "ROUTES")
SUPPORTED_SUFFIXES = {".py", ".json", ".yaml", ".yml"}


class RouteSourceError(Exception):
    """Raised when a route definitions source cannot be turned into a sequence."""


def resolve_path(location: str | Path) -> Path:
    path = Path(location)
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def data_file_paths(database: str | Path, key: str, status: int | str) -> tuple[Path, Path]:
    """Return ``(<key>.<status>.json, <key>.json)`` inside the database directory."""

    root = resolve_path(database)
    return root / f"{key}.{status}.json", root / f"{key}.json"


def find_data_file(database: str | Path, key: str, status: int | str) -> Path | None:
    with_status, default = data_file_paths(database, key, status)
    if with_status.is_file():
        return with_status
    if default.is_file():
        return default
    return None


def read_json(path: Path, encoding: str = "utf-8") -> Any:
    """Parse a JSON file; empty or whitespace-only content yields ``None``.

    Raises ``OSError`` when the file cannot be read and ``ValueError`` when
    its content is not valid JSON.
    """

    raw = path.read_text(encoding=encoding).strip()
    if not raw:
        return None
    return json.loads(raw)


def load_route_definitions(source: Any, *, strict: bool = False) -> list[Any]:
    """Turn a literal sequence or a file path into a list of raw route definitions.

    In the default lenient mode any failure yields an empty list. With
    ``strict=True`` a ``RouteSourceError`` is raised instead, which lets the
    caller keep its previous routes.
    """

    if source is None:
        return []
    if isinstance(source, (str, Path)):
        try:
            return _load_from_file(resolve_path(source))
        except RouteSourceError as exc:
            if strict:
                raise
            LOGGER.error("route_source_unreadable", source=str(source), error=str(exc))
            return []
    if isinstance(source, Sequence):
        return list(source)
    if strict:
        raise RouteSourceError(f"Unsupported route definitions source: {type(source).__name__}")
    return []


def _load_from_file(path: Path) -> list[Any]:
    if not path.is_file():
        raise RouteSourceError(f"Route definitions file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise RouteSourceError(f"Unsupported route definitions file type: {path.name}")
    try:
        if suffix == ".py":
            payload = _execute_module(path)
        elif suffix == ".json":
            payload = json.loads(path.read_text(encoding="utf-8") or "[]")
        else:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except RouteSourceError:
        raise
    except Exception as exc:  # user code may raise anything while loading
        raise RouteSourceError(f"Failed to load route definitions from {path}: {exc}") from exc

    if payload is None:
        return []
    if isinstance(payload, dict):
        payload = payload.get("routes", [])
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise RouteSourceError(f"Route definitions in {path} must be a list")
    return list(payload)


def _execute_module(path: Path) -> Any:
    # run_path compiles the source on every call and leaves nothing in
    # sys.modules, so edited route modules are never served stale.
    namespace = runpy.run_path(str(path))
    for name in ROUTE_VARIABLES:
        if name in namespace:
            return namespace[name]
    raise RouteSourceError(f"Module {path} defines neither 'routes' nor 'ROUTES'")
