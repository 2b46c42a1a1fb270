from __future__ import annotations

import sys
from pathlib import Path

from mockup_server.compiler import compile_routes
from mockup_server.models import PayloadSource, RouteDefinition, ServerConfig


def _config(**overrides) -> ServerConfig:
    return ServerConfig(**overrides)


def test_inactive_and_invalid_definitions_are_skipped() -> None:
    definitions = [
        {"key": "A", "method": "GET", "path": "/a", "active": True},
        {"key": "B", "method": "GET", "path": "/b", "active": False},
        {"key": "C", "method": "GET", "active": True},
        {"key": "D", "method": "FETCH", "path": "/d", "active": True},
        {"key": "E", "method": "post", "path": "/e", "active": True},
        {"key": "F", "path": "/f", "active": "true"},
    ]

    table = compile_routes(definitions, _config())

    assert [route.key for route in table] == ["A", "E"]
    assert table.routes[1].method == "POST"
    assert table.summary.accepted == 2
    assert table.summary.total == 6
    assert table.summary.rejected == 2


def test_invalid_status_rejects_only_that_definition() -> None:
    definitions = [
        {"key": "BAD", "path": "/bad", "status": "not-a-number", "active": True},
        {"key": "OK", "path": "/ok", "status": "404", "active": True},
    ]

    table = compile_routes(definitions, _config())

    assert len(table) == 1
    assert table.routes[0].status == 404
    assert table.routes[0].method == "GET"


def test_full_path_uses_route_prefix_before_global_prefix() -> None:
    definitions = [
        {"path": "/users", "active": True},
        {"path": "/health", "prefix": "", "active": True},
        {"path": "/v2/users", "prefix": "/internal", "active": True},
    ]

    table = compile_routes(definitions, _config(prefix="/api"))

    assert [route.full_path for route in table] == ["/api/users", "/health", "/internal/v2/users"]


def test_payload_source_follows_data_then_key() -> None:
    definitions = [
        {"key": "USER", "path": "/inline", "data": {"id": 1}, "active": True},
        {"key": "USER", "path": "/file", "active": True},
        {"path": "/empty", "active": True},
    ]

    table = compile_routes(definitions, _config())

    assert [route.payload_source for route in table] == [
        PayloadSource.INLINE,
        PayloadSource.FILE,
        PayloadSource.EMPTY,
    ]


def test_callback_only_route_is_interceptor_when_proxy_configured() -> None:
    definitions = [
        {"path": "/orders", "callback": lambda req, res, data: data, "active": True},
        {"key": "ORDERS", "path": "/keyed", "callback": lambda ctx: ctx.data, "active": True},
    ]

    with_proxy = compile_routes(definitions, _config(proxy_target="http://upstream"))
    without_proxy = compile_routes(definitions, _config())

    assert [route.is_interceptor for route in with_proxy] == [True, False]
    assert [route.is_interceptor for route in without_proxy] == [False, False]
    assert len(with_proxy.mock_routes()) == 1


def test_route_definition_objects_and_aliases_are_accepted() -> None:
    predicate = lambda req, params, body: True  # noqa: E731
    definitions = [
        RouteDefinition(path="/typed", active=True, applyIf=predicate),
        {"path": "/snake", "apply_if": predicate, "active": True},
    ]

    table = compile_routes(definitions, _config())

    assert [route.apply_if for route in table] == [predicate, predicate]
    assert table.display_list()[0].has_conditional is True


def test_definitions_file_is_loaded_from_path(tmp_path: Path) -> None:
    routes_file = tmp_path / "routes.yaml"
    routes_file.write_text(
        "routes:\n"
        "  - {key: PING, method: GET, path: /ping, status: 200, active: true}\n"
        "  - {key: OFF, method: GET, path: /off, active: false}\n",
        encoding="utf-8",
    )

    table = compile_routes(str(routes_file), _config())

    assert [route.full_path for route in table] == ["/ping"]


def test_unreadable_definitions_file_compiles_to_empty_table(tmp_path: Path) -> None:
    table = compile_routes(str(tmp_path / "missing.py"), _config())

    assert len(table) == 0
    assert table.summary.total == 0


def test_python_module_with_dataclasses_is_loaded(tmp_path: Path) -> None:
    routes_file = tmp_path / "routes.py"
    routes_file.write_text(
        "from __future__ import annotations\n"
        "\n"
        "from dataclasses import asdict, dataclass\n"
        "\n"
        "\n"
        "@dataclass\n"
        "class User:\n"
        "    id: int\n"
        "\n"
        "\n"
        "ROUTES = [\n"
        "    {'method': 'GET', 'path': '/users/:id', 'data': asdict(User(id=1)), 'active': True},\n"
        "]\n",
        encoding="utf-8",
    )

    table = compile_routes(str(routes_file), _config())

    assert [route.full_path for route in table] == ["/users/:id"]
    assert table.routes[0].data == {"id": 1}
    assert not any(name.startswith("<run_path>") for name in sys.modules)
