from __future__ import annotations

from pathlib import Path

import yaml
from typer.testing import CliRunner

from mockup_server.config import load_options
from mockup_server.main import app

runner = CliRunner()


def _write_routes(tmp_path: Path) -> Path:
    routes = [
        {"key": "USERS", "method": "GET", "path": "/users", "status": 200, "active": True},
        {"key": "USER", "method": "DELETE", "path": "/users/:id", "status": "204", "active": True},
        {"key": "OLD", "method": "GET", "path": "/old", "active": False},
        {"key": "BAD", "method": "FETCH", "path": "/bad", "active": True},
    ]
    target = tmp_path / "routes.yaml"
    target.write_text(yaml.safe_dump(routes), encoding="utf-8")
    return target


def test_routes_command_lists_compiled_routes(tmp_path: Path) -> None:
    routes_path = _write_routes(tmp_path)

    result = runner.invoke(app, ["routes", "--routes", str(routes_path), "--prefix", "/api"])

    assert result.exit_code == 0, result.output
    assert "/api/users" in result.output
    assert "/api/users/:id" in result.output
    assert "/api/old" not in result.output
    assert "2 active / 4 defined / 1 invalid" in result.output


def test_options_merge_file_and_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "mockup.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "port": 9100,
                "routes": "routes.py",
                "delay": {"min": 10, "max": 50},
                "proxy": {"server": ["http://a", "http://b"]},
            }
        ),
        encoding="utf-8",
    )

    options = load_options(config_path, {"port": 9200, "delay": {"max": 80}, "prefix": None})

    assert options.port == 9200
    assert options.prefix == ""
    assert options.delay.min == 10 and options.delay.max == 80
    assert options.proxy is not None and options.proxy.server == ["http://a", "http://b"]
    assert options.database == "database"
    assert options.to_server_config("http://b").proxy_target == "http://b"
    assert set(options.watch_paths()) == {"routes", "database"}


def test_defaults_without_config_file() -> None:
    options = load_options(None, {"proxy": ["http://only"]})

    assert options.port == 9933
    assert options.cors is True
    assert options.mock_header is False
    assert options.proxy is not None and options.proxy.server == ["http://only"]


def test_serve_rejects_unknown_log_format(tmp_path: Path) -> None:
    result = runner.invoke(app, ["serve", "--routes", str(_write_routes(tmp_path)), "--log-format", "xml"])

    assert result.exit_code == 2
