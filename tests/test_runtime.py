from __future__ import annotations

import json
import socket
import threading
import time
from http.client import HTTPConnection
from pathlib import Path

import pytest
import yaml

from mockup_server.config import ServerOptions, load_config
from mockup_server.server import MockupRuntime, PortInUseError


def _write_config(tmp_path: Path, port: int = 0) -> Path:
    database = tmp_path / "database"
    database.mkdir()
    (database / "PAYMENTS.json").write_text(json.dumps({"items": []}), encoding="utf-8")
    payload = {
        "port": port,
        "prefix": "/api",
        "database": str(database),
        "delay": {"min": 0, "max": 10},
        "mock_header": True,
        "routes": [
            {"key": "PAYMENTS", "method": "GET", "path": "/payments", "status": 200, "active": True},
            {"key": "PAYMENT", "method": "GET", "path": "/payments/:id", "status": 404, "active": True},
        ],
    }
    config_path = tmp_path / "mockup.yaml"
    config_path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return config_path


def test_runtime_serves_configured_route(tmp_path: Path) -> None:
    options = load_config(_write_config(tmp_path))
    runtime = MockupRuntime(options, watch=False)
    runtime.start()
    try:
        connection = HTTPConnection("127.0.0.1", runtime.port, timeout=2)
        connection.request("GET", "/api/payments?page=1")
        response = connection.getresponse()
        body = json.loads(response.read().decode("utf-8"))
        assert response.status == 200
        assert body["items"] == []
        assert response.getheader("Content-Type") == "application/json"
        assert response.getheader("X-Mock-Response").startswith("mocked,file,static,")

        connection.request("GET", "/api/payments/7")
        missing = connection.getresponse()
        assert missing.status == 404
        assert missing.read() == b""
    finally:
        runtime.stop()


def test_runtime_refuses_port_in_use(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]
        options = load_config(_write_config(tmp_path, port=port))
        runtime = MockupRuntime(options, watch=False)

        with pytest.raises(PortInUseError) as excinfo:
            runtime.start()

    assert excinfo.value.port == port


def test_delayed_route_does_not_block_other_requests(tmp_path: Path) -> None:
    options = ServerOptions(
        port=0,
        database=str(tmp_path),
        routes=[
            {"method": "GET", "path": "/slow", "data": {"speed": "slow"}, "delay": 800, "active": True},
            {"method": "GET", "path": "/fast", "data": {"speed": "fast"}, "delay": 0, "active": True},
        ],
    )
    finished: list[tuple[str, float]] = []

    def fetch(path: str) -> None:
        connection = HTTPConnection("127.0.0.1", runtime.port, timeout=5)
        connection.request("GET", path)
        response = connection.getresponse()
        response.read()
        finished.append((path, time.monotonic()))
        connection.close()

    with MockupRuntime(options, watch=False) as runtime:
        started = time.monotonic()
        slow = threading.Thread(target=fetch, args=("/slow",))
        slow.start()
        time.sleep(0.1)
        fetch("/fast")
        slow.join(timeout=5)

    assert [path for path, _ in finished] == ["/fast", "/slow"]
    fast_elapsed = finished[0][1] - started
    assert fast_elapsed < 0.6
