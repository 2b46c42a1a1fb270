"""Server runtime: HTTP application, listener thread and watcher wiring."""

from __future__ import annotations

import contextlib
import errno
import json
import socket
import threading
import time
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from .config import ServerOptions
from .methods import AVAILABLE_METHODS
from .models import RequestContext
from .proxy import UpstreamForwarder
from .reload import HotReloadCoordinator
from .watcher import FileWatcher

LOGGER = structlog.get_logger("mockup_server")


class PortInUseError(OSError):
    """The listening port is already taken by another process."""

    def __init__(self, host: str, port: int) -> None:
        super().__init__(errno.EADDRINUSE, f"Port {port} on {host} is already in use")
        self.host = host
        self.port = port


def _parse_body(raw_body: bytes, content_type: str) -> Any:
    if not raw_body:
        return None
    text = raw_body.decode("utf-8", errors="replace")
    if "application/json" in content_type:
        try:
            return json.loads(text)
        except ValueError:
            return text
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(text, keep_blank_values=True))
    return text


async def build_request_context(request: Request) -> RequestContext:
    raw_body = await request.body()
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    path = raw_path.decode("latin-1")
    query_string = request.url.query
    return RequestContext(
        method=request.method,
        path=path,
        url=f"{path}?{query_string}" if query_string else path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=_parse_body(raw_body, request.headers.get("content-type", "")),
        raw_body=raw_body,
        raw=request,
    )


def build_app(coordinator: HotReloadCoordinator, forwarder: UpstreamForwarder | None = None) -> Starlette:
    """Create the ASGI application: mock dispatch first, then the proxy, then 404."""

    async def handle(request: Request) -> Response:
        state = coordinator.state
        context = await build_request_context(request)
        try:
            response = await state.dispatcher.dispatch(context)
            if response is not None:
                return response

            if forwarder is not None:
                forward, interceptor = state.proxy_filter.route_upstream(context)
                if forward:
                    return await forwarder.forward(context, state.proxy_filter, interceptor)
        except Exception:  # pragma: no cover - resilience path
            LOGGER.exception("request_failed", method=context.method, path=context.url)
            return _json_response(500, {"error": "mock failure"})

        LOGGER.warning("request_unmatched", method=context.method, path=context.url)
        return _json_response(404, {"error": "No mock route matched"})

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if forwarder is not None:
                await forwarder.aclose()

    middleware: list[Middleware] = []
    if coordinator.state.config.cors:
        middleware.append(
            Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
        )

    return Starlette(
        routes=[Route("/{path:path}", handle, methods=list(AVAILABLE_METHODS))],
        middleware=middleware,
        lifespan=lifespan,
    )


def _json_response(status: int, payload: dict[str, Any]) -> Response:
    return Response(content=json.dumps(payload), status_code=status, media_type="application/json")


def _bind_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        if exc.errno == errno.EADDRINUSE:
            raise PortInUseError(host, port) from exc
        raise
    sock.set_inheritable(True)
    return sock


class MockServerRunner:
    """Runs the HTTP application with uvicorn on a background thread."""

    def __init__(self, app: Starlette, host: str, port: int) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._logger = LOGGER.bind(host=host)

    @property
    def port(self) -> int:
        return self._port

    def start(self) -> None:
        """Bind the port and start serving; raises ``PortInUseError`` when the port is taken."""

        self._logger.info("server_starting", port=self._port)
        sock = _bind_socket(self._host, self._port)
        self._port = sock.getsockname()[1]
        config = uvicorn.Config(
            self._app,
            log_level="warning",
            log_config=None,
            access_log=False,
            lifespan="on",
        )
        server = uvicorn.Server(config)
        self._server = server
        self._thread = threading.Thread(target=server.run, kwargs={"sockets": [sock]}, daemon=True)
        self._thread.start()
        self._logger = self._logger.bind(port=self._port)
        if not self.wait_until_ready():
            self.stop()
            raise RuntimeError(f"Server on {self._host}:{self._port} did not start")
        self._logger.info("server_started")

    def stop(self) -> None:
        if not self._server:
            return
        self._logger.info("server_stopping")
        self._server.should_exit = True
        if self._thread:
            self._thread.join(timeout=5)
        self._server = None
        self._logger.info("server_stopped")

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self._server is not None and self._server.started:
                return True
            if self._thread is not None and not self._thread.is_alive():
                return False
            time.sleep(0.02)
        return False


class MockupRuntime:
    """Wires coordinator, upstream forwarder, listener and file watcher together."""

    def __init__(
        self,
        options: ServerOptions,
        proxy_target: str | None = None,
        *,
        watch: bool = True,
        poll_interval: float = 1.0,
    ) -> None:
        self._options = options
        self._coordinator = HotReloadCoordinator(options.routes, options.to_server_config(proxy_target))
        self._forwarder: UpstreamForwarder | None = None
        if proxy_target:
            timeout = options.proxy.timeout if options.proxy else 30.0
            self._forwarder = UpstreamForwarder(proxy_target, timeout=timeout)
            LOGGER.info("proxy_configured", target=proxy_target)
        else:
            LOGGER.info("proxy_not_configured")
        self._runner = MockServerRunner(build_app(self._coordinator, self._forwarder), options.host, options.port)
        self._watcher: FileWatcher | None = None
        if watch:
            self._watcher = FileWatcher(
                options.watch_paths(),
                self._coordinator.request_reload,
                interval=poll_interval,
            )

    @property
    def coordinator(self) -> HotReloadCoordinator:
        return self._coordinator

    @property
    def port(self) -> int:
        return self._runner.port

    def start(self) -> None:
        self._runner.start()
        if self._watcher is not None:
            self._watcher.start()

    def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
        self._coordinator.close()
        self._runner.stop()

    def __enter__(self) -> "MockupRuntime":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
