"""Hot reload: rebuild the routing state and swap it in as one unit."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from .compiler import compile_routes
from .dispatcher import MockDispatcher
from .models import RouteDisplay, RouteTable, ServerConfig
from .proxy import ProxyFilter

LOGGER = structlog.get_logger("mockup_server")

RELOAD_DEBOUNCE_SECONDS = 0.3


class Debouncer:
    """Coalesce bursts of calls: each trigger restarts a single pending timer."""

    def __init__(self, wait: float, func: Callable[..., Any]) -> None:
        self._wait = wait
        self._func = func
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def trigger(self, *args: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self._wait, self._func, args)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


@dataclass(frozen=True)
class ActiveState:
    """Everything one request needs, built together and never mutated."""

    config: ServerConfig
    table: RouteTable
    dispatcher: MockDispatcher
    proxy_filter: ProxyFilter

    @classmethod
    def build(cls, table: RouteTable, config: ServerConfig) -> "ActiveState":
        return cls(
            config=config,
            table=table,
            dispatcher=MockDispatcher(table, config),
            proxy_filter=ProxyFilter(table, config),
        )


class HotReloadCoordinator:
    """Owns the active routing state and replaces it when sources change.

    Readers take ``state`` once per request and use that snapshot to the end,
    so a reload never disturbs requests already in flight. Reloads run one at
    a time; a failed recompilation keeps the previous route table.
    """

    def __init__(
        self,
        source: Any,
        config: ServerConfig,
        *,
        debounce_seconds: float = RELOAD_DEBOUNCE_SECONDS,
    ) -> None:
        self._source = source
        self._config = config
        self._reload_lock = threading.Lock()
        self._debouncer = Debouncer(debounce_seconds, self.reload_now)
        self._state = ActiveState.build(compile_routes(source, config), config)

    @property
    def state(self) -> ActiveState:
        return self._state

    @property
    def source(self) -> Any:
        return self._source

    def request_reload(self, changed_path: str | None = None) -> None:
        """Watcher entry point; bursts of notifications cause one reload."""

        if changed_path is not None:
            LOGGER.debug("reload_requested", path=changed_path)
        self._debouncer.trigger()

    def reload_now(self) -> bool:
        """Recompile and swap immediately. Returns False when the previous routes were kept."""

        with self._reload_lock:
            previous = self._state
            config = self._config
            try:
                table = compile_routes(self._source, config, strict=True)
            except Exception:
                LOGGER.exception("reload_failed", source=str(self._source))
                if config != previous.config:
                    self._state = ActiveState.build(previous.table, config)
                    self._log_suspension(previous.config, config)
                return False

            self._state = ActiveState.build(table, config)
            if not self._log_suspension(previous.config, config):
                LOGGER.info("server_reloaded", routes=len(table))
            return True

    def suspend_toggle(self) -> bool:
        """Flip mock suspension; proxying and its target are left untouched."""

        with self._reload_lock:
            self._config = self._config.model_copy(update={"suspended": not self._config.suspended})
            suspended = self._config.suspended
        self._debouncer.trigger()
        return suspended

    def close(self) -> None:
        self._debouncer.cancel()

    def get_routes_display_list(self) -> list[RouteDisplay]:
        return self._state.table.display_list()

    def get_current_config(self) -> dict[str, Any]:
        config = self._state.config
        return {"prefix": config.prefix, "target": config.proxy_target, "port": config.port}

    @staticmethod
    def _log_suspension(before: ServerConfig, after: ServerConfig) -> bool:
        if before.suspended == after.suspended:
            return False
        LOGGER.info("mocking_suspended" if after.suspended else "mocking_resumed")
        return True
