"""Server options: defaults, config file loading and CLI overrides."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .files import resolve_path
from .models import DelayRange, ServerConfig

DEFAULT_PORT = 9933


class ProxyOptions(BaseModel):
    """Upstream server(s) for requests no mock route handles."""

    server: Optional[Union[str, list[str]]] = None
    timeout: float = Field(default=30.0, gt=0)


class ServerOptions(BaseModel):
    """User facing options, merged from defaults, a config file and CLI flags."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    host: str = "127.0.0.1"
    routes: Union[str, list[Any]] = Field(default_factory=list)
    prefix: str = ""
    database: str = "database"
    encoding: str = "utf-8"
    cors: bool = True
    delay: DelayRange = Field(default_factory=DelayRange)
    mock_header: bool = False
    proxy: Optional[ProxyOptions] = None

    def to_server_config(self, proxy_target: str | None, *, suspended: bool = False) -> ServerConfig:
        return ServerConfig(
            host=self.host,
            port=self.port,
            prefix=self.prefix,
            database=self.database,
            encoding=self.encoding,
            delay=self.delay,
            proxy_target=proxy_target,
            suspended=suspended,
            mock_header=self.mock_header,
            cors=self.cors,
        )

    def watch_paths(self) -> dict[str, Path]:
        paths: dict[str, Path] = {}
        if isinstance(self.routes, str) and self.routes:
            paths["routes"] = resolve_path(self.routes)
        if self.database:
            paths["database"] = resolve_path(self.database)
        return paths


def load_config_data(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON options file into a plain mapping."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text or "{}")
    else:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Path) -> ServerOptions:
    return ServerOptions.model_validate(load_config_data(path))


def load_options(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> ServerOptions:
    """Merge file options with CLI overrides; ``None`` overrides are ignored."""

    data: dict[str, Any] = load_config_data(config_path) if config_path else {}
    for name, value in (overrides or {}).items():
        if value is None:
            continue
        if name == "delay" and isinstance(value, dict):
            data["delay"] = {**(data.get("delay") or {}), **value}
        elif name == "proxy":
            current = data.get("proxy") or {}
            data["proxy"] = {**current, "server": value}
        else:
            data[name] = value
    return ServerOptions.model_validate(data)
