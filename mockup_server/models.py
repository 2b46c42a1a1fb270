"""Models describing route definitions, compiled routes and runtime configuration."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

from .matcher import PathPattern

SourceTag = Literal["inline", "file", "callback", "empty"]


class RouteDefinition(BaseModel):
    """Author supplied description of one mocked or intercepted endpoint."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    key: Optional[str] = None
    method: str = "GET"
    path: Optional[str] = None
    status: int = 200
    active: StrictBool = False
    prefix: Optional[str] = None
    data: Any = None
    delay: Optional[int] = Field(default=None, ge=0)
    apply_if: Optional[Callable[..., Any]] = Field(default=None, alias="applyIf")
    callback: Optional[Callable[..., Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_key_is_missing(cls, values: Any) -> Any:
        if isinstance(values, dict) and values.get("key") == "":
            values = {**values, "key": None}
        return values


class PayloadSource(str, Enum):
    """Where the base payload of a compiled route comes from."""

    INLINE = "inline"
    FILE = "file"
    EMPTY = "empty"


class DelayRange(BaseModel):
    """Random response delay interval in milliseconds, ``min`` inclusive and ``max`` exclusive."""

    model_config = ConfigDict(frozen=True)

    min: int = Field(default=0, ge=0)
    max: int = Field(default=0, ge=0)


class ServerConfig(BaseModel):
    """Immutable runtime snapshot shared by every component serving a request."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 9933
    prefix: str = ""
    database: str = "database"
    encoding: str = "utf-8"
    delay: DelayRange = Field(default_factory=DelayRange)
    proxy_target: Optional[str] = None
    suspended: bool = False
    mock_header: bool = False
    cors: bool = True


@dataclass(frozen=True)
class CompiledRoute:
    method: str
    pattern: PathPattern
    status: int
    key: str | None
    data: Any
    payload_source: PayloadSource
    delay: int | None
    apply_if: Callable[..., Any] | None
    callback: Callable[..., Any] | None
    is_interceptor: bool
    full_path: str

    def display(self) -> "RouteDisplay":
        return RouteDisplay(
            method=self.method,
            status=self.status,
            key=self.key,
            path=self.full_path,
            has_conditional=self.apply_if is not None,
            is_interceptor=self.is_interceptor,
        )


@dataclass(frozen=True)
class CompileSummary:
    """Counts reported after compiling a set of route definitions."""

    accepted: int = 0
    total: int = 0
    active: int = 0

    @property
    def rejected(self) -> int:
        return self.active - self.accepted


@dataclass(frozen=True)
class RouteTable:
    """Ordered compiled routes; the position in ``routes`` is the match priority."""

    routes: tuple[CompiledRoute, ...] = ()
    summary: CompileSummary = field(default_factory=CompileSummary)

    def __iter__(self) -> Iterator[CompiledRoute]:
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    def mock_routes(self) -> tuple[CompiledRoute, ...]:
        return tuple(route for route in self.routes if not route.is_interceptor)

    def interceptor_routes(self) -> tuple[CompiledRoute, ...]:
        return tuple(route for route in self.routes if route.is_interceptor)

    def display_list(self) -> list["RouteDisplay"]:
        return [route.display() for route in self.routes]


@dataclass(frozen=True)
class RouteDisplay:
    method: str
    status: int
    key: str | None
    path: str
    has_conditional: bool
    is_interceptor: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "status": self.status,
            "key": self.key,
            "path": self.path,
            "hasConditional": self.has_conditional,
            "isInterceptor": self.is_interceptor,
        }


@dataclass
class ResolvedResponse:
    """Per-request response produced by the resolver; never cached or shared."""

    status: int
    body: Any
    source_tag: SourceTag
    is_empty: bool
    header_tags: list[str] = field(default_factory=list)

    def render(self) -> bytes:
        """Serialize ``body`` for the wire; strings and bytes are sent as they are."""

        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body, default=str).encode("utf-8")


@dataclass(frozen=True)
class RequestContext:
    """Transport independent view of an incoming request.

    ``body`` holds the parsed body (JSON value, form mapping, text or None)
    and ``raw_body`` the bytes as received. ``raw`` is the framework request
    object handed to user callbacks as ``req``.
    """

    method: str
    path: str
    url: str
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw_body: bytes = b""
    raw: Any = None
