"""Path patterns with named parameters (``/users/:id`` or ``/users/{id}``)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import unquote

_TOKEN_PATTERN = re.compile(
    r":(?P<name>[A-Za-z_]\w*)(?P<optional>\?)?"
    r"|\{(?P<brace>[A-Za-z_]\w*)\}"
    r"|(?P<star>\*)"
)
_SEGMENT = r"[^/]+"


def get_pathname(path: str) -> str:
    """Strip query string and fragment, keeping only the pathname."""

    for separator in ("?", "#"):
        index = path.find(separator)
        if index >= 0:
            path = path[:index]
    return path


def _to_regex(path: str) -> tuple[str, tuple[str, ...]]:
    parts: list[str] = []
    names: list[str] = []
    position = 0
    for token in _TOKEN_PATTERN.finditer(path):
        literal = path[position:token.start()]
        position = token.end()
        if token.group("star"):
            parts.append(re.escape(literal))
            names.append("splat")
            parts.append("(?P<splat>.*)")
            continue
        name = token.group("name") or token.group("brace")
        names.append(name)
        if token.group("optional") and literal.endswith("/"):
            parts.append(re.escape(literal[:-1]))
            parts.append(f"(?:/(?P<{name}>{_SEGMENT}))?")
        elif token.group("optional"):
            parts.append(re.escape(literal))
            parts.append(f"(?P<{name}>{_SEGMENT})?")
        else:
            parts.append(re.escape(literal))
            parts.append(f"(?P<{name}>{_SEGMENT})")
    parts.append(re.escape(path[position:]))
    body = "".join(parts)
    if body.endswith("/"):
        body = body[:-1]
    return f"^{body}/?$", tuple(names)


@dataclass(frozen=True)
class PathPattern:
    """Compiled matcher for a route path.

    Matching is case-insensitive and tolerates one trailing slash. The query
    string must already be stripped from the tested path. Raises
    ``ValueError`` when the path cannot be compiled (e.g. duplicate names).
    """

    path: str
    names: tuple[str, ...] = field(init=False)
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        source, names = _to_regex(self.path)
        try:
            regex = re.compile(source, re.IGNORECASE)
        except re.error as exc:
            raise ValueError(f"Route path {self.path!r} cannot be compiled: {exc}") from exc
        object.__setattr__(self, "names", names)
        object.__setattr__(self, "_regex", regex)

    def match(self, pathname: str) -> dict[str, str] | None:
        found = self._regex.match(pathname)
        if found is None:
            return None
        return {name: unquote(value) for name, value in found.groupdict().items() if value is not None}
