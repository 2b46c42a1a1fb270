"""Available HTTP methods and helpers operating on that list."""

from __future__ import annotations

AVAILABLE_METHODS: tuple[str, ...] = (
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "HEAD",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
)


def is_valid(method: object) -> bool:
    """Return True when ``method`` names one of the standard HTTP verbs (any case)."""

    if not isinstance(method, str):
        return False
    return method.upper() in AVAILABLE_METHODS


def list_methods(separator: str = ", ") -> str:
    return separator.join(AVAILABLE_METHODS)
