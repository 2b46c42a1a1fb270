"""Mock and proxy HTTP server driven by declarative route definitions."""

__version__ = "0.1.0"
