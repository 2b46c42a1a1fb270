"""Human readable console output and operator shortcuts."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, TextIO

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from .models import RouteDisplay
from .reload import HotReloadCoordinator

WITHOUT_PROXY = "without proxy"


def render_routes(routes: list[RouteDisplay], console: Console) -> None:
    """Print routes; ``*`` marks conditional routes and ``~`` proxy interceptors."""

    if not routes:
        console.print("   (no routes registered)", style="dim")
        return
    table = Table(show_header=True, header_style="bold cyan", box=None, pad_edge=False)
    table.add_column("")
    table.add_column("method", style="green")
    table.add_column("status")
    table.add_column("key", style="yellow")
    table.add_column("path", style="bold white")
    for route in routes:
        marks = ("*" if route.has_conditional else "") + ("~" if route.is_interceptor else "")
        status_style = "red" if route.status >= 400 else "white"
        table.add_row(
            marks,
            route.method,
            f"[{status_style}]{route.status}[/]",
            route.key or "-",
            route.path,
        )
    console.print(table)
    if any(route.has_conditional for route in routes):
        console.print("   * conditionally mocked (applyIf)", style="dim")
    if any(route.is_interceptor for route in routes):
        console.print("   ~ proxy response interceptor", style="dim")


def render_config(config: dict[str, object], console: Console) -> None:
    console.print(f"   port:   [green]{config['port']}[/]")
    console.print(f"   prefix: [white]{config['prefix'] or '-'}[/]")
    console.print(f"   target: [cyan]{config['target'] or WITHOUT_PROXY}[/]")


def choose_proxy_target(candidates: list[str], console: Console | None = None) -> str | None:
    """Ask once which upstream to use; ``0`` runs without a proxy."""

    console = console or Console()
    console.print("[bold]Proxy target[/]")
    console.print(f"   0: {WITHOUT_PROXY}")
    for index, candidate in enumerate(candidates, start=1):
        console.print(f"   {index}: {candidate}")
    choices = [str(index) for index in range(len(candidates) + 1)]
    answer = Prompt.ask("Select target", choices=choices, default="1", console=console)
    position = int(answer)
    return candidates[position - 1] if position else None


@dataclass(frozen=True)
class Shortcut:
    key: str
    label: str
    action: Callable[[], None]
    exit: bool = False


class ShortcutLoop:
    """Line based operator commands: one key followed by Enter."""

    def __init__(
        self,
        coordinator: HotReloadCoordinator,
        console: Console | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._console = console or Console()
        self._stream = stream or sys.stdin
        self._shortcuts = [
            Shortcut("q", "quit", lambda: None, exit=True),
            Shortcut("r", "routes", self._show_routes),
            Shortcut("t", "proxy target", self._show_target),
            Shortcut("p", "port", self._show_port),
            Shortcut("f", "global prefix", self._show_prefix),
            Shortcut("s", "suspend/resume mocking", self._toggle_suspend),
            Shortcut("h", "help", self.print_help),
        ]

    def print_help(self) -> None:
        line = "   ".join(f"[bold]{item.key}[/]: {item.label}" for item in self._shortcuts)
        self._console.print(f"\nShortcuts:\n   {line}\n")

    def handle(self, command: str) -> bool:
        """Run one command; returns False when the loop should stop."""

        key = command.strip().lower()[:1]
        for shortcut in self._shortcuts:
            if shortcut.key == key:
                shortcut.action()
                return not shortcut.exit
        self.print_help()
        return True

    def run(self) -> None:
        self.print_help()
        for line in self._stream:
            if not self.handle(line):
                return

    def _show_routes(self) -> None:
        self._console.print("[bold]Routes[/]")
        render_routes(self._coordinator.get_routes_display_list(), self._console)

    def _show_target(self) -> None:
        target = self._coordinator.get_current_config()["target"]
        self._console.print(f"[bold]Proxy target[/]\n   {target or WITHOUT_PROXY}")

    def _show_port(self) -> None:
        self._console.print(f"[bold]Server port[/]\n   {self._coordinator.get_current_config()['port']}")

    def _show_prefix(self) -> None:
        prefix = self._coordinator.get_current_config()["prefix"]
        self._console.print(f"[bold]Global prefix[/]\n   {prefix or '-'}")

    def _toggle_suspend(self) -> None:
        suspended = self._coordinator.suspend_toggle()
        state = "suspended" if suspended else "resumed"
        self._console.print(f"[yellow]Mocking {state}[/] (proxy stays active)")
