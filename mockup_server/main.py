"""CLI entrypoint for the mockup server."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from .compiler import compile_routes
from .config import ServerOptions, load_options
from .console import ShortcutLoop, choose_proxy_target, render_config, render_routes
from .logging_utils import LogFormat, configure_logging, select_log_format
from .proxy import resolve_proxy_target
from .server import MockupRuntime, PortInUseError

app = typer.Typer(help="Serve mocked JSON routes and proxy everything else to a real server.")


def _options(config: Optional[Path], overrides: dict[str, Any]) -> ServerOptions:
    try:
        return load_options(config, overrides)
    except (ValidationError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid server options: {exc}") from exc


def _delay(delay_min: Optional[int], delay_max: Optional[int]) -> dict[str, int] | None:
    delay: dict[str, int] = {}
    if delay_min is not None:
        delay["min"] = delay_min
    if delay_max is not None:
        delay["max"] = delay_max
    return delay or None


@app.command()
def serve(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        readable=True,
        help="YAML or JSON file with server options.",
    ),
    routes: Optional[str] = typer.Option(
        None,
        "--routes",
        "-r",
        help="Route definitions file (.py, .json, .yaml).",
    ),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on."),
    host: Optional[str] = typer.Option(None, help="Bind host."),
    prefix: Optional[str] = typer.Option(None, help="Global prefix prepended to every route path."),
    database: Optional[str] = typer.Option(None, "--database", "-d", help="Directory with JSON data files."),
    proxy: list[str] = typer.Option(
        [],
        "--proxy",
        help="Proxy target URL; repeat to choose one interactively at start-up.",
    ),
    delay_min: Optional[int] = typer.Option(None, min=0, help="Minimal random response delay (ms)."),
    delay_max: Optional[int] = typer.Option(None, min=0, help="Maximal random response delay (ms, exclusive)."),
    mock_header: Optional[bool] = typer.Option(
        None,
        "--mock-header/--no-mock-header",
        help="Add a diagnostic header describing how the response was produced.",
    ),
    cors: Optional[bool] = typer.Option(None, "--cors/--no-cors", help="Allow cross-origin requests."),
    watch: bool = typer.Option(True, "--watch/--no-watch", help="Reload when routes or data files change."),
    log_level: str = typer.Option("info", help="Log level."),
    log_format: Optional[LogFormat] = typer.Option(
        None,
        case_sensitive=False,
        help="Log output format; defaults to $CONSOLE_OUTPUT_FORMAT, then console.",
    ),
) -> None:
    """Start the mock server."""

    logger = configure_logging(log_level, select_log_format(log_format))
    options = _options(
        config,
        {
            "routes": routes,
            "port": port,
            "host": host,
            "prefix": prefix,
            "database": database,
            "proxy": proxy or None,
            "delay": _delay(delay_min, delay_max),
            "mock_header": mock_header,
            "cors": cors,
        },
    )

    interactive = sys.stdin.isatty()
    console = Console()
    server_option = options.proxy.server if options.proxy else None
    target = resolve_proxy_target(server_option, choose_proxy_target if interactive else None)

    logger.info("server_configuring", port=options.port, prefix=options.prefix, target=target or "-")
    runtime = MockupRuntime(options, target, watch=watch)
    try:
        runtime.start()
    except PortInUseError as exc:
        logger.error("port_in_use", host=exc.host, port=exc.port)
        raise typer.Exit(code=1)

    coordinator = runtime.coordinator
    render_config({**coordinator.get_current_config(), "port": runtime.port}, console)
    render_routes(coordinator.get_routes_display_list(), console)
    try:
        if interactive:
            ShortcutLoop(coordinator, console).run()
        else:
            threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        runtime.stop()


@app.command("routes")
def list_routes(
    routes: str = typer.Option(..., "--routes", "-r", help="Route definitions file (.py, .json, .yaml)."),
    prefix: str = typer.Option("", help="Global prefix prepended to every route path."),
    proxy: Optional[str] = typer.Option(None, help="Proxy target; marks callback-only routes as interceptors."),
    log_level: str = typer.Option("warning", help="Log level."),
) -> None:
    """Compile a route definitions file and print the resulting route list."""

    configure_logging(log_level, LogFormat.PLAIN)
    options = _options(None, {"routes": routes, "prefix": prefix})
    table = compile_routes(options.routes, options.to_server_config(proxy))
    render_routes(table.display_list(), Console())
    typer.echo(f"{table.summary.accepted} active / {table.summary.total} defined / {table.summary.rejected} invalid")


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
