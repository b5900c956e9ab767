"""Serve CLI entry point for the umlpipe local rendering bridge."""

from __future__ import annotations

import signal
import threading
from pathlib import Path

import typer
from rich.console import Console

import umlpipe
from umlpipe._cli import create_cli, version_callback
from umlpipe.bridge import LocalBridge, build_render_url
from umlpipe.client import bridge_base_url, fetch_svg
from umlpipe.config import UmlPipeConfig, get_config
from umlpipe.engine import EngineSupervisor, find_syntax_error, is_complete
from umlpipe.errors import EngineBinaryMissing, RenderError
from umlpipe.logging import configure_logging

app = create_cli(
    "umlpipe-serve",
    "umlpipe - local PlantUML rendering bridge over a persistent engine process.",
    no_args_is_help=True,
)

# Status and errors go to stderr so stdout stays clean for `url`
_stderr_console = Console(stderr=True)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback("umlpipe-serve", umlpipe.__version__),
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to umlpipe.yaml (default: .umlpipe/umlpipe.yaml, then ~/.umlpipe/).",
    ),
) -> None:
    """umlpipe - local PlantUML rendering bridge over a persistent engine process.

    Commands:
        serve   - Start the loopback HTTP bridge and keep it running
        render  - Render one source file to SVG
        url     - Print the bridge URL for a source file
        fetch   - Render a source file through a running bridge
    """
    ctx.obj = config


def _load_config(ctx: typer.Context, log_name: str | None = None) -> UmlPipeConfig:
    """Load config and set up logging; file logging only when log_name is given."""
    try:
        config = get_config(ctx.obj, reload=True)
    except (FileNotFoundError, ValueError) as e:
        _stderr_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(2) from e

    configure_logging(
        log_name=log_name or "umlpipe",
        level=config.log_level,
        log_dir=config.get_log_dir_path() if log_name else None,
    )
    return config


def _read_source(source_file: Path) -> str:
    try:
        return source_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _stderr_console.print(f"[red]Cannot read {source_file}:[/red] {e}")
        raise typer.Exit(2) from e


def _setup_signal_handlers(stop_event: threading.Event) -> None:
    """Set up signal handlers that request a clean shutdown."""

    def handle_signal(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        _stderr_console.print(f"\n[dim]Received {sig_name}, shutting down...[/dim]")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


@app.command()
def serve(
    ctx: typer.Context,
    port: int | None = typer.Option(
        None, "--port", "-p", help="Manual port (default: scan the configured range)."
    ),
) -> None:
    """Start the engine and the loopback HTTP bridge until interrupted."""
    config = _load_config(ctx, log_name="serve")

    supervisor = EngineSupervisor.from_config(config)
    bridge = LocalBridge(supervisor, config.bridge)

    status = bridge.start_local_server(port)
    if not status.success:
        _stderr_console.print(f"[red]Failed to start:[/red] {status.error}")
        raise typer.Exit(1)

    stop_event = threading.Event()
    _setup_signal_handlers(stop_event)

    _stderr_console.print(
        f"[bold cyan]umlpipe[/bold cyan] [dim]v{umlpipe.__version__}[/dim] "
        f"listening on [bold]{bridge.url}[/bold]"
    )
    _stderr_console.print(f"Render with GET {bridge.url}/svg/~h<HEX>")
    _stderr_console.print("Press [bold yellow]Ctrl+C[/bold yellow] to stop.")

    try:
        stop_event.wait()
    finally:
        bridge.stop_local_server()


@app.command()
def render(
    ctx: typer.Context,
    source_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="PlantUML source file."
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output SVG path (default: <source>.svg)."
    ),
) -> None:
    """Render one source file to SVG with a private engine process."""
    config = _load_config(ctx)
    source = _read_source(source_file)

    if not is_complete(source):
        _stderr_console.print(
            f"[red]{source_file}:[/red] no end marker (@enduml, @endmindmap, ...) found"
        )
        raise typer.Exit(1)

    with EngineSupervisor.from_config(config) as supervisor:
        try:
            svg = supervisor.render(source)
        except (EngineBinaryMissing, RenderError) as e:
            _stderr_console.print(f"[red]Render failed:[/red] {e}")
            raise typer.Exit(1) from e

    output_path = output or source_file.with_suffix(".svg")
    output_path.write_text(svg, encoding="utf-8")

    error = find_syntax_error(svg)
    if error is not None:
        _stderr_console.print(
            f"[yellow]{source_file}:{error.line}:[/yellow] {error.message} "
            f"(error image written to {output_path})"
        )
        raise typer.Exit(1)

    _stderr_console.print(f"[green]✓[/green] {output_path}")


@app.command()
def url(
    ctx: typer.Context,
    source_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="PlantUML source file."
    ),
    port: int | None = typer.Option(None, "--port", "-p", help="Bridge port."),
) -> None:
    """Print the bridge URL that renders a source file."""
    config = _load_config(ctx)
    source = _read_source(source_file)
    port = port or config.bridge.port or config.bridge.port_range_start
    typer.echo(build_render_url(source, bridge_base_url(port)))


@app.command()
def fetch(
    ctx: typer.Context,
    source_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="PlantUML source file."
    ),
    port: int | None = typer.Option(None, "--port", "-p", help="Bridge port."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output SVG path (default: <source>.svg)."
    ),
) -> None:
    """Render a source file through an already running bridge."""
    config = _load_config(ctx)
    source = _read_source(source_file)
    port = port or config.bridge.port or config.bridge.port_range_start

    success, result = fetch_svg(source, port, timeout=config.engine.render_timeout + 5.0)
    if not success:
        _stderr_console.print(f"[red]Fetch failed:[/red] {result}")
        raise typer.Exit(1)

    output_path = output or source_file.with_suffix(".svg")
    output_path.write_text(result, encoding="utf-8")
    _stderr_console.print(f"[green]✓[/green] {output_path}")


def cli() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    cli()
