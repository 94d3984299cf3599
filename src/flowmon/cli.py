"""Command line interface for the flowmon package."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import MonitorConfig, load_config
from .demo import run_demo
from .display import TextDisplay, sparkline
from .runner import FlowHost
from .transport import SerialSettings, TransportError

app = typer.Typer(
    add_completion=False,
    help="Live flow-rate monitor for the ESP32-Flow sensor.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config_path: Optional[Path], override: Optional[List[str]]) -> MonitorConfig:
    try:
        return load_config(config_path, override or None)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid configuration: {exc}") from exc


def _make_display(cfg: MonitorConfig, history: bool, history_width: Optional[int]) -> TextDisplay:
    if history_width is not None and history_width <= 0:
        raise typer.BadParameter("--history-width must be positive", param_hint="--history-width")
    return TextDisplay(cfg.unit, cfg.precision, show_history=history, history_width=history_width)


def _make_plotter(cfg: MonitorConfig):
    try:
        from .plotting import LivePlotter
    except ImportError as exc:
        raise typer.BadParameter("Matplotlib is required for --plot (pip install .[plot])") from exc
    return LivePlotter(unit=cfg.unit, precision=cfg.precision)


@app.command()
def run(
    port: str = typer.Option(
        "/dev/ttyUSB0", "--port", "-p", help="Serial device. Use '-' to read from stdin."
    ),
    baudrate: int = typer.Option(115200, "--baud", help="Serial baudrate."),
    timeout: float = typer.Option(1.0, "--timeout", help="Serial read timeout (seconds)."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON config file."),
    override: Optional[List[str]] = typer.Option(
        None, "--set", help="Override config keys, e.g. --set window.capacity=100"
    ),
    plot: bool = typer.Option(False, "--plot", help="Show realtime Matplotlib dashboard."),
    history: bool = typer.Option(False, "--history/--no-history", help="Append a sparkline of the window."),
    history_width: Optional[int] = typer.Option(None, "--history-width", help="Sparkline width (most recent readings)."),
    keep_history: Optional[bool] = typer.Option(
        None,
        "--keep-history/--reset-on-reconnect",
        help="Keep statistics across reconnects (default from config).",
    ),
) -> None:
    """Read FR: lines from a serial port and print live statistics.

    Send SIGUSR1 to the process to reset the statistics.
    """

    cfg = _load(config_path, override)
    if keep_history is not None:
        cfg.keep_history = keep_history
    plotter = _make_plotter(cfg) if plot else None
    host = FlowHost(cfg, display=_make_display(cfg, history, history_width), plotter=plotter)
    host.run_serial(SerialSettings(port=port, baudrate=baudrate, timeout=timeout))


@app.command()
def ble(
    name: Optional[str] = typer.Option(None, "--name", help="BLE device name to scan for."),
    scan_timeout: Optional[float] = typer.Option(None, "--scan-timeout", help="Scan timeout (seconds)."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON config file."),
    override: Optional[List[str]] = typer.Option(None, "--set", help="Override config keys."),
    plot: bool = typer.Option(False, "--plot", help="Show realtime Matplotlib dashboard."),
    history: bool = typer.Option(False, "--history/--no-history", help="Append a sparkline of the window."),
    history_width: Optional[int] = typer.Option(None, "--history-width", help="Sparkline width (most recent readings)."),
) -> None:
    """Connect to the sensor over Bluetooth LE and print live statistics.

    Send SIGUSR1 to the process to reset the statistics.
    """

    try:
        from .ble import BleSettings, BleTransport
    except ImportError as exc:
        raise typer.BadParameter("bleak is required for BLE (pip install .[ble])") from exc

    cfg = _load(config_path, override)
    settings = BleSettings.from_config(cfg.ble)
    if name:
        settings.device_name = name
    if scan_timeout is not None:
        settings.scan_timeout = scan_timeout
    plotter = _make_plotter(cfg) if plot else None
    host = FlowHost(cfg, display=_make_display(cfg, history, history_width), plotter=plotter)
    try:
        host.run_transport(BleTransport(settings))
    except TransportError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def replay(
    input_path: Path = typer.Option(
        ..., "--in", help="Raw capture of the sensor byte stream.", exists=True, readable=True
    ),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Bytes per chunk."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON config file."),
    override: Optional[List[str]] = typer.Option(None, "--set", help="Override config keys."),
    history: bool = typer.Option(False, "--history/--no-history", help="Print a sparkline of the window."),
    history_width: Optional[int] = typer.Option(None, "--history-width", help="Sparkline width (most recent readings)."),
) -> None:
    """Feed a captured byte stream through the parser and print the summary."""

    cfg = _load(config_path, override)
    if chunk_size is not None:
        if chunk_size <= 0:
            raise typer.BadParameter("--chunk-size must be positive", param_hint="--chunk-size")
        cfg.stream.chunk_size = chunk_size
    display = _make_display(cfg, history, history_width)
    host = FlowHost(cfg)
    with input_path.open("rb") as fh:
        host.run_stream(fh)
    snapshot = host.monitor.snapshot()
    display.summary(snapshot)
    if display.show_history:
        typer.echo(f"History: {sparkline(snapshot, display.history_width)}")
    stats = host.monitor.stats()
    typer.echo(
        f"Samples: {stats.get('samples', 0)} "
        f"(malformed {stats.get('malformed', 0)}, unrecognized {stats.get('unrecognized', 0)})"
    )


@app.command()
def demo(
    samples: int = typer.Option(200, "--samples", help="Number of synthetic readings."),
    seed: int = typer.Option(42, "--seed", help="Random seed."),
) -> None:
    """Run a synthetic noisy stream through the parser and print the summary."""

    session = run_demo(samples=samples, seed=seed)
    display = TextDisplay()
    display.summary(session.snapshot())
    typer.echo(f"History: {sparkline(session.snapshot())}")
    stats = session.stats()
    typer.echo(
        f"Samples: {stats['samples']} "
        f"(malformed {stats['malformed']}, unrecognized {stats['unrecognized']})"
    )


def run_cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run_cli()
