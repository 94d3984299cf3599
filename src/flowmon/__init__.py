"""Live flow-rate monitor for the ESP32 ``FR:`` line protocol."""

from importlib.metadata import PackageNotFoundError, version

from .lines import DecodeError, LineAssembler
from .samples import LineKind, SampleStream, parse_flow_line
from .session import FlowMonitor, FlowSession, SessionClosedError
from .stats import StatsSnapshot, StatsWindow

try:  # pragma: no cover - fallback when package metadata missing
    __version__ = version("flowmon")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "DecodeError",
    "LineAssembler",
    "LineKind",
    "SampleStream",
    "parse_flow_line",
    "FlowMonitor",
    "FlowSession",
    "SessionClosedError",
    "StatsSnapshot",
    "StatsWindow",
]
