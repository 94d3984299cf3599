from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

ESP32_FLOW_NAME = "ESP32-Flow"
SERIAL_SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
SERIAL_CHAR_UUID = "0000ffe1-0000-1000-8000-00805f9b34fb"


@dataclass
class WindowConfig:
    capacity: int = 50


@dataclass
class StreamConfig:
    max_buffer: int = 4096
    chunk_size: int = 20


@dataclass
class HostRuntime:
    reconnect_initial_sec: float = 0.5
    reconnect_max_sec: float = 5.0
    stats_log_interval: float = 60.0
    read_size: int = 64


@dataclass
class BleConfig:
    device_name: str = ESP32_FLOW_NAME
    service_uuid: str = SERIAL_SERVICE_UUID
    char_uuid: str = SERIAL_CHAR_UUID
    scan_timeout: float = 10.0


@dataclass
class MonitorConfig:
    unit: str = "CFM"
    precision: int = 2
    keep_history: bool = True
    window: WindowConfig = field(default_factory=WindowConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    host: HostRuntime = field(default_factory=HostRuntime)
    ble: BleConfig = field(default_factory=BleConfig)

    def validate(self) -> "MonitorConfig":
        if self.window.capacity <= 0:
            raise ValueError(f"window.capacity must be positive, got {self.window.capacity}")
        if self.precision < 0:
            raise ValueError(f"precision must be >= 0, got {self.precision}")
        if self.stream.max_buffer <= 0:
            raise ValueError(f"stream.max_buffer must be positive, got {self.stream.max_buffer}")
        if self.stream.chunk_size <= 0:
            raise ValueError(f"stream.chunk_size must be positive, got {self.stream.chunk_size}")
        return self


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level JSON value must be an object")
    return data


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: Optional[Path | str] = None, overrides: Sequence[str] | None = None
) -> MonitorConfig:
    """
    Build a monitor configuration from an optional JSON file plus overrides.

    Overrides use dotted `key=value` pairs, e.g.:
        ["window.capacity=100", "ble.device_name=ESP32-Flow-2"]
    A missing *path* yields the defaults.
    """
    data: Dict[str, Any] = _load_json(Path(path)) if path is not None else {}
    override_data: Dict[str, Any] = {}
    for override in overrides or []:
        key, raw_value = _parse_override(override)
        _assign_nested(override_data, key, raw_value)
    merged = _merge(data, override_data)

    window = merged.get("window") or {}
    stream = merged.get("stream") or {}
    host = merged.get("host") or {}
    ble = merged.get("ble") or {}
    config = MonitorConfig(
        unit=str(merged.get("unit", "CFM")),
        precision=int(merged.get("precision", 2)),
        keep_history=bool(merged.get("keep_history", True)),
        window=WindowConfig(capacity=int(window.get("capacity", 50))),
        stream=StreamConfig(
            max_buffer=int(stream.get("max_buffer", 4096)),
            chunk_size=int(stream.get("chunk_size", 20)),
        ),
        host=HostRuntime(
            reconnect_initial_sec=float(host.get("reconnect_initial_sec", 0.5)),
            reconnect_max_sec=float(host.get("reconnect_max_sec", 5.0)),
            stats_log_interval=float(host.get("stats_log_interval", 60.0)),
            read_size=int(host.get("read_size", 64)),
        ),
        ble=BleConfig(
            device_name=str(ble.get("device_name", ESP32_FLOW_NAME)),
            service_uuid=str(ble.get("service_uuid", SERIAL_SERVICE_UUID)),
            char_uuid=str(ble.get("char_uuid", SERIAL_CHAR_UUID)),
            scan_timeout=float(ble.get("scan_timeout", 10.0)),
        ),
    )
    return config.validate()


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key:
        raise ValueError("Override key may not be empty")
    return key, _coerce_value(raw_value.strip())


def _coerce_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    for convert in (int, float):
        try:
            return convert(raw)
        except ValueError:
            continue
    return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
