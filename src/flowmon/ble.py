"""Bluetooth LE transport for the ESP32 flow sensor.

The sensor exposes the common "BLE serial" service (FFE0) and pushes its text
stream as notifications on characteristic FFE1. Each notification payload is
one chunk; payloads have no relation to line boundaries.

Requires the optional ``bleak`` dependency (``pip install flowmon[ble]``).
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from .config import BleConfig, ESP32_FLOW_NAME, SERIAL_CHAR_UUID, SERIAL_SERVICE_UUID
from .transport import Transport, TransportError

logger = logging.getLogger(__name__)


@dataclass
class BleSettings:
    device_name: str = ESP32_FLOW_NAME
    service_uuid: str = SERIAL_SERVICE_UUID
    char_uuid: str = SERIAL_CHAR_UUID
    scan_timeout: float = 10.0

    @staticmethod
    def from_config(config: BleConfig) -> "BleSettings":
        return BleSettings(
            device_name=config.device_name,
            service_uuid=config.service_uuid,
            char_uuid=config.char_uuid,
            scan_timeout=config.scan_timeout,
        )


class BleTransport(Transport):
    """Single BLE session: scan by name, connect, forward notifications until disconnect."""

    def __init__(self, settings: Optional[BleSettings] = None, poll_interval: float = 0.1):
        super().__init__()
        self.settings = settings or BleSettings()
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._chunks = 0

    def stop(self) -> None:
        self._stop_event.set()

    def stats(self) -> dict[str, int]:
        return {"chunks": self._chunks}

    def run(self) -> None:
        asyncio.run(self.run_async())

    async def run_async(self) -> None:
        logger.info("Scanning for %s (%.0fs)", self.settings.device_name, self.settings.scan_timeout)
        try:
            device = await BleakScanner.find_device_by_name(
                self.settings.device_name, timeout=self.settings.scan_timeout
            )
        except BleakError as exc:
            raise TransportError(f"BLE scan failed: {exc}") from exc
        if device is None:
            raise TransportError(f"Device '{self.settings.device_name}' not found")

        disconnected = asyncio.Event()

        def on_disconnect(_client: BleakClient) -> None:
            logger.info("Device %s disconnected", self.settings.device_name)
            disconnected.set()

        def on_notify(_sender, data: bytearray) -> None:
            self._chunks += 1
            self._emit_chunk(bytes(data))

        try:
            async with BleakClient(device, disconnected_callback=on_disconnect) as client:
                service = client.services.get_service(self.settings.service_uuid)
                if service is None:
                    raise TransportError(
                        f"Service {self.settings.service_uuid} not offered by {self.settings.device_name}"
                    )
                logger.info("Connected to %s (%s)", self.settings.device_name, device.address)
                self._begin_session()
                await client.start_notify(self.settings.char_uuid, on_notify)
                while not disconnected.is_set() and not self._stop_event.is_set():
                    await asyncio.sleep(self.poll_interval)
                if client.is_connected:
                    await client.stop_notify(self.settings.char_uuid)
        except BleakError as exc:
            raise TransportError(f"BLE link failed: {exc}") from exc
        finally:
            self._end_session()
