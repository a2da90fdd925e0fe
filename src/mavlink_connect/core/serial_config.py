"""Serial device enumeration and baud rate resolution."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from mavlink_connect.config import LinkSettings
from mavlink_connect.exceptions import InvalidConfigurationError, describe
from mavlink_connect.models.serial import SerialConfig, SerialDevice
from mavlink_connect.transport.base import RawDeviceInfo, TransportService
from mavlink_connect.utils.logging import get_logger

logger = get_logger(__name__)

COMMON_BAUD_RATES: tuple[int, ...] = (9600, 19200, 38400, 57600, 115200, 230400, 460800, 921600)

_PATH_KEYS = ("path", "port", "device")
_NAME_KEYS = ("name", "description", "friendlyName", "product")
_VENDOR_KEYS = ("vendorId", "vendor_id", "vid")
_PRODUCT_KEYS = ("productId", "product_id", "pid")


def _first(raw: RawDeviceInfo, keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _usb_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, int):
        return f"{value:04X}"
    text = str(value).strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    return text.upper() or None


def normalize_devices(raw_devices: Iterable[RawDeviceInfo]) -> list[SerialDevice]:
    """Turn raw descriptors into SerialDevice values with scan-local ids.

    Descriptors without a path are dropped. Duplicate paths keep the
    first occurrence.
    """
    devices: list[SerialDevice] = []
    seen: set[str] = set()
    for raw in raw_devices:
        path = _first(raw, _PATH_KEYS)
        if path is None:
            logger.debug("serial_descriptor_skipped", descriptor=raw)
            continue
        path = str(path)
        if path in seen:
            continue
        seen.add(path)
        devices.append(SerialDevice(
            id=len(devices),
            path=path,
            name=str(_first(raw, _NAME_KEYS) or path),
            vendor_id=_usb_id(_first(raw, _VENDOR_KEYS)),
            product_id=_usb_id(_first(raw, _PRODUCT_KEYS)),
        ))
    return devices


def fallback_devices(paths: Iterable[str]) -> list[SerialDevice]:
    """Synthetic device list so the operator is never left with nothing to pick."""
    return [SerialDevice(id=i, path=p, name=p) for i, p in enumerate(paths)]


def parse_baud_rate(text: str | int) -> int:
    """Parse a baud rate. Must be a positive integer.

    Raises:
        InvalidConfigurationError: Not an integer, or not positive.
    """
    if isinstance(text, bool):
        raise InvalidConfigurationError(f"Invalid baud rate: {text!r}")
    if isinstance(text, int):
        value = text
    else:
        try:
            value = int(str(text).strip())
        except ValueError as exc:
            raise InvalidConfigurationError(f"Invalid baud rate: {text!r}") from exc
    if value <= 0:
        raise InvalidConfigurationError(f"Baud rate must be positive, got {value}")
    return value


class SerialConfigResolver:
    """Holds the current device list, selection and resolved SerialConfig."""

    def __init__(self, transport: TransportService, settings: LinkSettings | None = None) -> None:
        self._transport = transport
        self._settings = settings or LinkSettings()
        self._devices: tuple[SerialDevice, ...] = ()
        self._selected_id: int | None = None
        self._config: SerialConfig | None = None
        self._used_fallback = False

    @property
    def devices(self) -> tuple[SerialDevice, ...]:
        return self._devices

    @property
    def selected_device(self) -> SerialDevice | None:
        if self._selected_id is None:
            return None
        for device in self._devices:
            if device.id == self._selected_id:
                return device
        return None

    @property
    def config(self) -> SerialConfig | None:
        return self._config

    @property
    def used_fallback(self) -> bool:
        """True when the current list is the synthetic fallback."""
        return self._used_fallback

    async def scan_devices(self) -> tuple[SerialDevice, ...]:
        """Enumerate devices, falling back to conventional paths when none are found.

        The previous selection survives a rescan when its path is still
        present; otherwise the first device is selected.
        """
        previous = self.selected_device
        try:
            raw = await self._transport.get_serial_device_info()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("serial_scan_failed", error=describe(exc))
            raw = []

        devices = normalize_devices(raw or [])
        self._used_fallback = not devices
        if not devices:
            devices = fallback_devices(self._settings.fallback_serial_paths)
            logger.info("serial_scan_fallback", count=len(devices))
        else:
            logger.info("serial_scan_complete", count=len(devices))
        self._devices = tuple(devices)

        self._selected_id = None
        if previous is not None:
            for device in self._devices:
                if device.path == previous.path:
                    self._selected_id = device.id
                    break
        if self._selected_id is None:
            self._selected_id = self._devices[0].id
        if self._config is not None and self._config.device.path != self.selected_device.path:
            self._config = None
        return self._devices

    def select_device(self, device_id: int) -> SerialDevice:
        """Select a device by its id within the current scan."""
        for device in self._devices:
            if device.id == device_id:
                self._selected_id = device_id
                if self._config is not None and self._config.device.path != device.path:
                    self._config = None
                return device
        raise InvalidConfigurationError(f"No serial device with id {device_id} in the current scan")

    def resolve(
        self,
        device: SerialDevice | int | None = None,
        baud_rate_text: str | int | None = None,
    ) -> SerialConfig:
        """Produce the SerialConfig a serial connect needs.

        Args:
            device: A device value, an id from the current scan, or None
                for the current selection.
            baud_rate_text: Operator input; None uses the default rate.

        Raises:
            InvalidConfigurationError: No device, or an invalid baud rate.
        """
        if isinstance(device, int):
            device = self.select_device(device)
        elif device is None:
            device = self.selected_device
        if device is None:
            raise InvalidConfigurationError("No serial device selected")

        if baud_rate_text is None:
            baud_rate = self._settings.default_baud_rate
        else:
            baud_rate = parse_baud_rate(baud_rate_text)

        self._config = SerialConfig(device=device, baud_rate=baud_rate)
        logger.info("serial_config_resolved", path=device.path, baud_rate=baud_rate)
        return self._config

    def clear(self) -> None:
        self._config = None
