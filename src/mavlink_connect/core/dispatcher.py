"""Outbound command dispatch with uniform success/failure normalization."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mavlink_connect.exceptions import (
    InvalidConfigurationError,
    MalformedInputError,
    describe,
    is_link_loss,
)
from mavlink_connect.mavlink.framing import build_heartbeat_frame, decode_hex, encode_text, format_hex
from mavlink_connect.mavlink.types import GCS_COMPONENT_ID, GCS_SYSTEM_ID
from mavlink_connect.models.command import CommandKind, CommandOutcome, GuidedCommand, SendResult
from mavlink_connect.transport.base import TransportService
from mavlink_connect.utils.logging import get_logger

logger = get_logger(__name__)

SendCall = Callable[[], Awaitable[Any]]


async def safe_call(call: SendCall) -> SendResult:
    """Run one send and fold every outcome into a SendResult.

    The transport may raise, return False, or return a mapping with its
    own ``success``/``error`` keys. All of them come back the same way.
    """
    try:
        data = await call()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        return SendResult(success=False, error=describe(exc), link_lost=is_link_loss(exc))

    if data is False:
        return SendResult(success=False, error="Transport rejected the command")
    if isinstance(data, Mapping) and "success" in data:
        if data["success"]:
            return SendResult(success=True, data=data.get("data", data))
        error = str(data.get("error") or "Transport rejected the command")
        return SendResult(success=False, error=error, link_lost=is_link_loss(Exception(error)))
    return SendResult(success=True, data=data)


class CommandDispatcher:
    """Builds and sends guided commands, serial payloads and heartbeats.

    Input is decoded before any check against the link, so malformed
    input fails the same way connected or not. Sends run one at a time;
    the connected check runs under the same lock right before the send,
    never from a cached value.
    """

    def __init__(
        self,
        transport: TransportService,
        is_connected: Callable[[], bool],
        serial_path: Callable[[], str | None],
        on_link_lost: Callable[[Exception], None],
        log_size: int = 100,
        system_id: int = GCS_SYSTEM_ID,
        component_id: int = GCS_COMPONENT_ID,
    ) -> None:
        self._transport = transport
        self._is_connected = is_connected
        self._serial_path = serial_path
        self._on_link_lost = on_link_lost
        self._log: deque[CommandOutcome] = deque(maxlen=log_size)
        self._system_id = system_id
        self._component_id = component_id
        self._sequence = 0
        self._lock = asyncio.Lock()

    @property
    def log(self) -> tuple[CommandOutcome, ...]:
        """Command outcomes, oldest first."""
        return tuple(self._log)

    @property
    def sequence(self) -> int:
        """Sequence number the next heartbeat will carry."""
        return self._sequence

    def clear_log(self) -> None:
        self._log.clear()

    def next_heartbeat(self) -> bytes:
        frame = build_heartbeat_frame(
            sequence=self._sequence,
            system_id=self._system_id,
            component_id=self._component_id,
        )
        self._sequence = (self._sequence + 1) & 0xFF
        return frame

    def _require_serial_path(self) -> str:
        path = self._serial_path()
        if not path:
            raise InvalidConfigurationError("No serial device configured for raw data")
        return path

    def _prepare(self, kind: CommandKind, payload: Any) -> tuple[str, SendCall]:
        """Validate input and return (label, send call)."""
        transport = self._transport

        if kind == CommandKind.GUIDED:
            name = str(payload or "").strip().upper()
            if name not in GuidedCommand.__members__:
                raise MalformedInputError(f"Unknown guided command: {payload!r}")
            return name, lambda: transport.send_guided_command(name)

        if kind == CommandKind.TEXT:
            text = str(payload or "")
            encode_text(text)
            return text, lambda: transport.send_text_command(text)

        if kind == CommandKind.RAW:
            if isinstance(payload, (bytes, bytearray)):
                if not payload:
                    raise MalformedInputError("Raw payload is empty")
                data = bytes(payload)
            else:
                data = encode_text(str(payload or ""))
            path = self._require_serial_path()
            return _bytes_label(data), lambda: transport.send_serial_data(path, data)

        if kind == CommandKind.HEX:
            data = decode_hex(str(payload or ""))
            path = self._require_serial_path()
            return _bytes_label(data), lambda: transport.send_serial_data(path, data)

        if kind == CommandKind.HEARTBEAT:
            async def _send_heartbeat() -> Any:
                # Sequence advances only for frames that are actually sent.
                return await transport.send_mavlink_message(self.next_heartbeat())
            return "HEARTBEAT", _send_heartbeat

        raise MalformedInputError(f"Unsupported command kind: {kind}")

    async def send_command(self, kind: CommandKind | str, payload: Any = None) -> SendResult:
        """Send one command and record its outcome.

        Raises:
            MalformedInputError: Payload could not be decoded.
            InvalidConfigurationError: Link not connected, or raw data
                with no serial device configured.
        """
        try:
            kind = CommandKind(kind)
        except ValueError as exc:
            raise MalformedInputError(f"Unsupported command kind: {kind!r}") from exc

        label, call = self._prepare(kind, payload)

        async with self._lock:
            if not self._is_connected():
                raise InvalidConfigurationError("Not connected to vehicle")

            logger.info("command_sending", kind=kind.value, label=label)
            result = await safe_call(call)

            self._log.append(CommandOutcome(
                kind=kind,
                label=label,
                success=result.success,
                data=result.data,
                error=result.error,
            ))

        if result.success:
            logger.info("command_sent", kind=kind.value, label=label)
        elif result.link_lost:
            logger.warning("command_link_lost", kind=kind.value, label=label, error=result.error)
            self._on_link_lost(Exception(result.error or "link lost"))
        else:
            logger.warning("command_rejected", kind=kind.value, label=label, error=result.error)
        return result


def _bytes_label(data: bytes, limit: int = 16) -> str:
    text = format_hex(data[:limit])
    if len(data) > limit:
        text += f" ... ({len(data)} bytes)"
    return text
