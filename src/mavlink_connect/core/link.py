"""Link lifecycle state machine.

Owns the authoritative ConnectionState and drives the transport through
connect, settle check, polling and teardown. All transitions run on the
event loop thread, one at a time. Transport callbacks only enqueue
events; the event pump applies them in order.

States:
    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTING -> ERROR, CONNECTED -> ERROR
    ERROR -> DISCONNECTED (reset), ERROR -> CONNECTING (retry)
    any -> DISCONNECTED (disconnect)
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
from collections import deque
from collections.abc import Callable
from typing import Any

from mavlink_connect.config import LinkSettings
from mavlink_connect.core.dispatcher import CommandDispatcher
from mavlink_connect.core.events import DataReceived, LinkEvent, TransportStateChanged
from mavlink_connect.core.poller import TelemetryPoller
from mavlink_connect.core.serial_config import SerialConfigResolver
from mavlink_connect.core.watchdog import LivenessWatchdog, PendingAttempt
from mavlink_connect.exceptions import (
    ConnectionLostError,
    HandshakeFailure,
    InvalidConfigurationError,
    LinkFailure,
    LinkTimeoutError,
    TransportError,
    VerificationFailure,
    describe,
)
from mavlink_connect.models.command import CommandKind, CommandOutcome, SendResult
from mavlink_connect.models.link import ConnectionState, LinkMode, LinkStatus
from mavlink_connect.models.serial import SerialConfig, SerialDevice
from mavlink_connect.models.telemetry import LinkSnapshot, TelemetrySample
from mavlink_connect.transport.base import TransportService, Unsubscribe
from mavlink_connect.utils.logging import get_logger

logger = get_logger(__name__)

SnapshotCallback = Callable[[LinkSnapshot], None]

_CONNECTABLE = (LinkStatus.DISCONNECTED, LinkStatus.ERROR)


class LinkStateMachine:
    """Single owner of the link to one vehicle.

    Usage:
        async with LinkStateMachine(transport) as link:
            await link.connect(LinkMode.TCP)
            await link.send_command(CommandKind.GUIDED, "ARM")
            print(link.snapshot().sample)
    """

    def __init__(self, transport: TransportService, settings: LinkSettings | None = None) -> None:
        self._transport = transport
        self._settings = settings or LinkSettings()
        self._state = ConnectionState()
        self._selected_mode = LinkMode.TCP
        self._attempt: PendingAttempt | None = None
        self._attempt_ids = itertools.count(1)
        self._sample: TelemetrySample | None = None
        self._serial_rx: deque[bytes] = deque(maxlen=self._settings.serial_rx_buffer_size)
        self._observers: list[SnapshotCallback] = []

        self._events: asyncio.Queue[LinkEvent] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._teardown_tasks: set[asyncio.Task[None]] = set()
        self._unsubscribe_transport: Unsubscribe | None = None
        self._unsubscribe_serial: Unsubscribe | None = None

        self._watchdog = LivenessWatchdog(
            on_timeout=self._on_watchdog_timeout,
            empty_streak_threshold=self._settings.empty_streak_threshold,
        )
        self._poller = TelemetryPoller(
            fetch=transport.get_mavlink_data,
            on_sample=self._publish_sample,
            on_failure=self._on_poll_failure,
            is_live=lambda: self._state.status == LinkStatus.CONNECTED,
            interval=self._settings.poll_interval,
        )
        self._resolver = SerialConfigResolver(transport, self._settings)
        self._dispatcher = CommandDispatcher(
            transport,
            is_connected=lambda: self._state.status == LinkStatus.CONNECTED,
            serial_path=self._serial_path,
            on_link_lost=self._on_link_lost,
            log_size=self._settings.command_log_size,
        )

    # ------------------------------------------------------------------
    # Published state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> LinkStatus:
        return self._state.status

    @property
    def settings(self) -> LinkSettings:
        return self._settings

    @property
    def selected_mode(self) -> LinkMode:
        return self._selected_mode

    @property
    def sample(self) -> TelemetrySample | None:
        """Latest telemetry, or None for "no data"."""
        return self._sample

    @property
    def command_log(self) -> tuple[CommandOutcome, ...]:
        return self._dispatcher.log

    @property
    def serial_config(self) -> SerialConfig | None:
        return self._resolver.config

    @property
    def devices(self) -> tuple[SerialDevice, ...]:
        return self._resolver.devices

    @property
    def pending_attempt(self) -> PendingAttempt | None:
        return self._attempt

    @property
    def poller(self) -> TelemetryPoller:
        return self._poller

    @property
    def watchdog(self) -> LivenessWatchdog:
        return self._watchdog

    def snapshot(self) -> LinkSnapshot:
        selected = self._resolver.selected_device
        return LinkSnapshot(
            state=self._state,
            selected_mode=self._selected_mode,
            sample=self._sample,
            commands=self._dispatcher.log,
            serial_config=self._resolver.config if self._selected_mode == LinkMode.SERIAL else None,
            devices=self._resolver.devices,
            selected_device_id=selected.id if selected is not None else None,
            serial_rx=tuple(self._serial_rx),
            empty_streak=self._watchdog.empty_streak,
        )

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        """Call ``callback`` with a fresh snapshot after every change."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("link_observer_failed")

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Subscribe to transport pushes and start the event pump."""
        if self._pump_task is not None:
            return
        events: asyncio.Queue[LinkEvent] = asyncio.Queue()
        self._events = events
        self._unsubscribe_transport = self._transport.subscribe(self._on_transport_state)
        self._pump_task = asyncio.get_running_loop().create_task(
            self._pump_events(events), name="link-events"
        )
        logger.debug("link_opened")

    async def close(self) -> None:
        """Disconnect, detach from the transport and release it."""
        await self.disconnect()
        if self._unsubscribe_transport is not None:
            self._unsubscribe_transport()
            self._unsubscribe_transport = None
        if self._pump_task is not None:
            self._pump_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump_task
            self._pump_task = None
            self._events = None
        try:
            await self._transport.cleanup()
        except Exception as exc:
            logger.warning("transport_cleanup_failed", error=describe(exc))
        logger.debug("link_closed")

    async def __aenter__(self) -> LinkStateMachine:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, status: LinkStatus, mode: LinkMode | None = None, error: str | None = None) -> None:
        current = self._state
        if not current.can_transition_to(status):
            raise RuntimeError(f"Illegal link transition {current.status} -> {status}")
        self._state = ConnectionState(
            status=status,
            mode=mode if mode is not None else current.mode,
            error=error,
        )
        logger.info(
            "link_transition",
            previous=current.status.value,
            status=status.value,
            mode=self._state.mode.value if self._state.mode else None,
            error=error,
        )
        self._notify()

    def select_mode(self, mode: LinkMode | str) -> LinkMode:
        """Choose the mode used by the next connect(). Only while disconnected."""
        mode = LinkMode(mode)
        if self._state.status != LinkStatus.DISCONNECTED:
            raise InvalidConfigurationError(
                f"Mode can only change while disconnected (status is {self._state.status.value})"
            )
        self._selected_mode = mode
        self._notify()
        return mode

    def reset(self) -> ConnectionState:
        """Acknowledge an error: ERROR -> DISCONNECTED. No-op otherwise."""
        if self._state.status == LinkStatus.ERROR:
            self._transition(LinkStatus.DISCONNECTED)
        return self._state

    async def connect(
        self,
        mode: LinkMode | str | None = None,
        serial_config: SerialConfig | None = None,
    ) -> ConnectionState:
        """Run one connection attempt and return the resulting state.

        Runtime failures do not raise; they end in ERROR with a readable
        message. Only precondition failures raise, before anything is sent.

        Raises:
            InvalidConfigurationError: Already connecting/connected, or
                SERIAL without a resolved SerialConfig.
        """
        mode = LinkMode(mode) if mode is not None else self._selected_mode
        self._check_can_connect(mode, serial_config)
        if mode == LinkMode.SERIAL and serial_config is None:
            serial_config = self._resolver.config

        await self._await_teardown()
        # Teardown may have yielded to another connect().
        self._check_can_connect(mode, serial_config)

        loop = asyncio.get_running_loop()
        attempt = PendingAttempt(
            attempt_id=next(self._attempt_ids),
            mode=mode,
            started_at=loop.time(),
        )
        self._attempt = attempt
        self._selected_mode = mode
        self._sample = None
        self._serial_rx.clear()
        self._watchdog.reset_streak()
        self._transition(LinkStatus.CONNECTING, mode=mode)
        self._watchdog.arm(attempt, self._settings.watchdog_timeout(mode))
        logger.info("link_connecting", attempt_id=attempt.attempt_id, mode=mode.value)

        try:
            await self._handshake(attempt, serial_config)
            if self._is_current(attempt):
                await self._settle_check(attempt)
        except asyncio.CancelledError:
            self._attempt_failed(attempt, LinkFailure("Connection attempt cancelled", code="cancelled"))
            raise
        except LinkFailure as exc:
            self._attempt_failed(attempt, exc)
            return self._state
        except Exception as exc:
            self._attempt_failed(
                attempt,
                HandshakeFailure(f"{mode.value.upper()} handshake failed: {describe(exc)}", code="handshake"),
            )
            return self._state

        if not self._is_current(attempt):
            # A disconnect, timeout or newer attempt already took over.
            logger.info("link_attempt_superseded", attempt_id=attempt.attempt_id, status=self._state.status.value)
            if self._attempt is None:
                self._schedule_teardown()
            return self._state

        self._attempt_succeeded(attempt)
        return self._state

    def _check_can_connect(self, mode: LinkMode, serial_config: SerialConfig | None) -> None:
        if self._state.status not in _CONNECTABLE:
            raise InvalidConfigurationError(
                f"Cannot connect while {self._state.status.value}; disconnect first"
            )
        if mode == LinkMode.SERIAL and serial_config is None and self._resolver.config is None:
            raise InvalidConfigurationError("Serial mode requires a device and baud rate")

    def _is_current(self, attempt: PendingAttempt) -> bool:
        return self._attempt is attempt and self._state.status == LinkStatus.CONNECTING

    async def _handshake(self, attempt: PendingAttempt, serial_config: SerialConfig | None) -> None:
        mode = attempt.mode
        started = await self._transport.start_connection(mode)
        if not self._is_current(attempt):
            return
        if started is False:
            raise HandshakeFailure(f"Transport refused {mode.value.upper()} connection", code="handshake")

        if mode != LinkMode.SERIAL:
            return

        # Second step; a failure here rolls back the serial mode too.
        if serial_config is None:
            raise HandshakeFailure("Serial mode requires a device and baud rate", code="handshake")
        device = serial_config.device
        bound = await self._transport.connect_serial_device(device.id, device.path, serial_config.baud_rate)
        if not self._is_current(attempt):
            return
        if not bound:
            raise HandshakeFailure(
                f"Could not open serial device {device.path} at {serial_config.baud_rate} baud",
                code="handshake",
            )

    async def _settle_check(self, attempt: PendingAttempt) -> None:
        await asyncio.sleep(self._settings.settle_interval)
        if not self._is_current(attempt):
            return
        reported = self._transport.get_state()
        if reported.status != LinkStatus.CONNECTED:
            detail = f": {reported.error}" if reported.error else ""
            raise VerificationFailure(
                f"Link not usable after {self._settings.settle_interval:g}s "
                f"(transport reports {reported.status.value}{detail})",
                code="verification",
            )

    def _attempt_succeeded(self, attempt: PendingAttempt) -> None:
        self._watchdog.disarm(attempt)
        self._attempt = None
        self._transition(LinkStatus.CONNECTED)
        if attempt.mode == LinkMode.SERIAL:
            self._attach_serial_listener()
        self._poller.start()
        elapsed = asyncio.get_running_loop().time() - attempt.started_at
        logger.info(
            "link_connected",
            attempt_id=attempt.attempt_id,
            mode=attempt.mode.value,
            elapsed=round(elapsed, 3),
        )

    def _attempt_failed(self, attempt: PendingAttempt, exc: Exception) -> None:
        """Fail the attempt if it is still the live one; stale reports are dropped."""
        if not self._is_current(attempt):
            logger.debug("link_stale_failure_ignored", attempt_id=attempt.attempt_id, error=describe(exc))
            return
        self._fail(exc)

    def _session_failed(self, exc: Exception) -> None:
        """Fail an established session. Ignored unless CONNECTED."""
        if self._state.status != LinkStatus.CONNECTED:
            logger.debug("link_session_failure_ignored", status=self._state.status.value, error=describe(exc))
            return
        self._fail(exc)

    def _fail(self, exc: Exception) -> None:
        """Single failure path for every cause: timeout, handshake, verification, transport."""
        self._poller.stop()
        if self._attempt is not None:
            self._watchdog.disarm(self._attempt)
            self._attempt = None
        self._watchdog.reset_streak()
        self._sample = None
        message = describe(exc)
        logger.warning("link_failed", reason=type(exc).__name__, error=message)
        self._transition(LinkStatus.ERROR, error=message)
        self._schedule_teardown()

    async def disconnect(self) -> ConnectionState:
        """Cancel everything and tear down. Allowed from any state; never ends in ERROR."""
        attempt = self._attempt
        if attempt is not None:
            self._watchdog.disarm(attempt)
            self._attempt = None
            logger.info("link_attempt_cancelled", attempt_id=attempt.attempt_id)
        self._poller.stop()
        self._watchdog.reset_streak()
        self._sample = None
        if self._state.status != LinkStatus.DISCONNECTED:
            self._transition(LinkStatus.DISCONNECTED)

        await self._await_teardown()
        await self._teardown()
        return self._state

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _schedule_teardown(self) -> None:
        task = asyncio.get_running_loop().create_task(self._teardown(), name="link-teardown")
        self._teardown_tasks.add(task)
        task.add_done_callback(self._teardown_tasks.discard)

    async def _await_teardown(self) -> None:
        if self._teardown_tasks:
            await asyncio.gather(*list(self._teardown_tasks))

    async def _teardown(self) -> None:
        """Stop the transport. Errors are logged, never raised."""
        self._detach_serial_listener()
        try:
            await self._transport.stop_connection()
        except Exception as exc:
            logger.warning("link_teardown_failed", error=describe(exc))
        else:
            logger.debug("link_teardown_complete")

    def _attach_serial_listener(self) -> None:
        self._detach_serial_listener()
        try:
            self._unsubscribe_serial = self._transport.on_serial_data_received(self._on_serial_data)
        except Exception as exc:
            logger.warning("serial_listener_attach_failed", error=describe(exc))

    def _detach_serial_listener(self) -> None:
        unsubscribe, self._unsubscribe_serial = self._unsubscribe_serial, None
        if unsubscribe is None:
            return
        try:
            unsubscribe()
            self._transport.remove_serial_data_listener()
        except Exception as exc:
            logger.warning("serial_listener_detach_failed", error=describe(exc))

    # ------------------------------------------------------------------
    # Callbacks and events
    # ------------------------------------------------------------------

    def _on_watchdog_timeout(self, attempt: PendingAttempt, exc: LinkTimeoutError) -> None:
        self._attempt_failed(attempt, exc)

    def _on_poll_failure(self, exc: Exception) -> None:
        self._session_failed(TransportError(f"Telemetry fetch failed: {describe(exc)}", code="fetch"))

    def _on_link_lost(self, exc: Exception) -> None:
        self._session_failed(ConnectionLostError(f"Link lost: {describe(exc)}", code="link_lost"))

    def _publish_sample(self, sample: TelemetrySample) -> None:
        if self._state.status != LinkStatus.CONNECTED:
            return
        self._sample = sample
        self._watchdog.observe_sample(sample)
        self._notify()

    def _on_transport_state(self, state: ConnectionState) -> None:
        if self._events is not None:
            self._events.put_nowait(TransportStateChanged(state))

    def _on_serial_data(self, data: bytes) -> None:
        if self._events is not None:
            self._events.put_nowait(DataReceived(bytes(data)))

    async def _pump_events(self, events: asyncio.Queue[LinkEvent]) -> None:
        while True:
            event = await events.get()
            try:
                self._apply_event(event)
            except Exception:
                logger.exception("link_event_failed", event=type(event).__name__)

    def _apply_event(self, event: LinkEvent) -> None:
        if isinstance(event, DataReceived):
            if self._state.status != LinkStatus.CONNECTED:
                logger.debug("serial_data_dropped", size=len(event.data))
                return
            self._serial_rx.append(event.data)
            self._notify()
            return

        reported = event.state
        logger.debug("transport_state", status=reported.status.value, error=reported.error)
        if reported.status not in (LinkStatus.DISCONNECTED, LinkStatus.ERROR):
            return
        # Queued pushes can predate the current session; trust the live state.
        if self._transport.get_state().status == LinkStatus.CONNECTED:
            logger.debug("transport_state_stale", status=reported.status.value)
            return
        if self._state.status == LinkStatus.CONNECTED:
            reason = reported.error or f"transport reported {reported.status.value}"
            self._session_failed(ConnectionLostError(f"Link lost: {reason}", code="link_lost"))

    # ------------------------------------------------------------------
    # Commands and serial setup
    # ------------------------------------------------------------------

    def _serial_path(self) -> str | None:
        config = self._resolver.config
        if config is None:
            return None
        return config.device.path

    async def send_command(self, kind: CommandKind | str, payload: Any = None) -> SendResult:
        """Send a command through the dispatcher; see CommandDispatcher.send_command."""
        result = await self._dispatcher.send_command(kind, payload)
        self._notify()
        return result

    async def send_heartbeat(self) -> SendResult:
        return await self.send_command(CommandKind.HEARTBEAT)

    async def scan_devices(self) -> tuple[SerialDevice, ...]:
        devices = await self._resolver.scan_devices()
        self._notify()
        return devices

    def select_device(self, device_id: int) -> SerialDevice:
        device = self._resolver.select_device(device_id)
        self._notify()
        return device

    def resolve_serial(
        self,
        device: SerialDevice | int | None = None,
        baud_rate_text: str | int | None = None,
    ) -> SerialConfig:
        config = self._resolver.resolve(device, baud_rate_text)
        self._notify()
        return config
