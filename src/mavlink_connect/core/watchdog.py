"""Connection-attempt watchdog and telemetry streak monitor."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from mavlink_connect.exceptions import LinkTimeoutError
from mavlink_connect.models.link import LinkMode
from mavlink_connect.models.telemetry import TelemetrySample
from mavlink_connect.utils.logging import get_logger

logger = get_logger(__name__)

TimeoutCallback = Callable[["PendingAttempt", LinkTimeoutError], None]


@dataclass(eq=False)
class PendingAttempt:
    """One run of the connect sequence. Compared by identity only."""

    attempt_id: int
    mode: LinkMode
    started_at: float
    timeout_handle: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def is_armed(self) -> bool:
        return self.timeout_handle is not None


class LivenessWatchdog:
    """Single-shot timer per attempt, plus an empty-telemetry streak counter.

    Disarming is keyed to the attempt that armed the timer, so a late
    disarm from an older attempt can never cancel a newer one.
    """

    def __init__(self, on_timeout: TimeoutCallback, empty_streak_threshold: int = 5) -> None:
        self._on_timeout = on_timeout
        self._threshold = empty_streak_threshold
        self._armed: PendingAttempt | None = None
        self._empty_streak = 0

    @property
    def armed_attempt(self) -> PendingAttempt | None:
        return self._armed

    @property
    def empty_streak(self) -> int:
        return self._empty_streak

    def arm(self, attempt: PendingAttempt, timeout: float) -> None:
        """Start the timer for an attempt. Must run inside the event loop."""
        if attempt.timeout_handle is not None:
            attempt.timeout_handle.cancel()
        loop = asyncio.get_running_loop()
        attempt.timeout_handle = loop.call_later(timeout, self._fire, attempt, timeout)
        self._armed = attempt
        logger.debug(
            "watchdog_armed",
            attempt_id=attempt.attempt_id,
            mode=attempt.mode.value,
            timeout=timeout,
        )

    def disarm(self, attempt: PendingAttempt) -> None:
        """Cancel this attempt's timer. Other attempts are untouched."""
        handle = attempt.timeout_handle
        if handle is not None:
            handle.cancel()
            attempt.timeout_handle = None
            logger.debug("watchdog_disarmed", attempt_id=attempt.attempt_id)
        if self._armed is attempt:
            self._armed = None

    def _fire(self, attempt: PendingAttempt, timeout: float) -> None:
        attempt.timeout_handle = None
        if self._armed is not attempt:
            logger.debug("watchdog_stale_fire", attempt_id=attempt.attempt_id)
            return
        self._armed = None
        logger.warning(
            "watchdog_fired",
            attempt_id=attempt.attempt_id,
            mode=attempt.mode.value,
            timeout=timeout,
        )
        self._on_timeout(
            attempt,
            LinkTimeoutError(
                f"{attempt.mode.value.upper()} connection timed out after {timeout:g}s",
                code="timeout",
            ),
        )

    def observe_sample(self, sample: TelemetrySample) -> int:
        """Track consecutive empty samples. Empty data is never a failure."""
        if not sample.is_empty:
            if self._empty_streak >= self._threshold:
                logger.info("telemetry_resumed", after_empty=self._empty_streak)
            self._empty_streak = 0
            return 0

        self._empty_streak += 1
        if self._empty_streak == self._threshold:
            logger.warning("telemetry_empty_streak", count=self._empty_streak)
        else:
            logger.debug("telemetry_empty", count=self._empty_streak)
        return self._empty_streak

    def reset_streak(self) -> None:
        self._empty_streak = 0
