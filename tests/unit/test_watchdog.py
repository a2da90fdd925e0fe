"""Unit tests for the connection watchdog and empty-streak tracking."""

from __future__ import annotations

import asyncio

from mavlink_connect.core.watchdog import LivenessWatchdog, PendingAttempt
from mavlink_connect.exceptions import LinkTimeoutError
from mavlink_connect.models.link import LinkMode
from mavlink_connect.models.telemetry import TelemetrySample


def _attempt(attempt_id: int = 1, mode: LinkMode = LinkMode.TCP) -> PendingAttempt:
    return PendingAttempt(attempt_id=attempt_id, mode=mode, started_at=0.0)


class TestTimer:
    def test_fires_once_with_timeout_error(self):
        fired: list[tuple[PendingAttempt, LinkTimeoutError]] = []

        async def scenario():
            watchdog = LivenessWatchdog(lambda a, e: fired.append((a, e)))
            attempt = _attempt(mode=LinkMode.SERIAL)
            watchdog.arm(attempt, 0.01)
            await asyncio.sleep(0.05)
            assert watchdog.armed_attempt is None
            assert not attempt.is_armed

        asyncio.run(scenario())

        assert len(fired) == 1
        attempt, exc = fired[0]
        assert attempt.attempt_id == 1
        assert isinstance(exc, LinkTimeoutError)
        assert "SERIAL" in str(exc)
        assert "timed out" in str(exc)

    def test_disarm_prevents_fire(self):
        fired = []

        async def scenario():
            watchdog = LivenessWatchdog(lambda a, e: fired.append(a))
            attempt = _attempt()
            watchdog.arm(attempt, 0.01)
            watchdog.disarm(attempt)
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert fired == []

    def test_disarm_of_older_attempt_leaves_newer_armed(self):
        fired = []

        async def scenario():
            watchdog = LivenessWatchdog(lambda a, e: fired.append(a.attempt_id))
            first = _attempt(1)
            second = _attempt(2)
            watchdog.arm(first, 10.0)
            watchdog.disarm(first)
            watchdog.arm(second, 0.01)
            # A late disarm from the first attempt must not touch the second.
            watchdog.disarm(first)
            assert watchdog.armed_attempt is second
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert fired == [2]

    def test_replaced_attempt_timer_is_stale(self):
        fired = []

        async def scenario():
            watchdog = LivenessWatchdog(lambda a, e: fired.append(a.attempt_id))
            first = _attempt(1)
            second = _attempt(2)
            watchdog.arm(first, 0.01)
            watchdog.arm(second, 10.0)
            await asyncio.sleep(0.05)
            watchdog.disarm(second)

        asyncio.run(scenario())
        assert fired == []

    def test_rearm_same_attempt_cancels_previous_handle(self):
        fired = []

        async def scenario():
            watchdog = LivenessWatchdog(lambda a, e: fired.append(a.attempt_id))
            attempt = _attempt()
            watchdog.arm(attempt, 0.01)
            watchdog.arm(attempt, 0.03)
            await asyncio.sleep(0.08)

        asyncio.run(scenario())
        assert fired == [1]


class TestEmptyStreak:
    def test_counts_consecutive_empty_samples(self):
        watchdog = LivenessWatchdog(lambda a, e: None, empty_streak_threshold=2)
        assert watchdog.observe_sample(TelemetrySample({})) == 1
        assert watchdog.observe_sample(TelemetrySample({})) == 2
        assert watchdog.observe_sample(TelemetrySample({})) == 3
        assert watchdog.empty_streak == 3

    def test_data_resets_streak(self):
        watchdog = LivenessWatchdog(lambda a, e: None)
        watchdog.observe_sample(TelemetrySample({}))
        assert watchdog.observe_sample(TelemetrySample({"HEARTBEAT": {}})) == 0
        assert watchdog.empty_streak == 0

    def test_reset_streak(self):
        watchdog = LivenessWatchdog(lambda a, e: None)
        watchdog.observe_sample(TelemetrySample({}))
        watchdog.reset_streak()
        assert watchdog.empty_streak == 0
