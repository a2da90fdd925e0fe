"""Periodic telemetry fetch while the link is connected."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mavlink_connect.models.telemetry import TelemetrySample
from mavlink_connect.utils.logging import get_logger

logger = get_logger(__name__)


class TelemetryPoller:
    """Pulls one sample per interval and hands it to ``on_sample``.

    Every start/stop bumps a generation counter. A cycle whose generation
    is stale when its fetch returns discards the result instead of
    publishing it. A fetch error is reported once through ``on_failure``
    and ends the loop; there is no retry at this layer.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Mapping[str, Any] | None]],
        on_sample: Callable[[TelemetrySample], None],
        on_failure: Callable[[Exception], None],
        is_live: Callable[[], bool],
        interval: float = 1.0,
    ) -> None:
        self._fetch = fetch
        self._on_sample = on_sample
        self._on_failure = on_failure
        self._is_live = is_live
        self._interval = interval
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._cycles = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycles(self) -> int:
        """Number of samples published since construction."""
        return self._cycles

    def start(self) -> None:
        if self.is_running:
            return
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation), name="telemetry-poller"
        )
        logger.debug("poller_started", interval=self._interval)

    def stop(self) -> None:
        """Stop at once. Safe to call from inside a cycle."""
        self._generation += 1
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()
        logger.debug("poller_stopped")

    def _stale(self, generation: int) -> bool:
        return generation != self._generation or not self._is_live()

    async def _run(self, generation: int) -> None:
        while not self._stale(generation):
            await asyncio.sleep(self._interval)
            if self._stale(generation):
                return

            try:
                sample = _to_sample(await self._fetch())
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self._stale(generation):
                    logger.debug("poller_error_discarded", error=str(exc))
                    return
                logger.warning("telemetry_fetch_failed", error=str(exc))
                self.stop()
                self._on_failure(exc)
                return

            if self._stale(generation):
                logger.debug("poller_cycle_discarded")
                return

            self._cycles += 1
            try:
                self._on_sample(sample)
            except Exception as exc:
                logger.exception("telemetry_publish_failed")
                self.stop()
                self._on_failure(exc)
                return


def _to_sample(raw: Any) -> TelemetrySample:
    """Wrap a fetch result; anything but a mapping or None is a broken data path."""
    if raw is None:
        logger.warning("telemetry_fetch_returned_none")
        return TelemetrySample()
    if not isinstance(raw, Mapping):
        raise TypeError(f"Telemetry fetch returned {type(raw).__name__}, expected a mapping")
    return TelemetrySample(raw)
