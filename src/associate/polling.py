"""Periodic polling of remote issue trackers."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from .events import EventBus, PollCompleted
from .integrations import FetchError, Fetcher

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PollTimer:
    integration_id: str
    interval: float
    last_poll_at: float | None = None
    in_flight: bool = False

    def due(self, now: float) -> bool:
        return self.last_poll_at is None or now - self.last_poll_at >= self.interval


class RemotePollScheduler:
    """Owns one :class:`PollTimer` per integration.

    Each integration is polled immediately on :meth:`start` and then every
    ``interval`` seconds. At most one fetch per integration runs at a time;
    its outcome is posted as :class:`PollCompleted`.
    """

    def __init__(
        self,
        bus: EventBus,
        fetchers: Iterable[Fetcher],
        *,
        interval: float = 60.0,
        timeout: float = 30.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._bus = bus
        self._fetchers = {fetcher.integration_id: fetcher for fetcher in fetchers}
        self._timers = {
            integration_id: PollTimer(integration_id, interval) for integration_id in self._fetchers
        }
        self._timeout = timeout
        self._clock = clock or time.monotonic
        self._tasks: set[asyncio.Task] = set()
        self._loops: list[asyncio.Task] = []

    @property
    def timers(self) -> dict[str, PollTimer]:
        return self._timers

    def fetcher(self, integration_id: str) -> Fetcher | None:
        return self._fetchers.get(integration_id)

    def start(self) -> None:
        for integration_id in self._timers:
            self._loops.append(asyncio.create_task(self._timer_loop(integration_id)))

    async def stop(self) -> None:
        pending = [*self._loops, *self._tasks]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._loops.clear()
        self._tasks.clear()

    def trigger(self, integration_id: str, manual: bool = False) -> bool:
        """Start a poll now. Returns False when one is already in flight."""

        timer = self._timers.get(integration_id)
        if timer is None:
            raise KeyError(integration_id)
        if timer.in_flight:
            logger.debug("Poll already in flight", extra={"integration": integration_id, "manual": manual})
            return False
        timer.in_flight = True
        timer.last_poll_at = self._clock()
        task = asyncio.create_task(self._poll(timer, manual))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _timer_loop(self, integration_id: str) -> None:
        timer = self._timers[integration_id]
        while True:
            if timer.due(self._clock()):
                self.trigger(integration_id)
            last = timer.last_poll_at if timer.last_poll_at is not None else self._clock()
            await asyncio.sleep(max(last + timer.interval - self._clock(), 0.05))

    async def _poll(self, timer: PollTimer, manual: bool) -> None:
        fetcher = self._fetchers[timer.integration_id]
        try:
            issues = await asyncio.wait_for(fetcher.fetch(), self._timeout)
        except asyncio.TimeoutError:
            event = PollCompleted(timer.integration_id, error=f"timed out after {self._timeout:g}s", manual=manual)
        except FetchError as exc:
            event = PollCompleted(timer.integration_id, error=str(exc), manual=manual)
        except asyncio.CancelledError:
            timer.in_flight = False
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Fetcher crashed", extra={"integration": timer.integration_id})
            event = PollCompleted(timer.integration_id, error=f"{type(exc).__name__}: {exc}", manual=manual)
        else:
            event = PollCompleted(timer.integration_id, issues=tuple(issues), manual=manual)

        if event.error is not None:
            logger.warning("Poll failed", extra={"integration": timer.integration_id, "error": event.error})
        self._bus.post(event)
        timer.in_flight = False


__all__ = ["PollTimer", "RemotePollScheduler"]
