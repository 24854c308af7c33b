"""Scheduler: Health-gated cron driver for price update ticks.

States:
    UNSTARTED -> health check pending or failed; no ticks are ever scheduled.
    RUNNING   -> health check passed; a tick fires on every cron match.

A firing is skipped while the previous tick is still in flight, so two
ticks never submit to the same targets concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum

from croniter import croniter

from .PriceFeeder import PriceFeeder, TickReport

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle state of the scheduler."""

    UNSTARTED = "unstarted"
    RUNNING = "running"


class Scheduler:
    """Runs the startup health check, then ticks on a cron schedule.

    :ivar feeder: Price feeder executing the ticks.
    :ivar schedule: Five-field cron expression (local time).
    :ivar state: Current lifecycle state.
    :ivar ticks_fired: Number of ticks started.
    :ivar ticks_skipped: Number of firings skipped by the overlap guard.
    """

    def __init__(self, feeder: PriceFeeder, schedule: str | None = None) -> None:
        """Initialize the scheduler.

        :param feeder: Feeder whose tick() runs on each firing.
        :param schedule: Cron expression (default: ``feeder.config.schedule``).
        """
        self.feeder = feeder
        self.schedule = schedule or feeder.config.schedule
        self.state = SchedulerState.UNSTARTED
        self.ticks_fired = 0
        self.ticks_skipped = 0
        self.last_report: TickReport | None = None

        self._health_checked = False
        self._cron: croniter | None = None
        self._current: asyncio.Task | None = None
        self._stopped = asyncio.Event()

    @property
    def tick_in_progress(self) -> bool:
        """Whether a tick is currently running."""
        return self._current is not None and not self._current.done()

    async def start(self) -> bool:
        """Run the health check once and transition to RUNNING on success.

        :returns: True if the scheduler is running.
        """
        if self._health_checked:
            return self.state is SchedulerState.RUNNING
        self._health_checked = True

        try:
            await self.feeder.health_check()
        except Exception as e:
            logger.error(f"Health check failed. Scheduled tasks will not start: {e}")
            return False

        self._cron = croniter(self.schedule, datetime.now().astimezone())
        self.state = SchedulerState.RUNNING
        logger.info(f"Health check passed. Starting scheduled tasks ({self.schedule})")
        return True

    def next_fire_delay(self) -> float:
        """Seconds until the next cron match."""
        if self._cron is None:
            raise RuntimeError("Scheduler is not running")
        next_fire = self._cron.get_next(datetime)
        return max(0.0, (next_fire - datetime.now().astimezone()).total_seconds())

    async def _run_tick(self) -> TickReport | None:
        logger.info("Running the price update task")
        try:
            report = await self.feeder.tick()
        except Exception:
            logger.exception("Price update task failed")
            return None
        self.last_report = report
        logger.info(f"Price update task completed: {report.summary()}")
        return report

    def fire(self) -> asyncio.Task | None:
        """Start a tick unless one is already in flight.

        :returns: The tick task, or None if the firing was skipped.
        :raises RuntimeError: If the scheduler is not running.
        """
        if self.state is not SchedulerState.RUNNING:
            raise RuntimeError("Cannot fire a tick before the health check passed")

        if self.tick_in_progress:
            self.ticks_skipped += 1
            logger.warning("Previous price update still in progress, skipping this run")
            return None

        self.ticks_fired += 1
        self._current = asyncio.create_task(self._run_tick())
        return self._current

    async def run_once(self) -> TickReport | None:
        """Run the health check and, if it passes, a single tick.

        :returns: TickReport of the tick, or None if the health check failed.
        """
        if not await self.start():
            return None
        task = self.fire()
        return await task if task is not None else None

    async def run(self) -> None:
        """Run the health check, then fire ticks until stopped or cancelled.

        The feeder is closed on every exit path, including a failed health check.
        """
        try:
            if not await self.start():
                return

            while not self._stopped.is_set():
                delay = self.next_fire_delay()
                logger.debug(f"Next price update in {delay:.1f}s")
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    self.fire()

            # Stopped: let the in-flight tick finish its dispatch
            if self._current is not None:
                await self._current
        finally:
            if self.tick_in_progress:
                assert self._current is not None
                self._current.cancel()
                await asyncio.gather(self._current, return_exceptions=True)
            await self.feeder.close()

    def stop(self) -> None:
        """Stop firing new ticks; run() returns after the current wait."""
        self._stopped.set()
