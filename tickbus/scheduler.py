"""The ticking core that decides which jobs are due and announces them."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from tickbus.code import Context, _TaskOwner
from tickbus.store import (
    ErrorKind,
    JobAndNextTick,
    JobSchedulerError,
    JobState,
    JobStoredData,
    JobType,
)

logger = logging.getLogger(__name__)

CronNext = Callable[[str, datetime], "datetime | None"]


def _must_run(tick: JobAndNextTick, now: datetime) -> bool:
    try:
        JobType(tick.job_type)
    except ValueError:
        logger.error("Unknown job type %r for job %s", tick.job_type, tick.id)
        return False
    next_tick = tick.next_tick_utc()
    last_tick = tick.last_tick_utc()
    if next_tick is None:
        return False
    if last_tick is None:
        return now >= next_tick
    return now >= next_tick and last_tick <= next_tick


class Scheduler(_TaskOwner):
    """Turns periodic ticks into job activations and updates run times.

    ``cron_next`` is called with a cron schedule and the current time and must
    return the first run strictly after that time, or None. Without it, cron jobs
    run once and get no further run time.
    """

    def __init__(self, interval: float = 0.5, cron_next: CronNext | None = None) -> None:
        super().__init__()
        self.interval = interval
        self.cron_next = cron_next
        self._shutdown = False
        self._ticker = _new_ticker()
        self.ticking = False
        self.inited = False

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown

    def init(self, context: Context) -> None:
        """Start acting on ticks; calling it again does nothing."""
        if self.inited:
            return
        self.inited = True
        ticks = self._ticker.subscribe()
        self._spawn(self._listen_for_ticks(context, ticks))

    async def _listen_for_ticks(self, context: Context, ticks: Any) -> None:
        with ticks:
            async for value in ticks:
                if value is not True or self._shutdown:
                    break
                await asyncio.sleep(self.interval)
                await self._handle_tick(context, datetime.now(timezone.utc))

    async def _handle_tick(self, context: Context, now: datetime) -> None:
        storage = context.metadata_storage
        try:
            next_ticks = await storage.list_next_ticks()
        except JobSchedulerError as error:
            logger.error("Error with listing next ticks %r", error)
            return

        for tick in next_ticks:
            if tick.id is not None and tick.next_tick == 0:
                if context.job_delete_tx.send(tick.id) == 0:
                    logger.error("Nobody received deletion of job %s", tick.id)

        due = [
            tick.id
            for tick in next_ticks
            if tick.next_tick != 0 and tick.id is not None and _must_run(tick, now)
        ]

        for job_id in due:
            if context.notify_tx.send((job_id, JobState.SCHEDULED)) == 0:
                logger.error("Nobody received scheduled notification for %s", job_id)
            if context.job_activation_tx.send(job_id) == 0:
                logger.error("Nobody received activation of %s", job_id)
            await self._advance(context, job_id, now)

    async def _advance(self, context: Context, job_id: UUID, now: datetime) -> None:
        storage = context.metadata_storage
        try:
            job = await storage.get(job_id)
        except JobSchedulerError:
            job = None
        if job is None:
            logger.error("Could not get job metadata for %s", job_id)
            return
        next_tick = self._next_tick(job, now)
        try:
            await storage.set_next_and_last_tick(job_id, next_tick, now)
        except JobSchedulerError as error:
            logger.error("Could not set next and last tick %r", error)

    def _next_tick(self, job: JobStoredData, now: datetime) -> datetime | None:
        try:
            job_type = JobType(job.job_type)
        except ValueError:
            logger.error("Unknown job type %r for job %s", job.job_type, job.id)
            return None
        if job_type is JobType.CRON:
            if job.schedule is None:
                return None
            if self.cron_next is None:
                logger.error("No cron evaluator for schedule %r", job.schedule)
                return None
            return self.cron_next(job.schedule, now)
        if job_type is JobType.ONE_SHOT:
            return None
        current = job.next_tick_utc()
        if job.repeated_every is None or current is None:
            return None
        return current + timedelta(seconds=job.repeated_every)

    async def shutdown(self) -> None:
        """Stop acting on ticks and let the ticking task end."""
        self._shutdown = True
        if self._ticker.send(False) == 0:
            logger.error("Error sending shutdown tick")

    def tick(self) -> None:
        """Send one tick; raises if nothing is listening."""
        if self._ticker.send(True) == 0:
            logger.error("Error sending tick")
            raise JobSchedulerError(ErrorKind.TICK_ERROR, "nothing is listening for ticks")

    def start(self) -> asyncio.Task[None]:
        """Start ticking every interval; returns the ticking task."""
        if self.ticking:
            raise JobSchedulerError(ErrorKind.TICK_ERROR, "scheduler is already ticking")
        self.ticking = True
        return self._spawn(self._tick_forever())

    async def _tick_forever(self) -> None:
        while True:
            if self._ticker.send(True) == 0:
                if self._shutdown:
                    return
                logger.error("Tick send error: no listeners")
            await asyncio.sleep(self.interval)


def _new_ticker() -> Any:
    from tickbus.code import Broadcast

    return Broadcast()