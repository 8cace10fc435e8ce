"""Job metadata kept in memory."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from uuid import UUID

from tickbus.store import (
    ErrorKind,
    JobAndNextTick,
    JobSchedulerError,
    JobStoredData,
    MetaDataStorage,
)


class SimpleMetadataStore(MetaDataStorage):
    """A metadata store backed by a dictionary."""

    def __init__(self) -> None:
        self.data: dict[UUID, JobStoredData] = {}
        self._inited = False

    async def init(self) -> None:
        self._inited = True

    async def inited(self) -> bool:
        return self._inited

    async def get(self, id: UUID) -> JobStoredData | None:
        found = self.data.get(id)
        return copy.deepcopy(found) if found is not None else None

    async def add_or_update(self, data: JobStoredData) -> None:
        if data.id is None:
            raise JobSchedulerError(ErrorKind.UPDATE_JOB_DATA, "job data has no id")
        self.data[data.id] = data

    async def delete(self, guid: UUID) -> None:
        self.data.pop(guid, None)

    async def list_next_ticks(self) -> list[JobAndNextTick]:
        return [
            JobAndNextTick(
                id=job.id,
                job_type=job.job_type,
                next_tick=job.next_tick,
                last_tick=job.last_tick,
            )
            for job in self.data.values()
        ]

    async def set_next_and_last_tick(
        self, guid: UUID, next_tick: datetime | None, last_tick: datetime | None
    ) -> None:
        job = self.data.get(guid)
        if job is None:
            raise JobSchedulerError(ErrorKind.UPDATE_JOB_DATA, f"no job {guid}")
        job.set_next_tick(next_tick)
        job.set_last_tick(last_tick)

    async def time_till_next_job(self) -> timedelta | None:
        now = int(datetime.now(timezone.utc).timestamp())
        upcoming = [
            job.next_tick
            for job in self.data.values()
            if job.next_tick != 0 and job.next_tick > now
        ]
        if not upcoming:
            return None
        return timedelta(seconds=min(upcoming) - now)