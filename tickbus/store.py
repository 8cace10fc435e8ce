"""Shared data records, errors and the storage interfaces used by the scheduler."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum, auto
from uuid import UUID


class ErrorKind(Enum):
    """The kinds of failure a scheduler component can report."""

    TICK_ERROR = auto()
    CANT_ADD = auto()
    CANT_REMOVE = auto()
    CANT_INIT = auto()
    GET_JOB_DATA = auto()
    UPDATE_JOB_DATA = auto()
    CANT_LIST_GUIDS = auto()
    CANT_LIST_NEXT_TICKS = auto()
    COULD_NOT_GET_TIME_UNTIL_NEXT_TICK = auto()


class JobSchedulerError(Exception):
    """Raised when a scheduler operation fails."""

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message or kind.name)


class JobState(IntEnum):
    """Lifecycle states a job passes through; notifications subscribe to these."""

    STOP = 0
    SCHEDULED = 1
    STARTED = 2
    DONE = 3
    REMOVED = 4


class JobType(IntEnum):
    """How a job's next run is worked out."""

    CRON = 0
    REPEATED = 1
    ONE_SHOT = 2


def _to_datetime(timestamp: int | None) -> datetime | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _to_timestamp(when: datetime) -> int:
    return math.floor(when.timestamp())


def _next_tick_utc(next_tick: int) -> datetime | None:
    if next_tick == 0:
        return None
    return _to_datetime(next_tick)


@dataclass
class NotificationData:
    """A notification registered for a job and the job states it listens to."""

    job_id: UUID | None = None
    notification_id: UUID | None = None
    job_states: list[int] = field(default_factory=list)
    extra: bytes = b""

    def job_id_and_notification_id(self) -> tuple[UUID, UUID] | None:
        """Both identifiers, or None unless both are present."""
        if self.job_id is None or self.notification_id is None:
            return None
        return self.job_id, self.notification_id


@dataclass
class JobStoredData:
    """Everything the metadata store keeps about a job."""

    id: UUID | None = None
    job_type: int = JobType.CRON
    next_tick: int = 0
    last_tick: int | None = None
    last_updated: int | None = None
    count: int = 0
    ran: bool = False
    stopped: bool = False
    extra: bytes = b""
    schedule: str | None = None
    repeating: bool = False
    repeated_every: int | None = None

    def next_tick_utc(self) -> datetime | None:
        """The next run time, or None when no run is planned (next_tick is 0)."""
        return _next_tick_utc(self.next_tick)

    def last_tick_utc(self) -> datetime | None:
        """The last run time, or None if the job never ran."""
        return _to_datetime(self.last_tick)

    def set_next_tick(self, when: datetime | None) -> None:
        """Record the next run time; None clears it."""
        self.next_tick = 0 if when is None else _to_timestamp(when)

    def set_last_tick(self, when: datetime | None) -> None:
        """Record the last run time; None clears it."""
        self.last_tick = None if when is None else _to_timestamp(when)


@dataclass
class JobAndNextTick:
    """The part of a job's metadata the scheduler needs on every tick."""

    id: UUID | None = None
    job_type: int = JobType.CRON
    next_tick: int = 0
    last_tick: int | None = None

    def next_tick_utc(self) -> datetime | None:
        """The next run time, or None when no run is planned (next_tick is 0)."""
        return _next_tick_utc(self.next_tick)

    def last_tick_utc(self) -> datetime | None:
        """The last run time, or None if the job never ran."""
        return _to_datetime(self.last_tick)


class InitStore(ABC):
    """A store that must be initialised before use."""

    @abstractmethod
    async def init(self) -> None:
        """Prepare the store."""

    @abstractmethod
    async def inited(self) -> bool:
        """Whether init has completed."""


class DataStore(ABC):
    """Keyed storage of records."""

    @abstractmethod
    async def get(self, id: UUID):
        """The record stored under id, or None."""

    @abstractmethod
    async def add_or_update(self, data) -> None:
        """Insert the record or replace the stored one."""

    @abstractmethod
    async def delete(self, guid: UUID) -> None:
        """Remove the record stored under guid."""


class MetaDataStorage(DataStore, InitStore):
    """Storage for job metadata."""

    @abstractmethod
    async def list_next_ticks(self) -> list[JobAndNextTick]:
        """Tick information for the stored jobs."""

    @abstractmethod
    async def set_next_and_last_tick(
        self, guid: UUID, next_tick: datetime | None, last_tick: datetime | None
    ) -> None:
        """Update a job's next and last run times."""

    @abstractmethod
    async def time_till_next_job(self) -> timedelta | None:
        """Time until the earliest future run, or None if nothing is planned."""


class NotificationStore(DataStore, InitStore):
    """Storage for job notifications."""

    @abstractmethod
    async def list_notification_guids_for_job_and_state(
        self, job_id: UUID, state: JobState
    ) -> list[UUID]:
        """Notifications of a job that listen to the given state."""

    @abstractmethod
    async def list_notification_guids_for_job_id(self, job_id: UUID) -> list[UUID]:
        """All notifications of a job."""

    @abstractmethod
    async def delete_notification_for_state(
        self, notification_id: UUID, state: JobState
    ) -> bool:
        """Stop a notification listening to a state; True if it was listening."""

    @abstractmethod
    async def delete_for_job(self, job_id: UUID) -> None:
        """Remove every notification of a job."""