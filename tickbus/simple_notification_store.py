"""Job notifications kept in memory."""

from __future__ import annotations

import copy
from uuid import UUID

from tickbus.store import (
    ErrorKind,
    JobSchedulerError,
    JobState,
    NotificationData,
    NotificationStore,
)


class SimpleNotificationStore(NotificationStore):
    """A notification store backed by dictionaries, grouped by job."""

    def __init__(self) -> None:
        self.data: dict[UUID, dict[UUID, NotificationData]] = {}
        self.notification_vs_job: dict[UUID, UUID] = {}
        self._inited = False

    async def init(self) -> None:
        self._inited = True

    async def inited(self) -> bool:
        return self._inited

    async def get(self, id: UUID) -> NotificationData | None:
        job_id = self.notification_vs_job.get(id)
        if job_id is None:
            raise JobSchedulerError(ErrorKind.GET_JOB_DATA, f"unknown notification {id}")
        notifications = self.data.get(job_id)
        if notifications is None:
            raise JobSchedulerError(ErrorKind.GET_JOB_DATA, f"no notifications for job {job_id}")
        found = notifications.get(id)
        return copy.deepcopy(found) if found is not None else None

    async def add_or_update(self, data: NotificationData) -> None:
        ids = data.job_id_and_notification_id()
        if ids is None:
            raise JobSchedulerError(
                ErrorKind.UPDATE_JOB_DATA, "notification lacks job or notification id"
            )
        job_id, notification_id = ids
        self.notification_vs_job[notification_id] = job_id
        self.data.setdefault(job_id, {})[notification_id] = data

    async def delete(self, guid: UUID) -> None:
        job_id = self.notification_vs_job.pop(guid, None)
        if job_id is None:
            raise JobSchedulerError(ErrorKind.CANT_REMOVE, f"unknown notification {guid}")
        notifications = self.data.get(job_id)
        if notifications is None:
            raise JobSchedulerError(ErrorKind.CANT_REMOVE, f"no notifications for job {job_id}")
        notifications.pop(guid, None)
        if not notifications:
            del self.data[job_id]

    async def list_notification_guids_for_job_and_state(
        self, job_id: UUID, state: JobState
    ) -> list[UUID]:
        return [
            notification_id
            for notification_id, notification in self.data.get(job_id, {}).items()
            if int(state) in notification.job_states
        ]

    async def list_notification_guids_for_job_id(self, job_id: UUID) -> list[UUID]:
        return list(self.data.get(job_id, {}))

    async def delete_notification_for_state(
        self, notification_id: UUID, state: JobState
    ) -> bool:
        job_id = self.notification_vs_job.get(notification_id)
        if job_id is None:
            raise JobSchedulerError(
                ErrorKind.CANT_REMOVE, f"unknown notification {notification_id}"
            )
        notifications = self.data.get(job_id)
        if notifications is None:
            raise JobSchedulerError(ErrorKind.CANT_REMOVE, f"no notifications for job {job_id}")

        removed = False
        notification = notifications.get(notification_id)
        if notification is not None:
            removed = int(state) in notification.job_states
            notification.job_states = [s for s in notification.job_states if s != state]
            if not notification.job_states:
                del notifications[notification_id]
                del self.notification_vs_job[notification_id]
        if not notifications:
            del self.data[job_id]
        return removed

    async def delete_for_job(self, job_id: UUID) -> None:
        self.notification_vs_job = {
            notification_id: owner
            for notification_id, owner in self.notification_vs_job.items()
            if owner != job_id
        }
        self.data.pop(job_id, None)