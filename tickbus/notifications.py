"""Components that create, delete and fire job notifications."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID, uuid4

from tickbus.code import Broadcast, Context, Subscription, _TaskOwner, _is_failure
from tickbus.store import (
    ErrorKind,
    JobSchedulerError,
    JobState,
    NotificationData,
    NotificationStore,
)

logger = logging.getLogger(__name__)


class NotificationCreator(_TaskOwner):
    """Stores notifications as they are announced on the context."""

    async def _listen_for_additions(
        self, storage: NotificationStore, additions: Subscription, created: Broadcast
    ) -> None:
        async for data, _run in additions:
            if data.job_id is None:
                logger.error("Empty job id %r", data)
                continue
            notification_id = data.notification_id
            if notification_id is None:
                logger.error("Empty notification id %r", data)
                continue

            try:
                existing = await storage.get(notification_id)
            except JobSchedulerError:
                existing = None
            if existing is not None:
                for state in data.job_states:
                    if state not in existing.job_states:
                        existing.job_states.append(state)
                data = existing

            try:
                await storage.add_or_update(data)
            except JobSchedulerError as error:
                logger.error("Error adding or updating %r", error)
                if created.send((error, notification_id)) == 0:
                    logger.error("Nobody received the failure for %s", notification_id)
                continue

            if created.send(notification_id) == 0:
                logger.warning("Nobody received creation of %s", notification_id)

    async def init(self, context: Context) -> None:
        """Start storing notifications announced on the context."""
        additions = context.notify_create_tx.subscribe()
        self._spawn(
            self._listen_for_additions(
                context.notification_storage, additions, context.notify_created_tx
            )
        )

    @staticmethod
    async def add(
        context: Context,
        run: Callable[..., Any],
        job_states: Iterable[JobState],
        job_id: UUID,
    ) -> UUID:
        """Register run for the given states of a job; returns the new notification id."""
        notification_id = uuid4()
        data = NotificationData(
            job_id=job_id,
            notification_id=notification_id,
            job_states=[int(state) for state in job_states],
        )
        with context.notify_created_tx.subscribe() as created:
            if context.notify_create_tx.send((data, run)) == 0:
                raise JobSchedulerError(
                    ErrorKind.CANT_ADD, "nothing is listening for notification additions"
                )
            async for outcome in created:
                if _is_failure(outcome):
                    error, uuid = outcome
                    if uuid == notification_id:
                        raise error
                elif outcome == notification_id:
                    return notification_id
        raise JobSchedulerError(ErrorKind.CANT_ADD, "notification channel closed")


class NotificationDeleter(_TaskOwner):
    """Removes notifications when they or their jobs are deleted."""

    async def _listen_to_job_removals(
        self, storage: NotificationStore, job_removals: Subscription, deleted: Broadcast
    ) -> None:
        async for job_id in job_removals:
            try:
                notification_ids = await storage.list_notification_guids_for_job_id(job_id)
            except JobSchedulerError as error:
                logger.error("Error getting notifications for job %s: %r", job_id, error)
                continue
            for notification_id in notification_ids:
                try:
                    await storage.delete(notification_id)
                except JobSchedulerError as error:
                    logger.error("Error deleting notification %r", error)
                    continue
                if deleted.send((notification_id, True, None)) == 0:
                    logger.error("Nobody received deletion of %s", notification_id)

    async def _listen_for_notification_removals(
        self, storage: NotificationStore, removals: Subscription, deleted: Broadcast
    ) -> None:
        async for notification_id, states in removals:
            if states is not None:
                for state in states:
                    try:
                        removed = await storage.delete_notification_for_state(
                            notification_id, state
                        )
                    except JobSchedulerError as error:
                        logger.error("Error deleting notification for state %r", error)
                        continue
                    if deleted.send((notification_id, removed, [state])) == 0:
                        logger.error("Nobody received deletion of %s", notification_id)
            else:
                try:
                    await storage.delete(notification_id)
                except JobSchedulerError as error:
                    logger.error("Error deleting notification for all states %r", error)
                    continue
                if deleted.send((notification_id, True, None)) == 0:
                    logger.error("Nobody received deletion of %s", notification_id)

    async def init(self, context: Context) -> None:
        """Start following job and notification deletions on the context."""
        job_removals = context.job_delete_tx.subscribe()
        removals = context.notify_delete_tx.subscribe()
        storage = context.notification_storage
        self._spawn(
            self._listen_to_job_removals(storage, job_removals, context.notify_deleted_tx)
        )
        self._spawn(
            self._listen_for_notification_removals(storage, removals, context.notify_deleted_tx)
        )

    @staticmethod
    async def remove(
        context: Context,
        notification_id: UUID,
        states: Iterable[JobState] | None,
    ) -> tuple[UUID, bool]:
        """Remove a notification, or only some of its states; returns (id, removed)."""
        states = list(states) if states is not None else None
        with context.notify_deleted_tx.subscribe() as deleted:
            if context.notify_delete_tx.send((notification_id, states)) == 0:
                raise JobSchedulerError(
                    ErrorKind.CANT_REMOVE, "nothing is listening for notification removals"
                )
            async for outcome in deleted:
                if _is_failure(outcome):
                    error, uuid = outcome
                    if uuid == notification_id:
                        raise error
                elif outcome[0] == notification_id:
                    return outcome[0], outcome[1]
        raise JobSchedulerError(ErrorKind.CANT_REMOVE, "notification channel closed")


class NotificationRunner(_TaskOwner):
    """Calls the notifications listening to a job's state when that state is announced."""

    async def _run(
        self, code: Callable[..., Any], job_id: UUID, notification_id: UUID, state: JobState
    ) -> None:
        result = code(job_id, notification_id, state)
        if inspect.isawaitable(result):
            await result

    async def _listen_for_activations(
        self, context: Context, activations: Subscription
    ) -> None:
        storage = context.notification_storage
        code_store = context.notification_code
        async for job_id, state in activations:
            try:
                notification_ids = await storage.list_notification_guids_for_job_and_state(
                    job_id, state
                )
            except JobSchedulerError:
                logger.error(
                    "Error getting notifications for job %s and state %s", job_id, state
                )
                continue
            for notification_id in notification_ids:
                code = await code_store.get(notification_id)
                if code is None:
                    logger.error("Could not get notification code for %s", notification_id)
                    continue
                self._spawn(self._run(code, job_id, notification_id, state))

    async def init(self, context: Context) -> None:
        """Start firing notifications for states announced on the context."""
        activations = context.notify_tx.subscribe()
        self._spawn(self._listen_for_activations(context, activations))