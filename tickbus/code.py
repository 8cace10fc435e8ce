"""Broadcast channels, the shared scheduler context and in-memory code registries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from tickbus.simple_metadata_store import SimpleMetadataStore
from tickbus.simple_notification_store import SimpleNotificationStore
from tickbus.store import JobSchedulerError, MetaDataStorage, NotificationStore

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One receiver of a Broadcast; every value sent after subscribing arrives here."""

    def __init__(self, broadcast: Broadcast) -> None:
        self._broadcast = broadcast
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def _push(self, value: Any) -> None:
        self._queue.put_nowait(value)

    async def recv(self) -> Any:
        """Wait for the next value; raises EOFError once the broadcast is closed."""
        value = await self._queue.get()
        if value is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise EOFError("broadcast closed")
        return value

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Any:
        try:
            return await self.recv()
        except EOFError:
            raise StopAsyncIteration from None

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._broadcast._detach(self)


class Broadcast:
    """A channel that delivers every sent value to all current subscribers."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription:
        """A new receiver for values sent from now on."""
        subscription = Subscription(self)
        if self._closed:
            subscription._push(_CLOSED)
        else:
            self._subscriptions.append(subscription)
        return subscription

    def send(self, value: Any) -> int:
        """Deliver value to every subscriber; returns how many received it."""
        if self._closed:
            return 0
        for subscription in self._subscriptions:
            subscription._push(value)
        return len(self._subscriptions)

    def close(self) -> None:
        """End the channel; receivers get what was already sent, then EOF."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._push(_CLOSED)
        self._subscriptions.clear()

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


class _TaskOwner:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


class SimpleJobCode(_TaskOwner):
    """Keeps the code of each job in memory, following job additions and removals."""

    def __init__(self) -> None:
        super().__init__()
        self.job_code: dict[UUID, Callable[..., Any]] = {}

    async def _listen_for_additions(self, additions: Subscription) -> None:
        async for job, code in additions:
            if job.id is None:
                logger.error("Job added without an id")
                continue
            self.job_code[job.id] = code

    async def _listen_for_removals(self, removals: Subscription) -> None:
        async for outcome in removals:
            if isinstance(outcome, UUID):
                self.job_code.pop(outcome, None)

    async def init(self, context: Context) -> None:
        """Start following the context's job creation and deletion channels."""
        additions = context.job_create_tx.subscribe()
        removals = context.job_deleted_tx.subscribe()
        self._spawn(self._listen_for_additions(additions))
        self._spawn(self._listen_for_removals(removals))

    async def get(self, uuid: UUID) -> Callable[..., Any] | None:
        """The code registered for a job, or None."""
        return self.job_code.get(uuid)


class SimpleNotificationCode(_TaskOwner):
    """Keeps the callback of each notification in memory."""

    def __init__(self) -> None:
        super().__init__()
        self.data: dict[UUID, Callable[..., Any]] = {}

    async def _listen_for_additions(self, additions: Subscription, created: Broadcast) -> None:
        async for notification, code in additions:
            notification_id = notification.notification_id
            if notification.job_id is None or notification_id is None:
                continue
            self.data[notification_id] = code
            if created.send(notification_id) == 0:
                logger.warning("Nobody received creation of notification %s", notification_id)

    async def _listen_for_removals(self, removals: Subscription, deleted: Broadcast) -> None:
        async for notification_id, states in removals:
            logger.warning(
                "Removing notification %s regardless of states %s", notification_id, states
            )
            self.data.pop(notification_id, None)
            if deleted.send((notification_id, True, states)) == 0:
                logger.error("Nobody received removal of notification %s", notification_id)

    async def init(self, context: Context) -> None:
        """Start following the context's notification creation and deletion channels."""
        additions = context.notify_create_tx.subscribe()
        removals = context.notify_delete_tx.subscribe()
        self._spawn(self._listen_for_additions(additions, context.notify_created_tx))
        self._spawn(self._listen_for_removals(removals, context.notify_deleted_tx))

    async def get(self, uuid: UUID) -> Callable[..., Any] | None:
        """The callback registered for a notification, or None."""
        return self.data.get(uuid)


@dataclass
class Context:
    """Channels and stores shared by the scheduler's components.

    Outcome channels (job_deleted_tx, notify_created_tx) carry a UUID on success
    and an (error, uuid or None) tuple on failure; notify_deleted_tx carries
    (uuid, deleted, states) on success and (error, uuid or None) on failure.
    """

    job_activation_tx: Broadcast = field(default_factory=Broadcast)
    job_create_tx: Broadcast = field(default_factory=Broadcast)
    job_delete_tx: Broadcast = field(default_factory=Broadcast)
    job_deleted_tx: Broadcast = field(default_factory=Broadcast)
    notify_tx: Broadcast = field(default_factory=Broadcast)
    notify_create_tx: Broadcast = field(default_factory=Broadcast)
    notify_created_tx: Broadcast = field(default_factory=Broadcast)
    notify_delete_tx: Broadcast = field(default_factory=Broadcast)
    notify_deleted_tx: Broadcast = field(default_factory=Broadcast)
    metadata_storage: MetaDataStorage = field(default_factory=SimpleMetadataStore)
    notification_storage: NotificationStore = field(default_factory=SimpleNotificationStore)
    job_code: SimpleJobCode = field(default_factory=SimpleJobCode)
    notification_code: SimpleNotificationCode = field(default_factory=SimpleNotificationCode)


def _is_failure(outcome: Any) -> bool:
    return isinstance(outcome, tuple) and bool(outcome) and isinstance(outcome[0], JobSchedulerError)