import asyncio
from uuid import uuid4

import pytest

from tickbus.code import Context, SimpleNotificationCode
from tickbus.notifications import (
    NotificationCreator,
    NotificationDeleter,
    NotificationRunner,
)
from tickbus.simple_notification_store import SimpleNotificationStore
from tickbus.store import ErrorKind, JobSchedulerError, JobState, NotificationData


async def settle():
    for _ in range(30):
        await asyncio.sleep(0)


def noop(job_id, notification_id, state):
    return None


class RejectingStore(SimpleNotificationStore):
    async def add_or_update(self, data):
        raise JobSchedulerError(ErrorKind.UPDATE_JOB_DATA, "rejected")


async def stored_context(states):
    context = Context()
    job_id, notification_id = uuid4(), uuid4()
    await context.notification_storage.add_or_update(
        NotificationData(
            job_id=job_id,
            notification_id=notification_id,
            job_states=[int(s) for s in states],
        )
    )
    return context, job_id, notification_id


@pytest.mark.asyncio
async def test_add_stores_notification():
    context = Context()
    await NotificationCreator().init(context)
    job_id = uuid4()
    notification_id = await NotificationCreator.add(context, noop, [JobState.DONE], job_id)
    await settle()
    stored = await context.notification_storage.get(notification_id)
    assert stored.job_id == job_id
    assert stored.job_states == [int(JobState.DONE)]


@pytest.mark.asyncio
async def test_creator_merges_states_of_existing_notification():
    context, job_id, notification_id = await stored_context([JobState.SCHEDULED])
    await NotificationCreator().init(context)
    created = context.notify_created_tx.subscribe()
    context.notify_create_tx.send(
        (
            NotificationData(
                job_id=job_id,
                notification_id=notification_id,
                job_states=[int(JobState.SCHEDULED), int(JobState.DONE)],
            ),
            noop,
        )
    )
    assert await created.recv() == notification_id
    stored = await context.notification_storage.get(notification_id)
    assert stored.job_states == [int(JobState.SCHEDULED), int(JobState.DONE)]


@pytest.mark.asyncio
async def test_add_without_listener_raises():
    context = Context()
    with pytest.raises(JobSchedulerError) as caught:
        await NotificationCreator.add(context, noop, [JobState.DONE], uuid4())
    assert caught.value.kind is ErrorKind.CANT_ADD


@pytest.mark.asyncio
async def test_add_reports_storage_failure():
    context = Context(notification_storage=RejectingStore())
    await NotificationCreator().init(context)
    with pytest.raises(JobSchedulerError) as caught:
        await NotificationCreator.add(context, noop, [JobState.STARTED], uuid4())
    assert caught.value.kind is ErrorKind.UPDATE_JOB_DATA


@pytest.mark.asyncio
async def test_remove_single_state():
    context, job_id, notification_id = await stored_context(
        [JobState.SCHEDULED, JobState.DONE]
    )
    await NotificationDeleter().init(context)
    result = await NotificationDeleter.remove(context, notification_id, [JobState.DONE])
    assert result == (notification_id, True)
    stored = await context.notification_storage.get(notification_id)
    assert stored.job_states == [int(JobState.SCHEDULED)]


@pytest.mark.asyncio
async def test_remove_state_not_listened_to():
    context, job_id, notification_id = await stored_context([JobState.SCHEDULED])
    await NotificationDeleter().init(context)
    result = await NotificationDeleter.remove(context, notification_id, [JobState.STOP])
    assert result == (notification_id, False)


@pytest.mark.asyncio
async def test_remove_whole_notification():
    context, job_id, notification_id = await stored_context([JobState.DONE])
    await NotificationDeleter().init(context)
    result = await NotificationDeleter.remove(context, notification_id, None)
    assert result == (notification_id, True)
    storage = context.notification_storage
    assert await storage.list_notification_guids_for_job_id(job_id) == []


@pytest.mark.asyncio
async def test_remove_without_listener_raises():
    context = Context()
    with pytest.raises(JobSchedulerError) as caught:
        await NotificationDeleter.remove(context, uuid4(), None)
    assert caught.value.kind is ErrorKind.CANT_REMOVE


@pytest.mark.asyncio
async def test_job_deletion_removes_its_notifications():
    context, job_id, notification_id = await stored_context([JobState.DONE])
    await NotificationDeleter().init(context)
    deleted = context.notify_deleted_tx.subscribe()
    context.job_delete_tx.send(job_id)
    assert await deleted.recv() == (notification_id, True, None)
    storage = context.notification_storage
    assert await storage.list_notification_guids_for_job_id(job_id) == []


@pytest.mark.asyncio
async def test_runner_calls_matching_notifications():
    context, job_id, notification_id = await stored_context([JobState.SCHEDULED])
    calls = []

    async def record(job, notification, state):
        calls.append((job, notification, state))

    context.notification_code.data[notification_id] = record
    await NotificationRunner().init(context)

    context.notify_tx.send((job_id, JobState.DONE))
    await settle()
    assert calls == []

    context.notify_tx.send((job_id, JobState.SCHEDULED))
    await settle()
    assert calls == [(job_id, notification_id, JobState.SCHEDULED)]


@pytest.mark.asyncio
async def test_runner_skips_notification_without_code():
    context, job_id, notification_id = await stored_context([JobState.STARTED])
    other_id = uuid4()
    await context.notification_storage.add_or_update(
        NotificationData(job_id=job_id, notification_id=other_id, job_states=[2])
    )
    calls = []
    context.notification_code.data[other_id] = lambda j, n, s: calls.append(n)
    await NotificationRunner().init(context)
    context.notify_tx.send((job_id, JobState.STARTED))
    await settle()
    assert calls == [other_id]


@pytest.mark.asyncio
async def test_full_pipeline_add_then_fire():
    context = Context()
    code = context.notification_code
    assert isinstance(code, SimpleNotificationCode)
    await code.init(context)
    await NotificationCreator().init(context)
    await NotificationRunner().init(context)
    calls = []
    job_id = uuid4()
    notification_id = await NotificationCreator.add(
        context, lambda j, n, s: calls.append((j, n, s)), [JobState.DONE], job_id
    )
    await settle()
    context.notify_tx.send((job_id, JobState.DONE))
    await settle()
    assert calls == [(job_id, notification_id, JobState.DONE)]