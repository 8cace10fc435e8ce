# tickbus

An asyncio job scheduler built from small parts that talk over broadcast
channels. Everything lives in memory and there are no third-party
dependencies (Python 3.10 or later).

## Parts

- `tickbus.store` – the data records (`JobStoredData`, `JobAndNextTick`,
  `NotificationData`), the enums `JobType` (`CRON`, `REPEATED`, `ONE_SHOT`)
  and `JobState` (`STOP`, `SCHEDULED`, `STARTED`, `DONE`, `REMOVED`), the
  error `JobSchedulerError` with its `kind` (an `ErrorKind`), and the abstract
  store interfaces `InitStore`, `DataStore`, `MetaDataStorage` and
  `NotificationStore`.
- `tickbus.simple_metadata_store.SimpleMetadataStore` – job metadata in a
  dictionary.
- `tickbus.simple_notification_store.SimpleNotificationStore` – notification
  registrations in dictionaries, grouped by job.
- `tickbus.code` – `Broadcast` / `Subscription` channels, the shared
  `Context` (channels plus stores and code registries), and the registries
  `SimpleJobCode` and `SimpleNotificationCode` that hold the callables for
  each job and notification.
- `tickbus.notifications` – `NotificationCreator`, `NotificationDeleter` and
  `NotificationRunner`, which store, remove and fire notifications.
- `tickbus.scheduler.Scheduler` – turns ticks into job activations.

## Broadcast channels

`Broadcast.send(value)` delivers a value to every current subscriber and
returns how many received it. A `Subscription` is read with `await recv()` or
`async for`; once the broadcast is closed it raises `EOFError` (ending an
`async for`). Using a subscription as a `with` block detaches it on exit.

## Stores

```python
import asyncio
from uuid import uuid4
from tickbus.simple_metadata_store import SimpleMetadataStore
from tickbus.store import ErrorKind, JobSchedulerError

async def main():
    store = SimpleMetadataStore()
    await store.init()
    print(await store.inited())              # True
    print(await store.time_till_next_job())  # None: nothing scheduled
    try:
        await store.set_next_and_last_tick(uuid4(), None, None)
    except JobSchedulerError as error:
        print(error.kind is ErrorKind.UPDATE_JOB_DATA)  # True

asyncio.run(main())
```

Run times are stored as whole seconds since the epoch; a `next_tick` of 0
means no run is planned. `next_tick_utc()` and `last_tick_utc()` give them
back as UTC datetimes (or None), and `set_next_tick()` / `set_last_tick()`
take datetimes (None clears them).

`SimpleNotificationStore` raises `JobSchedulerError` with `GET_JOB_DATA` for
`get` of an unknown notification, `CANT_REMOVE` for deleting one, and
`UPDATE_JOB_DATA` when a notification lacks its job or notification id.

## Running the scheduler

```python
import asyncio
from datetime import datetime, timezone
from uuid import uuid4

from tickbus.code import Context
from tickbus.notifications import NotificationCreator, NotificationDeleter, NotificationRunner
from tickbus.scheduler import Scheduler
from tickbus.store import JobState, JobStoredData, JobType

async def print_activations(subscription):
    async for job_id in subscription:
        print("activated", job_id)

async def main():
    context = Context()
    await context.notification_code.init(context)
    workers = [NotificationCreator(), NotificationDeleter(), NotificationRunner()]
    for worker in workers:
        await worker.init(context)
    scheduler = Scheduler(interval=0.1)
    scheduler.init(context)

    activations = asyncio.create_task(
        print_activations(context.job_activation_tx.subscribe())
    )

    job = JobStoredData(id=uuid4(), job_type=JobType.REPEATED, repeated_every=1)
    job.set_next_tick(datetime.now(timezone.utc))
    await context.metadata_storage.add_or_update(job)

    await NotificationCreator.add(
        context,
        lambda job_id, notification_id, state: print("state", state.name, job_id),
        [JobState.SCHEDULED],
        job.id,
    )

    scheduler.start()
    await asyncio.sleep(2.5)
    await scheduler.shutdown()
    activations.cancel()

asyncio.run(main())
```

On each tick the scheduler waits `interval` seconds, then reads
`list_next_ticks()` from the metadata store:

- jobs whose `next_tick` is 0 are announced on `job_delete_tx` (the
  `NotificationDeleter` then removes their notifications);
- a job is due when now is at or past its next run and its last run (if any)
  is not after it. For each due job it sends `(job_id, JobState.SCHEDULED)`
  on `notify_tx`, the job id on `job_activation_tx`, and stores the last run
  as now and the next run as: the previous next run plus `repeated_every`
  seconds for `REPEATED`, none for `ONE_SHOT`, and `cron_next(schedule, now)`
  for `CRON`.

`Scheduler.start()` ticks every `interval` seconds (0.5 by default) and
returns the ticking task; calling it twice raises `JobSchedulerError`
(`TICK_ERROR`). `Scheduler.tick()` sends a single tick and raises
`TICK_ERROR` if nothing is listening. `await Scheduler.shutdown()` stops the
tick handling and lets the ticking task end.

`NotificationCreator.add(context, run, job_states, job_id)` returns the new
notification id; `NotificationDeleter.remove(context, notification_id,
states)` removes a notification entirely (`states=None`) or only some of its
states and returns `(notification_id, removed)`. Callbacks are called as
`run(job_id, notification_id, state)` and may be coroutines.

## What is not included

- No cron expression parsing: pass `cron_next` to `Scheduler` to compute cron
  run times; without it a cron job runs once and gets no further run time.
- Nothing runs job code on activation: ids are only announced on
  `job_activation_tx`, and `SimpleJobCode` only keeps the callables announced
  on `job_create_tx`. Acting on activations is left to the caller.
- No persistent storage: both stores are in memory only.
- No command-line interface.

## Running the tests

```
pip install "tickbus[test]"
pytest
```