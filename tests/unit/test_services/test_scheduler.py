"""
Unit tests for CronScheduler
"""

import asyncio
from datetime import datetime, timezone

import pytest

from flowbit.core.exceptions import InvalidRequest
from flowbit.database.repositories.cron_jobs import CronJobRepository
from flowbit.schemas.cron_job import CronJobCreate
from flowbit.services.scheduler import CronScheduler, next_fire_time, validate_cron_expression


class CallbackRecorder:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    async def __call__(self, workflow_id, engine, payload):
        self.calls.append((workflow_id, engine, payload))
        if self.fail:
            raise RuntimeError("engine down")


def make_job(**overrides) -> CronJobCreate:
    fields = {
        "id": "langflow-flow-1",
        "cron_expression": "0 9 * * *",
        "workflow_id": "flow-1",
        "engine": "langflow",
        "payload": {"input": "daily"},
    }
    fields.update(overrides)
    return CronJobCreate(**fields)


def test_next_fire_time_is_utc_and_after_base():
    base = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
    assert next_fire_time("0 9 * * *", base) == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert next_fire_time("0 9 * * *", datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)) == datetime(
        2026, 3, 2, 9, 0, tzinfo=timezone.utc
    )


@pytest.mark.parametrize("expression", ["", "not a cron", "61 * * * *"])
def test_invalid_expressions_rejected(expression):
    with pytest.raises(InvalidRequest):
        validate_cron_expression(expression)


@pytest.mark.asyncio
async def test_schedule_job_persists_and_starts(session_factory):
    scheduler = CronScheduler(session_factory, CallbackRecorder())
    try:
        saved = scheduler.schedule_job(make_job())

        assert saved.active is True
        assert saved.next_run is not None
        assert scheduler.running_jobs == ["langflow-flow-1"]
        assert scheduler.get_job("langflow-flow-1").workflow_id == "flow-1"
        assert saved.model_dump(by_alias=True)["cronExpression"] == "0 9 * * *"
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_schedule_job_rejects_bad_expression(session_factory):
    scheduler = CronScheduler(session_factory)

    with pytest.raises(InvalidRequest):
        scheduler.schedule_job(make_job(cron_expression="every day"))

    assert scheduler.list_jobs() == []


@pytest.mark.asyncio
async def test_fire_records_run_and_calls_back(session_factory):
    callback = CallbackRecorder()
    scheduler = CronScheduler(session_factory, callback)
    try:
        scheduler.schedule_job(make_job())

        assert await scheduler.fire("langflow-flow-1") is True

        assert callback.calls == [("flow-1", "langflow", {"input": "daily"})]
        job = scheduler.get_job("langflow-flow-1")
        assert job.last_run is not None
        assert job.next_run > job.last_run
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_callback_failure_keeps_job_alive(session_factory):
    scheduler = CronScheduler(session_factory, CallbackRecorder(fail=True))
    try:
        scheduler.schedule_job(make_job())

        assert await scheduler.fire("langflow-flow-1") is True
        assert scheduler.get_job("langflow-flow-1").active is True
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_cancel_job(session_factory):
    callback = CallbackRecorder()
    scheduler = CronScheduler(session_factory, callback)
    scheduler.schedule_job(make_job())

    assert scheduler.cancel_job("langflow-flow-1") is True
    assert scheduler.cancel_job("langflow-flow-1") is False
    assert scheduler.cancel_job("missing") is False
    await asyncio.sleep(0)

    assert scheduler.running_jobs == []
    assert scheduler.get_job("langflow-flow-1").active is False
    assert await scheduler.fire("langflow-flow-1") is False
    assert callback.calls == []
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_initialize_restarts_active_and_deactivates_invalid(session_factory):
    db = session_factory()
    repo = CronJobRepository(db)
    repo.upsert("good", "*/5 * * * *", "flow-1", "n8n")
    repo.upsert("bad", "not a cron", "flow-2", "n8n")
    repo.upsert("paused", "0 9 * * *", "flow-3", "n8n")
    repo.set_active("paused", False)
    db.close()

    scheduler = CronScheduler(session_factory)
    try:
        started = await scheduler.initialize()

        assert started == 1
        assert scheduler.running_jobs == ["good"]
        assert scheduler.get_job("bad").active is False
        assert scheduler.get_job("good").next_run is not None
    finally:
        await scheduler.shutdown()

    assert scheduler.running_jobs == []
