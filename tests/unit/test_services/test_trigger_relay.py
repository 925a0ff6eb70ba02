"""
Unit tests for TriggerRelay

Tests:
- Successful run records COMPLETED with duration, inputs and outputs
- Engine failure/timeout records ERROR and propagates
- Invalid input records nothing
- Schedule triggers hand over to the scheduler
"""

import asyncio

import httpx
import pytest

from flowbit.core.exceptions import ExternalCallFailure, InvalidRequest, StoreError
from flowbit.database.models import Execution
from flowbit.database.repositories.cron_jobs import CronJobRepository
from flowbit.database.repositories.executions import ExecutionRepository
from flowbit.schemas.trigger import ScheduleAck, TriggerOutcome
from flowbit.services.engines import EngineRegistry, LangflowClient
from flowbit.services.recorder import ExecutionRecorder
from flowbit.services.scheduler import CronScheduler
from flowbit.services.trigger_relay import TriggerRelay


def make_registry(handler, trigger_timeout=5.0, base_url="http://engine.test"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = LangflowClient(base_url, None, http, read_timeout=1.0, trigger_timeout=trigger_timeout)
    return EngineRegistry({"enginex": client}, http=http)


def ok_after_50ms():
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"id": "flow-42", "name": "Flow 42"})
        await asyncio.sleep(0.05)
        return httpx.Response(200, json={"result": "ok"})
    return handler


def fails_with(status_code):
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(404)
        return httpx.Response(status_code)
    return handler


def all_executions(session_factory):
    db = session_factory()
    try:
        return [ExecutionRepository(db).get(e.id) for e in db.query(Execution).all()]
    finally:
        db.close()


class TestSuccessfulTrigger:

    @pytest.mark.asyncio
    async def test_stub_engine_200_after_50ms(self, session_factory, broker):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()), broker)

        outcome = await relay.trigger("flow-42", "enginex", "manual", {"q": "hi"})

        assert isinstance(outcome, TriggerOutcome)
        assert outcome.result == {"result": "ok"}

        executions = all_executions(session_factory)
        assert len(executions) == 1
        execution = executions[0]
        assert execution.id == outcome.execution_id
        assert execution.flow_id == "flow-42"
        assert execution.flow_name == "Flow 42"
        assert execution.status == "COMPLETED"
        assert execution.inputs == {"q": "hi"}
        assert 0.04 <= execution.duration < 2.0
        assert execution.nodes[0].node_name == "result"
        assert execution.nodes[0].data == {"result": "ok"}
        assert [log.level for log in execution.logs] == ["INFO", "INFO"]

    @pytest.mark.asyncio
    async def test_metadata_failure_falls_back_to_workflow_id(self, session_factory):
        async def handler(request):
            if request.method == "GET":
                return httpx.Response(500)
            return httpx.Response(200, json={"result": "ok"})

        relay = TriggerRelay(session_factory, make_registry(handler))
        await relay.trigger("flow-7", "enginex")

        execution = all_executions(session_factory)[0]
        assert execution.flow_name == "flow-7"
        assert execution.trigger_type == "manual"

    @pytest.mark.asyncio
    async def test_long_flow_name_is_truncated(self, session_factory):
        async def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"id": "flow-1", "name": "N" * 300})
            return httpx.Response(200, json={"result": "ok"})

        relay = TriggerRelay(session_factory, make_registry(handler))
        outcome = await relay.trigger("flow-1", "enginex", "manual", {"q": "hi"})

        execution = all_executions(session_factory)[0]
        assert outcome.status == "COMPLETED"
        assert execution.flow_name == "N" * 255

    @pytest.mark.asyncio
    async def test_published_running_then_completed(self, session_factory, broker):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()), broker)

        outcome = await relay.trigger("flow-42", "enginex", "manual", {})

        assert [status for _, status in broker.published] == ["RUNNING", "COMPLETED"]
        assert {execution_id for execution_id, _ in broker.published} == {outcome.execution_id}


class TestFailedTrigger:

    @pytest.mark.asyncio
    async def test_stub_engine_503(self, session_factory):
        relay = TriggerRelay(session_factory, make_registry(fails_with(503)))

        with pytest.raises(ExternalCallFailure) as exc_info:
            await relay.trigger("flow-42", "enginex", "manual", {"q": "hi"})

        assert "503" in exc_info.value.message
        assert exc_info.value.engine_status == 503

        executions = all_executions(session_factory)
        assert len(executions) == 1
        execution = executions[0]
        assert exc_info.value.execution_id == execution.id
        assert execution.status == "ERROR"
        assert "503" in execution.error
        assert execution.duration is not None
        assert execution.logs[-1].level == "ERROR"

    @pytest.mark.asyncio
    async def test_timeout_records_error(self, session_factory):
        async def slow(request):
            if request.method == "GET":
                return httpx.Response(200, json={"name": "Slow"})
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={})

        relay = TriggerRelay(session_factory, make_registry(slow, trigger_timeout=0.05))

        with pytest.raises(ExternalCallFailure) as exc_info:
            await relay.trigger("flow-slow", "enginex")

        assert "timeout" in exc_info.value.message.lower()
        execution = all_executions(session_factory)[0]
        assert execution.status == "ERROR"
        assert execution.error == exc_info.value.message

    @pytest.mark.asyncio
    async def test_secondary_failure_does_not_mask_engine_error(self, session_factory, monkeypatch):
        def broken_update(self, execution_id, partial):
            raise StoreError("disk full")

        monkeypatch.setattr(ExecutionRecorder, "update", broken_update)
        relay = TriggerRelay(session_factory, make_registry(fails_with(502)))

        with pytest.raises(ExternalCallFailure) as exc_info:
            await relay.trigger("flow-42", "enginex")

        assert "502" in exc_info.value.message
        # RUNNING record remains for operators to reconcile
        assert all_executions(session_factory)[0].status == "RUNNING"


class TestInvalidTrigger:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("workflow_id,engine", [(None, "enginex"), ("flow-1", None), ("", "")])
    async def test_missing_ids(self, session_factory, workflow_id, engine):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()))

        with pytest.raises(InvalidRequest):
            await relay.trigger(workflow_id, engine)

        assert all_executions(session_factory) == []

    @pytest.mark.asyncio
    async def test_workflow_id_too_long(self, session_factory):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()))

        with pytest.raises(InvalidRequest, match="at most 255"):
            await relay.trigger("w" * 300, "enginex")

        assert all_executions(session_factory) == []

    @pytest.mark.asyncio
    async def test_unsupported_engine(self, session_factory):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()))

        with pytest.raises(InvalidRequest, match="Unsupported engine"):
            await relay.trigger("flow-1", "zapier")

        assert all_executions(session_factory) == []

    @pytest.mark.asyncio
    async def test_unconfigured_engine(self, session_factory):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms(), base_url=None))

        with pytest.raises(InvalidRequest, match="not configured"):
            await relay.trigger("flow-1", "enginex")

        assert all_executions(session_factory) == []

    @pytest.mark.asyncio
    async def test_unknown_trigger_type(self, session_factory):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()))

        with pytest.raises(InvalidRequest):
            await relay.trigger("flow-1", "enginex", "carrier-pigeon")

        assert all_executions(session_factory) == []


class TestScheduleTrigger:

    @pytest.mark.asyncio
    async def test_schedule_with_cron_creates_job_not_execution(self, session_factory):
        scheduler = CronScheduler(session_factory)
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()), scheduler=scheduler)

        try:
            ack = await relay.trigger("flow-1", "enginex", "schedule", {"a": 1}, cron_expression="0 9 * * *")
        finally:
            await scheduler.shutdown()

        assert isinstance(ack, ScheduleAck)
        assert ack.job_id == "enginex-flow-1"
        assert ack.next_run is not None
        assert all_executions(session_factory) == []

        db = session_factory()
        try:
            job = CronJobRepository(db).get("enginex-flow-1")
            assert job.payload == {"a": 1}
            assert job.active is True
        finally:
            db.close()

    @pytest.mark.asyncio
    async def test_invalid_cron_expression(self, session_factory):
        scheduler = CronScheduler(session_factory)
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()), scheduler=scheduler)

        with pytest.raises(InvalidRequest):
            await relay.trigger("flow-1", "enginex", "schedule", cron_expression="every tuesday")

        assert scheduler.list_jobs() == []

    @pytest.mark.asyncio
    async def test_schedule_without_cron_runs_now(self, session_factory):
        relay = TriggerRelay(session_factory, make_registry(ok_after_50ms()))

        outcome = await relay.trigger("flow-1", "enginex", "schedule")

        assert isinstance(outcome, TriggerOutcome)
        assert all_executions(session_factory)[0].trigger_type == "schedule"
