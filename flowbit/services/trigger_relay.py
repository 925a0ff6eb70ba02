"""
Trigger Relay

Runs one trigger attempt against an external engine with bookkeeping on
both sides of the call:

1. Validate ids, trigger type and engine (nothing is recorded on failure)
2. schedule + cron expression -> hand over to the scheduler and return
3. Record a RUNNING execution
4. Call the engine (bounded by the engine's trigger timeout)
5. Record COMPLETED with outputs, or ERROR with the failure message

A failure to record the ERROR state is logged and never hides the
original engine failure from the caller. There are no retries here.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Union

from sqlalchemy.orm import Session

from flowbit.core.exceptions import ExternalCallFailure, FlowbitError, InvalidRequest
from flowbit.schemas.cron_job import CronJobCreate
from flowbit.schemas.execution import (
    ExecutionCreate,
    ExecutionStatus,
    ExecutionUpdate,
    LogEntry,
    LogLevel,
    MAX_NAME_LENGTH,
    TriggerType,
)
from flowbit.schemas.trigger import ScheduleAck, TriggerOutcome
from flowbit.services.engines import EngineClient, EngineRegistry
from flowbit.services.recorder import ExecutionRecorder
from flowbit.services.stream_relay import ExecutionEventBroker
from flowbit.utils.timezone import get_utc_now, seconds_since

logger = logging.getLogger(__name__)


def schedule_job_id(engine: str, workflow_id: str) -> str:
    return f"{engine}-{workflow_id}"


class TriggerRelay:
    """
    Forwards trigger requests to the engines.

    Args:
        session_factory: Callable returning a new SQLAlchemy session
        engines: Registry of engine clients
        broker: Live stream broker passed on to the recorder
        scheduler: Cron scheduler for schedule triggers (optional)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        engines: EngineRegistry,
        broker: Optional[ExecutionEventBroker] = None,
        scheduler=None,
    ):
        self.session_factory = session_factory
        self.engines = engines
        self.broker = broker
        self.scheduler = scheduler

    async def trigger(
        self,
        workflow_id: Optional[str],
        engine: Optional[str],
        trigger_type: Optional[str] = None,
        payload: Any = None,
        cron_expression: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Union[TriggerOutcome, ScheduleAck]:
        """
        Trigger a workflow.

        Returns:
            TriggerOutcome for a run, ScheduleAck when the run was scheduled

        Raises:
            InvalidRequest: bad input, nothing recorded
            ExternalCallFailure: engine failed, execution left in ERROR
            StoreError: the execution could not be recorded
        """
        if not workflow_id or not engine:
            raise InvalidRequest("Missing workflowId or engine")
        if len(workflow_id) > MAX_NAME_LENGTH:
            raise InvalidRequest(f"workflowId must be at most {MAX_NAME_LENGTH} characters")

        try:
            kind = TriggerType(trigger_type or TriggerType.MANUAL.value)
        except ValueError:
            raise InvalidRequest(f"Unsupported trigger type: {trigger_type}")

        client = self.engines.get(engine)

        logger.info(f"Triggering workflow: {workflow_id}, engine: {engine}, type: {kind.value}")

        if kind == TriggerType.SCHEDULE and cron_expression:
            return self._schedule(workflow_id, engine, cron_expression, payload)

        flow_name, flow_tags = await self._lookup_flow(client, workflow_id)

        created_at = get_utc_now()
        with self._session() as db:
            execution_id = ExecutionRecorder(db, self.broker).create(ExecutionCreate(
                flow_id=workflow_id,
                flow_name=flow_name,
                engine=engine,
                trigger_type=kind,
                inputs=payload,
                tags=tags or flow_tags or None,
                timestamp=created_at,
            ))

        try:
            result = await client.run(workflow_id, payload, kind.value)
        except ExternalCallFailure as e:
            self._record_failure(execution_id, created_at, e.message)
            e.execution_id = execution_id
            logger.error(f"Execution {execution_id} failed: {e.message}")
            raise
        except asyncio.CancelledError:
            self._record_failure(execution_id, created_at, "Trigger request was cancelled")
            raise
        except Exception as e:
            self._record_failure(execution_id, created_at, str(e))
            logger.error(f"Unexpected error triggering {workflow_id}: {e}", exc_info=True)
            raise ExternalCallFailure(str(e), execution_id=execution_id) from e

        with self._session() as db:
            ExecutionRecorder(db, self.broker).update(execution_id, ExecutionUpdate(
                status=ExecutionStatus.COMPLETED,
                duration=seconds_since(created_at),
                outputs=result.outputs,
                logs=[LogEntry(
                    level=LogLevel.INFO,
                    message=f"Execution completed via {engine} ({len(result.outputs)} node(s))",
                )],
            ))

        logger.info(f"Execution {execution_id} completed")
        return TriggerOutcome(
            execution_id=execution_id,
            status=ExecutionStatus.COMPLETED.value,
            result=result.raw,
        )

    # --- Internal ----------------------------------------------------------------

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _schedule(self, workflow_id: str, engine: str, cron_expression: str, payload: Any) -> ScheduleAck:
        if self.scheduler is None:
            raise InvalidRequest("Scheduling is not enabled")

        job = self.scheduler.schedule_job(CronJobCreate(
            id=schedule_job_id(engine, workflow_id),
            cron_expression=cron_expression,
            workflow_id=workflow_id,
            engine=engine,
            payload=payload,
        ))
        return ScheduleAck(
            job_id=job.id,
            workflow_id=workflow_id,
            engine=engine,
            cron_expression=cron_expression,
            next_run=job.next_run,
        )

    async def _lookup_flow(self, client: EngineClient, workflow_id: str):
        """Flow name and tags, falling back to the workflow id on failure."""
        try:
            info = await client.get_flow(workflow_id)
            return info.name[:MAX_NAME_LENGTH], info.tags
        except ExternalCallFailure as e:
            logger.warning(f"Could not fetch metadata for {workflow_id}: {e.message}")
            return workflow_id, []

    def _record_failure(self, execution_id: str, created_at, message: str) -> None:
        """Best-effort ERROR update. Failures here are logged only."""
        try:
            with self._session() as db:
                ExecutionRecorder(db, self.broker).update(execution_id, ExecutionUpdate(
                    status=ExecutionStatus.ERROR,
                    duration=seconds_since(created_at),
                    error=message,
                    logs=[LogEntry(level=LogLevel.ERROR, message=message)],
                ))
        except FlowbitError as e:
            logger.error(
                f"Failed to record ERROR state for execution {execution_id}: {e.message}",
                exc_info=True,
            )
