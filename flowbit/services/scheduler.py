"""
Cron Scheduler

Persists cron jobs and fires them through the trigger callback.

One asyncio task per active job sleeps until the next croniter fire time,
records last_run/next_run and calls the callback. Callback failures are
logged and the loop keeps going. Cron expressions are evaluated in UTC.
"""

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional

from croniter import croniter
from sqlalchemy.orm import Session

from flowbit.core.exceptions import InvalidRequest, StoreError
from flowbit.database.repositories.cron_jobs import CronJobRepository
from flowbit.schemas.cron_job import CronJobCreate, CronJobRead
from flowbit.utils.timezone import get_utc_now, to_utc

logger = logging.getLogger(__name__)

# (workflow_id, engine, payload) -> anything
TriggerCallback = Callable[[str, str, Any], Awaitable[Any]]


def validate_cron_expression(expression: str) -> None:
    if not expression or not croniter.is_valid(expression):
        raise InvalidRequest(f"Invalid cron expression: {expression!r}")


def next_fire_time(expression: str, base: Optional[datetime] = None) -> datetime:
    """Next fire time strictly after base (UTC)."""
    base = to_utc(base) if base else get_utc_now()
    return to_utc(croniter(expression, base).get_next(datetime))


class CronScheduler:
    """
    Cron job manager.

    Args:
        session_factory: Callable returning a new SQLAlchemy session
        trigger_callback: Async callable run on each firing; may be set
                          after construction
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        trigger_callback: Optional[TriggerCallback] = None,
    ):
        self.session_factory = session_factory
        self.trigger_callback = trigger_callback
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def running_jobs(self) -> List[str]:
        return [job_id for job_id, task in self._tasks.items() if not task.done()]

    def schedule_job(self, job: CronJobCreate) -> CronJobRead:
        """
        Create or replace a job and start it.

        Raises:
            InvalidRequest: invalid cron expression
        """
        validate_cron_expression(job.cron_expression)

        self._stop_task(job.id)

        with self._session() as db:
            saved = CronJobRepository(db).upsert(
                job_id=job.id,
                cron_expression=job.cron_expression,
                workflow_id=job.workflow_id,
                engine=job.engine,
                payload=job.payload,
                next_run=next_fire_time(job.cron_expression),
            )
            result = CronJobRead.model_validate(saved)

        self._start_task(job.id, job.cron_expression)
        logger.info(f"Scheduled cron job {job.id} ({job.cron_expression}) for workflow {job.workflow_id}")
        return result

    def cancel_job(self, job_id: str) -> bool:
        """Stop and deactivate a job. False if it does not exist or is inactive."""
        was_running = self._stop_task(job_id)

        with self._session() as db:
            repo = CronJobRepository(db)
            job = repo.get(job_id)
            if job is None:
                return False
            was_active = job.active
            repo.set_active(job_id, False)

        if was_running or was_active:
            logger.info(f"Cancelled cron job {job_id}")
            return True
        return False

    def list_jobs(self) -> List[CronJobRead]:
        with self._session() as db:
            return [CronJobRead.model_validate(job) for job in CronJobRepository(db).list()]

    def get_job(self, job_id: str) -> Optional[CronJobRead]:
        with self._session() as db:
            job = CronJobRepository(db).get(job_id)
            return CronJobRead.model_validate(job) if job else None

    async def initialize(self) -> int:
        """
        Restart every active job. Jobs with invalid expressions are deactivated.

        Returns:
            Number of jobs started
        """
        logger.info("Initializing cron jobs from persistent storage...")
        started = 0

        with self._session() as db:
            repo = CronJobRepository(db)
            for job in repo.list(active_only=True):
                try:
                    validate_cron_expression(job.cron_expression)
                except InvalidRequest as e:
                    logger.error(f"Deactivating saved cron job {job.id}: {e.message}")
                    repo.set_active(job.id, False)
                    continue

                repo.set_next_run(job.id, next_fire_time(job.cron_expression))
                self._start_task(job.id, job.cron_expression)
                started += 1

        logger.info(f"Initialized {started} active cron jobs")
        return started

    async def shutdown(self) -> None:
        """Cancel all job tasks."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"Cron scheduler stopped ({len(tasks)} job task(s) cancelled)")

    # --- Internal ----------------------------------------------------------------

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _start_task(self, job_id: str, expression: str) -> None:
        self._tasks[job_id] = asyncio.get_running_loop().create_task(
            self._run_job(job_id, expression),
            name=f"cron-{job_id}",
        )

    def _stop_task(self, job_id: str) -> bool:
        task = self._tasks.pop(job_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def _run_job(self, job_id: str, expression: str) -> None:
        try:
            while True:
                delay = (next_fire_time(expression) - get_utc_now()).total_seconds()
                await asyncio.sleep(max(delay, 0.0))
                try:
                    if not await self.fire(job_id):
                        break
                except StoreError as e:
                    logger.error(f"Cron job {job_id} could not be recorded: {e.message}")
        except asyncio.CancelledError:
            logger.debug(f"Cron job {job_id} loop cancelled")
            raise
        finally:
            if self._tasks.get(job_id) is asyncio.current_task():
                del self._tasks[job_id]

    async def fire(self, job_id: str) -> bool:
        """
        Run one firing of a job.

        Returns:
            False when the job is gone or inactive (the loop stops)
        """
        with self._session() as db:
            repo = CronJobRepository(db)
            job = repo.get(job_id)
            if job is None or not job.active:
                return False
            workflow_id, engine, payload = job.workflow_id, job.engine, job.payload
            now = get_utc_now()
            repo.mark_run(job_id, now, next_fire_time(job.cron_expression, now))

        logger.info(f"Executing cron job: {job_id} for workflow: {workflow_id}")

        if self.trigger_callback is None:
            logger.warning(f"Cron job {job_id} fired with no trigger callback set")
            return True

        try:
            await self.trigger_callback(workflow_id, engine, payload)
        except Exception as e:
            logger.error(f"Error executing cron job {job_id}: {e}", exc_info=True)

        return True
