"""
Cron Job Repository

CRUD operations for persisted cron schedules.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flowbit.core.exceptions import StoreError
from flowbit.database.models.cron_job import CronJob

logger = logging.getLogger(__name__)


class CronJobRepository:
    """
    Repository for cron job database operations.

    Every write commits on success and rolls back on failure.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, job_id: str) -> Optional[CronJob]:
        return self.db.get(CronJob, job_id)

    def list(self, active_only: bool = False) -> List[CronJob]:
        stmt = select(CronJob).order_by(CronJob.created_at.asc(), CronJob.id.asc())
        if active_only:
            stmt = stmt.where(CronJob.active.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def upsert(
        self,
        job_id: str,
        cron_expression: str,
        workflow_id: str,
        engine: str,
        payload: Any = None,
        next_run: Optional[datetime] = None,
    ) -> CronJob:
        """
        Create a job or replace the one with the same id.

        A replaced job is re-activated and its last_run cleared.
        """
        try:
            job = self.db.get(CronJob, job_id)
            if job is None:
                job = CronJob(id=job_id)
                self.db.add(job)

            job.cron_expression = cron_expression
            job.workflow_id = workflow_id
            job.engine = engine
            job.payload = payload
            job.active = True
            job.last_run = None
            job.next_run = next_run

            self.db.commit()
            self.db.refresh(job)
            return job

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving cron job {job_id}: {e}")
            raise StoreError(f"Failed to save cron job: {e}") from e

    def set_active(self, job_id: str, active: bool) -> bool:
        """Returns False if the job does not exist."""
        try:
            job = self.db.get(CronJob, job_id)
            if job is None:
                return False
            job.active = active
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating cron job {job_id}: {e}")
            raise StoreError(f"Failed to update cron job: {e}") from e

    def mark_run(self, job_id: str, last_run: datetime, next_run: Optional[datetime]) -> None:
        """Record a firing. Missing jobs are ignored (cancelled meanwhile)."""
        try:
            job = self.db.get(CronJob, job_id)
            if job is None:
                return
            job.last_run = last_run
            job.next_run = next_run
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error recording run of cron job {job_id}: {e}")
            raise StoreError(f"Failed to update cron job: {e}") from e

    def set_next_run(self, job_id: str, next_run: Optional[datetime]) -> None:
        try:
            job = self.db.get(CronJob, job_id)
            if job is not None:
                job.next_run = next_run
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to update cron job: {e}") from e
