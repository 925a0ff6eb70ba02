"""Database repositories."""

from flowbit.database.repositories.executions import ExecutionRepository
from flowbit.database.repositories.cron_jobs import CronJobRepository

__all__ = ["ExecutionRepository", "CronJobRepository"]
