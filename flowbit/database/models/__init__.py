"""Database models."""

from flowbit.database.models.execution import Execution
from flowbit.database.models.execution_log import ExecutionLog
from flowbit.database.models.execution_node import ExecutionNode
from flowbit.database.models.cron_job import CronJob

__all__ = [
    "Execution",
    "ExecutionLog",
    "ExecutionNode",
    "CronJob",
]
