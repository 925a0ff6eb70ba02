"""
Execution Recorder

The only sanctioned way to mutate execution state:

    create(data)        -> id     (always RUNNING, with an initial log line)
    update(id, partial) -> True   (atomic partial update)

Lifecycle enforced on update:
- RUNNING may receive logs and outputs without a status change.
- RUNNING -> COMPLETED/SUCCESS/ERROR happens once and sets duration.
- Re-sending the same terminal status is a no-op for status/duration/error;
  logs and outputs sent with it are still applied.
- Anything else on a terminal execution raises InvalidTransition.

Each call is one transaction. Subscribers of the live stream broker are
woken after the commit.
"""

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flowbit.core.exceptions import FlowbitError, InvalidTransition, NotFoundError, StoreError
from flowbit.database.models.execution import Execution
from flowbit.database.repositories.executions import ExecutionRepository
from flowbit.schemas.execution import (
    ExecutionCreate,
    ExecutionStatus,
    ExecutionUpdate,
    LogEntry,
    LogLevel,
    is_terminal,
)
from flowbit.services.stream_relay import ExecutionEventBroker
from flowbit.utils.timezone import get_utc_now, seconds_since

logger = logging.getLogger(__name__)


class ExecutionRecorder:
    """
    Writes execution lifecycle records.

    Args:
        db: SQLAlchemy session (the recorder commits/rolls back on it)
        broker: Optional broker notified after each committed write
    """

    def __init__(self, db: Session, broker: Optional[ExecutionEventBroker] = None):
        self.db = db
        self.broker = broker
        self.repo = ExecutionRepository(db)

    def create(self, data: ExecutionCreate) -> str:
        """
        Insert a RUNNING execution.

        Raises:
            StoreError: the row could not be written
        """
        execution_id = data.id or str(uuid4())
        trigger_type = data.trigger_type.value

        try:
            execution = Execution(
                id=execution_id,
                flow_id=data.flow_id,
                flow_name=data.flow_name,
                engine=data.engine,
                status=ExecutionStatus.RUNNING.value,
                trigger_type=trigger_type,
                timestamp=data.timestamp or get_utc_now(),
                inputs=data.inputs,
                tags=data.tags,
            )
            self.repo.add(execution)

            logs = [LogEntry(level=LogLevel.INFO, message=f"Execution started ({trigger_type})")]
            logs.extend(data.logs)
            self.repo.append_logs(execution_id, logs)

            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create execution {execution_id}: {e}")
            raise StoreError(f"Failed to create execution: {e}") from e

        logger.info(f"Execution {execution_id} created for flow {data.flow_id} ({trigger_type})")
        self._publish(execution_id, ExecutionStatus.RUNNING.value)
        return execution_id

    def update(self, execution_id: str, partial: ExecutionUpdate) -> bool:
        """
        Apply a partial update atomically.

        Raises:
            NotFoundError: no execution with this id
            InvalidTransition: update would break the lifecycle
            StoreError: the write failed (nothing was applied)
        """
        try:
            execution = self.repo.get_for_update(execution_id)
            if execution is None:
                raise NotFoundError(f"Execution {execution_id} not found")

            self._apply_status(execution, partial)

            if partial.outputs:
                self.repo.upsert_nodes(execution_id, partial.outputs)
            if partial.logs:
                self.repo.append_logs(execution_id, partial.logs)

            self.db.commit()
            status = execution.status

        except FlowbitError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update execution {execution_id}: {e}")
            raise StoreError(f"Failed to update execution: {e}") from e

        self._publish(execution_id, status)
        return True

    def _apply_status(self, execution: Execution, partial: ExecutionUpdate) -> None:
        current = execution.status
        target = partial.status.value if partial.status is not None else None

        if is_terminal(current):
            if target is None:
                if partial.duration is not None or partial.error is not None:
                    raise InvalidTransition(
                        f"Execution {execution.id} is already {current}"
                    )
                return
            if target != current:
                raise InvalidTransition(
                    f"Execution {execution.id} is already {current}, cannot move to {target}"
                )
            logger.debug(f"Execution {execution.id} already {current}, status update ignored")
            return

        if not is_terminal(target):
            if partial.duration is not None:
                raise InvalidTransition("duration can only be set with a terminal status")
            if partial.error is not None:
                raise InvalidTransition("error can only be set with status ERROR")
            return

        if partial.error is not None and target != ExecutionStatus.ERROR.value:
            raise InvalidTransition("error can only be set with status ERROR")

        execution.status = target
        execution.duration = (
            partial.duration if partial.duration is not None else seconds_since(execution.timestamp)
        )
        execution.error = partial.error

    def _publish(self, execution_id: str, status: str) -> None:
        if self.broker is not None:
            self.broker.publish(execution_id, status)
