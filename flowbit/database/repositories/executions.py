"""
Execution Repository

Storage primitives for executions, their logs and per-node results.

Write helpers only add/flush; the caller (ExecutionRecorder) owns the
transaction so that a create or update lands as a single commit.
Read helpers never mutate.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flowbit.core.exceptions import StoreError
from flowbit.database.models.execution import Execution
from flowbit.database.models.execution_log import ExecutionLog
from flowbit.database.models.execution_node import ExecutionNode
from flowbit.schemas.execution import LogEntry, NodeOutput
from flowbit.utils.timezone import get_utc_now

logger = logging.getLogger(__name__)


def make_node_id(node_name: str, execution_id: str) -> str:
    """Stable node id: node-<name>-<first 8 chars of execution id>."""
    return f"node-{node_name}-{execution_id[:8]}"


class ExecutionRepository:
    """
    Repository for execution database operations.
    """

    def __init__(self, db: Session):
        """
        Initialize repository.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # --- Reads ---------------------------------------------------------------

    def get(self, execution_id: str) -> Optional[Execution]:
        """Get an execution (with logs and nodes) or None."""
        try:
            return self.db.get(Execution, execution_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching execution {execution_id}: {e}")
            raise StoreError(f"Failed to fetch execution: {e}") from e

    def get_for_update(self, execution_id: str) -> Optional[Execution]:
        """Get an execution row locked for the current transaction."""
        stmt = (
            select(Execution)
            .where(Execution.id == execution_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def get_status(self, execution_id: str) -> Optional[Dict]:
        """
        Lightweight status snapshot for the live stream relay.

        Returns:
            {"status", "duration", "error", "timestamp"} or None if not found
        """
        try:
            row = self.db.execute(
                select(
                    Execution.status,
                    Execution.duration,
                    Execution.error,
                    Execution.timestamp,
                ).where(Execution.id == execution_id)
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching status for execution {execution_id}: {e}")
            raise StoreError(f"Failed to fetch execution status: {e}") from e

        if row is None:
            return None
        return {
            "status": row.status,
            "duration": row.duration,
            "error": row.error,
            "timestamp": row.timestamp,
        }

    def list(self, limit: int = 50, flow_id: Optional[str] = None) -> List[Execution]:
        """
        List executions newest first by timestamp.

        Args:
            limit: Max rows to return
            flow_id: Only executions of this flow

        Returns:
            List of executions
        """
        stmt = select(Execution)
        if flow_id:
            stmt = stmt.where(Execution.flow_id == flow_id)
        stmt = stmt.order_by(Execution.timestamp.desc(), Execution.id.desc()).limit(limit)

        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing executions: {e}")
            raise StoreError(f"Failed to fetch executions: {e}") from e

    def count_logs(self, execution_id: str) -> int:
        return self.db.execute(
            select(func.count(ExecutionLog.id)).where(ExecutionLog.execution_id == execution_id)
        ).scalar_one()

    # --- Write helpers (no commit) ----------------------------------------------

    def add(self, execution: Execution) -> Execution:
        self.db.add(execution)
        self.db.flush()
        return execution

    def append_logs(self, execution_id: str, logs: Iterable[LogEntry]) -> int:
        """Append log rows. Existing rows are never touched."""
        count = 0
        for entry in logs:
            self.db.add(ExecutionLog(
                execution_id=execution_id,
                level=entry.level.value,
                message=entry.message,
                timestamp=entry.timestamp or get_utc_now(),
            ))
            count += 1
        if count:
            self.db.flush()
        return count

    def upsert_nodes(self, execution_id: str, outputs: Dict[str, NodeOutput]) -> int:
        """
        Insert or overwrite one row per output key.

        Keyed by (execution_id, node_name); a second write to the same node
        replaces status/data/error instead of adding a row.
        """
        if not outputs:
            return 0

        existing = {
            node.node_name: node
            for node in self.db.execute(
                select(ExecutionNode).where(
                    ExecutionNode.execution_id == execution_id,
                    ExecutionNode.node_name.in_(list(outputs.keys())),
                )
            ).scalars()
        }

        for node_name, output in outputs.items():
            node = existing.get(node_name)
            if node is None:
                node = ExecutionNode(
                    execution_id=execution_id,
                    node_id=make_node_id(node_name, execution_id),
                    node_name=node_name,
                )
                self.db.add(node)
            node.status = output.resolved_status()
            node.data = output.data if output.data is not None else {}
            node.error = output.error

        self.db.flush()
        return len(outputs)

    # --- Administrative ---------------------------------------------------------

    def delete(self, execution_id: str) -> bool:
        """
        Delete an execution together with its logs and node rows.

        Returns:
            True if a row was deleted, False if it did not exist
        """
        try:
            execution = self.db.get(Execution, execution_id)
            if execution is None:
                return False
            self.db.delete(execution)
            self.db.commit()
            logger.info(f"Deleted execution {execution_id}")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting execution {execution_id}: {e}")
            raise StoreError(f"Failed to delete execution: {e}") from e
