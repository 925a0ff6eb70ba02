"""
Execution Read API

Historical views over the execution store. list() fails open: a store
failure comes back as an empty result with `error` set.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from flowbit.core.exceptions import StoreError
from flowbit.database.repositories.executions import ExecutionRepository
from flowbit.schemas.execution import ExecutionList, ExecutionRead

logger = logging.getLogger(__name__)


class ExecutionReader:
    def __init__(self, db: Session):
        self.repo = ExecutionRepository(db)

    def list(self, limit: int = 50, flow_id: Optional[str] = None) -> ExecutionList:
        """Newest first by timestamp, optionally for one flow."""
        try:
            executions = self.repo.list(limit=limit, flow_id=flow_id)
            return ExecutionList(runs=[ExecutionRead.from_model(e) for e in executions])
        except StoreError as e:
            logger.error(f"Listing executions failed, returning empty result: {e}")
            return ExecutionList(runs=[], error=e.message)

    def get(self, execution_id: str) -> Optional[ExecutionRead]:
        """Full record with logs and outputs, or None."""
        execution = self.repo.get(execution_id)
        if execution is None:
            return None
        return ExecutionRead.from_model(execution)


def status_fetcher(session_factory: Callable[[], Session]) -> Callable[[str], Optional[Dict[str, Any]]]:
    """
    Build the live stream's fetch function.

    Each fetch opens and closes its own session.
    """
    def fetch(execution_id: str) -> Optional[Dict[str, Any]]:
        db = session_factory()
        try:
            return ExecutionRepository(db).get_status(execution_id)
        finally:
            db.close()

    return fetch
