"""
Execution Endpoints

Read API over stored executions plus the live status stream:

- GET    /runs                 {runs, error?}
- GET    /executions           {executions, runs, error?}
- GET    /runs/{id}            {run}
- DELETE /runs/{id}            {success}
- GET    /runs/{id}/stream     text/event-stream
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from sqlalchemy.orm import Session

from flowbit.api.deps import get_broker, get_db, get_reader
from flowbit.config import settings
from flowbit.core.exceptions import NotFoundError
from flowbit.database.repositories.executions import ExecutionRepository
from flowbit.schemas.execution import ExecutionList
from flowbit.services.executions import ExecutionReader, status_fetcher
from flowbit.services.stream_relay import ExecutionEventBroker, StreamSubscription, format_sse

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def _render_list(result: ExecutionList) -> Dict[str, Any]:
    body: Dict[str, Any] = {"runs": [run.model_dump(mode="json") for run in result.runs]}
    if result.error:
        body["error"] = result.error
    return body


@router.get("/runs")
async def list_runs(
    limit: int = Query(settings.RUNS_DEFAULT_LIMIT, ge=1, le=settings.RUNS_MAX_LIMIT),
    flow_id: Optional[str] = Query(None),
    reader: ExecutionReader = Depends(get_reader),
):
    """Executions newest first. Store failures return an empty list with `error`."""
    return _render_list(reader.list(limit=limit, flow_id=flow_id))


@router.get("/executions")
async def list_executions(
    limit: int = Query(settings.RUNS_DEFAULT_LIMIT, ge=1, le=settings.RUNS_MAX_LIMIT),
    flow_id: Optional[str] = Query(None),
    reader: ExecutionReader = Depends(get_reader),
):
    body = _render_list(reader.list(limit=limit, flow_id=flow_id))
    body["executions"] = body["runs"]
    return body


@router.get("/runs/{execution_id}")
async def get_run(execution_id: str, reader: ExecutionReader = Depends(get_reader)):
    run = reader.get(execution_id)
    if run is None:
        raise NotFoundError(f"Execution {execution_id} not found")
    return {"run": run.model_dump(mode="json")}


@router.delete("/runs/{execution_id}")
async def delete_run(execution_id: str, db: Session = Depends(get_db)):
    """Delete an execution with its logs and node results."""
    if not ExecutionRepository(db).delete(execution_id):
        raise NotFoundError(f"Execution {execution_id} not found")
    return {"success": True}


@router.get("/runs/{execution_id}/stream")
async def stream_run(
    execution_id: str,
    request: Request,
    broker: ExecutionEventBroker = Depends(get_broker),
):
    """
    Stream execution status with Server-Sent Events.

    Events (JSON in `data:` frames):
    - init   {type, execution_id, status, timestamp}
    - update {type, execution_id, status}
    - end    {type, execution_id, status, duration, error}
    - error  {type, execution_id, error}

    The stream ends after `end` or `error`. A missing execution yields a
    single `error` event.
    """
    # Reject over the limit before the response starts; events() registers
    broker.check_capacity(execution_id)

    subscription = StreamSubscription(
        execution_id,
        fetch_status=status_fetcher(request.app.state.session_factory),
        broker=broker,
        poll_interval=getattr(request.app.state, "stream_poll_interval", settings.STREAM_POLL_INTERVAL),
    )
    logger.info(f"Stream {subscription.id} requested for execution {execution_id}")

    async def event_generator():
        try:
            async for event in subscription.events():
                yield format_sse(event)
        finally:
            subscription.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(subscription.close),
    )
