"""
API Dependencies

Database sessions and the relay services, all built from objects the
lifespan handler placed on app.state.
"""

from collections.abc import Generator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from flowbit.services.engines import EngineRegistry
from flowbit.services.executions import ExecutionReader
from flowbit.services.messages import MessageExtractor
from flowbit.services.scheduler import CronScheduler
from flowbit.services.stream_relay import ExecutionEventBroker
from flowbit.services.trigger_relay import TriggerRelay


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized. Server may still be starting up.",
        )
    return value


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Get database session.

    Yields:
        Database session from the app's session factory
    """
    db = _state(request, "session_factory")()
    try:
        yield db
    finally:
        db.close()


def get_broker(request: Request) -> ExecutionEventBroker:
    return _state(request, "broker")


def get_engines(request: Request) -> EngineRegistry:
    return _state(request, "engines")


def get_scheduler(request: Request) -> CronScheduler:
    """
    Get the cron scheduler.

    Raises:
        HTTPException: 503 when scheduling is disabled
    """
    return _state(request, "scheduler")


def get_trigger_relay(request: Request) -> TriggerRelay:
    return TriggerRelay(
        session_factory=_state(request, "session_factory"),
        engines=get_engines(request),
        broker=get_broker(request),
        scheduler=getattr(request.app.state, "scheduler", None),
    )


def get_reader(db: Session = Depends(get_db)) -> ExecutionReader:
    return ExecutionReader(db)


def get_message_extractor(reader: ExecutionReader = Depends(get_reader)) -> MessageExtractor:
    return MessageExtractor(reader)
