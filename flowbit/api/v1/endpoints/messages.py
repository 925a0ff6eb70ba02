"""
Messages Endpoint
"""

from fastapi import APIRouter, Depends, Query

from flowbit.api.deps import get_message_extractor
from flowbit.config import settings
from flowbit.services.messages import MessageExtractor

router = APIRouter()


@router.get("/messages")
async def list_messages(
    limit: int = Query(settings.RUNS_DEFAULT_LIMIT, ge=1, le=settings.RUNS_MAX_LIMIT),
    extractor: MessageExtractor = Depends(get_message_extractor),
):
    """Messages derived from the most recent `limit` executions, newest first."""
    body = extractor.list(limit=limit).model_dump(mode="json")
    if body["error"] is None:
        del body["error"]
    return body
