"""
Trigger Endpoints

- POST /trigger                      manual / schedule triggers from the dashboard
- GET|POST /webhook/{engine}/{id}    webhook alias (triggerType=webhook)
- GET|POST /hooks/{workflow_id}      Langflow webhook alias
"""

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from flowbit.api.deps import get_trigger_relay
from flowbit.core.exceptions import InvalidRequest
from flowbit.schemas.execution import TriggerType
from flowbit.schemas.trigger import ScheduleAck, TriggerRequest
from flowbit.services.trigger_relay import TriggerRelay

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_webhook_body(raw: bytes) -> Any:
    """JSON body, `{}` when empty, `{"text": raw}` when not JSON."""
    if not raw or not raw.strip():
        return {}
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return {"text": text}


def _render(outcome) -> Dict[str, Any]:
    if isinstance(outcome, ScheduleAck):
        return {"success": True, "result": outcome.model_dump(mode="json", by_alias=True)}
    return outcome.model_dump(mode="json", by_alias=True)


@router.post("/trigger")
async def trigger_workflow(
    request: Request,
    relay: TriggerRelay = Depends(get_trigger_relay),
):
    """
    Trigger a workflow run, or schedule one when triggerType is
    "schedule" and a cronExpression is given.

    Body: `{workflowId, engine, triggerType, payload, cronExpression?}`
    """
    try:
        body = TriggerRequest.model_validate(await request.json())
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        message = "Invalid trigger request" if isinstance(e, ValidationError) else "Request body must be JSON"
        raise InvalidRequest(message)

    outcome = await relay.trigger(
        workflow_id=body.workflow_id,
        engine=body.engine,
        trigger_type=body.trigger_type,
        payload=body.payload,
        cron_expression=body.cron_expression,
        tags=body.tags,
    )
    return _render(outcome)


def _webhook_usage(request: Request, engine: str, workflow_id: str) -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Webhook endpoint is active",
        "usage": {
            "method": "POST",
            "contentType": "application/json",
            "url": str(request.url.replace(query="")),
            "workflowId": workflow_id,
            "engine": engine,
        },
    }


@router.get("/webhook/{engine}/{workflow_id}")
async def webhook_usage(engine: str, workflow_id: str, request: Request):
    return _webhook_usage(request, engine, workflow_id)


@router.post("/webhook/{engine}/{workflow_id}")
async def webhook_trigger(
    engine: str,
    workflow_id: str,
    request: Request,
    relay: TriggerRelay = Depends(get_trigger_relay),
):
    """Trigger with the raw request body as payload."""
    payload = parse_webhook_body(await request.body())
    logger.info(f"Webhook received for {engine} workflow {workflow_id}")
    outcome = await relay.trigger(workflow_id, engine, TriggerType.WEBHOOK.value, payload)
    return _render(outcome)


@router.get("/hooks/{workflow_id}")
async def hook_usage(workflow_id: str, request: Request):
    return _webhook_usage(request, "langflow", workflow_id)


@router.post("/hooks/{workflow_id}")
async def hook_trigger(
    workflow_id: str,
    request: Request,
    relay: TriggerRelay = Depends(get_trigger_relay),
):
    """Langflow webhook alias."""
    payload = parse_webhook_body(await request.body())
    logger.info(f"Hook received for Langflow flow {workflow_id}")
    outcome = await relay.trigger(workflow_id, "langflow", TriggerType.WEBHOOK.value, payload)
    return _render(outcome)
