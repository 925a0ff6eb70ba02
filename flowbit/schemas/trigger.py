"""
Trigger Schemas

Request/response bodies of the trigger, webhook and schedule paths.
Field names follow the dashboard's camelCase wire format.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TriggerRequest(BaseModel):
    """
    Body of POST /trigger.

    Everything is optional here so that missing ids are reported by the
    trigger relay as a 400, not by FastAPI as a 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
    engine: Optional[str] = None
    trigger_type: Optional[str] = Field(default=None, alias="triggerType")
    payload: Any = None
    cron_expression: Optional[str] = Field(default=None, alias="cronExpression")
    tags: Optional[List[str]] = None


class TriggerOutcome(BaseModel):
    """Result of one trigger attempt that reached the engine."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    execution_id: str = Field(..., serialization_alias="executionId")
    status: str
    result: Any = None


class ScheduleAck(BaseModel):
    """Returned instead of an execution when a trigger is scheduled."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    scheduled: bool = True
    job_id: str = Field(..., serialization_alias="jobId")
    workflow_id: str = Field(..., serialization_alias="workflowId")
    engine: str
    cron_expression: str = Field(..., serialization_alias="cronExpression")
    next_run: Optional[datetime] = Field(default=None, serialization_alias="nextRun")
    message: str = "Workflow scheduled successfully"
