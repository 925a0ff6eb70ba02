"""
Cron Job Schemas
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CronJobCreate(BaseModel):
    """`scheduleJob({id, cronExpression, workflowId, engine, payload})`."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str = Field(..., min_length=1, max_length=255)
    cron_expression: str = Field(..., min_length=1)
    workflow_id: str = Field(..., min_length=1)
    engine: str = Field(..., min_length=1)
    payload: Any = None


class CronJobRead(BaseModel):
    """Serialised with camelCase keys for the dashboard."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, from_attributes=True)

    id: str
    cron_expression: str
    workflow_id: str
    engine: str
    payload: Any = None
    active: bool
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
