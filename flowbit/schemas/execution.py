"""
Execution Schemas

Pydantic models for recording and reading executions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from flowbit.utils.timezone import to_utc

# Column length of flow_id / flow_name
MAX_NAME_LENGTH = 255


class ExecutionStatus(str, Enum):
    """Execution lifecycle: RUNNING -> one terminal status."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    SUCCESS = "SUCCESS"  # Engines that report success under this name
    ERROR = "ERROR"


TERMINAL_STATUSES = frozenset({
    ExecutionStatus.COMPLETED.value,
    ExecutionStatus.SUCCESS.value,
    ExecutionStatus.ERROR.value,
})


def is_terminal(status: Optional[str]) -> bool:
    """True for COMPLETED, SUCCESS and ERROR."""
    return status in TERMINAL_STATUSES


class TriggerType(str, Enum):
    """How an execution was initiated (informational only)."""
    MANUAL = "manual"
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"
    CRON = "cron"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogEntry(BaseModel):
    """One append-only log line."""
    model_config = ConfigDict(from_attributes=True)

    level: LogLevel = LogLevel.INFO
    message: str
    timestamp: Optional[datetime] = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v else v


class NodeOutput(BaseModel):
    """Result of one node/step: `{status, data, error}`."""
    model_config = ConfigDict(from_attributes=True)

    status: Optional[str] = None
    data: Any = None
    error: Any = None

    def resolved_status(self) -> str:
        """Explicit status if given, otherwise derived from the error field."""
        if self.status:
            return self.status.upper()
        return ExecutionStatus.ERROR.value if self.error else ExecutionStatus.SUCCESS.value


class ExecutionCreate(BaseModel):
    """Fields supplied when an execution is first recorded."""
    id: Optional[str] = Field(default=None, max_length=64)
    flow_id: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    flow_name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    engine: Optional[str] = None
    trigger_type: TriggerType = TriggerType.MANUAL
    inputs: Any = None
    tags: Optional[List[str]] = None
    timestamp: Optional[datetime] = None
    logs: List[LogEntry] = Field(default_factory=list)


class ExecutionUpdate(BaseModel):
    """Partial update applied atomically to an existing execution."""
    status: Optional[ExecutionStatus] = None
    duration: Optional[float] = Field(default=None, ge=0)
    outputs: Optional[Dict[str, NodeOutput]] = None
    error: Optional[str] = None
    logs: List[LogEntry] = Field(default_factory=list)


class ExecutionRead(BaseModel):
    """Full execution record as returned by the Read API."""
    id: str
    flow_id: str
    flow_name: str
    engine: Optional[str] = None
    status: str
    trigger_type: str
    timestamp: datetime
    duration: Optional[float] = None
    inputs: Any = None
    outputs: Dict[str, NodeOutput] = Field(default_factory=dict)
    error: Optional[str] = None
    tags: Optional[List[str]] = None
    logs: List[LogEntry] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @classmethod
    def from_model(cls, execution) -> "ExecutionRead":
        """Build from an ORM Execution, folding node rows into `outputs`."""
        return cls(
            id=execution.id,
            flow_id=execution.flow_id,
            flow_name=execution.flow_name,
            engine=execution.engine,
            status=execution.status,
            trigger_type=execution.trigger_type,
            timestamp=execution.timestamp,
            duration=execution.duration,
            inputs=execution.inputs,
            outputs={
                node.node_name: NodeOutput(status=node.status, data=node.data, error=node.error)
                for node in execution.nodes
            },
            error=execution.error,
            tags=execution.tags,
            logs=[LogEntry.model_validate(log) for log in execution.logs],
        )


class ExecutionList(BaseModel):
    """Read API list result. `error` is set instead of raising on store failure."""
    runs: List[ExecutionRead] = Field(default_factory=list)
    error: Optional[str] = None
