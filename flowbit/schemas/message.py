"""
Message Schemas

Messages are derived from execution node outputs; they are not stored.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    id: str
    execution_id: str
    workflow_id: str
    workflow_name: str
    engine: Optional[str] = None
    direction: Literal["incoming", "outgoing"]
    recipient: Optional[str] = None
    sender: Optional[str] = None
    content: str
    timestamp: datetime
    folder_id: str = "unassigned"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MessageList(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    error: Optional[str] = None
