"""
Execution Model

Tracks triggered workflow runs on an external engine.
"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, Index, JSON, Text
from sqlalchemy.orm import relationship

from flowbit.database.base import Base, get_current_timestamp


class Execution(Base):
    """
    Workflow execution run model.

    One row per triggered run. Created RUNNING before the engine is called,
    moved to COMPLETED/ERROR exactly once afterwards. Logs and per-node
    outputs live in their own tables.
    """
    __tablename__ = "executions"

    id = Column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False
    )

    # External workflow definition
    flow_id = Column(String(255), nullable=False, index=True)
    flow_name = Column(String(255), nullable=False)
    engine = Column(String(50), nullable=True)  # langflow, n8n

    # Status: RUNNING, COMPLETED, SUCCESS, ERROR
    status = Column(String(20), nullable=False, index=True)

    # manual, webhook, schedule, cron
    trigger_type = Column(String(20), nullable=False, default="manual")

    # Timing (duration in seconds, set once at the terminal transition)
    timestamp = Column(DateTime(timezone=True), default=get_current_timestamp, nullable=False, index=True)
    duration = Column(Float, nullable=True)

    inputs = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)

    # Relationships
    logs = relationship(
        "ExecutionLog",
        back_populates="execution",
        order_by="ExecutionLog.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    nodes = relationship(
        "ExecutionNode",
        back_populates="execution",
        order_by="ExecutionNode.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    # Indexes
    __table_args__ = (
        Index('idx_executions_flow_id_timestamp', 'flow_id', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f"<Execution(id='{self.id}', flow_id='{self.flow_id}', status='{self.status}')>"
